"""
Timing primitives for the confirmation loop.

The loop never calls ``time.sleep`` directly. It runs on a ``Ticker``
driven by an injectable ``Clock`` and stopped by a ``CancellationToken``,
so tests can drive a full countdown instantly with a fake clock.

Usage:
    token = CancellationToken()
    ticker = Ticker(interval=3, duration=60, token=token)

    for elapsed in ticker:
        if poll():
            break

    if ticker.expired:
        ...  # countdown reached zero
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterator


class CancellationToken:
    """
    Thread-safe, one-way cancellation flag.

    Once cancelled it stays cancelled; a new attempt needs a new token.

    Example:
        token = CancellationToken()
        threading.Thread(target=loop.run, args=(token,)).start()
        token.cancel()  # e.g. user navigated away
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds. Returns True if cancelled."""
        return self._event.wait(timeout)


class Clock(Protocol):
    """Time source used by Ticker."""

    def monotonic(self) -> float:
        """Seconds on a monotonic scale."""
        ...

    def sleep(self, seconds: float, token: CancellationToken) -> bool:
        """
        Wait ``seconds`` or until ``token`` is cancelled.

        Returns:
            True if the full wait elapsed, False if cancelled
        """
        ...


class SystemClock:
    """Real time. Sleeping wakes up early on cancellation."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, token: CancellationToken) -> bool:
        return not token.wait(seconds)


class Ticker:
    """
    Fixed-cadence ticker with a hard deadline.

    Yields the scheduled elapsed time of each tick (``interval``,
    ``2 * interval``, ...) for every tick strictly before ``duration``.
    Ticks are scheduled against the start time, so slow iterations do
    not push later ticks back.

    Iteration ends when:
    - the caller breaks out (``expired`` stays False)
    - the token is cancelled (``cancelled`` is True)
    - the deadline is reached (``expired`` is True), after waiting out the
      remainder of the countdown

    Args:
        interval: Seconds between ticks
        duration: Countdown length in seconds
        clock: Time source, SystemClock by default
        token: Cancellation token, a fresh one by default
    """

    def __init__(
        self,
        interval: float,
        duration: float,
        clock: Clock | None = None,
        token: CancellationToken | None = None,
    ):
        if interval <= 0 or duration <= 0:
            raise ValueError("interval and duration must be positive")
        self.interval = interval
        self.duration = duration
        self.clock = clock or SystemClock()
        self.token = token or CancellationToken()
        self.expired = False

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def _wait_until(self, start: float, offset: float) -> bool:
        delay = start + offset - self.clock.monotonic()
        if delay > 0 and not self.clock.sleep(delay, self.token):
            return False
        return not self.token.cancelled

    def __iter__(self) -> Iterator[float]:
        self.expired = False
        start = self.clock.monotonic()
        tick = 1
        while tick * self.interval < self.duration:
            offset = tick * self.interval
            if not self._wait_until(start, offset):
                return
            yield offset
            if self.token.cancelled:
                return
            tick += 1

        if self._wait_until(start, self.duration):
            self.expired = True
