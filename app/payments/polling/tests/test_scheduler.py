"""
Tests for the polling scheduler primitives.
"""

import threading

import pytest

from payments.polling import CancellationToken, SystemClock, Ticker
from payments.polling.tests.clock import FakeClock


class TestCancellationToken:
    def test_starts_uncancelled(self):
        assert not CancellationToken().cancelled

    def test_cancel_is_sticky(self):
        token = CancellationToken()

        token.cancel()
        token.cancel()

        assert token.cancelled

    def test_wait_wakes_on_cancel(self):
        token = CancellationToken()
        timer = threading.Timer(0.01, token.cancel)
        timer.start()

        assert token.wait(5) is True
        timer.join()


class TestSystemClock:
    def test_sleep_returns_false_when_cancelled(self):
        token = CancellationToken()
        token.cancel()

        assert SystemClock().sleep(5, token) is False

    def test_short_sleep_completes(self):
        assert SystemClock().sleep(0.001, CancellationToken()) is True


class TestTicker:
    """Tests for Ticker."""

    def test_ticks_every_interval_before_deadline(self):
        clock = FakeClock()
        ticker = Ticker(3, 60, clock=clock)

        ticks = list(ticker)

        assert ticks == [3 * n for n in range(1, 20)]
        assert ticker.expired
        assert not ticker.cancelled
        assert clock.now == 1060.0

    def test_deadline_on_tick_boundary_is_not_a_tick(self):
        """A tick due exactly at the deadline is the expiry, not a poll."""
        ticks = list(Ticker(5, 15, clock=FakeClock()))

        assert ticks == [5, 10]

    def test_break_leaves_not_expired(self):
        ticker = Ticker(3, 60, clock=FakeClock())

        for elapsed in ticker:
            if elapsed == 9:
                break

        assert not ticker.expired

    def test_cancel_between_ticks(self):
        token = CancellationToken()
        ticker = Ticker(3, 60, clock=FakeClock(), token=token)
        seen = []

        for elapsed in ticker:
            seen.append(elapsed)
            if elapsed == 6:
                token.cancel()

        assert seen == [3, 6]
        assert ticker.cancelled
        assert not ticker.expired

    def test_pre_cancelled_token_yields_nothing(self):
        token = CancellationToken()
        token.cancel()
        ticker = Ticker(3, 60, clock=FakeClock(), token=token)

        assert list(ticker) == []
        assert not ticker.expired

    def test_slow_iterations_do_not_shift_schedule(self):
        """Ticks are anchored to the start, not to the previous tick."""
        clock = FakeClock()
        ticker = Ticker(3, 12, clock=clock)

        for _ in ticker:
            clock.advance(2)

        assert clock.sleeps == [3, 1, 1, 1]
        assert ticker.expired

    def test_overrun_tick_fires_immediately(self):
        clock = FakeClock()
        ticker = Ticker(3, 60, clock=clock)
        iterator = iter(ticker)

        assert next(iterator) == 3
        clock.advance(10)
        assert next(iterator) == 6
        assert clock.sleeps == [3]

    @pytest.mark.parametrize("interval,duration", [(0, 60), (3, 0), (-1, 60)])
    def test_rejects_non_positive_arguments(self, interval, duration):
        with pytest.raises(ValueError):
            Ticker(interval, duration)
