"""
Payment confirmation loop.

After a charge is pushed to the payer's phone the client waits for the
payer to confirm. The loop polls the status endpoint on a fixed cadence
until the payment resolves or a countdown runs out.

State Flow:
    IDLE -> SUBMITTING -> AWAITING_CONFIRMATION -> SUCCEEDED | FAILED
    SUBMITTING -> IDLE (contact or request rejected before any provider call)

A timeout is a UI-level give-up: the payment stays processing on the
server and a late callback still resolves it. Cancelling stops polling
and returns the loop to IDLE without touching the payment.

Usage:
    from payments.polling import PaymentConfirmationLoop, PaymentDraft

    loop = PaymentConfirmationLoop(gateway, PaymentDraft(listing_id=listing.id))
    outcome = loop.start("0712 345 678")
    if outcome.succeeded:
        show_receipt(outcome.receipt_number)
    else:
        outcome.raise_for_failure()
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

from core.exceptions import BaseApplicationError
from core.helpers import mask_phone
from payments.exceptions import (
    InvalidStateTransitionError,
    PaymentConfirmationTimeoutError,
    PaymentDeclinedError,
    PaymentValidationError,
)
from payments.polling.scheduler import CancellationToken, Ticker

if TYPE_CHECKING:
    import uuid

    from payments.polling.scheduler import Clock
    from payments.polling.sources import PaymentDraft, PaymentGateway

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

POLL_INTERVAL_SECONDS = 3
CONFIRMATION_TIMEOUT_SECONDS = 60

# Kenyan mobile number as typed: 07XXXXXXXX, 01XXXXXXXX, 2547..., +2547..., 7XXXXXXXX
CONTACT_PATTERN = re.compile(r"^(?:\+?254|0)?[17]\d{8}$")

INVALID_CONTACT_MESSAGE = "Please enter a valid M-Pesa phone number"
TIMEOUT_MESSAGE = "Payment timed out. Please try again."
DECLINED_MESSAGE = "Payment failed. Please try again."

CONTACT_ERROR_CODES = frozenset({"INVALID_CONTACT", "CONTACT_REQUIRED"})


class LoopState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Why an attempt did not succeed. Each has its own remediation."""

    INVALID_CONTACT = "invalid_contact"
    REFUSED = "refused"
    DECLINED = "declined"
    TIMED_OUT = "timed_out"


@dataclass
class LoopOutcome:
    """
    Result of one attempt.

    Attributes:
        state: Loop state when the attempt ended (IDLE if rejected up front
            or cancelled)
        payment_id: Set once the server created a payment
        message: Text to show the payer
        failure_kind: Set when the attempt did not succeed
        error_code: Server error code when the request was refused
        receipt_number: Provider receipt on success
        cancelled: True if the caller abandoned the attempt
    """

    state: LoopState
    payment_id: uuid.UUID | None = None
    message: str = ""
    failure_kind: FailureKind | None = None
    error_code: str | None = None
    receipt_number: str | None = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state == LoopState.SUCCEEDED

    def raise_for_failure(self) -> None:
        """
        Raise the exception matching ``failure_kind``; no-op otherwise.

        Raises:
            PaymentValidationError: Contact failed the format check, or the
                server refused the request
            PaymentDeclinedError: Provider reported the charge as failed
            PaymentConfirmationTimeoutError: Countdown ran out
        """
        details = {"payment_id": str(self.payment_id)} if self.payment_id else {}
        if self.failure_kind == FailureKind.INVALID_CONTACT:
            raise PaymentValidationError(self.message, error_code="INVALID_CONTACT", details=details)
        if self.failure_kind == FailureKind.REFUSED:
            raise PaymentValidationError(self.message, error_code=self.error_code, details=details)
        if self.failure_kind == FailureKind.DECLINED:
            raise PaymentDeclinedError(self.message, details=details)
        if self.failure_kind == FailureKind.TIMED_OUT:
            raise PaymentConfirmationTimeoutError(self.message, details=details)


def is_valid_contact(contact: str) -> bool:
    return bool(CONTACT_PATTERN.match(re.sub(r"\s+", "", contact or "")))


# =============================================================================
# Confirmation Loop
# =============================================================================


class PaymentConfirmationLoop:
    """
    Drives one payment attempt from contact entry to a terminal answer.

    ``start`` blocks until the attempt ends; ``cancel`` may be called from
    another thread and wakes the loop immediately. One loop runs one
    attempt at a time; call ``reset`` before the next.

    Args:
        gateway: Where payments are initiated and polled
        draft: What is being bought
        clock: Time source, real time by default
        poll_interval: Seconds between status polls
        timeout: Countdown length in seconds
        on_state_change: Optional callback receiving each new LoopState
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        draft: PaymentDraft,
        clock: Clock | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        timeout: float = CONFIRMATION_TIMEOUT_SECONDS,
        on_state_change: Callable[[LoopState], None] | None = None,
    ):
        self.gateway = gateway
        self.draft = draft
        self.clock = clock
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.on_state_change = on_state_change

        self._lock = threading.Lock()
        self._state = LoopState.IDLE
        self._token = CancellationToken()
        self.payment_id: uuid.UUID | None = None
        self.polls = 0

    @property
    def state(self) -> LoopState:
        return self._state

    def _set_state(self, state: LoopState) -> None:
        with self._lock:
            self._state = state
        if self.on_state_change is not None:
            self.on_state_change(state)

    def start(self, contact: str) -> LoopOutcome:
        """
        Submit the payment and wait for it to resolve.

        Args:
            contact: Payer phone number as typed

        Returns:
            LoopOutcome describing how the attempt ended

        Raises:
            InvalidStateTransitionError: The loop is not IDLE
        """
        with self._lock:
            if self._state != LoopState.IDLE:
                raise InvalidStateTransitionError(
                    f"Cannot start a payment attempt from '{self._state.value}'",
                    error_code="LOOP_NOT_IDLE",
                    details={"state": self._state.value},
                )
            if not is_valid_contact(contact):
                return LoopOutcome(
                    state=LoopState.IDLE,
                    message=INVALID_CONTACT_MESSAGE,
                    failure_kind=FailureKind.INVALID_CONTACT,
                )
            # A cancel issued before this point belongs to no attempt.
            self._token = token = CancellationToken()
            self._state = LoopState.SUBMITTING

        if self.on_state_change is not None:
            self.on_state_change(LoopState.SUBMITTING)

        contact = re.sub(r"\s+", "", contact)
        try:
            initiation = self.gateway.initiate(self.draft, contact)
        except PaymentValidationError as e:
            self._set_state(LoopState.IDLE)
            kind = (
                FailureKind.INVALID_CONTACT
                if e.error_code in CONTACT_ERROR_CODES
                else FailureKind.REFUSED
            )
            return LoopOutcome(
                state=LoopState.IDLE,
                message=e.message,
                failure_kind=kind,
                error_code=e.error_code,
            )
        except BaseApplicationError as e:
            logger.warning(
                "Payment initiation failed",
                extra={"error_code": e.error_code, "error": e.message, "phone": mask_phone(contact)},
            )
            return self._finish_failed(None, e.message or DECLINED_MESSAGE, FailureKind.DECLINED)

        self.payment_id = initiation.payment_id
        if not initiation.accepted:
            return self._finish_failed(
                initiation.payment_id,
                initiation.message or DECLINED_MESSAGE,
                FailureKind.DECLINED,
            )

        self._set_state(LoopState.AWAITING_CONFIRMATION)
        return self._await_confirmation(initiation.payment_id, token)

    def _await_confirmation(self, payment_id: uuid.UUID, token: CancellationToken) -> LoopOutcome:
        ticker = Ticker(self.poll_interval, self.timeout, clock=self.clock, token=token)
        log_context = {"payment_id": str(payment_id)}

        for elapsed in ticker:
            self.polls += 1
            try:
                snapshot = self.gateway.fetch_status(payment_id)
            except BaseApplicationError as e:
                logger.warning(
                    "Status poll failed, will retry",
                    extra={**log_context, "elapsed": elapsed, "error": e.message},
                )
                continue

            if snapshot.is_completed:
                self._set_state(LoopState.SUCCEEDED)
                logger.info("Payment confirmed", extra={**log_context, "polls": self.polls})
                return LoopOutcome(
                    state=LoopState.SUCCEEDED,
                    payment_id=payment_id,
                    message="Payment successful",
                    receipt_number=snapshot.receipt_number,
                )
            if snapshot.is_failed:
                return self._finish_failed(
                    payment_id, snapshot.message or DECLINED_MESSAGE, FailureKind.DECLINED
                )

        if ticker.expired:
            logger.info("Payment confirmation timed out", extra={**log_context, "polls": self.polls})
            return self._finish_failed(payment_id, TIMEOUT_MESSAGE, FailureKind.TIMED_OUT)

        self._set_state(LoopState.IDLE)
        logger.info("Payment confirmation cancelled", extra={**log_context, "polls": self.polls})
        return LoopOutcome(state=LoopState.IDLE, payment_id=payment_id, cancelled=True)

    def _finish_failed(
        self, payment_id: uuid.UUID | None, message: str, kind: FailureKind
    ) -> LoopOutcome:
        self._set_state(LoopState.FAILED)
        return LoopOutcome(
            state=LoopState.FAILED,
            payment_id=payment_id,
            message=message,
            failure_kind=kind,
        )

    def cancel(self) -> None:
        """
        Stop waiting. The payment itself is left to the server.

        Only a running attempt can be cancelled; otherwise this is a no-op.
        """
        with self._lock:
            if self._state in (LoopState.SUBMITTING, LoopState.AWAITING_CONFIRMATION):
                self._token.cancel()

    def reset(self) -> None:
        """
        Prepare for a fresh attempt, which creates a new payment.

        Raises:
            InvalidStateTransitionError: An attempt is still running
        """
        with self._lock:
            if self._state in (LoopState.SUBMITTING, LoopState.AWAITING_CONFIRMATION):
                raise InvalidStateTransitionError(
                    "Cannot reset while a payment attempt is running",
                    error_code="LOOP_BUSY",
                    details={"state": self._state.value},
                )
            self._state = LoopState.IDLE
            self._token = CancellationToken()
            self.payment_id = None
            self.polls = 0
