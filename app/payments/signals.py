"""
Payment lifecycle signals.

Sent by PaymentOrchestrator.resolve after the resolving transaction
commits, through ``send_robust`` so a failing receiver can neither roll
back the payment nor stop other receivers.

Signals:
    payment_completed(sender=Payment, payment=<Payment>)
    payment_failed(sender=Payment, payment=<Payment>)

Usage:
    from django.dispatch import receiver
    from payments.signals import payment_completed

    @receiver(payment_completed)
    def notify_owner(sender, payment, **kwargs):
        ...
"""

from __future__ import annotations

import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

payment_completed = Signal()
payment_failed = Signal()


@receiver(payment_completed, dispatch_uid="payments.log_term_activated")
def log_term_activated(sender, payment, **kwargs):
    logger.info(
        "Listing term activated",
        extra={
            "payment_id": str(payment.id),
            "listing_id": str(payment.listing_id),
            "payment_type": payment.payment_type,
            "term_end": payment.term_end.isoformat(),
        },
    )


@receiver(payment_failed, dispatch_uid="payments.log_payment_failed")
def log_payment_failed(sender, payment, **kwargs):
    logger.info(
        "Payment failed",
        extra={
            "payment_id": str(payment.id),
            "listing_id": str(payment.listing_id),
            "result_code": payment.result_code,
            "reason": payment.result_description,
        },
    )
