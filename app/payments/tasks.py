"""
Celery tasks for payment processing.

This module provides periodic tasks for:
- Expiring payments the provider never confirmed

Usage:
    from payments.tasks import expire_stale_payments

    # Normally run by celery-beat (see migration 0002)
    expire_stale_payments.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from core.exceptions import BaseApplicationError
from payments.models import Payment
from payments.services import PaymentOrchestrator
from payments.state_machines import PaymentStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STALE_PAYMENT_DESCRIPTION = "Payment expired without provider confirmation"
UNSUBMITTED_PAYMENT_DESCRIPTION = "Payment was never submitted to the provider"
SWEEP_BATCH_SIZE = 200


# =============================================================================
# Stale Payment Sweep
# =============================================================================


@shared_task(bind=True)
def expire_stale_payments(self) -> dict:
    """
    Fail payments the provider never resolved.

    Processing payments submitted more than PAYMENT_STALE_AFTER_MINUTES ago
    are re-queried first; a terminal provider answer is applied as usual.
    Those still open afterwards are failed. Pending payments that old never
    reached the provider (e.g. the process died mid-initiation) and are
    failed directly.

    Each payment is handled on its own, so one provider error does not stop
    the sweep.

    Returns:
        Dict with counts: checked, resolved_by_provider, expired, errors
    """
    stale_minutes = getattr(settings, "PAYMENT_STALE_AFTER_MINUTES", 60)
    cutoff = timezone.now() - timedelta(minutes=stale_minutes)

    stats = {"checked": 0, "resolved_by_provider": 0, "expired": 0, "errors": 0}

    processing_ids = list(
        Payment.objects.filter(
            status=PaymentStatus.PROCESSING,
            submitted_at__lt=cutoff,
        ).values_list("id", flat=True)[:SWEEP_BATCH_SIZE]
    )
    pending_ids = list(
        Payment.objects.filter(
            status=PaymentStatus.PENDING,
            created_at__lt=cutoff,
        ).values_list("id", flat=True)[:SWEEP_BATCH_SIZE]
    )

    for payment_id in processing_ids:
        stats["checked"] += 1
        try:
            payment = PaymentOrchestrator.check_status(payment_id)
            if payment.is_terminal:
                stats["resolved_by_provider"] += 1
                continue
            resolution = PaymentOrchestrator.resolve(
                payment_id, PaymentStatus.FAILED, description=STALE_PAYMENT_DESCRIPTION
            )
            if resolution.applied:
                stats["expired"] += 1
        except BaseApplicationError as e:
            stats["errors"] += 1
            logger.error(
                "Failed to expire stale payment",
                extra={"payment_id": str(payment_id), "error_code": e.error_code, "error": e.message},
            )

    for payment_id in pending_ids:
        stats["checked"] += 1
        try:
            resolution = PaymentOrchestrator.resolve(
                payment_id, PaymentStatus.FAILED, description=UNSUBMITTED_PAYMENT_DESCRIPTION
            )
            if resolution.applied:
                stats["expired"] += 1
        except BaseApplicationError as e:
            stats["errors"] += 1
            logger.error(
                "Failed to expire unsubmitted payment",
                extra={"payment_id": str(payment_id), "error_code": e.error_code, "error": e.message},
            )

    logger.info("Stale payment sweep completed", extra={"cutoff": cutoff.isoformat(), **stats})
    return stats
