"""
Celery tasks for listings.

Usage:
    from listings.tasks import expire_listing_terms

    # Normally run by celery-beat (see migration 0002)
    expire_listing_terms.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.utils import timezone

from listings.models import Listing, TermStatus

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def expire_listing_terms(self) -> dict:
    """
    Move listings whose paid term has ended from ACTIVE to EXPIRED.

    Uses a single conditional UPDATE, so a renewal committed between the
    scan and the write (which pushes current_term_end forward) is never
    overwritten.

    Returns:
        Dict with ``expired_count``
    """
    now = timezone.now()
    expired_count = Listing.objects.filter(
        term_status=TermStatus.ACTIVE,
        current_term_end__lte=now,
    ).update(term_status=TermStatus.EXPIRED, updated_at=now)

    logger.info(
        "Listing term expiry sweep completed",
        extra={"expired_count": expired_count},
    )
    return {"expired_count": expired_count}
