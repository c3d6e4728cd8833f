"""
Revenue clearance worker.

Promotes PENDING revenue entries to PROCESSED once they are older than
PAYMENTS_REVENUE_CLEARANCE_DAYS. Only PROCESSED (and later PAID) entries
count towards a teacher's withdrawable balance, net of the share refunds
reversed on them, so refunded earnings never leave the platform.

Usage:
    from payments.workers import clear_pending_revenue

    clear_pending_revenue.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.utils import timezone

from payments.ledger import revenue_ledger
from payments.policy import PaymentPolicy

logger = logging.getLogger(__name__)


@shared_task(bind=True, acks_late=True)
def clear_pending_revenue(self) -> dict:
    """
    Clear revenue entries past the clearance window.

    Returns:
        Dict with cleared_count and clearance_days
    """
    clearance_days = PaymentPolicy.from_settings().revenue_clearance_days
    cleared = revenue_ledger.clear_pending(now=timezone.now(), clearance_days=clearance_days)

    logger.info(
        f"Revenue clearance complete: cleared {cleared} entries",
        extra={"cleared_count": cleared, "clearance_days": clearance_days},
    )
    return {"cleared_count": cleared, "clearance_days": clearance_days}
