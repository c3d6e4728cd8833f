"""
Installment sweeper worker.

Celery tasks that mark installments OVERDUE once their due date plus the
plan's grace period has passed, and recompute the plan summary (a plan
with 3 missed installments becomes DEFAULTED).

Tasks:
- sweep_overdue_installments: Periodic task over every active plan
- check_plan_overdue: Check a single plan

Usage:
    # Typically called via celery-beat schedule
    from payments.workers import sweep_overdue_installments

    sweep_overdue_installments.delay()
    check_plan_overdue.delay(str(plan.id))
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.utils import timezone

from payments.models import InstallmentPlan
from payments.services import InstallmentService

logger = logging.getLogger(__name__)


@shared_task(bind=True, acks_late=True)
def sweep_overdue_installments(self) -> dict:
    """
    Mark overdue installments across all active plans.

    The underlying UPDATE is conditional on status='pending', so this
    task is idempotent and safe to run while webhooks pay installments.

    Returns:
        Dict with plans_checked and installments_marked
    """
    now = timezone.now()
    logger.info("Starting overdue installment sweep", extra={"now": now.isoformat()})

    summary = InstallmentService.sweep_overdue(now=now)

    logger.info(
        f"Overdue installment sweep complete: marked {summary['installments_marked']}",
        extra=summary,
    )
    return summary


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 3},
    acks_late=True,
)
def check_plan_overdue(self, plan_id: str) -> dict:
    """Mark overdue installments of one plan."""
    try:
        plan = InstallmentPlan.objects.get(id=plan_id)
    except InstallmentPlan.DoesNotExist:
        logger.warning("Installment plan not found", extra={"plan_id": plan_id})
        return {"plan_id": plan_id, "installments_marked": 0, "found": False}

    marked = InstallmentService.check_overdue(plan)
    return {"plan_id": plan_id, "installments_marked": marked, "found": True}
