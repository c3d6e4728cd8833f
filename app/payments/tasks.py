"""
Celery tasks for payment processing.

Celery autodiscovers tasks from this module; the implementations live in
payments.workers.

Usage:
    from payments.tasks import sweep_overdue_installments

    sweep_overdue_installments.delay()
"""

from payments.workers import (  # noqa: F401
    check_plan_overdue,
    clear_pending_revenue,
    sweep_overdue_installments,
)

__all__ = [
    "check_plan_overdue",
    "clear_pending_revenue",
    "sweep_overdue_installments",
]
