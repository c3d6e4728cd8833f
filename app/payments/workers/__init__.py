"""
Workers for async payment processing.

This module contains Celery tasks for background payment operations:
- InstallmentSweeper: Marks overdue installments and defaults plans
- RevenueClearance: Makes cleared revenue withdrawable

Usage:
    from payments.workers import (
        check_plan_overdue,
        clear_pending_revenue,
        sweep_overdue_installments,
    )

    # Trigger manual processing
    sweep_overdue_installments.delay()
    clear_pending_revenue.delay()
"""

from payments.workers.installment_sweeper import (
    check_plan_overdue,
    sweep_overdue_installments,
)
from payments.workers.revenue_clearance import clear_pending_revenue

__all__ = [
    # Installment Sweeper
    "check_plan_overdue",
    "sweep_overdue_installments",
    # Revenue Clearance
    "clear_pending_revenue",
]
