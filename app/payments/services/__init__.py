"""
Payment services for coordinating payment operations.

This module provides:
- PaymentService: PaymentOrder lifecycle (create, pay, fail, refund, retry)
- InstallmentService: EMI plans, installment payments and overdue sweeps
- PayoutService: Teacher withdrawals and gateway settlement
- PaymentReportService: Order lists, teacher earnings and admin statistics

Usage:
    from payments.services import PaymentService

    result = PaymentService.create_order_for_batch(payer=student, batch_id="batch-42")

    # Installments
    from payments.services import InstallmentService

    result = InstallmentService.create_plan_for_batch(
        student=student,
        batch_id="batch-42",
        number_of_installments=12,
    )

    # Payouts
    from payments.services import PayoutService

    result = PayoutService.request(teacher, Decimal("1500.00"))
"""

from payments.services.installment_service import (
    InstallmentService,
    ScheduledInstallment,
    calculate_emi,
    generate_schedule,
)
from payments.services.payment_service import PaymentService, RefundResult
from payments.services.payout_service import BalanceSummary, PayoutService
from payments.services.reporting import PaymentReportService, PaymentStats, TeacherEarnings

__all__ = [
    # Payments
    "PaymentService",
    "RefundResult",
    # Installments
    "InstallmentService",
    "ScheduledInstallment",
    "calculate_emi",
    "generate_schedule",
    # Payouts
    "PayoutService",
    "BalanceSummary",
    # Reporting
    "PaymentReportService",
    "PaymentStats",
    "TeacherEarnings",
]
