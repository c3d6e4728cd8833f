"""
Payment domain models.

This module contains all payment-related models:
- PaymentOrder: One purchase attempt with its frozen commission split
- InstallmentPlan / Installment: EMI plans and their scheduled installments
- PayoutRequest / PayoutAllocation: Teacher withdrawals and the revenue they draw
- GatewayTransaction: Webhook deduplication and audit per gateway order
- RevenueEntry / TeacherBalance: Revenue ledger (defined in payments.ledger)
"""

from payments.ledger.models import RevenueEntry, TeacherBalance
from payments.models.gateway_transaction import GatewayTransaction
from payments.models.installment_plan import Installment, InstallmentPlan
from payments.models.payment_order import PaymentOrder
from payments.models.payout import PayoutAllocation, PayoutRequest

__all__ = [
    "GatewayTransaction",
    "Installment",
    "InstallmentPlan",
    "PaymentOrder",
    "PayoutAllocation",
    "PayoutRequest",
    "RevenueEntry",
    "TeacherBalance",
]
