"""
Data types for revenue ledger operations.

Types:
    RecordRevenueParams: Everything needed to write one RevenueEntry

Usage:
    from payments.ledger.types import RecordRevenueParams

    params = RecordRevenueParams.for_order(order)
    entry, created = revenue_ledger.record(params)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from payments.commission import SplitResult
    from payments.models import Installment, PaymentOrder


@dataclass(frozen=True)
class RecordRevenueParams:
    """
    Parameters for recording a revenue entry.

    Attributes:
        idempotency_key: Unique key for the source payment
        teacher_id: Teacher owed the teacher share
        amount: Collected amount
        platform_share: Platform part of amount
        teacher_share: Teacher part of amount
        source: Acquisition source
        commission_rate: Rate used for the split
        currency: ISO currency code
        payment_order_id: Source order, if any
        installment_id: Source installment, if any
    """

    idempotency_key: str
    teacher_id: int
    amount: Decimal
    platform_share: Decimal
    teacher_share: Decimal
    source: str
    commission_rate: Decimal
    currency: str = "INR"
    payment_order_id: uuid.UUID | None = None
    installment_id: uuid.UUID | None = None

    def __post_init__(self):
        if self.platform_share + self.teacher_share != self.amount:
            raise ValueError(
                f"Shares {self.platform_share} + {self.teacher_share} "
                f"do not sum to amount {self.amount}"
            )

    @classmethod
    def for_order(cls, order: PaymentOrder) -> RecordRevenueParams:
        """Build params from a paid order's frozen split."""
        return cls(
            idempotency_key=f"order:{order.id}",
            teacher_id=order.teacher_id,
            amount=order.amount,
            platform_share=order.platform_fee,
            teacher_share=order.teacher_earnings,
            source=order.source,
            commission_rate=order.commission_rate,
            currency=order.currency,
            payment_order_id=order.id,
        )

    @classmethod
    def for_installment(
        cls,
        installment: Installment,
        split: SplitResult,
        payment_order_id: uuid.UUID | None = None,
    ) -> RecordRevenueParams:
        """Build params for a paid installment split at its plan's rate."""
        plan = installment.plan
        return cls(
            idempotency_key=f"installment:{installment.id}",
            teacher_id=plan.teacher_id,
            amount=split.amount,
            platform_share=split.platform_fee,
            teacher_share=split.teacher_earnings,
            source=plan.source,
            commission_rate=split.commission_rate,
            currency=plan.currency,
            payment_order_id=payment_order_id,
            installment_id=installment.id,
        )
