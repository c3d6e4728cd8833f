"""
Commission calculator.

Splits a payment amount between the platform and the teacher. The
platform fee is rounded half-up to 2 decimal places and the teacher's
earnings are the exact remainder, so platform_fee + teacher_earnings
always equals the amount with no rounding drift.

The split is computed once, when a PaymentOrder or InstallmentPlan is
created, and stored on the record. Changing PAYMENTS_COMMISSION_RATES
never alters existing records.

Usage:
    from payments.commission import split, split_at_rate

    result = split(Decimal("1000.00"), "platform", policy)
    result.platform_fee      # Decimal("400.00")
    result.teacher_earnings  # Decimal("600.00")

    # Installments reuse the rate frozen on their plan
    split_at_rate(Decimal("333.33"), plan.commission_rate)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from payments.exceptions import PaymentValidationError

if TYPE_CHECKING:
    from payments.policy import PaymentPolicy

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Convert a number or numeric string to a 2dp Decimal, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SplitResult:
    """
    Outcome of a commission split.

    Attributes:
        platform_fee: Amount retained by the platform
        teacher_earnings: Amount owed to the teacher
        commission_rate: Fraction retained by the platform
    """

    platform_fee: Decimal
    teacher_earnings: Decimal
    commission_rate: Decimal

    @property
    def amount(self) -> Decimal:
        return self.platform_fee + self.teacher_earnings


def split_at_rate(amount, commission_rate) -> SplitResult:
    """
    Split amount using an already-resolved commission rate.

    Raises:
        PaymentValidationError: amount <= 0 or rate outside 0..1
    """
    amount = to_money(amount)
    rate = Decimal(str(commission_rate))
    if amount <= 0:
        raise PaymentValidationError(
            "Amount must be positive",
            error_code="INVALID_AMOUNT",
            details={"amount": str(amount)},
        )
    if rate < 0 or rate > 1:
        raise PaymentValidationError(
            "Commission rate must be between 0 and 1",
            error_code="INVALID_COMMISSION_RATE",
            details={"rate": str(rate)},
        )

    platform_fee = (amount * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return SplitResult(
        platform_fee=platform_fee,
        teacher_earnings=amount - platform_fee,
        commission_rate=rate,
    )


def split(amount, source: str, policy: PaymentPolicy) -> SplitResult:
    """
    Split amount according to the acquisition source.

    Args:
        amount: Payment amount
        source: "platform" or "teacher"
        policy: PaymentPolicy holding the commission rates

    Returns:
        SplitResult whose parts sum exactly to amount
    """
    return split_at_rate(amount, policy.commission_rate_for(source))
