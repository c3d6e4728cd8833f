"""
Payment policy configuration.

Every tunable business rule (commission rates, minimum payout, grace
period, late fee, installment interest, retry limit, revenue clearance
window) is read from
Django settings once into an immutable PaymentPolicy and passed into the
services. Services never read these settings directly, and records keep
the values that were in force when they were created (an order stores
its commission_rate, a plan stores its grace period and late fee).

Usage:
    from payments.policy import PaymentPolicy

    policy = PaymentPolicy.from_settings()
    policy.commission_rate_for("teacher")  # Decimal("0.60")

    # Tests build their own policy
    policy = PaymentPolicy(minimum_payout_amount=Decimal("500.00"))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings

from payments.exceptions import PaymentValidationError
from payments.state_machines import PaymentSource

if TYPE_CHECKING:
    from collections.abc import Mapping


DEFAULT_COMMISSION_RATES: dict[str, Decimal] = {
    PaymentSource.PLATFORM: Decimal("0.40"),
    PaymentSource.TEACHER: Decimal("0.60"),
}


@dataclass(frozen=True)
class PaymentPolicy:
    """
    Immutable set of payment business rules.

    Attributes:
        commission_rates: source -> fraction retained by the platform
        minimum_payout_amount: Smallest payout a teacher may request
        max_retries: Retries allowed for a failed/cancelled order
        grace_period_days: Default installment grace period
        late_fee: Default flat late fee per overdue installment
        installment_interest_rate: Annual interest percent on installment plans
        revenue_clearance_days: Age at which pending revenue is withdrawable
        currency: Default ISO currency code
    """

    commission_rates: Mapping[str, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_COMMISSION_RATES)
    )
    minimum_payout_amount: Decimal = Decimal("1000.00")
    max_retries: int = 3
    grace_period_days: int = 3
    late_fee: Decimal = Decimal("0.00")
    installment_interest_rate: Decimal = Decimal("0.00")
    revenue_clearance_days: int = 7
    currency: str = "INR"

    @classmethod
    def from_settings(cls) -> PaymentPolicy:
        """Build the policy from PAYMENTS_* settings."""
        rates = getattr(settings, "PAYMENTS_COMMISSION_RATES", None) or DEFAULT_COMMISSION_RATES
        return cls(
            commission_rates={
                str(source): Decimal(str(rate)) for source, rate in rates.items()
            },
            minimum_payout_amount=Decimal(
                str(getattr(settings, "PAYMENTS_MIN_PAYOUT_AMOUNT", "1000.00"))
            ),
            max_retries=int(getattr(settings, "PAYMENTS_MAX_RETRIES", 3)),
            grace_period_days=int(getattr(settings, "PAYMENTS_INSTALLMENT_GRACE_DAYS", 3)),
            late_fee=Decimal(str(getattr(settings, "PAYMENTS_INSTALLMENT_LATE_FEE", "0.00"))),
            installment_interest_rate=Decimal(
                str(getattr(settings, "PAYMENTS_INSTALLMENT_INTEREST_RATE", "0.00"))
            ),
            revenue_clearance_days=int(
                getattr(settings, "PAYMENTS_REVENUE_CLEARANCE_DAYS", 7)
            ),
            currency=getattr(settings, "PAYMENTS_CURRENCY", "INR"),
        )

    def commission_rate_for(self, source: str) -> Decimal:
        """
        Return the platform commission rate for an acquisition source.

        Raises:
            PaymentValidationError: Unknown source or rate outside 0..1
        """
        try:
            rate = Decimal(str(self.commission_rates[source]))
        except KeyError:
            raise PaymentValidationError(
                f"Unknown payment source '{source}'",
                error_code="INVALID_SOURCE",
                details={"source": source, "allowed": sorted(self.commission_rates)},
            )
        if rate < 0 or rate > 1:
            raise PaymentValidationError(
                f"Commission rate for '{source}' must be between 0 and 1",
                error_code="INVALID_COMMISSION_RATE",
                details={"source": source, "rate": str(rate)},
            )
        return rate
