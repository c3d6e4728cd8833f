"""
Read-side queries for payments.

Lists of orders for payers, teachers and admins, a teacher's earnings
summary and platform-wide payment statistics. Nothing here writes.

Revenue figures are read from RevenueEntry, so installments recorded
offline count alongside gateway orders. Teacher amounts are net of the
share refunds reversed.

Usage:
    from payments.services.reporting import PaymentReportService

    orders = PaymentReportService.orders_for_payer(student, state="paid")
    summary = PaymentReportService.teacher_earnings(teacher)
    stats = PaymentReportService.payment_stats(date_from=start_of_year)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db.models import Avg, Count, DecimalField, F, Sum, Value
from django.db.models.functions import Coalesce, TruncMonth
from django.utils import timezone

from core.services import BaseService

from payments.ledger import RevenueEntry
from payments.models import PaymentOrder, PayoutRequest
from payments.services.payout_service import BalanceSummary, PayoutService
from payments.state_machines import PaymentOrderState, PayoutRequestState

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from authentication.models import User


ZERO = Decimal("0.00")

COLLECTED_STATES = (
    PaymentOrderState.PAID,
    PaymentOrderState.PARTIAL_REFUND,
    PaymentOrderState.REFUNDED,
)

MONEY_OUTPUT = DecimalField(max_digits=14, decimal_places=2)


def _money_sum(expression) -> Coalesce:
    return Coalesce(Sum(expression), Value(ZERO), output_field=MONEY_OUTPUT)


NET_TEACHER_SHARE = F("teacher_share") - F("refunded_share")


@dataclass
class TeacherEarnings:
    """
    A teacher's earnings dashboard.

    Attributes:
        lifetime: Teacher share of every collection, net of refunds
        this_month: Same, for collections since the first of the month
        pending_payouts: Payout requests still holding balance
        paid_out: Completed payouts
        balance: Counter and withdrawable position (see BalanceSummary)
        batches: Per-batch payments, gross revenue and teacher share
        recent_payouts: Latest payout requests, newest first
    """

    lifetime: Decimal
    this_month: Decimal
    pending_payouts: Decimal
    paid_out: Decimal
    balance: BalanceSummary
    batches: list[dict[str, Any]] = field(default_factory=list)
    recent_payouts: list[PayoutRequest] = field(default_factory=list)


@dataclass
class PaymentStats:
    """Platform-wide collection totals plus a month/source breakdown."""

    total_revenue: Decimal
    platform_earnings: Decimal
    teacher_earnings: Decimal
    total_refunded: Decimal
    payment_count: int
    average_payment: Decimal
    orders_by_state: dict[str, int]
    needs_reconciliation: int
    periods: list[dict[str, Any]] = field(default_factory=list)


class PaymentReportService(BaseService):
    """Read-only payment queries. All methods are class methods."""

    RECENT_PAYOUTS = 10

    # =========================================================================
    # Order Lists
    # =========================================================================

    @classmethod
    def filter_orders(
        cls,
        queryset: QuerySet[PaymentOrder],
        state: str | None = None,
        source: str | None = None,
        batch_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        teacher_id: int | None = None,
        payer_id: int | None = None,
        needs_reconciliation: bool | None = None,
    ) -> QuerySet[PaymentOrder]:
        """Narrow an order queryset; None leaves a filter off. Dates bound created_at."""
        if state:
            queryset = queryset.filter(state=state)
        if source:
            queryset = queryset.filter(source=source)
        if batch_id:
            queryset = queryset.filter(batch_id=batch_id)
        if date_from:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__lte=date_to)
        if teacher_id:
            queryset = queryset.filter(teacher_id=teacher_id)
        if payer_id:
            queryset = queryset.filter(payer_id=payer_id)
        if needs_reconciliation is not None:
            queryset = queryset.filter(needs_reconciliation=needs_reconciliation)
        return queryset.order_by("-created_at")

    @classmethod
    def orders_for_payer(cls, payer: User, **filters) -> QuerySet[PaymentOrder]:
        return cls.filter_orders(PaymentOrder.objects.filter(payer=payer), **filters)

    @classmethod
    def orders_for_teacher(cls, teacher: User, **filters) -> QuerySet[PaymentOrder]:
        """Collected orders that credited the teacher, unless a state filter asks otherwise."""
        queryset = PaymentOrder.objects.filter(teacher=teacher)
        if not filters.get("state"):
            queryset = queryset.filter(state__in=COLLECTED_STATES)
        return cls.filter_orders(queryset, **filters)

    @classmethod
    def all_orders(cls, **filters) -> QuerySet[PaymentOrder]:
        return cls.filter_orders(
            PaymentOrder.objects.select_related("payer", "teacher"),
            **filters,
        )

    # =========================================================================
    # Teacher Earnings
    # =========================================================================

    @classmethod
    def teacher_earnings(cls, teacher: User, now: datetime | None = None) -> TeacherEarnings:
        now = now or timezone.now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        entries = RevenueEntry.objects.filter(teacher=teacher)
        totals = entries.aggregate(lifetime=_money_sum(NET_TEACHER_SHARE))
        this_month = entries.filter(created_at__gte=month_start).aggregate(
            total=_money_sum(NET_TEACHER_SHARE)
        )["total"]

        payouts = PayoutRequest.objects.filter(teacher=teacher)
        pending = payouts.filter(
            state__in=[
                PayoutRequestState.REQUESTED,
                PayoutRequestState.APPROVED,
                PayoutRequestState.PROCESSING,
            ]
        ).aggregate(total=_money_sum("amount"))["total"]
        paid_out = payouts.filter(state=PayoutRequestState.COMPLETED).aggregate(
            total=_money_sum("amount")
        )["total"]

        batches = (
            entries.annotate(
                batch=Coalesce("payment_order__batch_id", "installment__plan__batch_id")
            )
            .values("batch")
            .annotate(
                payments=Count("id"),
                gross_revenue=_money_sum("amount"),
                teacher_share=_money_sum(NET_TEACHER_SHARE),
            )
            .order_by("-teacher_share", "batch")
        )

        return TeacherEarnings(
            lifetime=totals["lifetime"],
            this_month=this_month,
            pending_payouts=pending,
            paid_out=paid_out,
            balance=PayoutService.get_available_balance(teacher).data,
            batches=[
                {
                    "batch_id": row["batch"],
                    "payments": row["payments"],
                    "gross_revenue": row["gross_revenue"],
                    "teacher_share": row["teacher_share"],
                }
                for row in batches
            ],
            recent_payouts=list(payouts.order_by("-requested_at")[: cls.RECENT_PAYOUTS]),
        )

    # =========================================================================
    # Platform Statistics
    # =========================================================================

    @classmethod
    def payment_stats(
        cls,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> PaymentStats:
        """
        Collected revenue overall and per (month, source).

        Revenue comes from RevenueEntry.created_at within the date range;
        order counts and refunds from PaymentOrder.created_at.
        """
        entries = RevenueEntry.objects.all()
        orders = PaymentOrder.objects.all()
        if date_from:
            entries = entries.filter(created_at__gte=date_from)
            orders = orders.filter(created_at__gte=date_from)
        if date_to:
            entries = entries.filter(created_at__lte=date_to)
            orders = orders.filter(created_at__lte=date_to)

        overall = entries.aggregate(
            total_revenue=_money_sum("amount"),
            platform_earnings=_money_sum("platform_share"),
            teacher_earnings=_money_sum(NET_TEACHER_SHARE),
            payment_count=Count("id"),
            average_payment=Avg("amount"),
        )
        periods = (
            entries.annotate(month=TruncMonth("created_at"))
            .values("month", "source")
            .annotate(
                total_amount=_money_sum("amount"),
                platform_fee=_money_sum("platform_share"),
                teacher_earnings=_money_sum(NET_TEACHER_SHARE),
                payment_count=Count("id"),
            )
            .order_by("-month", "source")
        )
        by_state = {
            row["state"]: row["count"]
            for row in orders.values("state").annotate(count=Count("id")).order_by("state")
        }

        average = overall["average_payment"]
        return PaymentStats(
            total_revenue=overall["total_revenue"],
            platform_earnings=overall["platform_earnings"],
            teacher_earnings=overall["teacher_earnings"],
            total_refunded=orders.aggregate(total=_money_sum("refund_amount"))["total"],
            payment_count=overall["payment_count"],
            average_payment=Decimal(str(average)).quantize(Decimal("0.01")) if average else ZERO,
            orders_by_state=by_state,
            needs_reconciliation=orders.filter(needs_reconciliation=True).count(),
            periods=[
                {
                    "month": row["month"].strftime("%Y-%m"),
                    "source": row["source"],
                    "total_amount": row["total_amount"],
                    "platform_fee": row["platform_fee"],
                    "teacher_earnings": row["teacher_earnings"],
                    "payment_count": row["payment_count"],
                }
                for row in periods
            ],
        )
