"""
Revenue ledger models.

This module defines the settlement-tracking records of the platform:
- RevenueEntry: One record per successful PaymentOrder or paid
  Installment, holding the platform/teacher split of the collected amount
- TeacherBalance: Running per-teacher counters (total earned, available
  for payout), only ever changed with atomic F() updates

RevenueEntry is immutable apart from its settlement status, which moves
forward only: PENDING -> PROCESSED -> PAID.

Usage:
    from payments.ledger.models import RevenueEntry, TeacherBalance

    withdrawable = RevenueEntry.objects.filter(
        teacher=teacher,
        status__in=RevenueEntryStatus.withdrawable_statuses(),
    )

    TeacherBalance.objects.filter(teacher=teacher).update(
        available_for_payout=F("available_for_payout") - amount
    )
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PaymentSource, RevenueEntryStatus


class RevenueEntry(UUIDPrimaryKeyMixin, BaseModel):
    """
    Split of one collected payment between platform and teacher.

    Status Flow:
        PENDING -> PROCESSED -> PAID

    Fields:
        idempotency_key: "order:<uuid>" or "installment:<uuid>" (unique)
        payment_order: Source order (null for offline installment payments)
        installment: Source installment, if any
        teacher: Teacher owed teacher_share
        amount: Collected amount
        platform_share / teacher_share: Split of amount
        refunded_share: Part of teacher_share taken back by refunds
        source / commission_rate: Split inputs, copied from the source record
        processed_at: When the entry became withdrawable
        paid_at: When completed payouts fully drew its teacher_share
    """

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key preventing a second entry for the same payment",
    )

    payment_order = models.ForeignKey(
        "payments.PaymentOrder",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="revenue_entries",
    )

    installment = models.ForeignKey(
        "payments.Installment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="revenue_entries",
    )

    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="revenue_entries",
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    platform_share = models.DecimalField(max_digits=12, decimal_places=2)
    teacher_share = models.DecimalField(max_digits=12, decimal_places=2)
    refunded_share = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Teacher share reversed by refunds; never paid out",
    )

    source = models.CharField(max_length=20, choices=PaymentSource.choices)

    commission_rate = models.DecimalField(max_digits=5, decimal_places=4)

    currency = models.CharField(max_length=3, default="INR")

    status = FSMField(
        default=RevenueEntryStatus.PENDING,
        choices=RevenueEntryStatus.choices,
        db_index=True,
        protected=True,
        help_text="Settlement status (forward only)",
    )

    processed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Revenue Entry"
        verbose_name_plural = "Revenue Entries"
        indexes = [
            models.Index(fields=["teacher", "status"], name="payments_re_teacher_a41f6b_idx"),
            models.Index(fields=["status", "created_at"], name="payments_re_status_0c8d3e_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="revenue_entry_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(
                    platform_share__gte=0,
                    teacher_share__gte=0,
                    amount=models.F("platform_share") + models.F("teacher_share"),
                ),
                name="revenue_entry_shares_sum_to_amount",
            ),
            models.CheckConstraint(
                condition=Q(refunded_share__gte=0, refunded_share__lte=models.F("teacher_share")),
                name="revenue_entry_refund_within_share",
            ),
        ]

    def __str__(self) -> str:
        return f"RevenueEntry({self.idempotency_key}, {self.status}, {self.teacher_share})"

    @property
    def payable_share(self) -> Decimal:
        """Teacher share net of refunds."""
        return self.teacher_share - self.refunded_share

    @transition(
        field=status,
        source=RevenueEntryStatus.PENDING,
        target=RevenueEntryStatus.PROCESSED,
    )
    def mark_processed(self):
        """
        Clearance window passed; teacher_share is withdrawable.

        Transition: PENDING -> PROCESSED
        """
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=RevenueEntryStatus.PROCESSED,
        target=RevenueEntryStatus.PAID,
    )
    def mark_paid(self):
        """
        Completed payouts drew the whole teacher_share.

        Transition: PROCESSED -> PAID
        """
        self.paid_at = timezone.now()


class TeacherBalance(BaseModel):
    """
    Running earnings counters for a teacher.

    Fields:
        teacher: Owner of the balance
        total_earnings: Lifetime teacher earnings credited
        available_for_payout: Earnings not yet requested for payout, net of
            refunds. May be negative after a refund of money already paid out.

    Note:
        Never read-modify-write these counters. Use
        TeacherBalance.objects.filter(...).update(F(...) + x).
        The row doubles as the per-teacher lock for payout requests.
    """

    teacher = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        primary_key=True,
        related_name="earnings_balance",
    )

    total_earnings = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    available_for_payout = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    class Meta:
        verbose_name = "Teacher Balance"
        verbose_name_plural = "Teacher Balances"

    def __str__(self) -> str:
        return f"TeacherBalance({self.teacher_id}, available={self.available_for_payout})"
