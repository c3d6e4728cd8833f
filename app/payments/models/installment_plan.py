"""
InstallmentPlan and Installment models.

An InstallmentPlan splits the remaining amount of a purchase (total minus
down payment) into N equal EMI installments. Each scheduled installment
is its own Installment row; the plan's summary fields (paid/missed
counts, totals, next due installment, status) are recomputed from those
rows by refresh_summary() after every mutation and are never edited on
their own.

Usage:
    from payments.models import Installment, InstallmentPlan

    plan = InstallmentPlan.objects.get(id=plan_id)
    plan.installments.filter(status=InstallmentStatus.PENDING)

    # After changing installment rows
    plan.refresh_summary()
    plan.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import (
    InstallmentFrequency,
    InstallmentPlanStatus,
    InstallmentStatus,
    PaymentMethod,
    PaymentSource,
)

DEFAULT_AFTER_MISSED = 3


class InstallmentPlan(UUIDPrimaryKeyMixin, BaseModel):
    """
    A purchase paid in N scheduled installments.

    Status rules (evaluated by refresh_summary):
        COMPLETED  iff paid_installments >= number_of_installments
        DEFAULTED  iff missed_installments >= 3 and not completed
        CANCELLED  set by an operator, never recomputed away

    Fields:
        student / teacher: Parties of the underlying enrollment
        batch_id / course_id: The enrollment the plan pays for
        total_amount: Full price
        down_payment: Collected outside the schedule
        remaining_amount: total_amount - down_payment (EMI principal)
        number_of_installments: 2..24
        installment_amount: EMI per installment
        frequency: weekly, biweekly or monthly spacing
        interest_rate: Annual interest rate in percent
        grace_period_days: Days after due_date before an installment is overdue
        late_fee: Flat fee stamped on each overdue installment
        source / commission_rate: Revenue split for every installment
    """

    # ==========================================================================
    # Enrollment
    # ==========================================================================

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="installment_plans",
        help_text="Student paying in installments",
    )

    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="teaching_installment_plans",
        help_text="Teacher receiving the revenue share",
    )

    batch_id = models.CharField(max_length=64, db_index=True, help_text="Batch being purchased")

    course_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Course the batch belongs to",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    total_amount = models.DecimalField(max_digits=12, decimal_places=2, help_text="Full price")

    down_payment = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Amount collected up front, outside the schedule",
    )

    remaining_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Principal spread over the installments",
    )

    number_of_installments = models.PositiveSmallIntegerField(
        help_text="Number of scheduled installments (2-24)",
    )

    installment_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="EMI amount per installment",
    )

    frequency = models.CharField(
        max_length=10,
        choices=InstallmentFrequency.choices,
        default=InstallmentFrequency.MONTHLY,
    )

    interest_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Annual interest rate in percent",
    )

    currency = models.CharField(max_length=3, default="INR")

    source = models.CharField(
        max_length=20,
        choices=PaymentSource.choices,
        default=PaymentSource.PLATFORM,
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        help_text="Platform commission applied to every installment (frozen)",
    )

    # ==========================================================================
    # Schedule & Delinquency Policy
    # ==========================================================================

    start_date = models.DateTimeField(help_text="Due date of the first installment")
    end_date = models.DateTimeField(help_text="Due date of the last installment")

    grace_period_days = models.PositiveSmallIntegerField(default=3)

    late_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Flat fee per overdue installment",
    )

    auto_debit = models.BooleanField(
        default=False,
        help_text="Student opted into auto-debit (stored only)",
    )

    payment_method_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Saved gateway instrument for auto-debit",
    )

    # ==========================================================================
    # Derived Summary (recomputed by refresh_summary)
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=InstallmentPlanStatus.choices,
        default=InstallmentPlanStatus.ACTIVE,
        db_index=True,
    )

    paid_installments = models.PositiveSmallIntegerField(default=0)
    missed_installments = models.PositiveSmallIntegerField(default=0)

    total_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_outstanding = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    next_due_date = models.DateTimeField(null=True, blank=True)
    next_due_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Installment Plan"
        verbose_name_plural = "Installment Plans"
        indexes = [
            models.Index(fields=["student", "status"], name="payments_in_student_7c1e2a_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(number_of_installments__gte=2, number_of_installments__lte=24),
                name="installment_plan_count_range",
            ),
            models.CheckConstraint(
                condition=Q(remaining_amount=models.F("total_amount") - models.F("down_payment")),
                name="installment_plan_remaining_matches",
            ),
        ]

    def __str__(self) -> str:
        return f"InstallmentPlan({self.id}, {self.status}, {self.paid_installments}/{self.number_of_installments})"

    def refresh_summary(self) -> None:
        """
        Recompute every derived field from the installment rows.

        Does not save; callers persist the plan in the same transaction
        that changed the rows.
        """
        installments = self.installments.all()

        self.paid_installments = installments.filter(status=InstallmentStatus.PAID).count()
        self.missed_installments = installments.filter(overdue_at__isnull=False).count()
        self.total_paid = (
            installments.filter(status=InstallmentStatus.PAID).aggregate(total=Sum("amount"))["total"]
            or Decimal("0.00")
        )
        self.total_outstanding = self.remaining_amount - self.total_paid

        next_installment = (
            installments.exclude(status=InstallmentStatus.PAID).order_by("number").first()
        )
        if next_installment:
            self.next_due_date = next_installment.due_date
            self.next_due_amount = next_installment.amount_due
        else:
            self.next_due_date = None
            self.next_due_amount = None

        if self.status == InstallmentPlanStatus.CANCELLED:
            return
        if self.paid_installments >= self.number_of_installments:
            self.status = InstallmentPlanStatus.COMPLETED
        elif self.missed_installments >= DEFAULT_AFTER_MISSED:
            self.status = InstallmentPlanStatus.DEFAULTED
        else:
            self.status = InstallmentPlanStatus.ACTIVE


class Installment(UUIDPrimaryKeyMixin, BaseModel):
    """
    One scheduled installment of a plan.

    Status Flow:
        PENDING -> PAID
        PENDING -> OVERDUE -> PAID

    Fields:
        plan: Owning plan
        number: 1-based position in the schedule
        amount: EMI amount due
        due_date: When the installment is due
        late_fee: Fee stamped when the installment went overdue
        overdue_at: First time the installment was found overdue (never cleared)
        paid_at / paid_amount / transaction_id / payment_method: Settlement data
    """

    plan = models.ForeignKey(
        InstallmentPlan,
        on_delete=models.PROTECT,
        related_name="installments",
    )

    number = models.PositiveSmallIntegerField()

    amount = models.DecimalField(max_digits=12, decimal_places=2)

    due_date = models.DateTimeField(db_index=True)

    status = models.CharField(
        max_length=10,
        choices=InstallmentStatus.choices,
        default=InstallmentStatus.PENDING,
        db_index=True,
    )

    late_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    overdue_at = models.DateTimeField(null=True, blank=True)

    paid_at = models.DateTimeField(null=True, blank=True)

    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    transaction_id = models.CharField(max_length=255, blank=True, default="")

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        blank=True,
        default="",
    )

    class Meta:
        ordering = ["plan", "number"]
        verbose_name = "Installment"
        verbose_name_plural = "Installments"
        constraints = [
            models.UniqueConstraint(
                fields=["plan", "number"],
                name="unique_installment_number_per_plan",
            ),
        ]

    def __str__(self) -> str:
        return f"Installment({self.plan_id} #{self.number}, {self.status})"

    @property
    def amount_due(self) -> Decimal:
        """EMI amount plus any late fee stamped on it."""
        return self.amount + self.late_fee
