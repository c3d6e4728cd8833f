"""
PaymentOrder model for the purchase lifecycle.

A PaymentOrder is one purchase attempt by a student for a batch. Its
commission split is computed once at creation and stored; the state
machine methods below only move state and stamp timestamps. All money
side effects (revenue entry, enrollment, teacher balance) are driven by
payments.services.PaymentService, never by save().

Usage:
    from payments.models import PaymentOrder
    from payments.state_machines import PaymentOrderState

    order = PaymentOrder.objects.create(
        payer=student,
        teacher=teacher,
        batch_id="batch-42",
        amount=Decimal("1000.00"),
        original_amount=Decimal("1000.00"),
        source=PaymentSource.PLATFORM,
        commission_rate=Decimal("0.40"),
        platform_fee=Decimal("400.00"),
        teacher_earnings=Decimal("600.00"),
    )

    order.mark_paid(gateway_payment_id="pay_123", signature="...")  # created -> paid
    order.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PaymentMethod, PaymentOrderState, PaymentSource

class PaymentOrder(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    One purchase attempt, from checkout to settlement or refund.

    State Flow:
        CREATED -> PAID -> PARTIAL_REFUND -> REFUNDED
        CREATED -> FAILED / CANCELLED -> CREATED (retry)

    Fields:
        payer: Student paying for the batch
        teacher: Teacher receiving the revenue share
        batch_id / course_id: What is being bought
        amount: Charged amount (original_amount - discount_amount)
        source: Acquisition source that selected the commission rate
        commission_rate: Fraction retained by the platform (frozen)
        platform_fee / teacher_earnings: Split of amount (frozen)
        state: Current FSM state
        gateway_order_id / gateway_payment_id / gateway_signature:
            Gateway correlation, reset on retry
        refund_amount: Cumulative refunded amount
        retry_count: Number of retries used (capped by PAYMENTS_MAX_RETRIES)
        needs_reconciliation: Money was collected but its side effects
            could not be applied; finance must refund or reconcile it
        installment: Installment this order collects, if any

    Note:
        Never hard-deleted; referencing models use on_delete=PROTECT.
    """

    # ==========================================================================
    # Parties
    # ==========================================================================

    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_orders",
        help_text="Student paying for the batch",
    )

    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="earning_orders",
        help_text="Teacher receiving the revenue share",
    )

    batch_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Batch being purchased",
    )

    course_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Course the batch belongs to",
    )

    # ==========================================================================
    # Amounts & Commission Split
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Charged amount after discount",
    )

    original_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="List price before discount",
    )

    discount_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Discount applied at checkout",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code",
    )

    source = models.CharField(
        max_length=20,
        choices=PaymentSource.choices,
        default=PaymentSource.PLATFORM,
        help_text="Who acquired the buyer (selects commission rate)",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        help_text="Fraction of amount retained by the platform",
    )

    platform_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Platform share of amount",
    )

    teacher_earnings = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Teacher share of amount",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    state = FSMField(
        default=PaymentOrderState.CREATED,
        choices=PaymentOrderState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment order (managed by FSM)",
    )

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        blank=True,
        default="",
        help_text="Instrument used at the gateway",
    )

    # ==========================================================================
    # Gateway Correlation
    # ==========================================================================

    gateway_order_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Order id assigned by the gateway",
    )

    gateway_payment_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Payment id reported by the gateway on success",
    )

    gateway_signature = models.CharField(
        max_length=512,
        blank=True,
        default="",
        help_text="Signature that authenticated the payment",
    )

    payment_link = models.URLField(
        max_length=1024,
        blank=True,
        default="",
        help_text="Hosted checkout link returned by the gateway",
    )

    # ==========================================================================
    # Refunds & Retries
    # ==========================================================================

    refund_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Cumulative refunded amount",
    )

    refund_reason = models.TextField(
        blank=True,
        default="",
        help_text="Reason given for the latest refund",
    )

    refunded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="Admin who issued the latest refund",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of retries used",
    )

    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Why the payment failed or was cancelled",
    )

    needs_reconciliation = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Collected money whose installment could not be settled",
    )

    reconciliation_note = models.TextField(
        blank=True,
        default="",
        help_text="What finance has to refund or reconcile",
    )

    # ==========================================================================
    # Installment Link
    # ==========================================================================

    installment = models.ForeignKey(
        "payments.Installment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payment_orders",
        help_text="Installment collected by this order, if any",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Order"
        verbose_name_plural = "Payment Orders"
        indexes = [
            models.Index(fields=["payer", "state"], name="payments_pa_payer_i_3f9b1d_idx"),
            models.Index(fields=["teacher", "state"], name="payments_pa_teacher_8d2c4e_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_order_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    platform_fee__gte=0,
                    teacher_earnings__gte=0,
                    amount=models.F("platform_fee") + models.F("teacher_earnings"),
                ),
                name="payment_order_split_sums_to_amount",
            ),
            models.CheckConstraint(
                condition=models.Q(amount=models.F("original_amount") - models.F("discount_amount")),
                name="payment_order_amount_matches_discount",
            ),
            models.CheckConstraint(
                condition=models.Q(refund_amount__gte=0, refund_amount__lte=models.F("amount")),
                name="payment_order_refund_within_amount",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentOrder({self.id}, {self.state}, {self.amount} {self.currency})"

    @property
    def refundable_amount(self) -> Decimal:
        return self.amount - self.refund_amount

    @property
    def is_installment_payment(self) -> bool:
        return self.installment_id is not None

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=PaymentOrderState.CREATED,
        target=PaymentOrderState.PAID,
    )
    def mark_paid(self, gateway_payment_id: str, signature: str = ""):
        """
        Record a successful payment.

        Transition: CREATED -> PAID
        """
        self.gateway_payment_id = gateway_payment_id
        self.gateway_signature = signature
        self.paid_at = timezone.now()

    @transition(
        field=state,
        source=PaymentOrderState.CREATED,
        target=PaymentOrderState.FAILED,
    )
    def mark_failed(self, reason: str = ""):
        """
        Record a failed payment attempt. No ledger effect.

        Transition: CREATED -> FAILED
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=state,
        source=PaymentOrderState.CREATED,
        target=PaymentOrderState.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """
        Payer abandoned the checkout.

        Transition: CREATED -> CANCELLED
        """
        self.cancelled_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=state,
        source=PaymentOrderState.retryable_states(),
        target=PaymentOrderState.CREATED,
    )
    def retry(self):
        """
        Start a new attempt with fresh gateway correlation. The retry
        budget is enforced by PaymentService from PaymentPolicy.

        Transition: FAILED/CANCELLED -> CREATED
        """
        self.retry_count += 1
        self.gateway_order_id = None
        self.gateway_payment_id = ""
        self.gateway_signature = ""
        self.payment_link = ""
        self.failure_reason = ""
        self.failed_at = None
        self.cancelled_at = None

    @transition(
        field=state,
        source=PaymentOrderState.refundable_states(),
        target=PaymentOrderState.REFUNDED,
    )
    def refund_full(self, amount: Decimal, reason: str):
        """
        Refund the remaining refundable amount.

        Transition: PAID/PARTIAL_REFUND -> REFUNDED
        """
        self.refund_amount += amount
        self.refund_reason = reason
        self.refunded_at = timezone.now()

    @transition(
        field=state,
        source=PaymentOrderState.refundable_states(),
        target=PaymentOrderState.PARTIAL_REFUND,
    )
    def refund_partial(self, amount: Decimal, reason: str):
        """
        Refund part of the amount. Further partial refunds stay allowed
        until refund_amount reaches amount.

        Transition: PAID/PARTIAL_REFUND -> PARTIAL_REFUND
        """
        self.refund_amount += amount
        self.refund_reason = reason
        self.refunded_at = timezone.now()
