"""
PayoutRequest and PayoutAllocation models for teacher withdrawals.

A PayoutRequest is a teacher's request to withdraw earnings. When it is
created the requested amount is allocated FIFO against the teacher's
withdrawable RevenueEntries (PayoutAllocation rows), so that completing
the payout knows exactly which entries it drew from.

Usage:
    from payments.models import PayoutRequest
    from payments.state_machines import PayoutRequestState

    payout.approve(admin)      # requested -> approved
    payout.save()

    payout.start_processing(admin)  # approved -> processing
    payout.save()

    # After the gateway confirms the transfer
    payout.complete(transaction_id="TRF_123")  # processing -> completed
    payout.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PayoutMethod, PayoutRequestState


class PayoutRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A teacher's withdrawal of accumulated teacher share.

    State Flow:
        REQUESTED -> APPROVED -> PROCESSING -> COMPLETED
        REQUESTED -> REJECTED
        REQUESTED/APPROVED -> CANCELLED

    Fields:
        teacher: Teacher withdrawing earnings
        amount: Requested amount (at least the configured minimum)
        state: Current FSM state
        payment_method: bank_transfer or upi
        payment_details: Destination payload (validated at the API boundary)
        transaction_id: Gateway transfer reference
        gateway_status: Last status reported by the gateway payout API
        rejection_reason: Admin reason when rejected
        failure_reason: Gateway error recorded while stuck in PROCESSING
        note: Teacher's note on the request

    Note:
        PROCESSING is only left by complete(). If the gateway call fails
        the request stays in PROCESSING for manual reconciliation.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payout_requests",
        help_text="Teacher withdrawing earnings",
    )

    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )

    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )

    # ==========================================================================
    # Amount & Destination
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Requested payout amount",
    )

    currency = models.CharField(max_length=3, default="INR")

    payment_method = models.CharField(
        max_length=20,
        choices=PayoutMethod.choices,
        default=PayoutMethod.BANK_TRANSFER,
    )

    payment_details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Bank account or UPI destination",
    )

    note = models.TextField(blank=True, default="")

    # ==========================================================================
    # State
    # ==========================================================================

    state = FSMField(
        default=PayoutRequestState.REQUESTED,
        choices=PayoutRequestState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payout request (managed by FSM)",
    )

    transaction_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Gateway transfer reference",
    )

    gateway_status = models.CharField(max_length=50, blank=True, default="")

    rejection_reason = models.TextField(blank=True, default="")

    failure_reason = models.TextField(blank=True, default="")

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    requested_at = models.DateTimeField(default=timezone.now)
    approved_at = models.DateTimeField(null=True, blank=True)
    processing_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payout Request"
        verbose_name_plural = "Payout Requests"
        indexes = [
            models.Index(fields=["teacher", "state"], name="payments_po_teacher_19b7c2_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payout_request_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"PayoutRequest({self.id}, {self.state}, {self.amount} {self.currency})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=PayoutRequestState.REQUESTED,
        target=PayoutRequestState.APPROVED,
    )
    def approve(self, admin=None):
        """
        Admin approved the request.

        Transition: REQUESTED -> APPROVED
        """
        self.approved_at = timezone.now()
        self.approved_by = admin

    @transition(
        field=state,
        source=PayoutRequestState.APPROVED,
        target=PayoutRequestState.PROCESSING,
    )
    def start_processing(self, admin=None):
        """
        Settlement via the gateway is starting.

        Transition: APPROVED -> PROCESSING
        """
        self.processing_at = timezone.now()
        self.processed_by = admin

    @transition(
        field=state,
        source=PayoutRequestState.PROCESSING,
        target=PayoutRequestState.COMPLETED,
    )
    def complete(self, transaction_id: str):
        """
        Gateway confirmed the transfer.

        Transition: PROCESSING -> COMPLETED
        """
        self.transaction_id = transaction_id
        self.completed_at = timezone.now()
        self.failure_reason = ""

    @transition(
        field=state,
        source=PayoutRequestState.REQUESTED,
        target=PayoutRequestState.REJECTED,
    )
    def reject(self, reason: str):
        """
        Admin rejected the request.

        Transition: REQUESTED -> REJECTED
        """
        self.rejection_reason = reason
        self.rejected_at = timezone.now()

    @transition(
        field=state,
        source=[PayoutRequestState.REQUESTED, PayoutRequestState.APPROVED],
        target=PayoutRequestState.CANCELLED,
    )
    def cancel(self):
        """
        Teacher or admin withdrew the request before settlement.

        Transition: REQUESTED/APPROVED -> CANCELLED
        """
        self.cancelled_at = timezone.now()


class PayoutAllocation(UUIDPrimaryKeyMixin, BaseModel):
    """
    Portion of a RevenueEntry's teacher_share drawn by a payout.

    Fields:
        payout: Drawing payout request
        revenue_entry: Entry drawn against
        amount: Drawn amount
        released: True once the payout was rejected or cancelled

    Invariant:
        Sum of unreleased allocations of an entry <= entry.teacher_share
    """

    payout = models.ForeignKey(
        PayoutRequest,
        on_delete=models.PROTECT,
        related_name="allocations",
    )

    revenue_entry = models.ForeignKey(
        "payments.RevenueEntry",
        on_delete=models.PROTECT,
        related_name="payout_allocations",
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2)

    released = models.BooleanField(default=False, db_index=True)

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Payout Allocation"
        verbose_name_plural = "Payout Allocations"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=Decimal("0")),
                name="payout_allocation_amount_positive",
            ),
            models.UniqueConstraint(
                fields=["payout", "revenue_entry"],
                name="unique_allocation_per_payout_entry",
            ),
        ]

    def __str__(self) -> str:
        return f"PayoutAllocation({self.payout_id} <- {self.revenue_entry_id}: {self.amount})"
