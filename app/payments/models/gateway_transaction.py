"""
GatewayTransaction model for webhook deduplication and audit.

One row per gateway order id. The unique gateway_order_id constraint is
what makes webhook reconciliation race-safe: the first delivery inserts
the row and settles the order inside the same transaction; any later or
concurrent delivery for the same gateway order collides on the
constraint and is treated as a duplicate once the row is terminal.

Usage:
    from payments.models import GatewayTransaction
    from payments.state_machines import GatewayTransactionStatus

    record = GatewayTransaction.objects.get(gateway_order_id="order_123")
    if record.is_terminal:
        ...  # duplicate delivery
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import GatewayTransactionStatus


class GatewayTransaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    Audit record of the webhook outcome for one gateway order.

    Processing Flow:
        1. Webhook arrives, signature verified
        2. Insert GatewayTransaction for gateway_order_id (savepoint)
        3. On unique collision, lock existing row; terminal -> duplicate
        4. Dispatch event to the payment service
        5. Record terminal status in the same transaction

    Fields:
        gateway_order_id: Gateway order id (unique)
        gateway_payment_id: Gateway payment id from the payload
        event_type: Event name of the delivery that settled the row
        payload: Raw webhook payload (JSON)
        signature: Signature header of that delivery
        payment_order: Linked order, once resolved
        status: Recorded outcome
        processed_at: When the outcome was recorded
        duplicate_count: Number of later deliveries acknowledged as duplicates
    """

    gateway_order_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway order id - unique constraint for idempotency",
    )

    gateway_payment_id = models.CharField(max_length=255, blank=True, default="")

    event_type = models.CharField(max_length=100, db_index=True)

    payload = models.JSONField(help_text="Raw webhook payload from the gateway")

    signature = models.CharField(max_length=512, blank=True, default="")

    payment_order = models.ForeignKey(
        "payments.PaymentOrder",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="gateway_transactions",
    )

    status = models.CharField(
        max_length=20,
        choices=GatewayTransactionStatus.choices,
        default=GatewayTransactionStatus.RECEIVED,
        db_index=True,
    )

    processed_at = models.DateTimeField(null=True, blank=True)

    duplicate_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Gateway Transaction"
        verbose_name_plural = "Gateway Transactions"
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_ga_status_5e7a90_idx"),
        ]

    def __str__(self) -> str:
        return f"GatewayTransaction({self.gateway_order_id}, {self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in GatewayTransactionStatus.terminal_statuses()

    def record_outcome(self, status: str) -> None:
        """
        Set the outcome and processing time.

        Note: Does not save - caller must save after calling.
        """
        self.status = status
        self.processed_at = timezone.now()
