"""
Payment admin configuration.

This file imports admin configurations from the ledger submodule
and registers payment domain models with the Django admin.

Money fields and state are read-only everywhere: state changes go
through the service layer so their ledger side effects are applied.
Nothing can be deleted (audit trail).
"""

from django.contrib import admin

from payments.ledger.admin import RevenueEntryAdmin, TeacherBalanceAdmin
from payments.models import (
    GatewayTransaction,
    Installment,
    InstallmentPlan,
    PaymentOrder,
    PayoutAllocation,
    PayoutRequest,
)

__all__ = [
    "RevenueEntryAdmin",
    "TeacherBalanceAdmin",
    "PaymentOrderAdmin",
    "InstallmentPlanAdmin",
    "PayoutRequestAdmin",
    "GatewayTransactionAdmin",
]


class NoDeleteAdminMixin:
    """Disable deletion; payment records are never hard-deleted."""

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(PaymentOrder)
class PaymentOrderAdmin(NoDeleteAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for PaymentOrder.

    Provides visibility into payment orders and their states.
    State changes should be made through the service layer, not admin.
    """

    list_display = [
        "id",
        "payer",
        "teacher",
        "batch_id",
        "amount_display",
        "state",
        "source",
        "created_at",
    ]
    list_filter = ["state", "source", "currency", "payment_method", "created_at"]
    search_fields = [
        "id",
        "gateway_order_id",
        "gateway_payment_id",
        "payer__email",
        "teacher__email",
        "batch_id",
    ]
    readonly_fields = [
        "id",
        "payer",
        "teacher",
        "state",
        "amount",
        "original_amount",
        "discount_amount",
        "currency",
        "source",
        "commission_rate",
        "platform_fee",
        "teacher_earnings",
        "gateway_order_id",
        "gateway_payment_id",
        "gateway_signature",
        "refund_amount",
        "refunded_by",
        "retry_count",
        "installment",
        "paid_at",
        "failed_at",
        "cancelled_at",
        "refunded_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "payer", "teacher", "batch_id", "course_id", "state"),
            },
        ),
        (
            "Amount & Split",
            {
                "fields": (
                    "original_amount",
                    "discount_amount",
                    "amount",
                    "currency",
                    "source",
                    "commission_rate",
                    "platform_fee",
                    "teacher_earnings",
                ),
            },
        ),
        (
            "Gateway",
            {
                "fields": (
                    "payment_method",
                    "gateway_order_id",
                    "gateway_payment_id",
                    "gateway_signature",
                    "payment_link",
                ),
            },
        ),
        (
            "Refunds & Retries",
            {
                "fields": (
                    "refund_amount",
                    "refund_reason",
                    "refunded_by",
                    "retry_count",
                    "failure_reason",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "State Timestamps",
            {
                "fields": ("paid_at", "failed_at", "cancelled_at", "refunded_at"),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("installment", "metadata"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: PaymentOrder) -> str:
        return f"{obj.amount:.2f} {obj.currency}"

    def has_add_permission(self, request) -> bool:
        """Orders are created through checkout only."""
        return False


class InstallmentInline(admin.TabularInline):
    """Inline display of a plan's installments."""

    model = Installment
    extra = 0
    fields = [
        "number",
        "amount",
        "late_fee",
        "due_date",
        "status",
        "overdue_at",
        "paid_at",
        "paid_amount",
        "transaction_id",
    ]
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(InstallmentPlan)
class InstallmentPlanAdmin(NoDeleteAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for InstallmentPlan.

    Summary fields are derived from the installment rows and shown
    read-only. Only the delinquency policy can be edited.
    """

    list_display = [
        "id",
        "student",
        "teacher",
        "batch_id",
        "total_amount",
        "progress_display",
        "status",
        "next_due_date",
    ]
    list_filter = ["status", "frequency", "source", "created_at"]
    search_fields = ["id", "student__email", "teacher__email", "batch_id"]
    readonly_fields = [
        "id",
        "student",
        "teacher",
        "total_amount",
        "down_payment",
        "remaining_amount",
        "number_of_installments",
        "installment_amount",
        "frequency",
        "interest_rate",
        "currency",
        "source",
        "commission_rate",
        "start_date",
        "end_date",
        "status",
        "paid_installments",
        "missed_installments",
        "total_paid",
        "total_outstanding",
        "next_due_date",
        "next_due_amount",
        "cancelled_at",
        "created_at",
        "updated_at",
    ]
    inlines = [InstallmentInline]
    ordering = ["-created_at"]

    @admin.display(description="Paid")
    def progress_display(self, obj: InstallmentPlan) -> str:
        return f"{obj.paid_installments}/{obj.number_of_installments}"

    def has_add_permission(self, request) -> bool:
        return False


class PayoutAllocationInline(admin.TabularInline):
    """Revenue entries drawn by a payout."""

    model = PayoutAllocation
    extra = 0
    fields = ["revenue_entry", "amount", "released", "created_at"]
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(PayoutRequest)
class PayoutRequestAdmin(NoDeleteAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for PayoutRequest.

    Approval, rejection and settlement go through the payouts API so that
    balances and allocations stay consistent.
    """

    list_display = [
        "id",
        "teacher",
        "amount",
        "payment_method",
        "state",
        "transaction_id",
        "requested_at",
    ]
    list_filter = ["state", "payment_method", "requested_at"]
    search_fields = ["id", "teacher__email", "transaction_id"]
    readonly_fields = [
        "id",
        "teacher",
        "amount",
        "currency",
        "payment_method",
        "payment_details",
        "state",
        "transaction_id",
        "gateway_status",
        "approved_by",
        "processed_by",
        "rejection_reason",
        "failure_reason",
        "requested_at",
        "approved_at",
        "processing_at",
        "completed_at",
        "rejected_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    ]
    inlines = [PayoutAllocationInline]
    date_hierarchy = "requested_at"
    ordering = ["-requested_at"]

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(GatewayTransaction)
class GatewayTransactionAdmin(NoDeleteAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for GatewayTransaction.

    Webhook outcomes are immutable audit records.
    """

    list_display = [
        "gateway_order_id",
        "event_type",
        "status",
        "payment_order",
        "duplicate_count",
        "processed_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["gateway_order_id", "gateway_payment_id", "payment_order__id"]
    readonly_fields = [
        "id",
        "gateway_order_id",
        "gateway_payment_id",
        "event_type",
        "payload",
        "signature",
        "payment_order",
        "status",
        "processed_at",
        "duplicate_count",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False
