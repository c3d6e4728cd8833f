"""
Django admin configuration for revenue ledger models.

Revenue entries and teacher balances are written only by the payment
services; the admin gives read-only visibility into them.

Key features:
- RevenueEntry is immutable (no add/edit/delete)
- "Mark as processed" action releases PENDING entries before the
  clearance window ends
- TeacherBalance counters are read-only
"""

from django.contrib import admin, messages

from payments.state_machines import RevenueEntryStatus

from .models import RevenueEntry, TeacherBalance
from .services import revenue_ledger


@admin.register(RevenueEntry)
class RevenueEntryAdmin(admin.ModelAdmin):
    """
    Admin configuration for RevenueEntry.

    Entries cannot be edited or deleted through the admin. Corrections
    are made by refunding the source order.
    """

    list_display = [
        "idempotency_key",
        "teacher",
        "amount",
        "platform_share",
        "teacher_share",
        "source",
        "status",
        "created_at",
    ]
    list_filter = ["status", "source", "currency", "created_at"]
    search_fields = ["id", "idempotency_key", "teacher__email", "payment_order__id"]
    readonly_fields = [
        "id",
        "idempotency_key",
        "payment_order",
        "installment",
        "teacher",
        "amount",
        "platform_share",
        "teacher_share",
        "source",
        "commission_rate",
        "currency",
        "status",
        "processed_at",
        "paid_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["mark_as_processed"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "idempotency_key", "teacher", "status"),
            },
        ),
        (
            "Split",
            {
                "fields": (
                    "amount",
                    "currency",
                    "source",
                    "commission_rate",
                    "platform_share",
                    "teacher_share",
                ),
            },
        ),
        (
            "Source",
            {
                "fields": ("payment_order", "installment"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("processed_at", "paid_at", "created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Mark selected pending entries as processed")
    def mark_as_processed(self, request, queryset):
        entry_ids = list(
            queryset.filter(status=RevenueEntryStatus.PENDING).values_list("id", flat=True)
        )
        updated = revenue_ledger.mark_processed(entry_ids)
        self.message_user(request, f"{updated} revenue entries marked as processed.", messages.SUCCESS)

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(TeacherBalance)
class TeacherBalanceAdmin(admin.ModelAdmin):
    """Read-only view of teacher earnings counters."""

    list_display = ["teacher", "total_earnings", "available_for_payout", "updated_at"]
    search_fields = ["teacher__email", "teacher__full_name"]
    readonly_fields = ["teacher", "total_earnings", "available_for_payout", "created_at", "updated_at"]
    ordering = ["-updated_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
