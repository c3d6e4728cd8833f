"""
Django admin configuration for enrollments.
"""

from django.contrib import admin

from enrollments.models import BatchEnrollment, BatchOffering


@admin.register(BatchEnrollment)
class BatchEnrollmentAdmin(admin.ModelAdmin):
    """Read-mostly view of batch enrollments."""

    list_display = ("student", "batch_id", "course_id", "enrolled_at")
    search_fields = ("student__email", "batch_id", "course_id")
    readonly_fields = ("id", "enrolled_at", "source_payment_order", "created_at", "updated_at")
    raw_id_fields = ("student",)


@admin.register(BatchOffering)
class BatchOfferingAdmin(admin.ModelAdmin):
    """Price list maintained by platform staff."""

    list_display = ("batch_id", "course_id", "teacher", "price", "currency", "source", "is_active")
    list_filter = ("is_active", "source", "currency")
    search_fields = ("batch_id", "course_id", "teacher__email")
    readonly_fields = ("id", "created_at", "updated_at")
    raw_id_fields = ("teacher",)
