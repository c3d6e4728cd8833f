"""
Enrollment and batch catalogue models.

A BatchEnrollment grants a student access to a batch of a course. It is
created by the payments app once money is collected, either from a
one-off PaymentOrder or from an installment of an InstallmentPlan.

A BatchOffering is the server-side price list entry for a batch: who
teaches it, what it costs and which acquisition source it counts under.

Usage:
    from enrollments.models import BatchEnrollment, BatchOffering

    BatchEnrollment.objects.filter(student=user, batch_id="batch-42").exists()
    BatchOffering.objects.get(batch_id="batch-42").price
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class BatchEnrollment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A student's enrollment in a batch.

    Fields:
        student: Enrolled user
        batch_id: Batch identifier owned by the course catalogue
        course_id: Course the batch belongs to
        enrolled_at: When access was granted
        source_payment_order: Order whose payment granted the enrollment
    """

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="batch_enrollments",
        help_text="Enrolled student",
    )

    batch_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Batch identifier from the course catalogue",
    )

    course_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Course identifier from the course catalogue",
    )

    enrolled_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the enrollment was granted",
    )

    source_payment_order = models.ForeignKey(
        "payments.PaymentOrder",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Payment order that granted this enrollment",
    )

    class Meta:
        verbose_name = "Batch Enrollment"
        verbose_name_plural = "Batch Enrollments"
        ordering = ["-enrolled_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["student", "batch_id"],
                name="unique_student_batch_enrollment",
            ),
        ]

    def __str__(self) -> str:
        return f"BatchEnrollment({self.student_id} -> {self.batch_id})"


class BatchOffering(UUIDPrimaryKeyMixin, BaseModel):
    """
    Price list entry for a batch.

    Checkout and installment plans read the price, teacher and
    acquisition source from here; clients only name the batch.

    Fields:
        batch_id: Batch identifier (unique)
        course_id: Course the batch belongs to
        teacher: Teacher owed the revenue share
        price: List price charged per student
        currency: ISO currency code of price
        source: Acquisition source selecting the commission rate
        is_active: Whether the batch is open for purchase
    """

    batch_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Batch identifier from the course catalogue",
    )

    course_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Course identifier from the course catalogue",
    )

    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="batch_offerings",
        help_text="Teacher owed the revenue share",
    )

    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="List price per student",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO currency code",
    )

    source = models.CharField(
        max_length=20,
        default="platform",
        help_text="Acquisition source (platform or teacher)",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Open for purchase",
    )

    class Meta:
        verbose_name = "Batch Offering"
        verbose_name_plural = "Batch Offerings"
        ordering = ["batch_id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="batch_offering_price_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"BatchOffering({self.batch_id} @ {self.price} {self.currency})"
