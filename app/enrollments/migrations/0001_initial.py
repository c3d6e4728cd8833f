import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="BatchEnrollment",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "batch_id",
                    models.CharField(
                        db_index=True,
                        help_text="Batch identifier from the course catalogue",
                        max_length=64,
                    ),
                ),
                (
                    "course_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Course identifier from the course catalogue",
                        max_length=64,
                    ),
                ),
                (
                    "enrolled_at",
                    models.DateTimeField(auto_now_add=True, help_text="When the enrollment was granted"),
                ),
                (
                    "student",
                    models.ForeignKey(
                        help_text="Enrolled student",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="batch_enrollments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "source_payment_order",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payment order that granted this enrollment",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="payments.paymentorder",
                    ),
                ),
            ],
            options={
                "verbose_name": "Batch Enrollment",
                "verbose_name_plural": "Batch Enrollments",
                "ordering": ["-enrolled_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("student", "batch_id"), name="unique_student_batch_enrollment"),
                ],
            },
        ),
    ]
