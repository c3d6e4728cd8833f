import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("enrollments", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="BatchOffering",
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
                        help_text="Batch identifier from the course catalogue",
                        max_length=64,
                        unique=True,
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
                    "price",
                    models.DecimalField(decimal_places=2, help_text="List price per student", max_digits=12),
                ),
                (
                    "currency",
                    models.CharField(default="INR", help_text="ISO currency code", max_length=3),
                ),
                (
                    "source",
                    models.CharField(
                        default="platform",
                        help_text="Acquisition source (platform or teacher)",
                        max_length=20,
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(db_index=True, default=True, help_text="Open for purchase"),
                ),
                (
                    "teacher",
                    models.ForeignKey(
                        help_text="Teacher owed the revenue share",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="batch_offerings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Batch Offering",
                "verbose_name_plural": "Batch Offerings",
                "ordering": ["batch_id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(price__gt=0),
                        name="batch_offering_price_positive",
                    ),
                ],
            },
        ),
    ]
