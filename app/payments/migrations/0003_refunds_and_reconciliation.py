"""
Track refunds against revenue entries and flag unreconciled collections.

- RevenueEntry.refunded_share: teacher share reversed by refunds, so
  refunded earnings are never withdrawable
- PaymentOrder.needs_reconciliation / reconciliation_note: money the
  gateway collected for an installment that was already settled or
  whose plan was cancelled
- The retry limit is enforced from PAYMENTS_MAX_RETRIES, not a fixed
  CHECK constraint
"""

import decimal

from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_add_settlement_schedules"),
    ]

    operations = [
        migrations.AddField(
            model_name="revenueentry",
            name="refunded_share",
            field=models.DecimalField(
                decimal_places=2,
                default=decimal.Decimal("0.00"),
                help_text="Teacher share reversed by refunds; never paid out",
                max_digits=12,
            ),
        ),
        migrations.AddConstraint(
            model_name="revenueentry",
            constraint=models.CheckConstraint(
                condition=models.Q(("refunded_share__gte", 0), ("refunded_share__lte", models.F("teacher_share"))),
                name="revenue_entry_refund_within_share",
            ),
        ),
        migrations.AddField(
            model_name="paymentorder",
            name="needs_reconciliation",
            field=models.BooleanField(
                db_index=True,
                default=False,
                help_text="Collected money whose installment could not be settled",
            ),
        ),
        migrations.AddField(
            model_name="paymentorder",
            name="reconciliation_note",
            field=models.TextField(
                blank=True,
                default="",
                help_text="What finance has to refund or reconcile",
            ),
        ),
        migrations.RemoveConstraint(
            model_name="paymentorder",
            name="payment_order_retry_limit",
        ),
    ]
