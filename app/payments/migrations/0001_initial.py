import decimal
import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ======================================================================
        # Installment plans
        # ======================================================================
        migrations.CreateModel(
            name="InstallmentPlan",
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
                ("batch_id", models.CharField(db_index=True, help_text="Batch being purchased", max_length=64)),
                (
                    "course_id",
                    models.CharField(blank=True, default="", help_text="Course the batch belongs to", max_length=64),
                ),
                ("total_amount", models.DecimalField(decimal_places=2, help_text="Full price", max_digits=12)),
                (
                    "down_payment",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Amount collected up front, outside the schedule",
                        max_digits=12,
                    ),
                ),
                (
                    "remaining_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Principal spread over the installments",
                        max_digits=12,
                    ),
                ),
                (
                    "number_of_installments",
                    models.PositiveSmallIntegerField(help_text="Number of scheduled installments (2-24)"),
                ),
                (
                    "installment_amount",
                    models.DecimalField(decimal_places=2, help_text="EMI amount per installment", max_digits=12),
                ),
                (
                    "frequency",
                    models.CharField(
                        choices=[("weekly", "Weekly"), ("biweekly", "Biweekly"), ("monthly", "Monthly")],
                        default="monthly",
                        max_length=10,
                    ),
                ),
                (
                    "interest_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Annual interest rate in percent",
                        max_digits=5,
                    ),
                ),
                ("currency", models.CharField(default="INR", max_length=3)),
                (
                    "source",
                    models.CharField(
                        choices=[("platform", "Platform"), ("teacher", "Teacher")],
                        default="platform",
                        max_length=20,
                    ),
                ),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Platform commission applied to every installment (frozen)",
                        max_digits=5,
                    ),
                ),
                ("start_date", models.DateTimeField(help_text="Due date of the first installment")),
                ("end_date", models.DateTimeField(help_text="Due date of the last installment")),
                ("grace_period_days", models.PositiveSmallIntegerField(default=3)),
                (
                    "late_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Flat fee per overdue installment",
                        max_digits=12,
                    ),
                ),
                (
                    "auto_debit",
                    models.BooleanField(default=False, help_text="Student opted into auto-debit (stored only)"),
                ),
                (
                    "payment_method_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Saved gateway instrument for auto-debit",
                        max_length=255,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("completed", "Completed"),
                            ("defaulted", "Defaulted"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="active",
                        max_length=20,
                    ),
                ),
                ("paid_installments", models.PositiveSmallIntegerField(default=0)),
                ("missed_installments", models.PositiveSmallIntegerField(default=0)),
                (
                    "total_paid",
                    models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=12),
                ),
                (
                    "total_outstanding",
                    models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=12),
                ),
                ("next_due_date", models.DateTimeField(blank=True, null=True)),
                ("next_due_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "student",
                    models.ForeignKey(
                        help_text="Student paying in installments",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="installment_plans",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "teacher",
                    models.ForeignKey(
                        help_text="Teacher receiving the revenue share",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="teaching_installment_plans",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Installment Plan",
                "verbose_name_plural": "Installment Plans",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["student", "status"], name="payments_in_student_7c1e2a_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("number_of_installments__gte", 2), ("number_of_installments__lte", 24)),
                        name="installment_plan_count_range",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("remaining_amount", models.F("total_amount") - models.F("down_payment"))
                        ),
                        name="installment_plan_remaining_matches",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Installment",
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
                ("number", models.PositiveSmallIntegerField()),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("due_date", models.DateTimeField(db_index=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("overdue", "Overdue")],
                        db_index=True,
                        default="pending",
                        max_length=10,
                    ),
                ),
                (
                    "late_fee",
                    models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=12),
                ),
                ("overdue_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("paid_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("transaction_id", models.CharField(blank=True, default="", max_length=255)),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("card", "Card"),
                            ("netbanking", "Net Banking"),
                            ("wallet", "Wallet"),
                            ("upi", "UPI"),
                            ("emi", "EMI"),
                            ("other", "Other"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                (
                    "plan",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="installments",
                        to="payments.installmentplan",
                    ),
                ),
            ],
            options={
                "verbose_name": "Installment",
                "verbose_name_plural": "Installments",
                "ordering": ["plan", "number"],
                "constraints": [
                    models.UniqueConstraint(fields=("plan", "number"), name="unique_installment_number_per_plan"),
                ],
            },
        ),
        # ======================================================================
        # Payment orders
        # ======================================================================
        migrations.CreateModel(
            name="PaymentOrder",
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
                    "metadata",
                    models.JSONField(blank=True, default=dict, help_text="Flexible key-value metadata storage"),
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
                ("batch_id", models.CharField(db_index=True, help_text="Batch being purchased", max_length=64)),
                (
                    "course_id",
                    models.CharField(blank=True, default="", help_text="Course the batch belongs to", max_length=64),
                ),
                (
                    "amount",
                    models.DecimalField(decimal_places=2, help_text="Charged amount after discount", max_digits=12),
                ),
                (
                    "original_amount",
                    models.DecimalField(decimal_places=2, help_text="List price before discount", max_digits=12),
                ),
                (
                    "discount_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Discount applied at checkout",
                        max_digits=12,
                    ),
                ),
                ("currency", models.CharField(default="INR", help_text="ISO 4217 currency code", max_length=3)),
                (
                    "source",
                    models.CharField(
                        choices=[("platform", "Platform"), ("teacher", "Teacher")],
                        default="platform",
                        help_text="Who acquired the buyer (selects commission rate)",
                        max_length=20,
                    ),
                ),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Fraction of amount retained by the platform",
                        max_digits=5,
                    ),
                ),
                (
                    "platform_fee",
                    models.DecimalField(decimal_places=2, help_text="Platform share of amount", max_digits=12),
                ),
                (
                    "teacher_earnings",
                    models.DecimalField(decimal_places=2, help_text="Teacher share of amount", max_digits=12),
                ),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[
                            ("created", "Created"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                            ("refunded", "Refunded"),
                            ("partial_refund", "Partially Refunded"),
                        ],
                        db_index=True,
                        default="created",
                        help_text="Current state of the payment order (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("card", "Card"),
                            ("netbanking", "Net Banking"),
                            ("wallet", "Wallet"),
                            ("upi", "UPI"),
                            ("emi", "EMI"),
                            ("other", "Other"),
                        ],
                        default="",
                        help_text="Instrument used at the gateway",
                        max_length=20,
                    ),
                ),
                (
                    "gateway_order_id",
                    models.CharField(
                        blank=True,
                        help_text="Order id assigned by the gateway",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "gateway_payment_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Payment id reported by the gateway on success",
                        max_length=255,
                    ),
                ),
                (
                    "gateway_signature",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Signature that authenticated the payment",
                        max_length=512,
                    ),
                ),
                (
                    "payment_link",
                    models.URLField(
                        blank=True,
                        default="",
                        help_text="Hosted checkout link returned by the gateway",
                        max_length=1024,
                    ),
                ),
                (
                    "refund_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Cumulative refunded amount",
                        max_digits=12,
                    ),
                ),
                (
                    "refund_reason",
                    models.TextField(blank=True, default="", help_text="Reason given for the latest refund"),
                ),
                ("retry_count", models.PositiveSmallIntegerField(default=0, help_text="Number of retries used")),
                (
                    "failure_reason",
                    models.TextField(blank=True, default="", help_text="Why the payment failed or was cancelled"),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "payer",
                    models.ForeignKey(
                        help_text="Student paying for the batch",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "teacher",
                    models.ForeignKey(
                        help_text="Teacher receiving the revenue share",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="earning_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "refunded_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Admin who issued the latest refund",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "installment",
                    models.ForeignKey(
                        blank=True,
                        help_text="Installment collected by this order, if any",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_orders",
                        to="payments.installment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Order",
                "verbose_name_plural": "Payment Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["payer", "state"], name="payments_pa_payer_i_3f9b1d_idx"),
                    models.Index(fields=["teacher", "state"], name="payments_pa_teacher_8d2c4e_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_order_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("amount", models.F("platform_fee") + models.F("teacher_earnings")),
                            ("platform_fee__gte", 0),
                            ("teacher_earnings__gte", 0),
                        ),
                        name="payment_order_split_sums_to_amount",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount", models.F("original_amount") - models.F("discount_amount"))),
                        name="payment_order_amount_matches_discount",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("refund_amount__gte", 0), ("refund_amount__lte", models.F("amount"))),
                        name="payment_order_refund_within_amount",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("retry_count__lte", 3)),
                        name="payment_order_retry_limit",
                    ),
                ],
            },
        ),
        # ======================================================================
        # Webhook reconciliation
        # ======================================================================
        migrations.CreateModel(
            name="GatewayTransaction",
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
                    "gateway_order_id",
                    models.CharField(
                        help_text="Gateway order id - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                ("gateway_payment_id", models.CharField(blank=True, default="", max_length=255)),
                ("event_type", models.CharField(db_index=True, max_length=100)),
                ("payload", models.JSONField(help_text="Raw webhook payload from the gateway")),
                ("signature", models.CharField(blank=True, default="", max_length=512)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                            ("ignored", "Ignored"),
                        ],
                        db_index=True,
                        default="received",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("duplicate_count", models.PositiveIntegerField(default=0)),
                (
                    "payment_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="gateway_transactions",
                        to="payments.paymentorder",
                    ),
                ),
            ],
            options={
                "verbose_name": "Gateway Transaction",
                "verbose_name_plural": "Gateway Transactions",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["status", "created_at"], name="payments_ga_status_5e7a90_idx")],
            },
        ),
        # ======================================================================
        # Revenue ledger
        # ======================================================================
        migrations.CreateModel(
            name="RevenueEntry",
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
                    "idempotency_key",
                    models.CharField(
                        help_text="Unique key preventing a second entry for the same payment",
                        max_length=255,
                        unique=True,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("platform_share", models.DecimalField(decimal_places=2, max_digits=12)),
                ("teacher_share", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "source",
                    models.CharField(choices=[("platform", "Platform"), ("teacher", "Teacher")], max_length=20),
                ),
                ("commission_rate", models.DecimalField(decimal_places=4, max_digits=5)),
                ("currency", models.CharField(default="INR", max_length=3)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("processed", "Processed"), ("paid", "Paid")],
                        db_index=True,
                        default="pending",
                        help_text="Settlement status (forward only)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                (
                    "payment_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="revenue_entries",
                        to="payments.paymentorder",
                    ),
                ),
                (
                    "installment",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="revenue_entries",
                        to="payments.installment",
                    ),
                ),
                (
                    "teacher",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="revenue_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Revenue Entry",
                "verbose_name_plural": "Revenue Entries",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["teacher", "status"], name="payments_re_teacher_a41f6b_idx"),
                    models.Index(fields=["status", "created_at"], name="payments_re_status_0c8d3e_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="revenue_entry_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("amount", models.F("platform_share") + models.F("teacher_share")),
                            ("platform_share__gte", 0),
                            ("teacher_share__gte", 0),
                        ),
                        name="revenue_entry_shares_sum_to_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TeacherBalance",
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
                    "teacher",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        primary_key=True,
                        related_name="earnings_balance",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "total_earnings",
                    models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14),
                ),
                (
                    "available_for_payout",
                    models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14),
                ),
            ],
            options={
                "verbose_name": "Teacher Balance",
                "verbose_name_plural": "Teacher Balances",
            },
        ),
        # ======================================================================
        # Payouts
        # ======================================================================
        migrations.CreateModel(
            name="PayoutRequest",
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
                    "amount",
                    models.DecimalField(decimal_places=2, help_text="Requested payout amount", max_digits=12),
                ),
                ("currency", models.CharField(default="INR", max_length=3)),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("bank_transfer", "Bank Transfer"), ("upi", "UPI")],
                        default="bank_transfer",
                        max_length=20,
                    ),
                ),
                (
                    "payment_details",
                    models.JSONField(blank=True, default=dict, help_text="Bank account or UPI destination"),
                ),
                ("note", models.TextField(blank=True, default="")),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[
                            ("requested", "Requested"),
                            ("approved", "Approved"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("rejected", "Rejected"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="requested",
                        help_text="Current state of the payout request (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "transaction_id",
                    models.CharField(
                        blank=True,
                        help_text="Gateway transfer reference",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                ("gateway_status", models.CharField(blank=True, default="", max_length=50)),
                ("rejection_reason", models.TextField(blank=True, default="")),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("requested_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("processing_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "teacher",
                    models.ForeignKey(
                        help_text="Teacher withdrawing earnings",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "processed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout Request",
                "verbose_name_plural": "Payout Requests",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["teacher", "state"], name="payments_po_teacher_19b7c2_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payout_request_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PayoutAllocation",
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
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("released", models.BooleanField(db_index=True, default=False)),
                (
                    "payout",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="payments.payoutrequest",
                    ),
                ),
                (
                    "revenue_entry",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_allocations",
                        to="payments.revenueentry",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout Allocation",
                "verbose_name_plural": "Payout Allocations",
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", decimal.Decimal("0"))),
                        name="payout_allocation_amount_positive",
                    ),
                    models.UniqueConstraint(
                        fields=("payout", "revenue_entry"),
                        name="unique_allocation_per_payout_entry",
                    ),
                ],
            },
        ),
    ]
