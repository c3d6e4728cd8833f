"""
DRF serializers for the payments app.

This module provides serializers for:
- Payment orders (create, verify, refund, display)
- Installment plans and their installments
- Payout requests, payout destinations and teacher balances
- Order list filters, teacher earnings and admin statistics

Request serializers only validate shape and types. Business rules
(discount below price, minimum payout, withdrawable balance, state
transitions) are enforced by the services, which report failures with
machine-readable error codes.

Related files:
    - services/: PaymentService, InstallmentService, PayoutService
    - views.py: Payment API views

Usage:
    serializer = CreateOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = PaymentService.create_order_for_batch(payer=request.user, **serializer.validated_data)
"""

from __future__ import annotations

import re
from decimal import Decimal

from rest_framework import serializers

from payments.models import Installment, InstallmentPlan, PaymentOrder, PayoutRequest
from payments.state_machines import (
    InstallmentFrequency,
    PaymentOrderState,
    PaymentMethod,
    PaymentSource,
    PayoutMethod,
)

MONEY = {"max_digits": 12, "decimal_places": 2}

IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
UPI_PATTERN = re.compile(r"^[\w.\-]{2,256}@[a-zA-Z]{2,64}$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{9,18}$")


# =============================================================================
# Payment Orders
# =============================================================================


class PaymentOrderSerializer(serializers.ModelSerializer):
    """
    Read-only view of a payment order.

    Fields:
        amount / platform_fee / teacher_earnings: Frozen commission split
        state: Current lifecycle state
        payment_link: Hosted checkout link for CREATED orders
        refundable_amount: amount - refund_amount
    """

    refundable_amount = serializers.DecimalField(read_only=True, **MONEY)
    installment_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = PaymentOrder
        fields = [
            "id",
            "payer",
            "teacher",
            "batch_id",
            "course_id",
            "amount",
            "original_amount",
            "discount_amount",
            "currency",
            "source",
            "commission_rate",
            "platform_fee",
            "teacher_earnings",
            "state",
            "payment_method",
            "gateway_order_id",
            "gateway_payment_id",
            "payment_link",
            "refund_amount",
            "refundable_amount",
            "retry_count",
            "failure_reason",
            "installment_id",
            "metadata",
            "paid_at",
            "failed_at",
            "cancelled_at",
            "refunded_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AdminPaymentOrderSerializer(PaymentOrderSerializer):
    """Order as platform admins see it, with the reconciliation flag."""

    class Meta(PaymentOrderSerializer.Meta):
        fields = PaymentOrderSerializer.Meta.fields + [
            "needs_reconciliation",
            "reconciliation_note",
        ]
        read_only_fields = fields


class OrderFilterSerializer(serializers.Serializer):
    """Query parameters for order lists. Dates bound created_at."""

    state = serializers.ChoiceField(choices=PaymentOrderState.choices, required=False)
    source = serializers.ChoiceField(choices=PaymentSource.choices, required=False)
    batch_id = serializers.CharField(max_length=64, required=False)
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)

    def validate(self, attrs: dict) -> dict:
        if attrs.get("date_from") and attrs.get("date_to") and attrs["date_from"] > attrs["date_to"]:
            raise serializers.ValidationError({"date_to": "Must not be before date_from."})
        return attrs


class AdminOrderFilterSerializer(OrderFilterSerializer):
    teacher = serializers.IntegerField(required=False, source="teacher_id")
    payer = serializers.IntegerField(required=False, source="payer_id")
    needs_reconciliation = serializers.BooleanField(required=False, allow_null=True, default=None)


class CreateOrderSerializer(serializers.Serializer):
    """
    Request body for POST orders/.

    The payer is the authenticated user. Price, teacher and source come
    from the batch catalogue; source and discount_amount are overrides
    only platform admins may send.
    """

    ADMIN_ONLY_FIELDS = ("source", "discount_amount")

    batch_id = serializers.CharField(max_length=64)
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        required=False,
        allow_blank=True,
        default="",
    )
    metadata = serializers.DictField(required=False, default=dict)
    source = serializers.ChoiceField(choices=PaymentSource.choices, required=False)
    discount_amount = serializers.DecimalField(
        min_value=Decimal("0.00"),
        required=False,
        **MONEY,
    )


class VerifyPaymentSerializer(serializers.Serializer):
    """Client-side verification payload returned by the checkout page."""

    gatewayPaymentId = serializers.CharField(max_length=255, source="gateway_payment_id")
    signature = serializers.CharField(max_length=512)
    paymentMethod = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        source="payment_method",
        required=False,
        allow_blank=True,
        default="",
    )


class RefundSerializer(serializers.Serializer):
    amount = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)
    reason = serializers.CharField(max_length=1000)


# =============================================================================
# Installment Plans
# =============================================================================


class InstallmentSerializer(serializers.ModelSerializer):
    amount_due = serializers.DecimalField(read_only=True, **MONEY)

    class Meta:
        model = Installment
        fields = [
            "id",
            "number",
            "amount",
            "late_fee",
            "amount_due",
            "due_date",
            "status",
            "overdue_at",
            "paid_at",
            "paid_amount",
            "transaction_id",
            "payment_method",
        ]
        read_only_fields = fields


class InstallmentPlanSerializer(serializers.ModelSerializer):
    """Plan with its derived summary and full installment schedule."""

    installments = InstallmentSerializer(many=True, read_only=True)

    class Meta:
        model = InstallmentPlan
        fields = [
            "id",
            "student",
            "teacher",
            "batch_id",
            "course_id",
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
            "grace_period_days",
            "late_fee",
            "auto_debit",
            "status",
            "paid_installments",
            "missed_installments",
            "total_paid",
            "total_outstanding",
            "next_due_date",
            "next_due_amount",
            "cancelled_at",
            "installments",
            "created_at",
        ]
        read_only_fields = fields


class CreateInstallmentPlanSerializer(serializers.Serializer):
    """
    Request body for POST installment-plans/.

    The total, teacher and source come from the batch catalogue. Interest,
    grace period and late fee come from the payment policy.
    """

    batch_id = serializers.CharField(max_length=64)
    number_of_installments = serializers.IntegerField()
    frequency = serializers.ChoiceField(
        choices=InstallmentFrequency.choices,
        default=InstallmentFrequency.MONTHLY,
    )
    down_payment = serializers.DecimalField(
        min_value=Decimal("0.00"),
        required=False,
        default=Decimal("0.00"),
        **MONEY,
    )
    start_date = serializers.DateTimeField(required=False)
    auto_debit = serializers.BooleanField(required=False, default=False)
    payment_method_id = serializers.CharField(
        max_length=255,
        required=False,
        allow_blank=True,
        default="",
    )


class RecordInstallmentPaymentSerializer(serializers.Serializer):
    """Offline installment payment recorded by an admin."""

    amount = serializers.DecimalField(min_value=Decimal("0.01"), required=False, **MONEY)
    transaction_id = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        required=False,
        allow_blank=True,
        default="",
    )


# =============================================================================
# Payouts
# =============================================================================


class BankTransferDetailsSerializer(serializers.Serializer):
    account_number = serializers.CharField(max_length=18)
    ifsc_code = serializers.CharField(max_length=11)
    account_holder_name = serializers.CharField(max_length=150)
    bank_name = serializers.CharField(max_length=150, required=False, allow_blank=True)

    def validate_account_number(self, value: str) -> str:
        value = value.strip()
        if not ACCOUNT_NUMBER_PATTERN.match(value):
            raise serializers.ValidationError("Account number must be 9-18 digits.")
        return value

    def validate_ifsc_code(self, value: str) -> str:
        value = value.strip().upper()
        if not IFSC_PATTERN.match(value):
            raise serializers.ValidationError("Invalid IFSC code.")
        return value


class UPIDetailsSerializer(serializers.Serializer):
    upi_id = serializers.CharField(max_length=320)

    def validate_upi_id(self, value: str) -> str:
        value = value.strip()
        if not UPI_PATTERN.match(value):
            raise serializers.ValidationError("Invalid UPI id.")
        return value


DESTINATION_SERIALIZERS = {
    PayoutMethod.BANK_TRANSFER: BankTransferDetailsSerializer,
    PayoutMethod.UPI: UPIDetailsSerializer,
}


class CreatePayoutSerializer(serializers.Serializer):
    """
    Request body for POST payouts/.

    payment_details is validated against the chosen payment_method:
        bank_transfer: account_number, ifsc_code, account_holder_name
        upi: upi_id
    """

    amount = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)
    payment_method = serializers.ChoiceField(
        choices=PayoutMethod.choices,
        default=PayoutMethod.BANK_TRANSFER,
    )
    payment_details = serializers.DictField()
    note = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")

    def validate(self, attrs: dict) -> dict:
        destination = DESTINATION_SERIALIZERS[attrs["payment_method"]](data=attrs["payment_details"])
        if not destination.is_valid():
            raise serializers.ValidationError({"payment_details": destination.errors})
        attrs["payment_details"] = dict(destination.validated_data)
        return attrs


class PayoutRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = PayoutRequest
        fields = [
            "id",
            "teacher",
            "amount",
            "currency",
            "payment_method",
            "payment_details",
            "note",
            "state",
            "transaction_id",
            "gateway_status",
            "rejection_reason",
            "failure_reason",
            "requested_at",
            "approved_at",
            "processing_at",
            "completed_at",
            "rejected_at",
            "cancelled_at",
        ]
        read_only_fields = fields


class RejectPayoutSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class CompletePayoutSerializer(serializers.Serializer):
    transaction_id = serializers.CharField(max_length=255)


class BalanceSerializer(serializers.Serializer):
    """Teacher earnings summary returned by GET payouts/balance/."""

    total_earnings = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    available_for_payout = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    withdrawable = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    pending_clearance = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    minimum_payout = serializers.DecimalField(read_only=True, **MONEY)


# =============================================================================
# Reports
# =============================================================================


class BatchEarningsSerializer(serializers.Serializer):
    batch_id = serializers.CharField(read_only=True)
    payments = serializers.IntegerField(read_only=True)
    gross_revenue = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    teacher_share = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)


class TeacherEarningsSerializer(serializers.Serializer):
    """Teacher earnings dashboard returned by GET earnings/."""

    lifetime = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    this_month = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    pending_payouts = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    paid_out = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    balance = BalanceSerializer(read_only=True)
    batches = BatchEarningsSerializer(many=True, read_only=True)
    recent_payouts = PayoutRequestSerializer(many=True, read_only=True)


class StatsFilterSerializer(serializers.Serializer):
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)


class PeriodStatsSerializer(serializers.Serializer):
    month = serializers.CharField(read_only=True)
    source = serializers.CharField(read_only=True)
    total_amount = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    platform_fee = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    teacher_earnings = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    payment_count = serializers.IntegerField(read_only=True)


class PaymentStatsSerializer(serializers.Serializer):
    """Platform statistics returned by GET admin/stats/."""

    total_revenue = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    platform_earnings = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    teacher_earnings = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    total_refunded = serializers.DecimalField(read_only=True, max_digits=14, decimal_places=2)
    payment_count = serializers.IntegerField(read_only=True)
    average_payment = serializers.DecimalField(read_only=True, **MONEY)
    orders_by_state = serializers.DictField(child=serializers.IntegerField(), read_only=True)
    needs_reconciliation = serializers.IntegerField(read_only=True)
    periods = PeriodStatsSerializer(many=True, read_only=True)
