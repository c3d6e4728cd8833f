"""
Tests for PaymentService.

Tests cover:
- Order creation with the frozen commission split
- Gateway failures during creation and retry
- Payment confirmation side effects (revenue entry, enrollment, balance)
- Exactly-once confirmation and signature checks
- Failures, cancellations, refunds and retries

Note: Amounts are chosen so every split is a whole number of rupees.
"""

import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from core.services import ServiceResult
from enrollments.models import BatchEnrollment
from enrollments.tests.factories import BatchOfferingFactory
from payments.adapters import GatewayAdapter
from payments.exceptions import GatewayUnavailableError
from payments.ledger import RevenueEntry, TeacherBalance, revenue_ledger
from payments.models import PaymentOrder
from payments.policy import PaymentPolicy
from payments.services import PaymentService
from payments.state_machines import (
    PaymentOrderState,
    PaymentSource,
    RevenueEntryStatus,
)
from payments.tests.conftest import get_fresh_order
from payments.tests.factories import PaymentOrderFactory


class RefusingEnrollment:
    """Enrollment backend that always refuses (batch full)."""

    calls = 0

    @classmethod
    def enroll(cls, student, batch_id, course_id="", payment_order_id=None):
        cls.calls += 1
        return ServiceResult.failure("Batch is full", error_code="BATCH_FULL")


class FixedCatalogue:
    """Catalogue backend pricing every batch at 499.00."""

    teacher = None

    @classmethod
    def get_offering(cls, batch_id):
        return ServiceResult.success(
            SimpleNamespace(
                batch_id=batch_id,
                course_id="",
                teacher=cls.teacher,
                price=Decimal("499.00"),
                currency="INR",
                source="platform",
                is_active=True,
            )
        )


def balance_of(teacher) -> TeacherBalance:
    return TeacherBalance.objects.get(teacher=teacher)


# =============================================================================
# Creation
# =============================================================================


class TestCreateOrder:
    def test_creates_order_with_frozen_split(self, student, teacher, gateway):
        result = PaymentService.create_order(
            payer=student,
            teacher=teacher,
            batch_id="batch-1",
            original_amount=Decimal("1000.00"),
            source=PaymentSource.PLATFORM,
        )

        assert result.success is True
        order = get_fresh_order(result.data.id)
        assert order.state == PaymentOrderState.CREATED
        assert order.amount == Decimal("1000.00")
        assert order.commission_rate == Decimal("0.40")
        assert order.platform_fee == Decimal("400.00")
        assert order.teacher_earnings == Decimal("600.00")
        assert order.currency == "INR"
        assert order.gateway_order_id == "order_fake_1"
        assert order.payment_link.endswith("order_fake_1")

        call = gateway.create_order.call_args.kwargs
        assert call["amount"] == Decimal("1000.00")
        assert call["currency"] == "INR"
        assert call["payer_ref"] == str(student.pk)
        assert call["idempotency_key"].startswith(f"create_order:{order.id}:1:")

    def test_discount_reduces_amount_before_split(self, student, teacher):
        result = PaymentService.create_order(
            payer=student,
            teacher=teacher,
            batch_id="batch-1",
            original_amount=Decimal("1000.00"),
            discount_amount=Decimal("200.00"),
        )

        order = result.data
        assert order.amount == Decimal("800.00")
        assert order.platform_fee == Decimal("320.00")
        assert order.teacher_earnings == Decimal("480.00")

    def test_teacher_sourced_sale(self, student, teacher):
        result = PaymentService.create_order(
            payer=student,
            teacher=teacher,
            batch_id="batch-1",
            original_amount=Decimal("1000.00"),
            source=PaymentSource.TEACHER,
        )

        assert result.data.platform_fee == Decimal("600.00")
        assert result.data.teacher_earnings == Decimal("400.00")

    def test_split_ignores_later_rate_changes(self, student, teacher):
        result = PaymentService.create_order(
            payer=student,
            teacher=teacher,
            batch_id="batch-1",
            original_amount=Decimal("1000.00"),
        )
        PaymentService.set_policy(
            PaymentPolicy(commission_rates={"platform": Decimal("0.10"), "teacher": Decimal("0.20")})
        )

        order = get_fresh_order(result.data.id)
        assert order.platform_fee == Decimal("400.00")

    @pytest.mark.parametrize("discount", ["1000.00", "1500.00", "-1.00"])
    def test_invalid_discount_rejected(self, student, teacher, gateway, discount):
        result = PaymentService.create_order(
            payer=student,
            teacher=teacher,
            batch_id="batch-1",
            original_amount=Decimal("1000.00"),
            discount_amount=Decimal(discount),
        )

        assert result.success is False
        assert result.error_code == "INVALID_AMOUNT"
        assert PaymentOrder.objects.count() == 0
        gateway.create_order.assert_not_called()

    def test_unknown_source_rejected(self, student, teacher):
        result = PaymentService.create_order(
            payer=student,
            teacher=teacher,
            batch_id="batch-1",
            original_amount=Decimal("1000.00"),
            source="affiliate",
        )

        assert result.success is False
        assert result.error_code == "INVALID_SOURCE"

    def test_gateway_failure_marks_order_failed(self, student, teacher, gateway):
        gateway.create_order.side_effect = GatewayUnavailableError("Gateway timed out")

        with pytest.raises(GatewayUnavailableError):
            PaymentService.create_order(
                payer=student,
                teacher=teacher,
                batch_id="batch-1",
                original_amount=Decimal("1000.00"),
            )

        order = PaymentOrder.objects.get()
        assert order.state == PaymentOrderState.FAILED
        assert "Gateway timed out" in order.failure_reason
        assert order.gateway_order_id is None



class TestCreateOrderForBatch:
    def test_price_and_teacher_from_catalogue(self, student, teacher):
        BatchOfferingFactory(
            batch_id="batch-t",
            course_id="course-t",
            teacher=teacher,
            price=Decimal("2500.00"),
            source=PaymentSource.TEACHER,
        )

        result = PaymentService.create_order_for_batch(student, "batch-t", payment_method="upi")

        assert result.success is True
        order = result.data
        assert order.teacher == teacher
        assert order.course_id == "course-t"
        assert order.amount == Decimal("2500.00")
        assert order.source == PaymentSource.TEACHER
        assert order.teacher_earnings == Decimal("1000.00")
        assert order.payment_method == "upi"

    def test_source_override(self, student, teacher):
        BatchOfferingFactory(batch_id="batch-t", teacher=teacher)

        result = PaymentService.create_order_for_batch(
            student, "batch-t", source=PaymentSource.TEACHER, discount_amount=Decimal("100.00")
        )

        assert result.data.amount == Decimal("900.00")
        assert result.data.commission_rate == Decimal("0.60")

    def test_unknown_batch(self, student, gateway):
        result = PaymentService.create_order_for_batch(student, "batch-none")

        assert result.success is False
        assert result.error_code == "BATCH_NOT_FOUND"
        gateway.create_order.assert_not_called()
        assert not PaymentOrder.objects.exists()

    def test_inactive_batch(self, student, teacher):
        BatchOfferingFactory(batch_id="batch-t", teacher=teacher, is_active=False)

        result = PaymentService.create_order_for_batch(student, "batch-t")

        assert result.error_code == "BATCH_NOT_AVAILABLE"

    def test_already_enrolled(self, student, teacher):
        BatchOfferingFactory(batch_id="batch-t", teacher=teacher)
        BatchEnrollment.objects.create(student=student, batch_id="batch-t")

        result = PaymentService.create_order_for_batch(student, "batch-t")

        assert result.success is False
        assert result.error_code == "ALREADY_ENROLLED"

    def test_catalogue_backend_is_configurable(self, student, teacher, settings):
        settings.PAYMENTS_CATALOG_BACKEND = "payments.tests.test_payment_service.FixedCatalogue"
        FixedCatalogue.teacher = teacher

        result = PaymentService.create_order_for_batch(student, "anything")

        assert result.success is True
        assert result.data.amount == Decimal("499.00")
        assert result.data.teacher == teacher

# =============================================================================
# Confirmation
# =============================================================================


class TestMarkPaid:
    def test_applies_collection_side_effects(self, created_order, student, teacher):
        result = PaymentService.mark_paid(created_order.id, "pay_1", signature_verified=True)

        assert result.success is True
        order = get_fresh_order(created_order.id)
        assert order.state == PaymentOrderState.PAID
        assert order.gateway_payment_id == "pay_1"
        assert order.paid_at is not None

        entry = RevenueEntry.objects.get(payment_order=order)
        assert entry.idempotency_key == f"order:{order.id}"
        assert entry.status == RevenueEntryStatus.PENDING
        assert entry.amount == Decimal("1000.00")
        assert entry.platform_share == Decimal("400.00")
        assert entry.teacher_share == Decimal("600.00")

        enrollment = BatchEnrollment.objects.get(student=student, batch_id="batch-42")
        assert enrollment.course_id == "course-7"
        assert enrollment.source_payment_order_id == order.id

        balance = balance_of(teacher)
        assert balance.total_earnings == Decimal("600.00")
        assert balance.available_for_payout == Decimal("600.00")

    def test_second_confirmation_is_noop(self, created_order, teacher):
        PaymentService.mark_paid(created_order.id, "pay_1", signature_verified=True)
        result = PaymentService.mark_paid(created_order.id, "pay_1", signature_verified=True)

        assert result.success is True
        assert RevenueEntry.objects.count() == 1
        assert BatchEnrollment.objects.count() == 1
        assert balance_of(teacher).total_earnings == Decimal("600.00")

    def test_valid_client_signature_accepted(self, created_order, gateway):
        gateway.verify_payment_signature.side_effect = GatewayAdapter.verify_payment_signature
        signature = GatewayAdapter.compute_payment_signature(created_order.gateway_order_id, "pay_1")

        result = PaymentService.mark_paid(created_order.id, "pay_1", signature)

        assert result.success is True
        assert get_fresh_order(created_order.id).gateway_signature == signature

    def test_invalid_client_signature_rejected(self, created_order, gateway):
        gateway.verify_payment_signature.side_effect = GatewayAdapter.verify_payment_signature

        result = PaymentService.mark_paid(created_order.id, "pay_1", "deadbeef")

        assert result.success is False
        assert result.error_code == "SIGNATURE_INVALID"
        assert get_fresh_order(created_order.id).state == PaymentOrderState.CREATED
        assert RevenueEntry.objects.count() == 0

    def test_amount_mismatch_rejected(self, created_order):
        result = PaymentService.mark_paid(
            created_order.id,
            "pay_1",
            amount=Decimal("999.00"),
            signature_verified=True,
        )

        assert result.success is False
        assert result.error_code == "AMOUNT_MISMATCH"
        assert get_fresh_order(created_order.id).state == PaymentOrderState.CREATED

    def test_enrollment_failure_rolls_back(self, created_order, teacher, settings):
        settings.PAYMENTS_ENROLLMENT_BACKEND = "payments.tests.test_payment_service.RefusingEnrollment"

        result = PaymentService.mark_paid(created_order.id, "pay_1", signature_verified=True)

        assert result.success is False
        assert result.error_code == "ENROLLMENT_FAILED"
        assert get_fresh_order(created_order.id).state == PaymentOrderState.CREATED
        assert RevenueEntry.objects.count() == 0
        assert not TeacherBalance.objects.filter(teacher=teacher, total_earnings__gt=0).exists()

    def test_failed_order_cannot_be_paid(self, created_order):
        PaymentService.mark_failed(created_order.id, reason="Declined")

        result = PaymentService.mark_paid(created_order.id, "pay_1", signature_verified=True)

        assert result.success is False
        assert result.error_code == "INVALID_STATE_TRANSITION"

    def test_unknown_order(self, db):
        result = PaymentService.mark_paid(uuid.uuid4(), "pay_1", signature_verified=True)

        assert result.success is False
        assert result.error_code == "PAYMENT_NOT_FOUND"


class TestMarkFailedAndCancel:
    def test_mark_failed_has_no_ledger_effect(self, created_order):
        result = PaymentService.mark_failed(created_order.id, reason="Insufficient funds")

        assert result.success is True
        order = get_fresh_order(created_order.id)
        assert order.state == PaymentOrderState.FAILED
        assert order.failure_reason == "Insufficient funds"
        assert RevenueEntry.objects.count() == 0

    def test_mark_failed_twice_is_noop(self, created_order):
        PaymentService.mark_failed(created_order.id, reason="first")
        result = PaymentService.mark_failed(created_order.id, reason="second")

        assert result.success is True
        assert get_fresh_order(created_order.id).failure_reason == "first"

    def test_paid_order_cannot_fail(self, paid_order):
        result = PaymentService.mark_failed(paid_order.id)

        assert result.success is False
        assert result.error_code == "INVALID_STATE_TRANSITION"

    def test_cancel(self, created_order):
        result = PaymentService.cancel(created_order.id, reason="User closed checkout")

        assert result.success is True
        order = get_fresh_order(created_order.id)
        assert order.state == PaymentOrderState.CANCELLED
        assert order.cancelled_at is not None


# =============================================================================
# Refunds
# =============================================================================


class TestRefund:
    def test_partial_refund_reduces_available_balance(self, paid_order, teacher, platform_admin):
        result = PaymentService.refund(
            paid_order.id,
            Decimal("300.00"),
            "Missed two classes",
            refunded_by=platform_admin,
        )

        assert result.success is True
        assert result.data.refunded_amount == Decimal("300.00")
        assert result.data.teacher_available_balance == Decimal("300.00")
        assert result.data.balance_negative is False

        order = get_fresh_order(paid_order.id)
        assert order.state == PaymentOrderState.PARTIAL_REFUND
        assert order.refund_amount == Decimal("300.00")
        assert order.refunded_by == platform_admin

        balance = balance_of(teacher)
        assert balance.total_earnings == Decimal("600.00")
        assert balance.available_for_payout == Decimal("300.00")

        entry = RevenueEntry.objects.get(payment_order=order)
        assert entry.teacher_share == Decimal("600.00")
        assert entry.refunded_share == Decimal("180.00")

    def test_refunds_accumulate_to_full(self, paid_order):
        PaymentService.refund(paid_order.id, Decimal("300.00"), "First part")
        result = PaymentService.refund(paid_order.id, Decimal("700.00"), "Remainder")

        assert result.success is True
        order = get_fresh_order(paid_order.id)
        assert order.state == PaymentOrderState.REFUNDED
        assert order.refund_amount == Decimal("1000.00")
        assert RevenueEntry.objects.get(payment_order=order).refunded_share == Decimal("600.00")

    def test_refund_above_refundable_rejected(self, paid_order):
        PaymentService.refund(paid_order.id, Decimal("300.00"), "First part")

        result = PaymentService.refund(paid_order.id, Decimal("701.00"), "Too much")

        assert result.success is False
        assert result.error_code == "INVALID_AMOUNT"
        assert result.details["refundable"] == "700.00"

    def test_refund_of_unpaid_order_rejected(self, created_order):
        result = PaymentService.refund(created_order.id, Decimal("10.00"), "Nope")

        assert result.success is False
        assert result.error_code == "INVALID_STATE_TRANSITION"

    def test_refund_requires_reason(self, paid_order):
        result = PaymentService.refund(paid_order.id, Decimal("10.00"), "  ")

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        assert "reason" in result.errors

    def test_refund_after_payout_goes_negative(self, paid_order, teacher):
        revenue_ledger.adjust_available(teacher.pk, Decimal("-600.00"))

        result = PaymentService.refund(paid_order.id, Decimal("1000.00"), "Course cancelled")

        assert result.success is True
        assert result.data.teacher_available_balance == Decimal("-1000.00")
        assert result.data.balance_negative is True


# =============================================================================
# Retries
# =============================================================================


class TestRetry:
    def test_retry_opens_new_gateway_order(self, created_order, gateway):
        PaymentService.mark_failed(created_order.id, reason="Declined")

        result = PaymentService.retry(created_order.id)

        assert result.success is True
        order = get_fresh_order(created_order.id)
        assert order.state == PaymentOrderState.CREATED
        assert order.retry_count == 1
        assert order.gateway_order_id == "order_fake_2"
        assert order.failure_reason == ""
        assert gateway.create_order.call_args.kwargs["idempotency_key"].startswith(
            f"create_order:{order.id}:2:"
        )

    def test_retry_limit(self, db):
        order = PaymentOrderFactory(state=PaymentOrderState.FAILED, retry_count=3)

        result = PaymentService.retry(order.id)

        assert result.success is False
        assert result.error_code == "RETRY_LIMIT_EXCEEDED"

    def test_policy_controls_retry_limit(self, db):
        PaymentService.set_policy(PaymentPolicy(max_retries=1))
        order = PaymentOrderFactory(state=PaymentOrderState.CANCELLED, retry_count=1)

        result = PaymentService.retry(order.id)

        assert result.error_code == "RETRY_LIMIT_EXCEEDED"

    def test_raised_policy_allows_more_retries(self, db):
        PaymentService.set_policy(PaymentPolicy(max_retries=5))
        order = PaymentOrderFactory(state=PaymentOrderState.FAILED, retry_count=3)

        result = PaymentService.retry(order.id)

        assert result.success is True
        assert get_fresh_order(order.id).retry_count == 4

    def test_retry_limit_follows_settings(self, db, settings):
        settings.PAYMENTS_MAX_RETRIES = 5
        order = PaymentOrderFactory(state=PaymentOrderState.FAILED, retry_count=4)

        assert PaymentService.retry(order.id).success is True
        PaymentService.mark_failed(order.id, reason="Declined again")
        assert PaymentService.retry(order.id).error_code == "RETRY_LIMIT_EXCEEDED"

    def test_paid_order_cannot_retry(self, paid_order):
        result = PaymentService.retry(paid_order.id)

        assert result.success is False
        assert result.error_code == "INVALID_STATE_TRANSITION"

    def test_gateway_failure_on_retry(self, created_order, gateway):
        PaymentService.cancel(created_order.id)
        gateway.create_order.side_effect = GatewayUnavailableError("down")

        with pytest.raises(GatewayUnavailableError):
            PaymentService.retry(created_order.id)

        order = get_fresh_order(created_order.id)
        assert order.state == PaymentOrderState.FAILED
        assert order.retry_count == 1


class TestGetStatus:
    def test_unknown_order(self, db):
        result = PaymentService.get_status(uuid.uuid4())

        assert result.success is False
        assert result.error_code == "PAYMENT_NOT_FOUND"
