"""
Tests for the payments API views.

Covers routing, permissions and the error_code -> HTTP status mapping.
Business rules are covered by the service tests.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from authentication.tests.factories import StudentFactory, TeacherFactory
from payments.adapters import GatewayAdapter, GatewayPayoutResult
from payments.exceptions import GatewayUnavailableError
from payments.ledger import RevenueEntry, revenue_ledger
from enrollments.services import EnrollmentService
from enrollments.tests.factories import BatchOfferingFactory
from payments.models import PaymentOrder, PayoutRequest
from payments.services import InstallmentService, PaymentService, PayoutService
from payments.state_machines import PaymentOrderState, PayoutRequestState, RevenueEntryStatus
from payments.tests.conftest import get_fresh_order, get_fresh_payout
from payments.tests.factories import (
    PaymentOrderFactory,
    PayoutRequestFactory,
    RevenueEntryFactory,
)


def url(name, **kwargs):
    return reverse(f"payments:{name}", kwargs=kwargs or None)


def client_for(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def give_withdrawable(teacher, count=3):
    for i in range(count):
        entry = RevenueEntryFactory(teacher=teacher, status=RevenueEntryStatus.PROCESSED)
        RevenueEntry.objects.filter(id=entry.id).update(
            created_at=timezone.now() - timedelta(days=10, hours=count - i)
        )
        revenue_ledger.credit_teacher(teacher.pk, entry.teacher_share)


UPI = {"payment_method": "upi", "payment_details": {"upi_id": "asha@okbank"}}


# =============================================================================
# Orders
# =============================================================================


class TestOrderCreate:
    def test_creates_order_from_catalogue(self, student_client, batch_offering, teacher):
        response = student_client.post(url("order-list"), {"batch_id": "batch-1"}, format="json")

        assert response.status_code == 201
        data = response.json()
        assert data["state"] == PaymentOrderState.CREATED
        assert data["teacher"] == teacher.pk
        assert data["course_id"] == "course-7"
        assert data["amount"] == "1000.00"
        assert data["platform_fee"] == "400.00"
        assert data["teacher_earnings"] == "600.00"
        assert data["payment_link"].endswith("order_fake_1")

    def test_client_price_and_teacher_are_ignored(self, student_client, batch_offering, teacher):
        response = student_client.post(
            url("order-list"),
            {
                "batch_id": "batch-1",
                "teacher": TeacherFactory().pk,
                "original_amount": "1.00",
                "amount": "1.00",
                "currency": "USD",
            },
            format="json",
        )

        assert response.status_code == 201
        data = response.json()
        assert data["teacher"] == teacher.pk
        assert data["amount"] == "1000.00"
        assert data["currency"] == "INR"

    @pytest.mark.parametrize(
        "override",
        [{"source": "teacher"}, {"discount_amount": "900.00"}],
    )
    def test_pricing_overrides_are_admin_only(self, student_client, batch_offering, override):
        response = student_client.post(
            url("order-list"),
            {"batch_id": "batch-1", **override},
            format="json",
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"
        assert not PaymentOrder.objects.exists()

    def test_admin_can_override_source_and_discount(self, admin_client, batch_offering):
        response = admin_client.post(
            url("order-list"),
            {"batch_id": "batch-1", "source": "teacher", "discount_amount": "200.00"},
            format="json",
        )

        assert response.status_code == 201
        data = response.json()
        assert data["amount"] == "800.00"
        assert data["commission_rate"] == "0.6000"
        assert data["teacher_earnings"] == "320.00"

    def test_discount_not_below_price(self, admin_client, batch_offering):
        response = admin_client.post(
            url("order-list"),
            {"batch_id": "batch-1", "discount_amount": "1000.00"},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_AMOUNT"

    def test_requires_authentication(self, batch_offering):
        response = APIClient().post(url("order-list"), {}, format="json")

        assert response.status_code == 401

    def test_unknown_batch_is_404(self, student_client):
        response = student_client.post(url("order-list"), {"batch_id": "batch-x"}, format="json")

        assert response.status_code == 404
        assert response.json()["error_code"] == "BATCH_NOT_FOUND"

    def test_closed_batch_is_409(self, student_client, batch_offering):
        batch_offering.is_active = False
        batch_offering.save()

        response = student_client.post(url("order-list"), {"batch_id": "batch-1"}, format="json")

        assert response.status_code == 409
        assert response.json()["error_code"] == "BATCH_NOT_AVAILABLE"

    def test_already_enrolled_is_409(self, student_client, student, batch_offering):
        EnrollmentService.enroll(student, batch_id="batch-1")

        response = student_client.post(url("order-list"), {"batch_id": "batch-1"}, format="json")

        assert response.status_code == 409
        assert response.json()["error_code"] == "ALREADY_ENROLLED"

    def test_gateway_down_is_502(self, student_client, batch_offering, gateway):
        gateway.create_order.side_effect = GatewayUnavailableError("down")

        response = student_client.post(url("order-list"), {"batch_id": "batch-1"}, format="json")

        assert response.status_code == 502
        assert response.json()["error_code"] == "GATEWAY_UNAVAILABLE"


class TestOrderList:
    def test_lists_only_own_orders(self, created_order, student_client):
        PaymentOrderFactory()

        response = student_client.get(url("order-list"))

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert [o["id"] for o in response.json()["results"]] == [str(created_order.id)]

    def test_state_filter(self, paid_order, student, student_client):
        PaymentOrderFactory(payer=student, state=PaymentOrderState.FAILED)

        response = student_client.get(url("order-list"), {"state": "paid"})

        assert [o["id"] for o in response.json()["results"]] == [str(paid_order.id)]

    def test_invalid_filters_are_400(self, student_client):
        bad_state = student_client.get(url("order-list"), {"state": "settled"})
        bad_range = student_client.get(
            url("order-list"),
            {"date_from": "2026-02-01T00:00:00Z", "date_to": "2026-01-01T00:00:00Z"},
        )

        assert bad_state.status_code == 400
        assert bad_range.status_code == 400
        assert "date_to" in bad_range.json()

    def test_payer_does_not_see_reconciliation_flag(self, created_order, student_client):
        result = student_client.get(url("order-list")).json()["results"][0]

        assert "needs_reconciliation" not in result


class TestOrderDetail:
    def test_visible_to_payer_teacher_and_admin(
        self, created_order, student_client, teacher_client, admin_client
    ):
        for client in (student_client, teacher_client, admin_client):
            response = client.get(url("order-detail", order_id=created_order.id))
            assert response.status_code == 200
            assert response.json()["id"] == str(created_order.id)

    def test_hidden_from_others(self, created_order):
        response = client_for(StudentFactory()).get(url("order-detail", order_id=created_order.id))

        assert response.status_code == 404

    def test_unknown_order(self, student_client):
        response = student_client.get(url("order-detail", order_id=uuid.uuid4()))

        assert response.status_code == 404
        assert response.json()["error_code"] == "PAYMENT_NOT_FOUND"


class TestOrderVerify:
    @pytest.fixture(autouse=True)
    def real_signatures(self, gateway):
        gateway.verify_payment_signature.side_effect = GatewayAdapter.verify_payment_signature

    def test_valid_signature_marks_paid(self, created_order, student_client):
        signature = GatewayAdapter.compute_payment_signature(created_order.gateway_order_id, "pay_9")

        response = student_client.post(
            url("order-verify", order_id=created_order.id),
            {"gatewayPaymentId": "pay_9", "signature": signature, "paymentMethod": "card"},
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["state"] == PaymentOrderState.PAID
        assert get_fresh_order(created_order.id).payment_method == "card"

    def test_invalid_signature(self, created_order, student_client):
        response = student_client.post(
            url("order-verify", order_id=created_order.id),
            {"gatewayPaymentId": "pay_9", "signature": "forged"},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "SIGNATURE_INVALID"
        assert get_fresh_order(created_order.id).state == PaymentOrderState.CREATED

    def test_only_payer_can_verify(self, created_order, teacher_client):
        response = teacher_client.post(
            url("order-verify", order_id=created_order.id),
            {"gatewayPaymentId": "pay_9", "signature": "x"},
            format="json",
        )

        assert response.status_code == 404


class TestOrderRefund:
    def test_admin_refunds(self, paid_order, admin_client):
        response = admin_client.post(
            url("order-refund", order_id=paid_order.id),
            {"amount": "250.00", "reason": "Batch rescheduled"},
            format="json",
        )

        assert response.status_code == 200
        data = response.json()
        assert data["order"]["state"] == PaymentOrderState.PARTIAL_REFUND
        assert data["refunded_amount"] == "250.00"
        assert data["teacher_available_balance"] == "350.00"
        assert data["balance_negative"] is False

    def test_students_cannot_refund(self, paid_order, student_client):
        response = student_client.post(
            url("order-refund", order_id=paid_order.id),
            {"amount": "250.00", "reason": "I want my money"},
            format="json",
        )

        assert response.status_code == 403

    def test_refund_of_unpaid_order_conflicts(self, created_order, admin_client):
        response = admin_client.post(
            url("order-refund", order_id=created_order.id),
            {"amount": "10.00", "reason": "Nope"},
            format="json",
        )

        assert response.status_code == 409


class TestOrderRetry:
    def test_retry_failed_order(self, created_order, student_client):
        PaymentService.mark_failed(created_order.id, reason="Declined")

        response = student_client.post(url("order-retry", order_id=created_order.id))

        assert response.status_code == 200
        assert response.json()["retry_count"] == 1

    def test_retry_limit_is_409(self, student, student_client):
        order = PaymentOrderFactory(payer=student, state=PaymentOrderState.FAILED, retry_count=3)

        response = student_client.post(url("order-retry", order_id=order.id))

        assert response.status_code == 409
        assert response.json()["error_code"] == "RETRY_LIMIT_EXCEEDED"


# =============================================================================
# Reports
# =============================================================================


class TestTeacherEarnings:
    def test_summary_after_collection(self, paid_order, teacher_client):
        response = teacher_client.get(url("teacher-earnings"))

        assert response.status_code == 200
        data = response.json()
        assert data["lifetime"] == "600.00"
        assert data["this_month"] == "600.00"
        assert data["pending_payouts"] == "0.00"
        assert data["paid_out"] == "0.00"
        assert data["balance"]["pending_clearance"] == "600.00"
        assert data["batches"] == [
            {
                "batch_id": "batch-42",
                "payments": 1,
                "gross_revenue": "1000.00",
                "teacher_share": "600.00",
            }
        ]
        assert data["recent_payouts"] == []

    def test_refunds_are_netted(self, paid_order, teacher_client):
        PaymentService.refund(paid_order.id, Decimal("250.00"), "Missed two sessions")

        data = teacher_client.get(url("teacher-earnings")).json()

        assert data["lifetime"] == "450.00"
        assert data["batches"][0]["teacher_share"] == "450.00"

    def test_payouts_split_pending_and_paid(self, teacher, teacher_client):
        give_withdrawable(teacher, count=4)
        first = PayoutService.request(teacher=teacher, amount=Decimal("1000.00"), **UPI).data
        PayoutService.approve(first.id)
        PayoutService.process(first.id)
        PayoutService.request(teacher=teacher, amount=Decimal("1200.00"), **UPI)

        data = teacher_client.get(url("teacher-earnings")).json()

        assert data["paid_out"] == "1000.00"
        assert data["pending_payouts"] == "1200.00"
        assert len(data["recent_payouts"]) == 2

    def test_students_are_forbidden(self, student_client):
        assert student_client.get(url("teacher-earnings")).status_code == 403


class TestTeacherOrders:
    def test_lists_collected_orders(self, paid_order, teacher, teacher_client):
        PaymentOrderFactory(teacher=teacher)
        PaymentOrderFactory(teacher=TeacherFactory(), state=PaymentOrderState.PAID)

        response = teacher_client.get(url("teacher-orders"))

        assert response.status_code == 200
        assert [o["id"] for o in response.json()["results"]] == [str(paid_order.id)]

    def test_explicit_state_filter(self, created_order, teacher_client):
        response = teacher_client.get(url("teacher-orders"), {"state": "created"})

        assert [o["id"] for o in response.json()["results"]] == [str(created_order.id)]

    def test_batch_filter(self, paid_order, teacher_client):
        response = teacher_client.get(url("teacher-orders"), {"batch_id": "batch-other"})

        assert response.json()["count"] == 0

    def test_students_are_forbidden(self, student_client):
        assert student_client.get(url("teacher-orders")).status_code == 403


class TestAdminOrders:
    def test_lists_every_order_with_reconciliation_fields(self, created_order, admin_client):
        PaymentOrderFactory()

        response = admin_client.get(url("admin-order-list"))

        assert response.status_code == 200
        assert response.json()["count"] == 2
        assert "needs_reconciliation" in response.json()["results"][0]

    def test_filters(self, created_order, student, teacher, admin_client):
        PaymentOrderFactory(payer=student, teacher=TeacherFactory())
        PaymentOrderFactory(source="teacher", teacher=teacher)

        by_teacher = admin_client.get(url("admin-order-list"), {"teacher": teacher.pk}).json()
        by_payer = admin_client.get(url("admin-order-list"), {"payer": student.pk}).json()
        by_source = admin_client.get(
            url("admin-order-list"), {"teacher": teacher.pk, "source": "platform"}
        ).json()

        assert by_teacher["count"] == 2
        assert by_payer["count"] == 2
        assert [o["id"] for o in by_source["results"]] == [str(created_order.id)]

    def test_needs_reconciliation_filter(self, created_order, admin_client):
        flagged = PaymentOrderFactory(needs_reconciliation=True, reconciliation_note="Paid twice")

        flagged_only = admin_client.get(url("admin-order-list"), {"needs_reconciliation": "true"})
        clean_only = admin_client.get(url("admin-order-list"), {"needs_reconciliation": "false"})

        assert [o["id"] for o in flagged_only.json()["results"]] == [str(flagged.id)]
        assert flagged_only.json()["results"][0]["reconciliation_note"] == "Paid twice"
        assert [o["id"] for o in clean_only.json()["results"]] == [str(created_order.id)]

    def test_non_admins_are_forbidden(self, student_client, teacher_client):
        assert student_client.get(url("admin-order-list")).status_code == 403
        assert teacher_client.get(url("admin-order-list")).status_code == 403


class TestAdminStats:
    def test_totals_and_periods(self, paid_order, created_order, admin_client):
        PaymentService.refund(paid_order.id, Decimal("250.00"), "Missed two sessions")
        PaymentOrderFactory(needs_reconciliation=True)

        response = admin_client.get(url("admin-stats"))

        assert response.status_code == 200
        data = response.json()
        assert data["total_revenue"] == "1000.00"
        assert data["platform_earnings"] == "400.00"
        assert data["teacher_earnings"] == "450.00"
        assert data["total_refunded"] == "250.00"
        assert data["payment_count"] == 1
        assert data["average_payment"] == "1000.00"
        assert data["orders_by_state"] == {"created": 1, "partial_refund": 1}
        assert data["needs_reconciliation"] == 1
        assert data["periods"] == [
            {
                "month": timezone.now().strftime("%Y-%m"),
                "source": "platform",
                "total_amount": "1000.00",
                "platform_fee": "400.00",
                "teacher_earnings": "450.00",
                "payment_count": 1,
            }
        ]

    def test_date_range_excludes_older_revenue(self, paid_order, admin_client):
        RevenueEntry.objects.update(created_at=timezone.now() - timedelta(days=40))

        data = admin_client.get(
            url("admin-stats"), {"date_from": (timezone.now() - timedelta(days=7)).isoformat()}
        ).json()

        assert data["total_revenue"] == "0.00"
        assert data["payment_count"] == 0
        assert data["average_payment"] == "0.00"
        assert data["periods"] == []

    def test_non_admins_are_forbidden(self, teacher_client):
        assert teacher_client.get(url("admin-stats")).status_code == 403


# =============================================================================
# Installment Plans
# =============================================================================


@pytest.fixture
def plan(student, teacher):
    return InstallmentService.create_plan(
        student=student,
        teacher=teacher,
        batch_id="batch-emi",
        total_amount=Decimal("3000.00"),
        number_of_installments=3,
    ).data


class TestInstallmentPlanViews:
    @pytest.fixture
    def emi_offering(self, teacher):
        return BatchOfferingFactory(batch_id="batch-emi", teacher=teacher, price=Decimal("12000.00"))

    def test_create_plan(self, student_client, emi_offering, teacher):
        response = student_client.post(
            url("installment-plan-create"),
            {"batch_id": "batch-emi", "number_of_installments": 12},
            format="json",
        )

        assert response.status_code == 201
        data = response.json()
        assert data["teacher"] == teacher.pk
        assert data["total_amount"] == "12000.00"
        assert data["installment_amount"] == "1000.00"
        assert len(data["installments"]) == 12
        assert data["status"] == "active"

    def test_plan_terms_come_from_policy(self, student_client, emi_offering, settings):
        settings.PAYMENTS_INSTALLMENT_LATE_FEE = "75.00"
        settings.PAYMENTS_INSTALLMENT_GRACE_DAYS = 5
        settings.PAYMENTS_INSTALLMENT_INTEREST_RATE = "12.00"

        response = student_client.post(
            url("installment-plan-create"),
            {
                "batch_id": "batch-emi",
                "number_of_installments": 12,
                "total_amount": "12.00",
                "interest_rate": "0.00",
                "late_fee": "0.00",
                "grace_period_days": 60,
                "source": "teacher",
            },
            format="json",
        )

        assert response.status_code == 201
        data = response.json()
        assert data["total_amount"] == "12000.00"
        assert data["interest_rate"] == "12.00"
        assert data["late_fee"] == "75.00"
        assert data["grace_period_days"] == 5
        assert data["source"] == "platform"

    def test_invalid_installment_count(self, student_client, emi_offering):
        response = student_client.post(
            url("installment-plan-create"),
            {"batch_id": "batch-emi", "number_of_installments": 30},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_INSTALLMENT_COUNT"

    def test_unknown_batch_is_404(self, student_client):
        response = student_client.post(
            url("installment-plan-create"),
            {"batch_id": "batch-x", "number_of_installments": 3},
            format="json",
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "BATCH_NOT_FOUND"


    def test_plan_detail_visibility(self, plan, student_client, teacher_client):
        assert student_client.get(url("installment-plan-detail", plan_id=plan.id)).status_code == 200
        assert teacher_client.get(url("installment-plan-detail", plan_id=plan.id)).status_code == 200
        outsider = client_for(StudentFactory())
        assert outsider.get(url("installment-plan-detail", plan_id=plan.id)).status_code == 404

    def test_installment_detail(self, plan, student_client):
        response = student_client.get(url("installment-detail", plan_id=plan.id, number=2))

        assert response.status_code == 200
        assert response.json()["number"] == 2
        assert response.json()["amount_due"] == "1000.00"

    def test_missing_installment(self, plan, student_client):
        response = student_client.get(url("installment-detail", plan_id=plan.id, number=9))

        assert response.status_code == 404
        assert response.json()["error_code"] == "INSTALLMENT_NOT_FOUND"

    def test_teacher_cannot_cancel(self, plan, teacher_client):
        response = teacher_client.post(url("installment-plan-cancel", plan_id=plan.id))

        assert response.status_code == 403

    def test_student_cancels(self, plan, student_client):
        response = student_client.post(url("installment-plan-cancel", plan_id=plan.id))

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        again = student_client.post(url("installment-plan-cancel", plan_id=plan.id))
        assert again.status_code == 409

    def test_pay_installment_opens_order(self, plan, student_client):
        response = student_client.post(url("installment-pay", plan_id=plan.id, number=1))

        assert response.status_code == 201
        assert response.json()["amount"] == "1000.00"
        assert response.json()["installment_id"] is not None

    def test_only_plan_student_pays(self, plan, teacher_client):
        response = teacher_client.post(url("installment-pay", plan_id=plan.id, number=1))

        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"

    def test_admin_records_offline_payment(self, plan, admin_client):
        path = url("installment-record-payment", plan_id=plan.id, number=1)

        response = admin_client.post(
            path, {"transaction_id": "cash-7", "payment_method": "cash"}, format="json"
        )

        assert response.status_code == 200
        assert response.json()["status"] == "paid"
        assert admin_client.post(path, {}, format="json").status_code == 409

    def test_students_cannot_record_payments(self, plan, student_client):
        response = student_client.post(
            url("installment-record-payment", plan_id=plan.id, number=1), {}, format="json"
        )

        assert response.status_code == 403

    def test_admin_checks_overdue(self, plan, admin_client):
        response = admin_client.post(url("installment-plan-check-overdue", plan_id=plan.id))

        assert response.status_code == 200
        assert response.json()["installments_marked"] == 0
        assert response.json()["plan"]["id"] == str(plan.id)


# =============================================================================
# Payouts
# =============================================================================


class TestPayoutViews:
    def test_teacher_requests_payout(self, teacher, teacher_client):
        give_withdrawable(teacher)

        response = teacher_client.post(
            url("payout-list"), {"amount": "1500.00", **UPI}, format="json"
        )

        assert response.status_code == 201
        assert response.json()["state"] == PayoutRequestState.REQUESTED
        assert response.json()["payment_details"] == {"upi_id": "asha@okbank"}

    def test_below_minimum_is_422(self, teacher, teacher_client):
        give_withdrawable(teacher)

        response = teacher_client.post(url("payout-list"), {"amount": "10.00", **UPI}, format="json")

        assert response.status_code == 422
        assert response.json()["error_code"] == "BELOW_MINIMUM_PAYOUT"

    def test_insufficient_balance_is_422(self, teacher_client):
        response = teacher_client.post(url("payout-list"), {"amount": "1000.00", **UPI}, format="json")

        assert response.status_code == 422
        assert response.json()["error_code"] == "INSUFFICIENT_BALANCE"

    def test_students_cannot_request(self, student_client):
        response = student_client.post(url("payout-list"), {"amount": "1000.00", **UPI}, format="json")

        assert response.status_code == 403

    @pytest.mark.parametrize(
        "details",
        [
            {"payment_method": "upi", "payment_details": {"upi_id": "not-a-handle"}},
            {
                "payment_method": "bank_transfer",
                "payment_details": {
                    "account_number": "12",
                    "ifsc_code": "HDFC0001234",
                    "account_holder_name": "Asha",
                },
            },
        ],
    )
    def test_destination_validated(self, teacher_client, details):
        response = teacher_client.post(url("payout-list"), {"amount": "1000.00", **details}, format="json")

        assert response.status_code == 400
        assert "payment_details" in response.json()

    def test_teachers_list_only_their_payouts(self, teacher, teacher_client, admin_client):
        own = PayoutRequestFactory(teacher=teacher)
        PayoutRequestFactory(teacher=TeacherFactory(), state=PayoutRequestState.APPROVED)

        teacher_ids = [p["id"] for p in teacher_client.get(url("payout-list")).json()["results"]]
        approved = admin_client.get(url("payout-list"), {"state": "approved"}).json()["results"]

        assert teacher_ids == [str(own.id)]
        assert [p["state"] for p in approved] == ["approved"]

    def test_balance(self, teacher, teacher_client, student_client):
        give_withdrawable(teacher)

        response = teacher_client.get(url("payout-balance"))

        assert response.status_code == 200
        assert response.json()["withdrawable"] == "1800.00"
        assert response.json()["minimum_payout"] == "1000.00"
        assert student_client.get(url("payout-balance")).status_code == 403

    def test_admin_settles_payout(self, teacher, admin_client):
        give_withdrawable(teacher)
        payout = PayoutService.request(teacher=teacher, amount=Decimal("1500.00"), **UPI).data

        approve = admin_client.post(url("payout-approve", payout_id=payout.id))
        process = admin_client.post(url("payout-process", payout_id=payout.id))

        assert approve.status_code == 200
        assert process.status_code == 200
        assert process.json()["state"] == PayoutRequestState.COMPLETED
        assert process.json()["transaction_id"] == "TRF_0001"

    def test_process_gateway_failure_is_502(self, teacher, admin_client, gateway):
        give_withdrawable(teacher)
        payout = PayoutService.request(teacher=teacher, amount=Decimal("1500.00"), **UPI).data
        PayoutService.approve(payout.id)
        gateway.create_payout.side_effect = GatewayUnavailableError("down")

        response = admin_client.post(url("payout-process", payout_id=payout.id))

        assert response.status_code == 502
        assert response.json()["error_code"] == "PAYOUT_SETTLEMENT_FAILED"
        assert get_fresh_payout(payout.id).state == PayoutRequestState.PROCESSING

    def test_admin_completes_processing_payout(self, teacher, admin_client, gateway):
        give_withdrawable(teacher)
        gateway.create_payout.return_value = GatewayPayoutResult("TRF_5", "PENDING")
        payout = PayoutService.request(teacher=teacher, amount=Decimal("1500.00"), **UPI).data
        PayoutService.approve(payout.id)
        PayoutService.process(payout.id)

        response = admin_client.post(
            url("payout-complete", payout_id=payout.id), {"transaction_id": "TRF_5"}, format="json"
        )

        assert response.status_code == 200
        assert response.json()["state"] == PayoutRequestState.COMPLETED

    def test_reject_with_short_reason_is_400(self, teacher, admin_client):
        give_withdrawable(teacher)
        payout = PayoutService.request(teacher=teacher, amount=Decimal("1500.00"), **UPI).data

        response = admin_client.post(
            url("payout-reject", payout_id=payout.id), {"reason": "no"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REASON"

    def test_teachers_cannot_approve(self, teacher, teacher_client):
        give_withdrawable(teacher)
        payout = PayoutService.request(teacher=teacher, amount=Decimal("1500.00"), **UPI).data

        response = teacher_client.post(url("payout-approve", payout_id=payout.id))

        assert response.status_code == 403

    def test_cancel_by_other_teacher_is_403(self, teacher):
        give_withdrawable(teacher)
        payout = PayoutService.request(teacher=teacher, amount=Decimal("1500.00"), **UPI).data

        response = client_for(TeacherFactory()).post(url("payout-cancel", payout_id=payout.id))

        assert response.status_code == 403
        assert PayoutRequest.objects.get(id=payout.id).state == PayoutRequestState.REQUESTED

    def test_payout_detail_visibility(self, teacher, teacher_client, admin_client):
        payout = PayoutRequestFactory(teacher=teacher)

        own = teacher_client.get(url("payout-detail", payout_id=payout.id))
        as_admin = admin_client.get(url("payout-detail", payout_id=payout.id))
        as_other = client_for(TeacherFactory()).get(url("payout-detail", payout_id=payout.id))

        assert own.status_code == 200
        assert own.json()["id"] == str(payout.id)
        assert as_admin.status_code == 200
        assert as_other.status_code == 404

    def test_unknown_payout_is_404(self, teacher_client):
        response = teacher_client.get(url("payout-detail", payout_id=uuid.uuid4()))

        assert response.status_code == 404


class TestPayoutCheckStatus:
    @pytest.fixture
    def processing(self, teacher, gateway):
        give_withdrawable(teacher)
        gateway.create_payout.return_value = GatewayPayoutResult("TRF_7", "PENDING")
        payout = PayoutService.request(teacher=teacher, amount=Decimal("1500.00"), **UPI).data
        PayoutService.approve(payout.id)
        PayoutService.process(payout.id)
        return get_fresh_payout(payout.id)

    def test_settled_transfer_completes_payout(self, processing, admin_client, gateway):
        gateway.get_payout_status.return_value = GatewayPayoutResult("TRF_7", "SUCCESS")

        response = admin_client.post(url("payout-check-status", payout_id=processing.id))

        assert response.status_code == 200
        assert response.json()["state"] == PayoutRequestState.COMPLETED
        assert response.json()["gateway_status"] == "SUCCESS"
        gateway.get_payout_status.assert_called_once_with("TRF_7")
        assert RevenueEntry.objects.filter(status=RevenueEntryStatus.PAID).count() == 2

    def test_pending_transfer_stays_processing(self, processing, admin_client, gateway):
        gateway.get_payout_status.return_value = GatewayPayoutResult("TRF_7", "PENDING")

        response = admin_client.post(url("payout-check-status", payout_id=processing.id))

        assert response.status_code == 200
        assert get_fresh_payout(processing.id).state == PayoutRequestState.PROCESSING

    def test_gateway_error_is_502(self, processing, admin_client, gateway):
        gateway.get_payout_status.side_effect = GatewayUnavailableError("down")

        response = admin_client.post(url("payout-check-status", payout_id=processing.id))

        assert response.status_code == 502
        assert response.json()["error_code"] == "GATEWAY_UNAVAILABLE"
        assert get_fresh_payout(processing.id).state == PayoutRequestState.PROCESSING

    def test_teachers_are_forbidden(self, processing, teacher_client):
        response = teacher_client.post(url("payout-check-status", payout_id=processing.id))

        assert response.status_code == 403
