"""
Tests for gateway webhook reconciliation.

Tests cover:
- Signature authentication (fail closed, acknowledged with 200)
- Payload validation and event name normalization
- Exactly-once application per gateway order id
- Duplicate and conflicting redeliveries
- Rollback of the transaction row when handling fails
"""

import json
import threading
from decimal import Decimal

import pytest
from django.db import connection
from django.urls import reverse

from payments.adapters import GatewayAdapter
from payments.exceptions import PaymentValidationError
from payments.ledger import RevenueEntry
from payments.models import GatewayTransaction
from payments.services import InstallmentService, PaymentService
from payments.state_machines import GatewayTransactionStatus, PaymentOrderState
from payments.tests.conftest import get_fresh_order
from payments.webhooks.handlers import (
    WebhookReconciler,
    normalize_event_type,
    parse_event,
)


TIMESTAMP = "1760000000"


def signed(payload) -> tuple[bytes, str]:
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return body, GatewayAdapter.compute_webhook_signature(body, TIMESTAMP)


def deliver(client, payload, signature=None, timestamp=TIMESTAMP):
    body, good_signature = signed(payload)
    return client.post(
        reverse("payments:gateway-webhook"),
        data=body,
        content_type="application/json",
        headers={
            "X-Webhook-Signature": good_signature if signature is None else signature,
            "X-Webhook-Timestamp": timestamp,
        },
    )


def success_event(order, **overrides):
    payload = {
        "event": "PAYMENT_SUCCESS",
        "gatewayOrderId": order.gateway_order_id,
        "gatewayPaymentId": "pay_wh_1",
        "amount": "1000.00",
        "paymentMethod": "upi",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Parsing
# =============================================================================


class TestParseEvent:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("PAYMENT_SUCCESS", "PAYMENT_SUCCESS"),
            ("payment_success_webhook", "PAYMENT_SUCCESS"),
            (" Payment_Failed_Webhook ", "PAYMENT_FAILED"),
            ("REFUND_CREATED", "REFUND_CREATED"),
        ],
    )
    def test_normalize_event_type(self, raw, expected):
        assert normalize_event_type(raw) == expected

    def test_parses_fields(self):
        event = parse_event(
            json.dumps(
                {
                    "event": "PAYMENT_FAILED_WEBHOOK",
                    "gatewayOrderId": "order_1",
                    "amount": 250,
                    "failureReason": "Declined",
                }
            ).encode()
        )

        assert event.event_type == "PAYMENT_FAILED"
        assert event.amount == Decimal("250.00")
        assert event.failure_reason == "Declined"
        assert event.gateway_payment_id == ""

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[1, 2]",
            b'{"gatewayOrderId": "order_1"}',
            b'{"event": "PAYMENT_SUCCESS"}',
            b'{"event": "PAYMENT_SUCCESS", "gatewayOrderId": "o", "amount": "lots"}',
        ],
    )
    def test_malformed(self, raw):
        with pytest.raises(PaymentValidationError) as exc_info:
            parse_event(raw)

        assert exc_info.value.error_code == "MALFORMED_PAYLOAD"


# =============================================================================
# Endpoint
# =============================================================================


class TestGatewayWebhook:
    def test_success_marks_order_paid(self, client, created_order, teacher):
        response = deliver(client, success_event(created_order))

        assert response.status_code == 200
        assert response.json() == {
            "status": "processed",
            "gateway_order_id": created_order.gateway_order_id,
            "event": "PAYMENT_SUCCESS",
            "payment_order_id": str(created_order.id),
        }

        order = get_fresh_order(created_order.id)
        assert order.state == PaymentOrderState.PAID
        assert order.gateway_payment_id == "pay_wh_1"
        assert order.payment_method == "upi"

        record = GatewayTransaction.objects.get(gateway_order_id=created_order.gateway_order_id)
        assert record.status == GatewayTransactionStatus.PAID
        assert record.payment_order_id == created_order.id
        assert record.processed_at is not None
        assert RevenueEntry.objects.filter(payment_order=order).count() == 1

    def test_alias_event_name(self, client, created_order):
        response = deliver(client, success_event(created_order, event="payment_success_webhook"))

        assert response.json()["event"] == "PAYMENT_SUCCESS"
        assert get_fresh_order(created_order.id).state == PaymentOrderState.PAID

    def test_failure_event(self, client, created_order):
        response = deliver(
            client,
            {
                "event": "PAYMENT_FAILED",
                "gatewayOrderId": created_order.gateway_order_id,
                "failureReason": "Insufficient funds",
            },
        )

        assert response.json()["status"] == "processed"
        order = get_fresh_order(created_order.id)
        assert order.state == PaymentOrderState.FAILED
        assert order.failure_reason == "Insufficient funds"

    def test_cancelled_event(self, client, created_order):
        deliver(
            client,
            {"event": "PAYMENT_CANCELLED", "gatewayOrderId": created_order.gateway_order_id},
        )

        assert get_fresh_order(created_order.id).state == PaymentOrderState.CANCELLED

    def test_redelivery_is_duplicate(self, client, created_order, teacher):
        deliver(client, success_event(created_order))

        response = deliver(client, success_event(created_order))

        assert response.status_code == 200
        assert response.json()["status"] == "duplicate"
        assert response.json()["payment_order_id"] == str(created_order.id)
        record = GatewayTransaction.objects.get(gateway_order_id=created_order.gateway_order_id)
        assert record.duplicate_count == 1
        assert RevenueEntry.objects.count() == 1

    def test_conflicting_redelivery_is_flagged(self, client, created_order, mocker):
        deliver(client, success_event(created_order))
        logger = mocker.patch("payments.webhooks.handlers.logger")

        response = deliver(
            client,
            {"event": "PAYMENT_FAILED", "gatewayOrderId": created_order.gateway_order_id},
        )

        assert response.json()["status"] == "duplicate"
        assert get_fresh_order(created_order.id).state == PaymentOrderState.PAID
        logger.error.assert_called_once()

    def test_unhandled_event_is_ignored_and_not_final(self, client, created_order):
        response = deliver(
            client,
            {"event": "PAYMENT_DISPUTED", "gatewayOrderId": created_order.gateway_order_id},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"
        record = GatewayTransaction.objects.get(gateway_order_id=created_order.gateway_order_id)
        assert record.status == GatewayTransactionStatus.IGNORED

        follow_up = deliver(client, success_event(created_order))

        assert follow_up.json()["status"] == "processed"
        assert get_fresh_order(created_order.id).state == PaymentOrderState.PAID

    @pytest.mark.parametrize("signature", ["", "bm90IGEgc2lnbmF0dXJl"])
    def test_bad_signature_rejected_without_processing(self, client, created_order, signature):
        response = deliver(client, success_event(created_order), signature=signature)

        assert response.status_code == 200
        assert response.json() == {"status": "rejected", "error_code": "SIGNATURE_INVALID"}
        assert get_fresh_order(created_order.id).state == PaymentOrderState.CREATED
        assert GatewayTransaction.objects.count() == 0

    def test_signature_is_bound_to_timestamp(self, client, created_order):
        _, signature = signed(success_event(created_order))

        response = deliver(client, success_event(created_order), signature=signature, timestamp="1")

        assert response.json()["status"] == "rejected"

    def test_malformed_payload(self, client, db):
        response = deliver(client, b"{not json")

        assert response.status_code == 400
        assert response.json()["error_code"] == "MALFORMED_PAYLOAD"

    def test_unknown_order(self, client, db):
        response = deliver(client, {"event": "PAYMENT_SUCCESS", "gatewayOrderId": "order_missing"})

        assert response.status_code == 404
        assert response.json()["error_code"] == "PAYMENT_NOT_FOUND"
        assert GatewayTransaction.objects.count() == 0

    def test_handler_failure_rolls_back_and_allows_redelivery(self, client, created_order):
        response = deliver(client, success_event(created_order, amount="999.00"))

        assert response.status_code == 400
        assert response.json()["error_code"] == "AMOUNT_MISMATCH"
        assert GatewayTransaction.objects.count() == 0
        assert get_fresh_order(created_order.id).state == PaymentOrderState.CREATED

        retry = deliver(client, success_event(created_order))

        assert retry.json()["status"] == "processed"

    def test_transition_conflict_is_409(self, client, created_order):
        PaymentService.mark_failed(created_order.id, reason="Timed out")

        response = deliver(client, success_event(created_order))

        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_STATE_TRANSITION"

    def test_collection_for_settled_installment_is_acknowledged(self, client, student, teacher):
        plan = InstallmentService.create_plan(
            student=student,
            teacher=teacher,
            batch_id="batch-emi",
            total_amount=Decimal("2000.00"),
            number_of_installments=2,
        ).data
        order = InstallmentService.create_installment_order(plan.id, 1, student).data
        InstallmentService.mark_installment_paid(plan.id, 1, transaction_id="cash-001")

        response = deliver(client, success_event(order))
        redelivery = deliver(client, success_event(order))

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        assert redelivery.json()["status"] == "duplicate"
        flagged = get_fresh_order(order.id)
        assert flagged.needs_reconciliation is True
        assert flagged.gateway_payment_id == "pay_wh_1"
        record = GatewayTransaction.objects.get(gateway_order_id=order.gateway_order_id)
        assert record.status == GatewayTransactionStatus.PAID
        assert RevenueEntry.objects.count() == 1

    def test_get_not_allowed(self, client, db):
        response = client.get(reverse("payments:gateway-webhook"))

        assert response.status_code == 405


# =============================================================================
# Concurrency (PostgreSQL only: SQLite serializes writers per database)
# Runs in the postgres CI job: DATABASE_URL=postgres://... pytest --require-postgres
# =============================================================================


@pytest.mark.postgres
@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(
    connection.vendor != "postgresql", reason="requires row locking; set DATABASE_URL to PostgreSQL"
)
def test_concurrent_deliveries_apply_once(created_order):
    body, signature = signed(success_event(created_order))
    barrier = threading.Barrier(4)
    outcomes = []
    errors = []

    def worker():
        try:
            barrier.wait()
            outcomes.append(WebhookReconciler.handle_webhook(body, signature, TIMESTAMP).status)
        except Exception as e:
            errors.append(e)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sorted(outcomes) == ["duplicate", "duplicate", "duplicate", "processed"]
    assert RevenueEntry.objects.filter(payment_order_id=created_order.id).count() == 1
    assert GatewayTransaction.objects.get(
        gateway_order_id=created_order.gateway_order_id
    ).duplicate_count == 3
