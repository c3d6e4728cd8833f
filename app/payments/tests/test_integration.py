"""
End-to-end money flow through the public API.

A student pays two orders (one via webhook, one via client verification),
revenue clears, the teacher withdraws and an admin settles the payout.
"""

import json
from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone

from enrollments.models import BatchEnrollment
from enrollments.tests.factories import BatchOfferingFactory
from payments.adapters import GatewayAdapter
from payments.ledger import RevenueEntry, TeacherBalance
from payments.state_machines import PayoutRequestState, RevenueEntryStatus
from payments.workers import clear_pending_revenue


def _webhook(client, payload):
    body = json.dumps(payload).encode()
    return client.post(
        reverse("payments:gateway-webhook"),
        data=body,
        content_type="application/json",
        headers={
            "X-Webhook-Signature": GatewayAdapter.compute_webhook_signature(body, "1760000000"),
            "X-Webhook-Timestamp": "1760000000",
        },
    )


def test_payment_to_payout(
    client, student, teacher, student_client, teacher_client, admin_client, gateway
):
    gateway.verify_payment_signature.side_effect = GatewayAdapter.verify_payment_signature

    for batch in ("batch-a", "batch-b"):
        BatchOfferingFactory(batch_id=batch, teacher=teacher, price=Decimal("1500.00"))

    orders = []
    for batch in ("batch-a", "batch-b"):
        response = student_client.post(
            reverse("payments:order-list"),
            {"batch_id": batch},
            format="json",
        )
        assert response.status_code == 201
        orders.append(response.json())

    # First order confirmed by the gateway, twice
    for _ in range(2):
        _webhook(
            client,
            {
                "event": "PAYMENT_SUCCESS",
                "gatewayOrderId": orders[0]["gateway_order_id"],
                "gatewayPaymentId": "pay_a",
                "amount": "1500.00",
            },
        )

    # Second order confirmed by the checkout page
    signature = GatewayAdapter.compute_payment_signature(orders[1]["gateway_order_id"], "pay_b")
    verify = student_client.post(
        reverse("payments:order-verify", kwargs={"order_id": orders[1]["id"]}),
        {"gatewayPaymentId": "pay_b", "signature": signature},
        format="json",
    )
    assert verify.status_code == 200

    assert BatchEnrollment.objects.filter(student=student).count() == 2
    balance = TeacherBalance.objects.get(teacher=teacher)
    assert balance.total_earnings == Decimal("1800.00")
    assert balance.available_for_payout == Decimal("1800.00")

    # Nothing is withdrawable until the clearance window passes
    early = teacher_client.post(
        reverse("payments:payout-list"),
        {"amount": "1000.00", "payment_method": "upi", "payment_details": {"upi_id": "asha@okbank"}},
        format="json",
    )
    assert early.status_code == 422

    RevenueEntry.objects.update(created_at=timezone.now() - timedelta(days=8))
    assert clear_pending_revenue.apply().get()["cleared_count"] == 2

    payout = teacher_client.post(
        reverse("payments:payout-list"),
        {"amount": "1200.00", "payment_method": "upi", "payment_details": {"upi_id": "asha@okbank"}},
        format="json",
    ).json()
    payout_id = payout["id"]

    admin_client.post(reverse("payments:payout-approve", kwargs={"payout_id": payout_id}))
    processed = admin_client.post(reverse("payments:payout-process", kwargs={"payout_id": payout_id}))

    assert processed.json()["state"] == PayoutRequestState.COMPLETED
    statuses = sorted(RevenueEntry.objects.values_list("status", flat=True))
    assert statuses == [RevenueEntryStatus.PAID, RevenueEntryStatus.PROCESSED]

    summary = teacher_client.get(reverse("payments:payout-balance")).json()
    assert summary["total_earnings"] == "1800.00"
    assert summary["available_for_payout"] == "600.00"
    assert summary["withdrawable"] == "600.00"
