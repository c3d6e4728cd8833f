"""
Pytest fixtures for payment tests.

This module provides users, a fake gateway injected into the services,
and orders in the states most tests start from.

Every test runs against the fake gateway: PaymentService and
PayoutService never reach the network here. Tests that exercise the real
GatewayAdapter patch requests.post themselves.

Usage:
    def test_refund(paid_order):
        result = PaymentService.refund(paid_order.id, Decimal("100.00"), "reason")
        assert result.success
"""

import itertools
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import AdminFactory, StudentFactory, TeacherFactory
from enrollments.tests.factories import BatchOfferingFactory
from payments.adapters import GatewayOrderResult, GatewayPayoutResult
from payments.models import PaymentOrder, PayoutRequest
from payments.services import InstallmentService, PaymentService, PayoutService
from payments.webhooks.handlers import WebhookReconciler

WEBHOOK_SECRET = "whsec_test_secret"
CLIENT_SECRET = "client_test_secret"


def get_fresh_order(order_id) -> PaymentOrder:
    """
    Get a fresh PaymentOrder instance from the database.

    django-fsm's protected FSMField doesn't allow refresh_from_db(), so
    tests re-fetch the row to check the current database state.
    """
    return PaymentOrder.objects.get(id=order_id)


def get_fresh_payout(payout_id) -> PayoutRequest:
    return PayoutRequest.objects.get(id=payout_id)


# =============================================================================
# Settings & Service Injection
# =============================================================================


@pytest.fixture(autouse=True)
def gateway_settings(settings):
    """Known secrets for signature tests."""
    settings.GATEWAY_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.GATEWAY_CLIENT_SECRET = CLIENT_SECRET
    settings.GATEWAY_CLIENT_ID = "client_test_id"
    settings.GATEWAY_BASE_URL = "https://gateway.test/v1"
    return settings


@pytest.fixture(autouse=True)
def gateway():
    """
    Fake gateway adapter injected into the payment and payout services.

    create_order hands out sequential gateway order ids; create_payout
    settles immediately. Override return_value / side_effect per test.
    """
    counter = itertools.count(1)
    fake = MagicMock(name="GatewayAdapter")

    def create_order(amount, currency, payer_ref, idempotency_key):
        n = next(counter)
        return GatewayOrderResult(
            gateway_order_id=f"order_fake_{n}",
            payment_link=f"https://pay.gateway.test/checkout/order_fake_{n}",
        )

    fake.create_order.side_effect = create_order
    fake.create_payout.return_value = GatewayPayoutResult(
        transaction_id="TRF_0001",
        status="SUCCESS",
    )
    fake.verify_payment_signature.return_value = None

    PaymentService.set_gateway_adapter(fake)
    PayoutService.set_gateway_adapter(fake)
    yield fake
    PaymentService.set_gateway_adapter(None)
    PayoutService.set_gateway_adapter(None)


@pytest.fixture(autouse=True)
def reset_policies():
    yield
    PaymentService.set_policy(None)
    PayoutService.set_policy(None)
    InstallmentService.set_policy(None)
    WebhookReconciler.set_gateway_adapter(None)


# =============================================================================
# Users & Clients
# =============================================================================


@pytest.fixture
def student(db):
    return StudentFactory()


@pytest.fixture
def teacher(db):
    return TeacherFactory(full_name="Asha Teacher")


@pytest.fixture
def platform_admin(db):
    return AdminFactory()


def _client_for(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def student_client(student):
    return _client_for(student)


@pytest.fixture
def teacher_client(teacher):
    return _client_for(teacher)


@pytest.fixture
def admin_client(platform_admin):
    return _client_for(platform_admin)


# =============================================================================
# Order Fixtures
# =============================================================================


@pytest.fixture
def batch_offering(teacher):
    """Catalogue entry for batch-1: 1000.00 INR, platform-sourced, taught by teacher."""
    return BatchOfferingFactory(batch_id="batch-1", course_id="course-7", teacher=teacher)


@pytest.fixture
def created_order(student, teacher):
    """A 1000.00 platform-sourced order opened at the fake gateway."""
    result = PaymentService.create_order(
        payer=student,
        teacher=teacher,
        batch_id="batch-42",
        course_id="course-7",
        original_amount=Decimal("1000.00"),
    )
    assert result.success, result.error
    return result.data


@pytest.fixture
def paid_order(created_order):
    """created_order confirmed by the gateway."""
    result = PaymentService.mark_paid(
        created_order.id,
        "pay_fixture_1",
        signature_verified=True,
    )
    assert result.success, result.error
    return get_fresh_order(created_order.id)
