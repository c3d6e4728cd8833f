"""
Tests for GatewayAdapter.

HTTP is replaced by patching requests.post (requests.get for payout
status); signatures are computed with the secrets from the
gateway_settings fixture.
"""

import base64
import hashlib
import hmac
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from payments.adapters import GatewayAdapter, GatewayPayoutResult, IdempotencyKeyGenerator
from payments.exceptions import (
    GatewayError,
    GatewayRequestError,
    GatewayUnavailableError,
    SignatureInvalidError,
)
from payments.tests.conftest import CLIENT_SECRET, WEBHOOK_SECRET


def response(status_code=200, body=None, text=""):
    mock = MagicMock(status_code=status_code, text=text)
    if isinstance(body, Exception):
        mock.json.side_effect = body
    else:
        mock.json.return_value = body
    return mock


@pytest.fixture
def post(mocker):
    return mocker.patch("payments.adapters.gateway_adapter.requests.post")


class TestCreateOrder:
    def test_posts_order_and_parses_result(self, post):
        post.return_value = response(
            body={"gatewayOrderId": "order_123", "paymentLink": "https://pay.test/order_123"}
        )

        result = GatewayAdapter.create_order(
            amount=Decimal("1000"),
            currency="INR",
            payer_ref="42",
            idempotency_key="create_order:abc:1:deadbeef",
        )

        assert result.gateway_order_id == "order_123"
        assert result.payment_link == "https://pay.test/order_123"

        args, kwargs = post.call_args
        assert args[0] == "https://gateway.test/v1/orders"
        assert kwargs["json"] == {"amount": "1000.00", "currency": "INR", "payerRef": "42"}
        assert kwargs["headers"]["Idempotency-Key"] == "create_order:abc:1:deadbeef"
        assert kwargs["headers"]["X-Client-Id"] == "client_test_id"
        assert kwargs["timeout"] > 0

    def test_missing_order_id(self, post):
        post.return_value = response(body={"paymentLink": "x"})

        with pytest.raises(GatewayError) as exc_info:
            GatewayAdapter.create_order(Decimal("1"), "INR", "1", "k")

        assert exc_info.value.error_code == "GATEWAY_MALFORMED_RESPONSE"

    def test_non_json_body(self, post):
        post.return_value = response(body=ValueError("not json"))

        with pytest.raises(GatewayError) as exc_info:
            GatewayAdapter.create_order(Decimal("1"), "INR", "1", "k")

        assert exc_info.value.error_code == "GATEWAY_MALFORMED_RESPONSE"

    @pytest.mark.parametrize("error", [requests.Timeout(), requests.ConnectionError()])
    def test_network_errors_are_unavailable(self, post, error):
        post.side_effect = error

        with pytest.raises(GatewayUnavailableError):
            GatewayAdapter.create_order(Decimal("1"), "INR", "1", "k")

    def test_server_error_is_unavailable(self, post):
        post.return_value = response(status_code=503)

        with pytest.raises(GatewayUnavailableError):
            GatewayAdapter.create_order(Decimal("1"), "INR", "1", "k")

    def test_client_error_is_rejection(self, post):
        post.return_value = response(status_code=422, text='{"error":"bad amount"}')

        with pytest.raises(GatewayRequestError) as exc_info:
            GatewayAdapter.create_order(Decimal("1"), "INR", "1", "k")

        assert exc_info.value.details["body"] == '{"error":"bad amount"}'


class TestCreatePayout:
    def test_posts_payout(self, post):
        post.return_value = response(body={"transactionId": "TRF_1", "status": "SUCCESS"})

        result = GatewayAdapter.create_payout(
            beneficiary={"method": "upi", "upi_id": "asha@okbank"},
            amount=Decimal("1500.5"),
            idempotency_key="create_payout:p:1:h",
        )

        assert result.transaction_id == "TRF_1"
        assert result.is_settled is True
        assert post.call_args.args[0] == "https://gateway.test/v1/payouts"
        assert post.call_args.kwargs["json"]["amount"] == "1500.50"

    def test_missing_status_means_pending(self, post):
        post.return_value = response(body={"transactionId": "TRF_2"})

        result = GatewayAdapter.create_payout({}, Decimal("1"), "k")

        assert result.status == "PENDING"
        assert result.is_settled is False

    @pytest.mark.parametrize(
        "status,settled",
        [("SUCCESS", True), ("completed", True), ("PENDING", False), ("FAILED", False)],
    )
    def test_settled_statuses(self, status, settled):
        assert GatewayPayoutResult("TRF", status).is_settled is settled


class TestGetPayoutStatus:
    @pytest.fixture
    def get(self, mocker):
        return mocker.patch("payments.adapters.gateway_adapter.requests.get")

    def test_gets_transfer_status(self, get):
        get.return_value = response(body={"transactionId": "TRF_1", "status": "SUCCESS", "utr": "UTR9"})

        result = GatewayAdapter.get_payout_status("TRF_1")

        assert result.is_settled is True
        assert result.raw_response["utr"] == "UTR9"
        assert get.call_args.args[0] == "https://gateway.test/v1/payouts/TRF_1"
        assert get.call_args.kwargs["headers"]["X-Client-Id"] == "client_test_id"
        assert "Idempotency-Key" not in get.call_args.kwargs["headers"]

    def test_missing_status(self, get):
        get.return_value = response(body={"transactionId": "TRF_1"})

        with pytest.raises(GatewayError) as exc_info:
            GatewayAdapter.get_payout_status("TRF_1")

        assert exc_info.value.error_code == "GATEWAY_MALFORMED_RESPONSE"

    def test_unknown_transfer_is_rejection(self, get):
        get.return_value = response(status_code=404, text="not found")

        with pytest.raises(GatewayRequestError):
            GatewayAdapter.get_payout_status("TRF_missing")

    def test_timeout_is_unavailable(self, get):
        get.side_effect = requests.Timeout("slow")

        with pytest.raises(GatewayUnavailableError):
            GatewayAdapter.get_payout_status("TRF_1")


class TestWebhookSignature:
    def test_matches_base64_hmac_of_timestamp_and_body(self):
        body = b'{"event":"PAYMENT_SUCCESS"}'
        expected = base64.b64encode(
            hmac.new(WEBHOOK_SECRET.encode(), b"1700000000" + body, hashlib.sha256).digest()
        ).decode()

        assert GatewayAdapter.compute_webhook_signature(body, "1700000000") == expected
        GatewayAdapter.verify_webhook_signature(body, expected, "1700000000")

    def test_tampered_body_rejected(self):
        signature = GatewayAdapter.compute_webhook_signature(b"{}", "1")

        with pytest.raises(SignatureInvalidError):
            GatewayAdapter.verify_webhook_signature(b'{"x":1}', signature, "1")

    def test_missing_headers_rejected(self):
        with pytest.raises(SignatureInvalidError) as exc_info:
            GatewayAdapter.verify_webhook_signature(b"{}", "", "")

        assert exc_info.value.error_code == "SIGNATURE_INVALID"

    def test_missing_secret(self, settings):
        settings.GATEWAY_WEBHOOK_SECRET = ""

        with pytest.raises(SignatureInvalidError) as exc_info:
            GatewayAdapter.verify_webhook_signature(b"{}", "sig", "1")

        assert exc_info.value.error_code == "WEBHOOK_SECRET_MISSING"


class TestPaymentSignature:
    def test_matches_hex_hmac_of_ids(self):
        expected = hmac.new(
            CLIENT_SECRET.encode(), b"order_1|pay_1", hashlib.sha256
        ).hexdigest()

        assert GatewayAdapter.compute_payment_signature("order_1", "pay_1") == expected
        GatewayAdapter.verify_payment_signature("order_1", "pay_1", expected)

    def test_signature_for_other_payment_rejected(self):
        signature = GatewayAdapter.compute_payment_signature("order_1", "pay_1")

        with pytest.raises(SignatureInvalidError):
            GatewayAdapter.verify_payment_signature("order_1", "pay_2", signature)

    def test_missing_signature_rejected(self):
        with pytest.raises(SignatureInvalidError):
            GatewayAdapter.verify_payment_signature("order_1", "pay_1", "")


class TestIdempotencyKeyGenerator:
    def test_format_and_stability(self):
        key = IdempotencyKeyGenerator.generate("create_order", "abc", attempt=2)

        operation, entity, attempt, digest = key.split(":")
        assert (operation, entity, attempt) == ("create_order", "abc", "2")
        assert len(digest) == 8
        assert key == IdempotencyKeyGenerator.generate("create_order", "abc", attempt=2)

    def test_attempts_differ(self):
        assert IdempotencyKeyGenerator.generate("op", "abc", 1) != IdempotencyKeyGenerator.generate(
            "op", "abc", 2
        )
