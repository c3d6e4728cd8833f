"""
Payment gateway adapter.

This module provides the GatewayAdapter class which encapsulates every
HTTP call to the payment gateway and every signature check on data the
gateway sends us. All gateway traffic should go through this adapter to
ensure consistent error handling, timeouts, idempotency and logging.

Features:
- Configurable timeout on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency-Key header on every POST
- Payout status polling (GET /payouts/{transactionId})
- Constant-time HMAC signature verification

Configuration (via settings):
- GATEWAY_BASE_URL: Gateway API root, e.g. https://api.gateway.example/v1
- GATEWAY_CLIENT_ID / GATEWAY_CLIENT_SECRET: API credentials
- GATEWAY_WEBHOOK_SECRET: Shared secret for webhook signatures
- GATEWAY_TIMEOUT: API call timeout in seconds (default: 10)

Usage:
    from payments.adapters import GatewayAdapter

    result = GatewayAdapter.create_order(
        amount=Decimal("1000.00"),
        currency="INR",
        payer_ref=str(student.id),
        idempotency_key=IdempotencyKeyGenerator.generate("create_order", order.id),
    )
    order.gateway_order_id = result.gateway_order_id

    GatewayAdapter.verify_webhook_signature(request.body, signature, timestamp)
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import requests
from django.conf import settings

from payments.exceptions import (
    GatewayError,
    GatewayRequestError,
    GatewayUnavailableError,
    SignatureInvalidError,
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class GatewayOrderResult:
    """
    Result of creating a gateway order.

    Attributes:
        gateway_order_id: Order id assigned by the gateway
        payment_link: Hosted checkout URL for the payer
        raw_response: Full response body (for debugging)
    """

    gateway_order_id: str
    payment_link: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayPayoutResult:
    """
    Result of a gateway payout (transfer) request.

    Attributes:
        transaction_id: Gateway transfer reference
        status: Gateway transfer status (SUCCESS, PENDING, ...)
        raw_response: Full response body (for debugging)
    """

    transaction_id: str
    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)

    SUCCESS_STATUSES = frozenset({"SUCCESS", "COMPLETED"})

    @property
    def is_settled(self) -> bool:
        return self.status.upper() in self.SUCCESS_STATUSES


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for gateway API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    Example:
        key = IdempotencyKeyGenerator.generate("create_payout", payout.id)
        # "create_payout:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]
        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Gateway Adapter
# =============================================================================


class GatewayAdapter:
    """
    Adapter for payment gateway operations.

    All methods are class methods - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Usage:
        result = GatewayAdapter.create_order(amount, currency, payer_ref, key)
        result = GatewayAdapter.create_payout(beneficiary, amount, key)
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    @classmethod
    def create_order(
        cls,
        amount: Decimal,
        currency: str,
        payer_ref: str,
        idempotency_key: str,
    ) -> GatewayOrderResult:
        """
        Create a gateway order the payer can complete.

        POST /orders {amount, currency, payerRef} -> {gatewayOrderId, paymentLink}

        Raises:
            GatewayRequestError: Gateway rejected the order (4xx)
            GatewayUnavailableError: Timeout, connection error or 5xx
            GatewayError: Response missing required fields
        """
        body = cls._post(
            "/orders",
            {
                "amount": f"{amount:.2f}",
                "currency": currency,
                "payerRef": payer_ref,
            },
            idempotency_key=idempotency_key,
            operation="create_order",
        )
        try:
            return GatewayOrderResult(
                gateway_order_id=str(body["gatewayOrderId"]),
                payment_link=str(body.get("paymentLink") or ""),
                raw_response=body,
            )
        except KeyError:
            raise GatewayError(
                "Gateway order response is missing gatewayOrderId",
                error_code="GATEWAY_MALFORMED_RESPONSE",
            )

    @classmethod
    def create_payout(
        cls,
        beneficiary: dict[str, Any],
        amount: Decimal,
        idempotency_key: str,
    ) -> GatewayPayoutResult:
        """
        Transfer money to a teacher's bank account or UPI handle.

        POST /payouts {beneficiary, amount} -> {transactionId, status}

        Raises:
            GatewayRequestError: Gateway rejected the transfer (4xx)
            GatewayUnavailableError: Timeout, connection error or 5xx;
                whether money moved is unknown
            GatewayError: Response missing required fields
        """
        body = cls._post(
            "/payouts",
            {
                "beneficiary": beneficiary,
                "amount": f"{amount:.2f}",
            },
            idempotency_key=idempotency_key,
            operation="create_payout",
        )
        try:
            return GatewayPayoutResult(
                transaction_id=str(body["transactionId"]),
                status=str(body.get("status") or "PENDING"),
                raw_response=body,
            )
        except KeyError:
            raise GatewayError(
                "Gateway payout response is missing transactionId",
                error_code="GATEWAY_MALFORMED_RESPONSE",
            )

    @classmethod
    def get_payout_status(cls, transaction_id: str) -> GatewayPayoutResult:
        """
        Current status of a transfer.

        GET /payouts/{transactionId} -> {transactionId, status, utr}

        Raises:
            GatewayRequestError: Unknown transfer (4xx)
            GatewayUnavailableError: Timeout, connection error or 5xx
            GatewayError: Response missing status
        """
        body = cls._get(f"/payouts/{transaction_id}", operation="get_payout_status")
        try:
            return GatewayPayoutResult(
                transaction_id=str(body.get("transactionId") or transaction_id),
                status=str(body["status"]),
                raw_response=body,
            )
        except KeyError:
            raise GatewayError(
                "Gateway payout status response is missing status",
                error_code="GATEWAY_MALFORMED_RESPONSE",
            )

    # =========================================================================
    # Signature Verification
    # =========================================================================

    @staticmethod
    def compute_webhook_signature(raw_body: bytes, timestamp: str) -> str:
        """Base64 HMAC-SHA256 of timestamp + raw body with the webhook secret."""
        secret = settings.GATEWAY_WEBHOOK_SECRET.encode()
        message = timestamp.encode() + raw_body
        digest = hmac.new(secret, message, hashlib.sha256).digest()
        return base64.b64encode(digest).decode()

    @classmethod
    def verify_webhook_signature(cls, raw_body: bytes, signature: str, timestamp: str) -> None:
        """
        Verify a webhook delivery.

        Raises:
            SignatureInvalidError: Missing secret, header or mismatched signature
        """
        if not settings.GATEWAY_WEBHOOK_SECRET:
            raise SignatureInvalidError(
                "Webhook secret is not configured",
                error_code="WEBHOOK_SECRET_MISSING",
            )
        if not signature or not timestamp:
            raise SignatureInvalidError(
                "Missing webhook signature headers",
                details={"has_signature": bool(signature), "has_timestamp": bool(timestamp)},
            )

        expected = cls.compute_webhook_signature(raw_body, timestamp)
        if not hmac.compare_digest(expected, signature):
            raise SignatureInvalidError("Webhook signature mismatch")

    @staticmethod
    def compute_payment_signature(gateway_order_id: str, gateway_payment_id: str) -> str:
        """Hex HMAC-SHA256 of "<order_id>|<payment_id>" with the client secret."""
        secret = settings.GATEWAY_CLIENT_SECRET.encode()
        message = f"{gateway_order_id}|{gateway_payment_id}".encode()
        return hmac.new(secret, message, hashlib.sha256).hexdigest()

    @classmethod
    def verify_payment_signature(
        cls,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
    ) -> None:
        """
        Verify the signature a client received from the hosted checkout.

        Raises:
            SignatureInvalidError: Missing or mismatched signature
        """
        if not signature or not gateway_order_id or not gateway_payment_id:
            raise SignatureInvalidError("Missing payment signature data")

        expected = cls.compute_payment_signature(gateway_order_id, gateway_payment_id)
        if not hmac.compare_digest(expected, signature):
            raise SignatureInvalidError(
                "Payment signature mismatch",
                details={"gateway_order_id": gateway_order_id},
            )

    # =========================================================================
    # HTTP
    # =========================================================================

    @staticmethod
    def _auth_headers() -> dict[str, str]:
        return {
            "Accept": "application/json",
            "X-Client-Id": settings.GATEWAY_CLIENT_ID,
            "X-Client-Secret": settings.GATEWAY_CLIENT_SECRET,
        }

    @classmethod
    def _post(
        cls,
        path: str,
        payload: dict[str, Any],
        idempotency_key: str,
        operation: str,
    ) -> dict[str, Any]:
        """POST JSON to the gateway and return the decoded body."""
        url = f"{settings.GATEWAY_BASE_URL.rstrip('/')}{path}"
        headers = {
            **cls._auth_headers(),
            "Content-Type": "application/json",
            "Idempotency-Key": idempotency_key,
        }
        return cls._send(
            lambda timeout: requests.post(url, json=payload, headers=headers, timeout=timeout),
            {"operation": operation, "url": url, "idempotency_key": idempotency_key},
        )

    @classmethod
    def _get(cls, path: str, operation: str) -> dict[str, Any]:
        """GET from the gateway and return the decoded body."""
        url = f"{settings.GATEWAY_BASE_URL.rstrip('/')}{path}"
        headers = cls._auth_headers()
        return cls._send(
            lambda timeout: requests.get(url, headers=headers, timeout=timeout),
            {"operation": operation, "url": url},
        )

    @classmethod
    def _send(cls, call, log_context: dict[str, Any]) -> dict[str, Any]:
        """Run one HTTP call, translating failures to gateway exceptions."""
        logger = cls.get_logger()
        operation = log_context["operation"]

        start_time = time.time()
        logger.info("Starting gateway operation", extra=log_context)

        try:
            response = call(getattr(settings, "GATEWAY_TIMEOUT", 10))
        except (requests.Timeout, requests.ConnectionError) as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Gateway unreachable",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Could not reach the payment gateway",
                details={"operation": operation, "error": str(e)},
            )

        duration_ms = (time.time() - start_time) * 1000
        log_context = {
            **log_context,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }

        if response.status_code >= 500:
            logger.error("Gateway server error", extra=log_context)
            raise GatewayUnavailableError(
                "Payment gateway returned a server error",
                status_code=response.status_code,
                details={"operation": operation},
            )
        if response.status_code >= 400:
            logger.warning("Gateway rejected request", extra=log_context)
            raise GatewayRequestError(
                "Payment gateway rejected the request",
                status_code=response.status_code,
                details={"operation": operation, "body": response.text[:500]},
            )

        try:
            body = response.json()
        except ValueError:
            logger.error("Gateway returned non-JSON body", extra=log_context)
            raise GatewayError(
                "Payment gateway returned a malformed response",
                error_code="GATEWAY_MALFORMED_RESPONSE",
                status_code=response.status_code,
            )

        logger.info("Gateway operation completed", extra=log_context)
        return body
