"""
Webhook reconciliation for gateway payment events.

This module provides a handler registry and the WebhookReconciler which
turns an authenticated gateway delivery into exactly one PaymentOrder
transition.

Reconciliation is insert-or-detect on GatewayTransaction.gateway_order_id:

1. Verify the signature (fail closed)
2. Parse the JSON payload
3. In one transaction: insert the GatewayTransaction row inside a
   savepoint. If it collides with an existing row, lock that row; if it
   is terminal the delivery is a duplicate and nothing changes.
4. Resolve the PaymentOrder and dispatch the event to its handler
5. Record the outcome on the row

Any error rolls the whole transaction back, including the inserted row,
so the gateway's redelivery is processed from scratch.

Usage:
    from payments.webhooks.handlers import WebhookReconciler, register_handler

    outcome = WebhookReconciler.handle_webhook(raw_body, signature, timestamp)
    outcome.status  # "processed", "duplicate" or "ignored"

    @register_handler("PAYMENT_DISPUTED")
    def handle_payment_disputed(order, event) -> str:
        ...
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable

from django.db import IntegrityError, transaction
from django.db.models import F

from core.services import BaseService

from payments.adapters import GatewayAdapter
from payments.commission import to_money
from payments.exceptions import (
    DuplicateDeliveryError,
    PaymentError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from payments.models import GatewayTransaction, PaymentOrder
from payments.services import PaymentService
from payments.state_machines import GatewayTransactionStatus

if TYPE_CHECKING:
    from core.services import ServiceResult


logger = logging.getLogger(__name__)


# =============================================================================
# Event Types
# =============================================================================


PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
PAYMENT_FAILED = "PAYMENT_FAILED"
PAYMENT_CANCELLED = "PAYMENT_CANCELLED"

ALIAS_SUFFIX = "_WEBHOOK"

OUTCOME_PROCESSED = "processed"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_IGNORED = "ignored"


@dataclass(frozen=True)
class GatewayEvent:
    """
    Parsed webhook payload.

    Attributes:
        event_type: Normalized event name (alias suffix stripped)
        gateway_order_id: Gateway order the event is about
        gateway_payment_id: Gateway payment id, if reported
        amount: Reported amount, if any
        payment_method: Instrument reported by the gateway
        failure_reason: Reason reported for failures
        payload: Decoded JSON body
    """

    event_type: str
    gateway_order_id: str
    gateway_payment_id: str = ""
    amount: Decimal | None = None
    payment_method: str = ""
    failure_reason: str = ""
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookOutcome:
    """Result of one webhook delivery."""

    status: str
    gateway_order_id: str
    event_type: str
    payment_order_id: str | None = None
    transaction_status: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "gateway_order_id": self.gateway_order_id,
            "event": self.event_type,
            "payment_order_id": self.payment_order_id,
        }


def normalize_event_type(event_type: str) -> str:
    """PAYMENT_SUCCESS_WEBHOOK -> PAYMENT_SUCCESS."""
    event_type = event_type.strip().upper()
    if event_type.endswith(ALIAS_SUFFIX):
        return event_type[: -len(ALIAS_SUFFIX)]
    return event_type


def parse_event(raw_body: bytes) -> GatewayEvent:
    """
    Decode and validate a webhook body.

    Raises:
        PaymentValidationError: Body is not a JSON object or lacks
            event / gatewayOrderId, or amount is not a number
    """
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        raise PaymentValidationError(
            "Webhook body is not valid JSON",
            error_code="MALFORMED_PAYLOAD",
        )
    if not isinstance(payload, dict):
        raise PaymentValidationError(
            "Webhook body must be a JSON object",
            error_code="MALFORMED_PAYLOAD",
        )

    event_type = payload.get("event")
    gateway_order_id = payload.get("gatewayOrderId")
    if not isinstance(event_type, str) or not event_type.strip():
        raise PaymentValidationError(
            "Webhook payload is missing 'event'",
            error_code="MALFORMED_PAYLOAD",
            details={"field": "event"},
        )
    if not isinstance(gateway_order_id, str) or not gateway_order_id.strip():
        raise PaymentValidationError(
            "Webhook payload is missing 'gatewayOrderId'",
            error_code="MALFORMED_PAYLOAD",
            details={"field": "gatewayOrderId"},
        )

    amount = payload.get("amount")
    if amount is not None:
        try:
            amount = to_money(amount)
        except (InvalidOperation, ValueError, TypeError):
            raise PaymentValidationError(
                "Webhook amount is not a number",
                error_code="MALFORMED_PAYLOAD",
                details={"field": "amount"},
            )

    return GatewayEvent(
        event_type=normalize_event_type(event_type),
        gateway_order_id=gateway_order_id.strip(),
        gateway_payment_id=str(payload.get("gatewayPaymentId") or ""),
        amount=amount,
        payment_method=str(payload.get("paymentMethod") or ""),
        failure_reason=str(payload.get("failureReason") or ""),
        payload=payload,
    )


# =============================================================================
# Handler Registry
# =============================================================================


# Maps normalized event types to handlers returning a GatewayTransactionStatus
WEBHOOK_HANDLERS: dict[str, Callable[[PaymentOrder, GatewayEvent], str]] = {}

# Outcome each event type records; used to spot conflicting duplicates
EXPECTED_STATUS: dict[str, str] = {
    PAYMENT_SUCCESS: GatewayTransactionStatus.PAID,
    PAYMENT_FAILED: GatewayTransactionStatus.FAILED,
    PAYMENT_CANCELLED: GatewayTransactionStatus.CANCELLED,
}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("PAYMENT_SUCCESS")
        def handle_payment_success(order: PaymentOrder, event: GatewayEvent) -> str:
            ...

    Args:
        event_type: Normalized gateway event name

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[PaymentOrder, GatewayEvent], str]) -> Callable:
        WEBHOOK_HANDLERS[normalize_event_type(event_type)] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def _raise_for_failure(result: ServiceResult, event: GatewayEvent) -> None:
    """Turn a failed service result into an exception that rolls back."""
    if result.success:
        return
    raise PaymentError(
        result.error or "Webhook handling failed",
        error_code=result.error_code,
        details={
            **(result.details or {}),
            "gateway_order_id": event.gateway_order_id,
            "event": event.event_type,
        },
    )


@register_handler(PAYMENT_SUCCESS)
def handle_payment_success(order: PaymentOrder, event: GatewayEvent) -> str:
    """Mark the order paid. The envelope signature was already verified."""
    result = PaymentService.mark_paid(
        order.id,
        event.gateway_payment_id,
        signature="",
        amount=event.amount,
        payment_method=event.payment_method,
        signature_verified=True,
    )
    _raise_for_failure(result, event)
    return GatewayTransactionStatus.PAID


@register_handler(PAYMENT_FAILED)
def handle_payment_failed(order: PaymentOrder, event: GatewayEvent) -> str:
    result = PaymentService.mark_failed(order.id, reason=event.failure_reason)
    _raise_for_failure(result, event)
    return GatewayTransactionStatus.FAILED


@register_handler(PAYMENT_CANCELLED)
def handle_payment_cancelled(order: PaymentOrder, event: GatewayEvent) -> str:
    result = PaymentService.cancel(order.id, reason=event.failure_reason or "Cancelled at gateway")
    _raise_for_failure(result, event)
    return GatewayTransactionStatus.CANCELLED


# =============================================================================
# Reconciler
# =============================================================================


class WebhookReconciler(BaseService):
    """
    Single entry point for gateway webhook deliveries.

    Dependency injection:
        WebhookReconciler.set_gateway_adapter(MockAdapter)
    """

    _gateway_adapter: type | None = None

    @classmethod
    def get_gateway_adapter(cls) -> type:
        return cls._gateway_adapter or GatewayAdapter

    @classmethod
    def set_gateway_adapter(cls, adapter: type | None) -> None:
        cls._gateway_adapter = adapter

    @classmethod
    def handle_webhook(cls, raw_body: bytes, signature: str, timestamp: str) -> WebhookOutcome:
        """
        Authenticate, deduplicate and apply one webhook delivery.

        Returns:
            WebhookOutcome with status processed, duplicate or ignored

        Raises:
            SignatureInvalidError: Signature missing or mismatched
            PaymentValidationError: Malformed payload
            PaymentNotFoundError: No order carries the gateway order id
            PaymentError: The order could not take the transition
        """
        cls.get_gateway_adapter().verify_webhook_signature(raw_body, signature, timestamp)
        event = parse_event(raw_body)

        log_context = {
            "gateway_order_id": event.gateway_order_id,
            "event": event.event_type,
            "gateway_payment_id": event.gateway_payment_id,
        }
        logger.info("Webhook received", extra=log_context)

        try:
            with transaction.atomic():
                record, created = cls._insert_or_lock(event, signature)

                if not created and record.is_terminal:
                    raise DuplicateDeliveryError(
                        "Gateway order already reconciled",
                        details={"transaction_id": str(record.id), "status": record.status},
                    )

                handler = WEBHOOK_HANDLERS.get(event.event_type)
                if handler is None:
                    cls._store(record, event, signature, GatewayTransactionStatus.IGNORED)
                    logger.info("Webhook event type not handled, ignoring", extra=log_context)
                    return WebhookOutcome(
                        status=OUTCOME_IGNORED,
                        gateway_order_id=event.gateway_order_id,
                        event_type=event.event_type,
                        transaction_status=record.status,
                    )

                order = PaymentOrder.objects.filter(gateway_order_id=event.gateway_order_id).first()
                if order is None:
                    raise PaymentNotFoundError(
                        "No payment order for gateway order id",
                        details={"gateway_order_id": event.gateway_order_id},
                    )

                outcome_status = handler(order, event)
                record.payment_order = order
                cls._store(record, event, signature, outcome_status)
        except DuplicateDeliveryError:
            return cls._acknowledge_duplicate(event)

        logger.info(
            "Webhook processed",
            extra={**log_context, "payment_order_id": str(order.id), "status": outcome_status},
        )
        return WebhookOutcome(
            status=OUTCOME_PROCESSED,
            gateway_order_id=event.gateway_order_id,
            event_type=event.event_type,
            payment_order_id=str(order.id),
            transaction_status=outcome_status,
        )

    @staticmethod
    def _insert_or_lock(event: GatewayEvent, signature: str) -> tuple[GatewayTransaction, bool]:
        """
        Insert the row for event.gateway_order_id, or lock the existing one.

        The insert runs in a savepoint so a unique collision leaves the
        outer transaction usable.
        """
        try:
            with transaction.atomic():
                record = GatewayTransaction.objects.create(
                    gateway_order_id=event.gateway_order_id,
                    gateway_payment_id=event.gateway_payment_id,
                    event_type=event.event_type,
                    payload=event.payload,
                    signature=signature,
                )
            return record, True
        except IntegrityError:
            record = GatewayTransaction.objects.select_for_update().get(
                gateway_order_id=event.gateway_order_id
            )
            return record, False

    @staticmethod
    def _store(record: GatewayTransaction, event: GatewayEvent, signature: str, status: str) -> None:
        record.event_type = event.event_type
        record.gateway_payment_id = event.gateway_payment_id
        record.payload = event.payload
        record.signature = signature
        record.record_outcome(status)
        record.save()

    @staticmethod
    def _acknowledge_duplicate(event: GatewayEvent) -> WebhookOutcome:
        """Count the redelivery; flag it when it contradicts the recorded outcome."""
        GatewayTransaction.objects.filter(gateway_order_id=event.gateway_order_id).update(
            duplicate_count=F("duplicate_count") + 1
        )
        record = GatewayTransaction.objects.get(gateway_order_id=event.gateway_order_id)

        log_context = {
            "gateway_order_id": event.gateway_order_id,
            "event": event.event_type,
            "recorded_status": record.status,
            "duplicate_count": record.duplicate_count,
        }
        expected = EXPECTED_STATUS.get(event.event_type)
        if expected and expected != record.status:
            logger.error(
                "Conflicting webhook outcome for reconciled gateway order, manual reconciliation required",
                extra=log_context,
            )
        else:
            logger.info("Duplicate webhook delivery acknowledged", extra=log_context)

        return WebhookOutcome(
            status=OUTCOME_DUPLICATE,
            gateway_order_id=event.gateway_order_id,
            event_type=event.event_type,
            payment_order_id=str(record.payment_order_id) if record.payment_order_id else None,
            transaction_status=record.status,
        )
