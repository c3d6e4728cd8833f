"""
Payment service for the PaymentOrder lifecycle.

This module provides the PaymentService class, the entry point for every
operation on a PaymentOrder. The model only knows its legal transitions;
this service owns their side effects:

- create_order_for_batch: price a catalogue batch server-side, then create_order
- create_order: split commission once, persist, open a gateway order
- mark_paid: revenue entry, enrollment and teacher balance, exactly once
- mark_failed / cancel: record the outcome, no ledger effect
- refund: accumulate refund_amount and reduce the teacher's available balance
- retry: fresh gateway order for a failed or cancelled attempt

Gateway calls never run inside a database transaction. Orders are locked
with select_for_update for every state change so webhook deliveries,
client verification and admin actions serialize per order.

Usage:
    from payments.services import PaymentService

    result = PaymentService.create_order_for_batch(payer=student, batch_id="batch-42")
    if result.success:
        redirect(result.data.payment_link)

    # Client returned from the hosted checkout
    result = PaymentService.mark_paid(order.id, gateway_payment_id, signature)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import transaction

from core.services import BaseService, ServiceResult

from payments.adapters import GatewayAdapter, IdempotencyKeyGenerator
from payments.commission import split, split_at_rate, to_money
from payments.exceptions import (
    BUSINESS_ERRORS,
    GatewayError,
    InstallmentAlreadyPaidError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
    RetryLimitExceededError,
)
from payments.ledger import revenue_ledger
from payments.models import PaymentOrder
from payments.policy import PaymentPolicy
from payments.services.collection import (
    apply_transition,
    collect_order,
    resolve_offering,
    settle_installment,
)
from payments.state_machines import PaymentOrderState, PaymentSource

if TYPE_CHECKING:
    import uuid

    from authentication.models import User
    from payments.models import Installment


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class RefundResult:
    """
    Outcome of a refund.

    Attributes:
        order: The refunded order
        refunded_amount: Amount refunded by this call
        teacher_available_balance: Teacher's available_for_payout afterwards
    """

    order: PaymentOrder
    refunded_amount: Decimal
    teacher_available_balance: Decimal

    @property
    def balance_negative(self) -> bool:
        return self.teacher_available_balance < 0


# =============================================================================
# Payment Service
# =============================================================================


class PaymentService(BaseService):
    """
    Lifecycle operations on PaymentOrder.

    All methods are class methods. Expected business failures (bad input,
    unknown order, illegal transition) come back as ServiceResult
    failures; GatewayError propagates.

    Dependency injection:
        PaymentService.set_gateway_adapter(MockAdapter)
        PaymentService.set_policy(PaymentPolicy(max_retries=1))
    """

    _gateway_adapter: type | None = None
    _policy: PaymentPolicy | None = None

    @classmethod
    def get_gateway_adapter(cls) -> type:
        """Get the gateway adapter class (allows injection for testing)."""
        return cls._gateway_adapter or GatewayAdapter

    @classmethod
    def set_gateway_adapter(cls, adapter: type | None) -> None:
        """Set the gateway adapter class (for testing). Pass None to reset."""
        cls._gateway_adapter = adapter

    @classmethod
    def get_policy(cls) -> PaymentPolicy:
        return cls._policy or PaymentPolicy.from_settings()

    @classmethod
    def set_policy(cls, policy: PaymentPolicy | None) -> None:
        cls._policy = policy

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def create_order(
        cls,
        payer: User,
        teacher: User,
        batch_id: str,
        original_amount,
        discount_amount=Decimal("0.00"),
        source: str = PaymentSource.PLATFORM,
        course_id: str = "",
        currency: str | None = None,
        payment_method: str = "",
        metadata: dict[str, Any] | None = None,
        installment: Installment | None = None,
        commission_rate=None,
    ) -> ServiceResult[PaymentOrder]:
        """
        Create a PaymentOrder and open the matching gateway order.

        The commission split is computed here, once, and stored.

        Args:
            payer: Student paying
            teacher: Teacher owed the revenue share
            batch_id: Batch being purchased
            original_amount: List price
            discount_amount: Discount applied (amount = original - discount)
            source: Acquisition source selecting the commission rate
            course_id: Course of the batch
            currency: ISO code (defaults to PAYMENTS_CURRENCY)
            payment_method: Preferred instrument, if known
            metadata: Arbitrary key-value pairs
            installment: Installment this order collects, if any
            commission_rate: Already-frozen rate (installment orders reuse
                their plan's rate instead of the current policy)

        Returns:
            ServiceResult with the order in CREATED state

        Raises:
            GatewayError: Gateway order could not be opened. The order
                is persisted as FAILED with the gateway error as reason.
        """
        policy = cls.get_policy()
        logger = cls.get_logger()

        try:
            original = to_money(original_amount)
            discount = to_money(discount_amount or 0)
            if discount < 0 or discount >= original:
                raise PaymentValidationError(
                    "Discount must be non-negative and below the original amount",
                    error_code="INVALID_AMOUNT",
                    details={"original_amount": str(original), "discount_amount": str(discount)},
                )
            if not batch_id:
                raise PaymentValidationError(
                    "batch_id is required",
                    details={"field": "batch_id"},
                )
            amount = original - discount
            if commission_rate is None:
                result = split(amount, source, policy)
            else:
                result = split_at_rate(amount, commission_rate)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Order creation rejected", logging.WARNING)

        with transaction.atomic():
            order = PaymentOrder.objects.create(
                payer=payer,
                teacher=teacher,
                batch_id=batch_id,
                course_id=course_id,
                amount=amount,
                original_amount=original,
                discount_amount=discount,
                currency=currency or policy.currency,
                source=source,
                commission_rate=result.commission_rate,
                platform_fee=result.platform_fee,
                teacher_earnings=result.teacher_earnings,
                payment_method=payment_method,
                metadata=metadata or {},
                installment=installment,
            )

        logger.info(
            "Payment order created",
            extra={
                "payment_order_id": str(order.id),
                "payer_id": payer.pk,
                "teacher_id": teacher.pk,
                "amount": str(order.amount),
                "source": source,
                "platform_fee": str(order.platform_fee),
                "teacher_earnings": str(order.teacher_earnings),
            },
        )

        order = cls._open_gateway_order(order)
        return ServiceResult.success(order)

    @classmethod
    def create_order_for_batch(
        cls,
        payer: User,
        batch_id: str,
        payment_method: str = "",
        metadata: dict[str, Any] | None = None,
        source: str | None = None,
        discount_amount=Decimal("0.00"),
    ) -> ServiceResult[PaymentOrder]:
        """
        Checkout for a catalogue batch.

        Price, teacher, course and currency come from the catalogue
        backend. source and discount_amount override the catalogue and
        are only passed through for platform admins.

        Returns:
            ServiceResult with the CREATED order. BATCH_NOT_FOUND,
            BATCH_NOT_AVAILABLE and ALREADY_ENROLLED failures leave
            nothing behind.

        Raises:
            GatewayError: Gateway order could not be opened
        """
        try:
            offering = resolve_offering(batch_id, payer)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Checkout rejected", logging.WARNING)

        return cls.create_order(
            payer=payer,
            teacher=offering.teacher,
            batch_id=offering.batch_id,
            course_id=offering.course_id,
            original_amount=offering.price,
            discount_amount=discount_amount,
            source=source or offering.source,
            currency=offering.currency,
            payment_method=payment_method,
            metadata=metadata,
        )

    @classmethod
    def _open_gateway_order(cls, order: PaymentOrder) -> PaymentOrder:
        """
        Request a gateway order for a CREATED order (outside any transaction).

        On gateway failure the order is marked FAILED and the error re-raised.
        """
        adapter = cls.get_gateway_adapter()
        idempotency_key = IdempotencyKeyGenerator.generate(
            "create_order", order.id, attempt=order.retry_count + 1
        )
        try:
            gateway_order = adapter.create_order(
                amount=order.amount,
                currency=order.currency,
                payer_ref=str(order.payer_id),
                idempotency_key=idempotency_key,
            )
        except GatewayError as e:
            cls.get_logger().error(
                "Gateway order creation failed",
                extra={
                    "payment_order_id": str(order.id),
                    "error_code": e.error_code,
                    "error": e.message,
                },
            )
            with transaction.atomic():
                locked = PaymentOrder.objects.select_for_update().get(id=order.id)
                if locked.state == PaymentOrderState.CREATED:
                    locked.mark_failed(reason=f"Gateway error: {e.message}")
                    locked.save()
            raise

        PaymentOrder.objects.filter(id=order.id).update(
            gateway_order_id=gateway_order.gateway_order_id,
            payment_link=gateway_order.payment_link,
        )
        return PaymentOrder.objects.get(id=order.id)

    # =========================================================================
    # Outcomes
    # =========================================================================

    @classmethod
    def mark_paid(
        cls,
        order_id: uuid.UUID,
        gateway_payment_id: str,
        signature: str = "",
        *,
        amount=None,
        payment_method: str = "",
        signature_verified: bool = False,
    ) -> ServiceResult[PaymentOrder]:
        """
        Confirm a payment and apply its side effects exactly once.

        Args:
            order_id: Order to confirm
            gateway_payment_id: Payment id reported by the gateway
            signature: Hex HMAC of "<gateway_order_id>|<gateway_payment_id>"
            amount: Amount reported by the gateway; must equal the order amount
            payment_method: Instrument reported by the gateway
            signature_verified: Caller already authenticated the envelope
                (webhook path), so the payment signature is not checked

        Returns:
            ServiceResult with the PAID order. Confirming an already PAID
            order is a no-op success. A gateway-confirmed installment order
            whose installment can no longer be settled is returned with
            needs_reconciliation set instead of failing, so the gateway
            stops redelivering.
        """
        logger = cls.get_logger()
        try:
            with transaction.atomic():
                order = cls._lock_order(order_id)

                if order.state == PaymentOrderState.PAID:
                    logger.info(
                        "Order already paid, skipping",
                        extra={"payment_order_id": str(order.id)},
                    )
                    return ServiceResult.success(order)

                if not signature_verified:
                    cls.get_gateway_adapter().verify_payment_signature(
                        order.gateway_order_id or "",
                        gateway_payment_id,
                        signature,
                    )

                if amount is not None and to_money(amount) != order.amount:
                    raise PaymentValidationError(
                        "Reported amount does not match the order amount",
                        error_code="AMOUNT_MISMATCH",
                        details={"expected": str(order.amount), "reported": str(amount)},
                    )

                if (
                    signature_verified
                    and order.is_installment_payment
                    and order.state == PaymentOrderState.CANCELLED
                ):
                    # Closed when its installment settled or its plan was cancelled
                    order.gateway_payment_id = gateway_payment_id
                    cls._flag_for_reconciliation(
                        order,
                        gateway_payment_id,
                        "ORDER_CLOSED",
                        f"Order was closed before the gateway collected it ({order.failure_reason})",
                        extra_fields=["gateway_payment_id"],
                    )
                    return ServiceResult.success(order)

                apply_transition(order, order.mark_paid, gateway_payment_id, signature)
                if payment_method:
                    order.payment_method = payment_method
                order.save()

                if order.is_installment_payment:
                    cls._settle_installment_order(order, gateway_payment_id)
                else:
                    collect_order(order)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Payment confirmation rejected", logging.WARNING)

        logger.info(
            "Payment order paid",
            extra={
                "payment_order_id": str(order.id),
                "gateway_payment_id": gateway_payment_id,
                "amount": str(order.amount),
                "installment_id": str(order.installment_id) if order.installment_id else None,
            },
        )
        return ServiceResult.success(order)

    @classmethod
    def _settle_installment_order(cls, order: PaymentOrder, gateway_payment_id: str) -> None:
        """
        Settle the installment a PAID gateway order collected.

        The gateway has already taken the money, so an installment that
        can no longer be settled (paid another way, plan cancelled, late
        fee added after checkout) does not undo the order. The order stays
        PAID and is flagged for finance to refund or reconcile.
        """
        installment = order.installment
        try:
            with transaction.atomic():
                settle_installment(
                    installment.plan_id,
                    installment.number,
                    amount=order.amount,
                    transaction_id=gateway_payment_id,
                    payment_method=order.payment_method,
                    payment_order_id=order.id,
                )
        except (InstallmentAlreadyPaidError, InvalidStateTransitionError, PaymentValidationError) as e:
            cls._flag_for_reconciliation(order, gateway_payment_id, e.error_code, e.message)

    @classmethod
    def _flag_for_reconciliation(
        cls,
        order: PaymentOrder,
        gateway_payment_id: str,
        error_code: str,
        reason: str,
        extra_fields: list[str] | None = None,
    ) -> None:
        """Record collected money that was not applied to its installment."""
        installment = order.installment
        order.needs_reconciliation = True
        order.reconciliation_note = (
            f"[{error_code}] {reason}. Gateway payment {gateway_payment_id} "
            f"of {order.amount} {order.currency} was not applied to installment "
            f"{installment.number}."
        )
        order.save(
            update_fields=[
                "needs_reconciliation",
                "reconciliation_note",
                "updated_at",
                *(extra_fields or []),
            ]
        )
        cls.get_logger().error(
            "Collected installment order could not be settled",
            extra={
                "payment_order_id": str(order.id),
                "plan_id": str(installment.plan_id),
                "number": installment.number,
                "gateway_payment_id": gateway_payment_id,
                "amount": str(order.amount),
                "error_code": error_code,
            },
        )

    @classmethod
    def mark_failed(cls, order_id: uuid.UUID, reason: str = "") -> ServiceResult[PaymentOrder]:
        """
        Record a failed attempt. Repeating it on a FAILED order is a no-op.
        """
        try:
            with transaction.atomic():
                order = cls._lock_order(order_id)
                if order.state == PaymentOrderState.FAILED:
                    return ServiceResult.success(order)
                apply_transition(order, order.mark_failed, reason=reason)
                order.save()
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Payment failure rejected", logging.WARNING)

        cls.get_logger().info(
            "Payment order failed",
            extra={"payment_order_id": str(order.id), "reason": reason},
        )
        return ServiceResult.success(order)

    @classmethod
    def cancel(cls, order_id: uuid.UUID, reason: str = "") -> ServiceResult[PaymentOrder]:
        """
        Payer abandoned the checkout. Repeating it on a CANCELLED order is a no-op.
        """
        try:
            with transaction.atomic():
                order = cls._lock_order(order_id)
                if order.state == PaymentOrderState.CANCELLED:
                    return ServiceResult.success(order)
                apply_transition(order, order.cancel, reason=reason)
                order.save()
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Payment cancellation rejected", logging.WARNING)

        cls.get_logger().info(
            "Payment order cancelled",
            extra={"payment_order_id": str(order.id), "reason": reason},
        )
        return ServiceResult.success(order)

    # =========================================================================
    # Refunds & Retries
    # =========================================================================

    @classmethod
    def refund(
        cls,
        order_id: uuid.UUID,
        amount,
        reason: str,
        refunded_by: User | None = None,
    ) -> ServiceResult[RefundResult]:
        """
        Refund all or part of a paid order.

        The teacher's available_for_payout is reduced by the refunded
        amount and the teacher's part of it is reversed on the order's
        revenue entries, so it can never be withdrawn. The balance may go
        negative; the result reports it and a warning is logged.

        Returns:
            ServiceResult with a RefundResult
        """
        validation = cls.validate_required(reason=reason)
        if validation:
            return validation

        logger = cls.get_logger()
        try:
            with transaction.atomic():
                order = cls._lock_order(order_id)

                if order.state not in PaymentOrderState.refundable_states():
                    raise InvalidStateTransitionError(
                        f"Cannot refund order in '{order.state}' state",
                        details={"current_state": order.state, "target_state": "refunded"},
                    )

                refund_amount = to_money(amount)
                if refund_amount <= 0 or refund_amount > order.refundable_amount:
                    raise PaymentValidationError(
                        "Refund amount must be positive and within the refundable amount",
                        error_code="INVALID_AMOUNT",
                        details={
                            "requested": str(refund_amount),
                            "refundable": str(order.refundable_amount),
                        },
                    )

                if refund_amount == order.refundable_amount:
                    apply_transition(order, order.refund_full, refund_amount, reason)
                else:
                    apply_transition(order, order.refund_partial, refund_amount, reason)
                order.refunded_by = refunded_by
                order.save()

                if order.needs_reconciliation:
                    # The teacher was never credited for this collection
                    balance = revenue_ledger.ensure_balance(order.teacher_id).available_for_payout
                else:
                    revenue_ledger.record_refund(order, refund_amount)
                    balance = revenue_ledger.adjust_available(order.teacher_id, -refund_amount)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Refund rejected", logging.WARNING)

        result = RefundResult(
            order=order,
            refunded_amount=refund_amount,
            teacher_available_balance=balance,
        )
        log_context = {
            "payment_order_id": str(order.id),
            "refund_amount": str(refund_amount),
            "total_refunded": str(order.refund_amount),
            "state": order.state,
            "teacher_id": order.teacher_id,
            "teacher_available_balance": str(balance),
        }
        if result.balance_negative:
            logger.warning("Refund left teacher balance negative", extra=log_context)
        else:
            logger.info("Payment order refunded", extra=log_context)
        return ServiceResult.success(result)

    @classmethod
    def retry(cls, order_id: uuid.UUID) -> ServiceResult[PaymentOrder]:
        """
        Start a new attempt for a FAILED or CANCELLED order.

        Raises:
            GatewayError: New gateway order could not be opened
        """
        policy = cls.get_policy()
        try:
            with transaction.atomic():
                order = cls._lock_order(order_id)
                if order.state not in PaymentOrderState.retryable_states():
                    raise InvalidStateTransitionError(
                        f"Cannot retry order in '{order.state}' state",
                        details={"current_state": order.state, "target_state": "created"},
                    )
                if order.retry_count >= policy.max_retries:
                    raise RetryLimitExceededError(
                        "Order has used all of its retries",
                        details={"retry_count": order.retry_count, "max_retries": policy.max_retries},
                    )
                apply_transition(order, order.retry)
                order.save()
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Retry rejected", logging.WARNING)

        cls.get_logger().info(
            "Payment order retried",
            extra={"payment_order_id": str(order.id), "retry_count": order.retry_count},
        )
        order = cls._open_gateway_order(order)
        return ServiceResult.success(order)

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def get_status(cls, order_id: uuid.UUID) -> ServiceResult[PaymentOrder]:
        """Return the order for status polling."""
        try:
            return ServiceResult.success(PaymentOrder.objects.get(id=order_id))
        except PaymentOrder.DoesNotExist:
            return ServiceResult.failure(
                "Payment order not found",
                error_code=PaymentNotFoundError.default_error_code,
                details={"order_id": str(order_id)},
            )

    @classmethod
    def get_by_gateway_order_id(cls, gateway_order_id: str) -> PaymentOrder | None:
        return PaymentOrder.objects.filter(gateway_order_id=gateway_order_id).first()

    @staticmethod
    def _lock_order(order_id: uuid.UUID) -> PaymentOrder:
        try:
            return PaymentOrder.objects.select_for_update().get(id=order_id)
        except PaymentOrder.DoesNotExist:
            raise PaymentNotFoundError(
                "Payment order not found",
                details={"order_id": str(order_id)},
            )
