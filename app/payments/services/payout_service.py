"""
Payout service for teacher withdrawals.

This module provides the PayoutService class which handles the critical
path for money leaving the platform and reaching teachers.

Requesting a payout locks the teacher's TeacherBalance row, so two
concurrent requests cannot both pass the balance check. The requested
amount is allocated FIFO against withdrawable RevenueEntries; completing
the payout advances exactly those entries to PAID.

Settlement follows a three-phase pattern:
1. Phase 1: Transition the request to PROCESSING, commit
2. Phase 2: Call the gateway payout API (outside any transaction)
3. Phase 3: Store transaction_id / gateway_status and complete on success

If phase 2 fails the request stays in PROCESSING, because money may
already have moved. The failure is logged at CRITICAL and raised as
PayoutSettlementError for manual reconciliation; it is never retried
automatically.

A transfer the gateway accepted but had not settled leaves the request
PROCESSING with its transaction_id; check_status() polls the gateway
and completes it once the transfer settles.

Usage:
    from payments.services import PayoutService

    result = PayoutService.request(
        teacher=teacher,
        amount=Decimal("1500.00"),
        payment_method=PayoutMethod.UPI,
        payment_details={"upi_id": "teacher@bank"},
    )

    PayoutService.approve(payout.id, admin)

    try:
        result = PayoutService.process(payout.id, admin)
    except PayoutSettlementError:
        alert_finance_team(payout.id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.db.models import DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.exceptions import PermissionDeniedError
from core.services import BaseService, ServiceResult

from payments.adapters import GatewayAdapter, IdempotencyKeyGenerator
from payments.commission import to_money
from payments.exceptions import (
    BUSINESS_ERRORS,
    BelowMinimumPayoutError,
    GatewayError,
    InsufficientBalanceError,
    PaymentNotFoundError,
    PaymentValidationError,
    PayoutSettlementError,
)
from payments.ledger import RevenueEntry, revenue_ledger
from payments.models import PayoutAllocation, PayoutRequest
from payments.policy import PaymentPolicy
from payments.services.collection import apply_transition
from payments.state_machines import PayoutMethod, PayoutRequestState, RevenueEntryStatus

if TYPE_CHECKING:
    import uuid

    from authentication.models import User


MIN_REJECTION_REASON_LENGTH = 10

ZERO = Decimal("0.00")


def _sum(queryset, field: str) -> Decimal:
    return queryset.aggregate(total=Sum(field))["total"] or ZERO


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class BalanceSummary:
    """
    A teacher's earnings position.

    Attributes:
        total_earnings: Lifetime teacher share credited
        available_for_payout: Running counter (reduced by refunds and payouts)
        withdrawable: Amount a new payout request may draw right now
        pending_clearance: Teacher share still inside the clearance window
        minimum_payout: Smallest amount a payout may request
    """

    total_earnings: Decimal
    available_for_payout: Decimal
    withdrawable: Decimal
    pending_clearance: Decimal
    minimum_payout: Decimal


# =============================================================================
# Payout Service
# =============================================================================


class PayoutService(BaseService):
    """
    Service for the payout request lifecycle.

    All methods are class methods - no instance state is maintained.

    Dependency injection:
        PayoutService.set_gateway_adapter(MockAdapter)
        PayoutService.set_policy(PaymentPolicy(minimum_payout_amount=Decimal("500")))
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
    # Request
    # =========================================================================

    @classmethod
    def request(
        cls,
        teacher: User,
        amount,
        payment_method: str = PayoutMethod.BANK_TRANSFER,
        payment_details: dict[str, Any] | None = None,
        note: str = "",
    ) -> ServiceResult[PayoutRequest]:
        """
        Request a withdrawal of processed earnings.

        The amount must be covered by the unrefunded share of processed
        entries and by the locked available_for_payout counter, so money
        reversed by a refund is never paid out.

        Returns:
            ServiceResult with the REQUESTED payout, or a failure with
            BELOW_MINIMUM_PAYOUT / INSUFFICIENT_BALANCE
        """
        policy = cls.get_policy()
        logger = cls.get_logger()

        try:
            amount = to_money(amount)
            if amount < policy.minimum_payout_amount:
                raise BelowMinimumPayoutError(
                    f"Minimum payout amount is {policy.minimum_payout_amount}",
                    details={
                        "requested": str(amount),
                        "minimum": str(policy.minimum_payout_amount),
                    },
                )

            with transaction.atomic():
                balance = revenue_ledger.lock_balance(teacher.pk)

                available = min(cls._withdrawable(teacher.pk), balance.available_for_payout)
                if amount > available:
                    raise InsufficientBalanceError(
                        "Requested amount exceeds the withdrawable balance",
                        details={"available": str(available), "requested": str(amount)},
                    )

                payout = PayoutRequest.objects.create(
                    teacher=teacher,
                    amount=amount,
                    currency=policy.currency,
                    payment_method=payment_method,
                    payment_details=payment_details or {},
                    note=note,
                )
                cls._allocate(payout)
                revenue_ledger.adjust_available(teacher.pk, -amount)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Payout request rejected", logging.WARNING)

        logger.info(
            "Payout requested",
            extra={
                "payout_id": str(payout.id),
                "teacher_id": teacher.pk,
                "amount": str(amount),
                "payment_method": payment_method,
            },
        )
        return ServiceResult.success(payout)

    @classmethod
    def _withdrawable(cls, teacher_id: int) -> Decimal:
        """Unrefunded teacher share of processed/paid entries minus balance-holding payouts."""
        entries = RevenueEntry.objects.filter(
            teacher_id=teacher_id,
            status__in=RevenueEntryStatus.withdrawable_statuses(),
        )
        earned = _sum(entries, "teacher_share") - _sum(entries, "refunded_share")
        held = _sum(
            PayoutRequest.objects.filter(
                teacher_id=teacher_id,
                state__in=PayoutRequestState.balance_holding_states(),
            ),
            "amount",
        )
        return earned - held

    @classmethod
    def _allocate(cls, payout: PayoutRequest) -> list[PayoutAllocation]:
        """Draw payout.amount FIFO from PROCESSED entries with undrawn share."""
        entries = (
            RevenueEntry.objects.filter(
                teacher_id=payout.teacher_id,
                status=RevenueEntryStatus.PROCESSED,
            )
            .annotate(
                drawn=Coalesce(
                    Sum(
                        "payout_allocations__amount",
                        filter=Q(payout_allocations__released=False),
                    ),
                    Value(ZERO),
                    output_field=DecimalField(max_digits=12, decimal_places=2),
                )
            )
            .order_by("created_at", "id")
        )

        remaining = payout.amount
        allocations: list[PayoutAllocation] = []
        for entry in entries:
            if remaining <= 0:
                break
            undrawn = entry.payable_share - entry.drawn
            if undrawn <= 0:
                continue
            take = min(undrawn, remaining)
            allocations.append(
                PayoutAllocation(payout=payout, revenue_entry=entry, amount=take)
            )
            remaining -= take

        if remaining > 0:
            raise InsufficientBalanceError(
                "Processed earnings do not cover the requested amount",
                details={"unallocated": str(remaining), "requested": str(payout.amount)},
            )

        return PayoutAllocation.objects.bulk_create(allocations)

    # =========================================================================
    # Admin Decisions
    # =========================================================================

    @classmethod
    def approve(cls, payout_id: uuid.UUID, admin: User | None = None) -> ServiceResult[PayoutRequest]:
        """REQUESTED -> APPROVED."""
        try:
            with transaction.atomic():
                payout = cls._lock_payout(payout_id)
                apply_transition(payout, payout.approve, admin)
                payout.save()
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Payout approval rejected", logging.WARNING)

        cls.get_logger().info(
            "Payout approved",
            extra={"payout_id": str(payout.id), "admin_id": getattr(admin, "pk", None)},
        )
        return ServiceResult.success(payout)

    @classmethod
    def reject(
        cls,
        payout_id: uuid.UUID,
        reason: str,
        admin: User | None = None,
    ) -> ServiceResult[PayoutRequest]:
        """REQUESTED -> REJECTED; releases the held balance."""
        try:
            reason = (reason or "").strip()
            if len(reason) < MIN_REJECTION_REASON_LENGTH:
                raise PaymentValidationError(
                    f"Rejection reason must be at least {MIN_REJECTION_REASON_LENGTH} characters",
                    error_code="INVALID_REASON",
                    details={"min_length": MIN_REJECTION_REASON_LENGTH},
                )
            with transaction.atomic():
                payout = cls._lock_payout(payout_id)
                apply_transition(payout, payout.reject, reason)
                payout.save()
                cls._release(payout)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Payout rejection refused", logging.WARNING)

        cls.get_logger().info(
            "Payout rejected",
            extra={
                "payout_id": str(payout.id),
                "admin_id": getattr(admin, "pk", None),
                "reason": reason,
            },
        )
        return ServiceResult.success(payout)

    @classmethod
    def cancel(cls, payout_id: uuid.UUID, actor: User) -> ServiceResult[PayoutRequest]:
        """REQUESTED/APPROVED -> CANCELLED by the owning teacher or an admin."""
        try:
            with transaction.atomic():
                payout = cls._lock_payout(payout_id)
                if payout.teacher_id != actor.pk and not actor.is_platform_admin:
                    raise PermissionDeniedError(
                        "Only the requesting teacher or an admin can cancel a payout",
                        details={"payout_id": str(payout.id)},
                    )
                apply_transition(payout, payout.cancel)
                payout.save()
                cls._release(payout)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Payout cancellation rejected", logging.WARNING)

        cls.get_logger().info(
            "Payout cancelled",
            extra={"payout_id": str(payout.id), "actor_id": actor.pk},
        )
        return ServiceResult.success(payout)

    @classmethod
    def _release(cls, payout: PayoutRequest) -> None:
        """Return a rejected or cancelled payout's amount to the teacher."""
        payout.allocations.filter(released=False).update(
            released=True,
            updated_at=timezone.now(),
        )
        revenue_ledger.adjust_available(payout.teacher_id, payout.amount)

    # =========================================================================
    # Settlement
    # =========================================================================

    @classmethod
    def process(cls, payout_id: uuid.UUID, admin: User | None = None) -> ServiceResult[PayoutRequest]:
        """
        Settle an APPROVED payout through the gateway.

        Returns:
            ServiceResult with the payout, COMPLETED if the gateway
            reported success, otherwise PROCESSING awaiting complete()

        Raises:
            PayoutSettlementError: Gateway call failed after PROCESSING
                was committed. The request stays PROCESSING.
        """
        logger = cls.get_logger()

        # Phase 1: commit PROCESSING
        try:
            with transaction.atomic():
                payout = cls._lock_payout(payout_id)
                apply_transition(payout, payout.start_processing, admin)
                payout.save()
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Payout processing rejected", logging.WARNING)

        log_context = {
            "payout_id": str(payout.id),
            "teacher_id": payout.teacher_id,
            "amount": str(payout.amount),
        }
        logger.info("Payout processing started", extra=log_context)

        # Phase 2: gateway call, outside any transaction
        beneficiary = {
            "method": payout.payment_method,
            "name": payout.teacher.full_name,
            "reference": str(payout.teacher_id),
            **payout.payment_details,
        }
        idempotency_key = IdempotencyKeyGenerator.generate("create_payout", payout.id)
        try:
            gateway_payout = cls.get_gateway_adapter().create_payout(
                beneficiary=beneficiary,
                amount=payout.amount,
                idempotency_key=idempotency_key,
            )
        except GatewayError as e:
            PayoutRequest.objects.filter(id=payout.id).update(
                failure_reason=f"[{e.error_code}] {e.message}",
                updated_at=timezone.now(),
            )
            logger.critical(
                "Payout gateway call failed after entering processing",
                extra={**log_context, "error_code": e.error_code, "error": e.message},
            )
            raise PayoutSettlementError(
                "Gateway payout failed; payout left in processing for manual reconciliation",
                details={"payout_id": str(payout.id), "gateway_error_code": e.error_code},
            ) from e

        # Phase 3: record the gateway outcome
        with transaction.atomic():
            payout = cls._lock_payout(payout_id)
            payout.gateway_status = gateway_payout.status
            if gateway_payout.is_settled:
                payout.complete(transaction_id=gateway_payout.transaction_id)
                payout.save()
                revenue_ledger.settle_entries_for_payout(payout)
            else:
                payout.transaction_id = gateway_payout.transaction_id
                payout.save()

        logger.info(
            "Payout gateway transfer recorded",
            extra={
                **log_context,
                "transaction_id": gateway_payout.transaction_id,
                "gateway_status": gateway_payout.status,
                "state": payout.state,
            },
        )
        return ServiceResult.success(payout)

    @classmethod
    def complete(cls, payout_id: uuid.UUID, transaction_id: str) -> ServiceResult[PayoutRequest]:
        """
        PROCESSING -> COMPLETED after the gateway confirms the transfer.

        Advances to PAID every RevenueEntry the payout fully drew down.
        Completing again with the same transaction_id is a no-op.
        """
        try:
            if not transaction_id:
                raise PaymentValidationError(
                    "transaction_id is required",
                    details={"field": "transaction_id"},
                )
            with transaction.atomic():
                payout = cls._lock_payout(payout_id)
                if (
                    payout.state == PayoutRequestState.COMPLETED
                    and payout.transaction_id == transaction_id
                ):
                    return ServiceResult.success(payout)
                apply_transition(payout, payout.complete, transaction_id)
                payout.save()
                settled = revenue_ledger.settle_entries_for_payout(payout)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Payout completion rejected", logging.WARNING)

        cls.get_logger().info(
            "Payout completed",
            extra={
                "payout_id": str(payout.id),
                "transaction_id": transaction_id,
                "entries_paid": len(settled),
            },
        )
        return ServiceResult.success(payout)

    @classmethod
    def check_status(cls, payout_id: uuid.UUID) -> ServiceResult[PayoutRequest]:
        """
        Poll the gateway for a PROCESSING payout's transfer.

        A transfer the gateway reports as settled completes the payout.
        Payouts without a gateway transfer, or no longer PROCESSING, are
        returned unchanged without a gateway call.

        Raises:
            GatewayError: Status could not be fetched
        """
        result = cls.get_payout(payout_id)
        if not result.success:
            return result
        payout = result.data
        if payout.state != PayoutRequestState.PROCESSING or not payout.transaction_id:
            return ServiceResult.success(payout)

        gateway_payout = cls.get_gateway_adapter().get_payout_status(payout.transaction_id)

        with transaction.atomic():
            payout = cls._lock_payout(payout_id)
            payout.gateway_status = gateway_payout.status
            completed = (
                gateway_payout.is_settled and payout.state == PayoutRequestState.PROCESSING
            )
            if completed:
                payout.complete(transaction_id=payout.transaction_id)
            payout.save()
            if completed:
                revenue_ledger.settle_entries_for_payout(payout)

        cls.get_logger().info(
            "Payout status checked",
            extra={
                "payout_id": str(payout.id),
                "transaction_id": payout.transaction_id,
                "gateway_status": gateway_payout.status,
                "state": payout.state,
            },
        )
        return ServiceResult.success(payout)

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def get_available_balance(cls, teacher: User) -> ServiceResult[BalanceSummary]:
        """Return the teacher's earnings position for the API."""
        balance = revenue_ledger.ensure_balance(teacher.pk)
        pending_entries = RevenueEntry.objects.filter(
            teacher_id=teacher.pk,
            status=RevenueEntryStatus.PENDING,
        )
        pending = _sum(pending_entries, "teacher_share") - _sum(pending_entries, "refunded_share")
        withdrawable = min(cls._withdrawable(teacher.pk), balance.available_for_payout)
        return ServiceResult.success(
            BalanceSummary(
                total_earnings=balance.total_earnings,
                available_for_payout=balance.available_for_payout,
                withdrawable=max(withdrawable, ZERO),
                pending_clearance=pending,
                minimum_payout=cls.get_policy().minimum_payout_amount,
            )
        )

    @classmethod
    def get_payout(cls, payout_id: uuid.UUID) -> ServiceResult[PayoutRequest]:
        try:
            return ServiceResult.success(PayoutRequest.objects.get(id=payout_id))
        except PayoutRequest.DoesNotExist:
            return ServiceResult.failure(
                "Payout request not found",
                error_code=PaymentNotFoundError.default_error_code,
                details={"payout_id": str(payout_id)},
            )

    @staticmethod
    def _lock_payout(payout_id: uuid.UUID) -> PayoutRequest:
        try:
            return PayoutRequest.objects.select_for_update().get(id=payout_id)
        except PayoutRequest.DoesNotExist:
            raise PaymentNotFoundError(
                "Payout request not found",
                details={"payout_id": str(payout_id)},
            )
