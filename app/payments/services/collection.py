"""
Side effects of collecting money from a student.

A collected payment, whether a one-off PaymentOrder or an installment,
has the same three effects, applied exactly once and inside the
transaction that moved the payment to PAID:

1. One PENDING RevenueEntry (keyed by the order or installment) through
   revenue_ledger.record_for_order / record_for_installment
2. An idempotent enrollment through PAYMENTS_ENROLLMENT_BACKEND
3. An F() increment of the teacher's earnings counters

What a batch costs, who teaches it and its acquisition source come
from PAYMENTS_CATALOG_BACKEND through resolve_offering(), never from
the client.

Installments are settled by settle_installment(), which is shared by
the offline record-payment path and by gateway orders that collect an
installment.

Usage:
    from payments.services.collection import apply_transition, collect_order

    with transaction.atomic():
        apply_transition(order, order.mark_paid, gateway_payment_id="pay_1")
        order.save()
        collect_order(order)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from django_fsm import TransitionNotAllowed

from payments.commission import split_at_rate, to_money
from payments.exceptions import (
    AlreadyEnrolledError,
    BatchNotAvailableError,
    EnrollmentFailedError,
    InstallmentAlreadyPaidError,
    InstallmentNotFoundError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from payments.ledger import revenue_ledger
from payments.models import Installment, InstallmentPlan, PaymentOrder
from payments.state_machines import InstallmentPlanStatus, InstallmentStatus, PaymentOrderState

if TYPE_CHECKING:
    import uuid
    from collections.abc import Callable

    from authentication.models import User
    from payments.ledger.models import RevenueEntry

logger = logging.getLogger(__name__)

DEFAULT_ENROLLMENT_BACKEND = "enrollments.services.EnrollmentService"
DEFAULT_CATALOG_BACKEND = "enrollments.services.BatchCatalogService"


def apply_transition(instance, transition: Callable, *args, **kwargs) -> None:
    """
    Run a django-fsm transition, translating refusal to a domain error.

    Raises:
        InvalidStateTransitionError: Transition not allowed from the
            current state or its conditions failed
    """
    state_field = "state" if hasattr(instance, "state") else "status"
    current = getattr(instance, state_field)
    try:
        transition(*args, **kwargs)
    except TransitionNotAllowed:
        raise InvalidStateTransitionError(
            f"Cannot {transition.__name__} {instance.__class__.__name__} in '{current}' state",
            details={
                "current_state": current,
                "transition": transition.__name__,
                "id": str(instance.pk),
            },
        )


def get_enrollment_backend():
    """Resolve the enrollment collaborator from settings."""
    path = getattr(settings, "PAYMENTS_ENROLLMENT_BACKEND", DEFAULT_ENROLLMENT_BACKEND)
    return import_string(path)


def get_catalog_backend():
    """Resolve the batch pricing collaborator from settings."""
    path = getattr(settings, "PAYMENTS_CATALOG_BACKEND", DEFAULT_CATALOG_BACKEND)
    return import_string(path)


def resolve_offering(batch_id: str, student: User):
    """
    Server-side price, teacher and source for a batch the student may buy.

    Raises:
        BatchNotAvailableError: Batch unknown (BATCH_NOT_FOUND) or closed
        AlreadyEnrolledError: Student already has access to the batch
    """
    result = get_catalog_backend().get_offering(batch_id)
    if not result.success:
        raise BatchNotAvailableError(
            result.error or f"Batch '{batch_id}' is not in the catalogue",
            error_code=result.error_code or "BATCH_NOT_FOUND",
            details={"batch_id": batch_id},
        )
    offering = result.data
    if not offering.is_active:
        raise BatchNotAvailableError(
            f"Batch '{batch_id}' is closed for purchase",
            details={"batch_id": batch_id},
        )
    if get_enrollment_backend().is_enrolled(student, batch_id):
        raise AlreadyEnrolledError(
            f"Already enrolled in batch '{batch_id}'",
            details={"batch_id": batch_id, "student_id": student.pk},
        )
    return offering


def collect_order(order: PaymentOrder) -> tuple[RevenueEntry, bool]:
    """
    Apply the side effects of a paid one-off order.

    Must run inside the transaction that marked the order PAID.

    Returns:
        Tuple of (entry, created)
    """
    entry, created = revenue_ledger.record_for_order(order)
    _apply_collection(
        entry,
        created,
        student=order.payer,
        batch_id=order.batch_id,
        course_id=order.course_id,
        payment_order_id=order.id,
    )
    return entry, created


def _apply_collection(
    entry: RevenueEntry,
    created: bool,
    student: User,
    batch_id: str,
    course_id: str = "",
    payment_order_id: uuid.UUID | None = None,
) -> None:
    """
    Enroll the student and credit the teacher for a newly recorded entry.

    The revenue entry is insert-or-detect, so a replay finds the existing
    entry and neither enrolls nor credits again.

    Raises:
        EnrollmentFailedError: Enrollment backend returned a failure
    """
    if not created:
        logger.info(
            "Collection already recorded",
            extra={"idempotency_key": entry.idempotency_key},
        )
        return

    result = get_enrollment_backend().enroll(
        student,
        batch_id=batch_id,
        course_id=course_id,
        payment_order_id=payment_order_id,
    )
    if not result.success:
        logger.error(
            "Enrollment failed for collected payment",
            extra={
                "idempotency_key": entry.idempotency_key,
                "student_id": student.pk,
                "batch_id": batch_id,
                "error": result.error,
            },
        )
        raise EnrollmentFailedError(
            result.error or "Enrollment failed",
            details={"batch_id": batch_id, "student_id": student.pk},
        )

    revenue_ledger.credit_teacher(entry.teacher_id, entry.teacher_share)

    logger.info(
        "Collection recorded",
        extra={
            "revenue_entry_id": str(entry.id),
            "teacher_id": entry.teacher_id,
            "teacher_share": str(entry.teacher_share),
            "batch_id": batch_id,
        },
    )


def close_open_installment_orders(
    installment_ids,
    reason: str,
    exclude_order_id: uuid.UUID | None = None,
) -> int:
    """
    Cancel CREATED gateway orders that can no longer settle their installment.

    Called once an installment is settled another way or its plan is
    cancelled. Returns the number of orders cancelled.
    """
    orders = PaymentOrder.objects.select_for_update().filter(
        installment_id__in=installment_ids,
        state=PaymentOrderState.CREATED,
    )
    if exclude_order_id is not None:
        orders = orders.exclude(id=exclude_order_id)

    closed = 0
    for order in orders.order_by("id"):
        order.cancel(reason=reason)
        order.save()
        closed += 1

    if closed:
        logger.info(
            "Open installment orders closed",
            extra={"count": closed, "reason": reason},
        )
    return closed


def settle_installment(
    plan_id: uuid.UUID,
    number: int,
    amount=None,
    transaction_id: str = "",
    payment_method: str = "",
    payment_order_id: uuid.UUID | None = None,
) -> Installment:
    """
    Mark one installment PAID and apply the collection side effects.

    Locks the plan row first so concurrent payments of the same plan
    recompute its summary one at a time. An OVERDUE installment may
    still be paid; it keeps its overdue_at and stays counted as missed.
    Other CREATED gateway orders for the installment are cancelled.

    Args:
        plan_id: Plan the installment belongs to
        number: 1-based installment number
        amount: Collected amount (defaults to amount plus late fee)
        transaction_id: Gateway or offline payment reference
        payment_method: Instrument used
        payment_order_id: Gateway order that collected it, if any

    Raises:
        PaymentNotFoundError: Unknown plan
        InvalidStateTransitionError: Plan was cancelled
        InstallmentNotFoundError: No installment with that number
        InstallmentAlreadyPaidError: Installment already settled
        PaymentValidationError: Amount below what is due
    """
    try:
        plan = InstallmentPlan.objects.select_for_update().get(id=plan_id)
    except InstallmentPlan.DoesNotExist:
        raise PaymentNotFoundError(
            "Installment plan not found",
            details={"plan_id": str(plan_id)},
        )

    if plan.status == InstallmentPlanStatus.CANCELLED:
        raise InvalidStateTransitionError(
            "Cannot pay an installment of a cancelled plan",
            details={"plan_id": str(plan.id), "current_state": plan.status},
        )

    try:
        installment = plan.installments.select_for_update().get(number=number)
    except Installment.DoesNotExist:
        raise InstallmentNotFoundError(
            f"Plan has no installment number {number}",
            details={"plan_id": str(plan.id), "number": number},
        )

    if installment.status == InstallmentStatus.PAID:
        raise InstallmentAlreadyPaidError(
            f"Installment {number} is already paid",
            details={"plan_id": str(plan.id), "number": number},
        )

    paid_amount = installment.amount_due if amount is None else to_money(amount)
    if paid_amount < installment.amount_due:
        raise PaymentValidationError(
            "Amount does not cover the installment",
            error_code="INSUFFICIENT_AMOUNT",
            details={"amount": str(paid_amount), "amount_due": str(installment.amount_due)},
        )

    installment.status = InstallmentStatus.PAID
    installment.paid_at = timezone.now()
    installment.paid_amount = paid_amount
    installment.transaction_id = transaction_id
    installment.payment_method = payment_method
    installment.save(
        update_fields=[
            "status",
            "paid_at",
            "paid_amount",
            "transaction_id",
            "payment_method",
            "updated_at",
        ]
    )

    plan.refresh_summary()
    plan.save()

    split = split_at_rate(paid_amount, plan.commission_rate)
    entry, created = revenue_ledger.record_for_installment(installment, split, payment_order_id)
    _apply_collection(
        entry,
        created,
        student=plan.student,
        batch_id=plan.batch_id,
        course_id=plan.course_id,
        payment_order_id=payment_order_id,
    )

    close_open_installment_orders(
        [installment.id],
        reason=f"Installment {number} settled by {transaction_id or 'another payment'}",
        exclude_order_id=payment_order_id,
    )

    logger.info(
        "Installment settled",
        extra={
            "plan_id": str(plan.id),
            "number": number,
            "paid_amount": str(paid_amount),
            "plan_status": plan.status,
            "was_overdue": installment.overdue_at is not None,
        },
    )
    return installment
