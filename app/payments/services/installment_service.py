"""
Installment plan engine.

Splits a purchase into N equal EMI installments, settles them one at a
time and sweeps for overdue installments.

EMI:
    r = annual_rate_pct / 100 / 12
    r == 0  -> principal / n
    r > 0   -> principal * r * (1 + r)^n / ((1 + r)^n - 1)
    Rounded half-up to 2 decimal places.

Schedule:
    due[i] = start + i weeks / 2i weeks / i calendar months (i = 0..n-1)
    Monthly spacing uses dateutil.relativedelta, so Jan 31 + 1 month is
    the last day of February.

Usage:
    from payments.services import InstallmentService

    result = InstallmentService.create_plan_for_batch(
        student=student,
        batch_id="batch-42",
        number_of_installments=12,
    )
    plan = result.data

    InstallmentService.mark_installment_paid(plan.id, 1, transaction_id="cash-001")

    # Celery beat
    InstallmentService.sweep_overdue()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from dateutil.relativedelta import relativedelta
from django.db import transaction
from django.utils import timezone

from core.exceptions import PermissionDeniedError
from core.services import BaseService, ServiceResult

from payments.commission import CENT, to_money
from payments.exceptions import (
    BUSINESS_ERRORS,
    InstallmentAlreadyPaidError,
    InstallmentNotFoundError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from payments.models import Installment, InstallmentPlan, PaymentOrder
from payments.policy import PaymentPolicy
from payments.services.collection import (
    close_open_installment_orders,
    resolve_offering,
    settle_installment,
)
from payments.services.payment_service import PaymentService
from payments.state_machines import (
    InstallmentFrequency,
    InstallmentPlanStatus,
    InstallmentStatus,
    PaymentOrderState,
    PaymentSource,
)

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from authentication.models import User


MIN_INSTALLMENTS = 2
MAX_INSTALLMENTS = 24


@dataclass(frozen=True)
class ScheduledInstallment:
    """One row of a generated schedule, before it is persisted."""

    number: int
    due_date: datetime
    amount: Decimal
    status: str = InstallmentStatus.PENDING


def calculate_emi(principal, annual_rate_pct, n: int) -> Decimal:
    """
    Fixed installment amount for a reducing-balance loan.

    Raises:
        PaymentValidationError: principal <= 0, negative rate or n < 1
    """
    principal = Decimal(str(principal))
    annual_rate_pct = Decimal(str(annual_rate_pct))
    if principal <= 0:
        raise PaymentValidationError(
            "Principal must be positive",
            error_code="INVALID_AMOUNT",
            details={"principal": str(principal)},
        )
    if n < 1:
        raise PaymentValidationError(
            "Number of installments must be at least 1",
            details={"number_of_installments": n},
        )
    if annual_rate_pct < 0:
        raise PaymentValidationError(
            "Interest rate cannot be negative",
            details={"interest_rate": str(annual_rate_pct)},
        )

    r = annual_rate_pct / Decimal("100") / Decimal("12")
    if r == 0:
        emi = principal / n
    else:
        growth = (1 + r) ** n
        emi = principal * r * growth / (growth - 1)
    return emi.quantize(CENT, rounding=ROUND_HALF_UP)


def _offset(frequency: str, i: int):
    if frequency == InstallmentFrequency.WEEKLY:
        return timedelta(weeks=i)
    if frequency == InstallmentFrequency.BIWEEKLY:
        return timedelta(weeks=2 * i)
    return relativedelta(months=i)


def generate_schedule(
    start_date: datetime,
    n: int,
    frequency: str,
    emi_amount: Decimal,
) -> list[ScheduledInstallment]:
    """Build n PENDING installments spaced by frequency from start_date."""
    if frequency not in InstallmentFrequency.values:
        raise PaymentValidationError(
            f"Unknown installment frequency '{frequency}'",
            details={"frequency": frequency, "allowed": list(InstallmentFrequency.values)},
        )

    return [
        ScheduledInstallment(
            number=i + 1,
            due_date=start_date + _offset(frequency, i),
            amount=emi_amount,
        )
        for i in range(n)
    ]


class InstallmentService(BaseService):
    """
    Installment plan operations.

    All methods are class methods. Expected failures come back as
    ServiceResult failures.
    """

    _policy: PaymentPolicy | None = None

    @classmethod
    def get_policy(cls) -> PaymentPolicy:
        return cls._policy or PaymentPolicy.from_settings()

    @classmethod
    def set_policy(cls, policy: PaymentPolicy | None) -> None:
        cls._policy = policy

    calculate_emi = staticmethod(calculate_emi)
    generate_schedule = staticmethod(generate_schedule)

    # =========================================================================
    # Plan Lifecycle
    # =========================================================================

    @classmethod
    def create_plan(
        cls,
        student: User,
        teacher: User,
        batch_id: str,
        total_amount,
        number_of_installments: int,
        frequency: str = InstallmentFrequency.MONTHLY,
        down_payment=Decimal("0.00"),
        interest_rate=Decimal("0.00"),
        start_date: datetime | None = None,
        source: str = PaymentSource.PLATFORM,
        course_id: str = "",
        currency: str | None = None,
        grace_period_days: int | None = None,
        late_fee=None,
        auto_debit: bool = False,
        payment_method_id: str = "",
    ) -> ServiceResult[InstallmentPlan]:
        """
        Create a plan and all of its installment rows in one transaction.

        The commission rate, grace period and late fee in force now are
        stored on the plan.
        """
        policy = cls.get_policy()
        try:
            total = to_money(total_amount)
            down = to_money(down_payment or 0)
            rate = Decimal(str(interest_rate or 0))

            if not MIN_INSTALLMENTS <= number_of_installments <= MAX_INSTALLMENTS:
                raise PaymentValidationError(
                    f"Number of installments must be between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS}",
                    error_code="INVALID_INSTALLMENT_COUNT",
                    details={"number_of_installments": number_of_installments},
                )
            if total <= 0 or down < 0 or down >= total:
                raise PaymentValidationError(
                    "Down payment must be non-negative and below the total amount",
                    error_code="INVALID_AMOUNT",
                    details={"total_amount": str(total), "down_payment": str(down)},
                )

            remaining = total - down
            emi = calculate_emi(remaining, rate, number_of_installments)
            start = start_date or timezone.now()
            schedule = generate_schedule(start, number_of_installments, frequency, emi)
            commission_rate = policy.commission_rate_for(source)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Installment plan rejected", logging.WARNING)

        with transaction.atomic():
            plan = InstallmentPlan.objects.create(
                student=student,
                teacher=teacher,
                batch_id=batch_id,
                course_id=course_id,
                total_amount=total,
                down_payment=down,
                remaining_amount=remaining,
                number_of_installments=number_of_installments,
                installment_amount=emi,
                frequency=frequency,
                interest_rate=rate,
                currency=currency or policy.currency,
                source=source,
                commission_rate=commission_rate,
                start_date=schedule[0].due_date,
                end_date=schedule[-1].due_date,
                grace_period_days=(
                    policy.grace_period_days if grace_period_days is None else grace_period_days
                ),
                late_fee=policy.late_fee if late_fee is None else to_money(late_fee),
                auto_debit=auto_debit,
                payment_method_id=payment_method_id,
            )
            Installment.objects.bulk_create(
                [
                    Installment(
                        plan=plan,
                        number=row.number,
                        amount=row.amount,
                        due_date=row.due_date,
                        status=row.status,
                    )
                    for row in schedule
                ]
            )
            plan.refresh_summary()
            plan.save()

        cls.get_logger().info(
            "Installment plan created",
            extra={
                "plan_id": str(plan.id),
                "student_id": student.pk,
                "teacher_id": teacher.pk,
                "remaining_amount": str(remaining),
                "installment_amount": str(emi),
                "number_of_installments": number_of_installments,
                "frequency": frequency,
            },
        )
        return ServiceResult.success(plan)

    @classmethod
    def create_plan_for_batch(
        cls,
        student: User,
        batch_id: str,
        number_of_installments: int,
        frequency: str = InstallmentFrequency.MONTHLY,
        down_payment=Decimal("0.00"),
        start_date: datetime | None = None,
        auto_debit: bool = False,
        payment_method_id: str = "",
    ) -> ServiceResult[InstallmentPlan]:
        """
        Installment plan for a catalogue batch.

        The total, teacher and source come from the catalogue backend.
        Interest, grace period and late fee come from the payment policy.
        """
        try:
            offering = resolve_offering(batch_id, student)
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Installment plan rejected", logging.WARNING)

        policy = cls.get_policy()
        return cls.create_plan(
            student=student,
            teacher=offering.teacher,
            batch_id=offering.batch_id,
            course_id=offering.course_id,
            total_amount=offering.price,
            number_of_installments=number_of_installments,
            frequency=frequency,
            down_payment=down_payment,
            interest_rate=policy.installment_interest_rate,
            start_date=start_date,
            source=offering.source,
            currency=offering.currency,
            grace_period_days=policy.grace_period_days,
            late_fee=policy.late_fee,
            auto_debit=auto_debit,
            payment_method_id=payment_method_id,
        )

    @classmethod
    def cancel_plan(cls, plan_id: uuid.UUID) -> ServiceResult[InstallmentPlan]:
        """
        Cancel an ACTIVE plan. Paid installments are not reversed.

        CREATED gateway orders for its installments are cancelled too.
        """
        try:
            with transaction.atomic():
                plan = cls._lock_plan(plan_id)
                if plan.status != InstallmentPlanStatus.ACTIVE:
                    raise InvalidStateTransitionError(
                        f"Cannot cancel plan in '{plan.status}' state",
                        details={"current_state": plan.status, "target_state": "cancelled"},
                    )
                plan.status = InstallmentPlanStatus.CANCELLED
                plan.cancelled_at = timezone.now()
                plan.save(update_fields=["status", "cancelled_at", "updated_at"])
                close_open_installment_orders(
                    plan.installments.values_list("id", flat=True),
                    reason="Installment plan cancelled",
                )
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Plan cancellation rejected", logging.WARNING)

        cls.get_logger().info("Installment plan cancelled", extra={"plan_id": str(plan.id)})
        return ServiceResult.success(plan)

    # =========================================================================
    # Payments
    # =========================================================================

    @classmethod
    def mark_installment_paid(
        cls,
        plan_id: uuid.UUID,
        number: int,
        amount=None,
        transaction_id: str = "",
        payment_method: str = "",
    ) -> ServiceResult[Installment]:
        """
        Record a payment collected outside the gateway order flow.

        Applies the same revenue, enrollment and balance side effects as
        a paid PaymentOrder.
        """
        try:
            with transaction.atomic():
                installment = settle_installment(
                    plan_id,
                    number,
                    amount=amount,
                    transaction_id=transaction_id,
                    payment_method=payment_method,
                )
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Installment payment rejected", logging.WARNING)
        return ServiceResult.success(installment)

    @classmethod
    def create_installment_order(
        cls,
        plan_id: uuid.UUID,
        number: int,
        payer: User,
    ) -> ServiceResult[PaymentOrder]:
        """
        Open a gateway order collecting one installment (amount plus late fee).

        An open CREATED order for the same installment is reused.

        Raises:
            GatewayError: Gateway order could not be opened
        """
        try:
            plan = cls._get_plan(plan_id)
            if payer.pk != plan.student_id:
                raise PermissionDeniedError(
                    "Only the plan's student can pay its installments",
                    details={"plan_id": str(plan.id)},
                )
            if plan.status in (InstallmentPlanStatus.CANCELLED, InstallmentPlanStatus.COMPLETED):
                raise InvalidStateTransitionError(
                    f"Cannot pay an installment of a {plan.status} plan",
                    details={"plan_id": str(plan.id), "current_state": plan.status},
                )
            installment = cls._get_installment(plan, number)
            if installment.status == InstallmentStatus.PAID:
                raise InstallmentAlreadyPaidError(
                    f"Installment {number} is already paid",
                    details={"plan_id": str(plan.id), "number": number},
                )
        except BUSINESS_ERRORS as e:
            return cls.handle_exception(e, "Installment order rejected", logging.WARNING)

        open_order = (
            installment.payment_orders.filter(
                state=PaymentOrderState.CREATED,
                amount=installment.amount_due,
                gateway_order_id__isnull=False,
            )
            .order_by("-created_at")
            .first()
        )
        if open_order:
            return ServiceResult.success(open_order)

        return PaymentService.create_order(
            payer=plan.student,
            teacher=plan.teacher,
            batch_id=plan.batch_id,
            course_id=plan.course_id,
            original_amount=installment.amount_due,
            source=plan.source,
            currency=plan.currency,
            installment=installment,
            commission_rate=plan.commission_rate,
            metadata={"plan_id": str(plan.id), "installment_number": number},
        )

    # =========================================================================
    # Delinquency
    # =========================================================================

    @classmethod
    def check_overdue(cls, plan: InstallmentPlan, now: datetime | None = None) -> int:
        """
        Mark PENDING installments past due date plus grace period as OVERDUE.

        The UPDATE is conditional on status='pending', so an installment
        paid between read and write is skipped. Running twice with the
        same now changes nothing the second time.

        Returns:
            Number of installments that became OVERDUE
        """
        now = now or timezone.now()
        if plan.status in (InstallmentPlanStatus.CANCELLED, InstallmentPlanStatus.COMPLETED):
            return 0

        cutoff = now - timedelta(days=plan.grace_period_days)
        with transaction.atomic():
            changed = Installment.objects.filter(
                plan_id=plan.id,
                status=InstallmentStatus.PENDING,
                due_date__lt=cutoff,
            ).update(
                status=InstallmentStatus.OVERDUE,
                overdue_at=now,
                late_fee=plan.late_fee,
                updated_at=now,
            )
            if changed:
                locked = cls._lock_plan(plan.id)
                locked.refresh_summary()
                locked.save()

        if changed:
            cls.get_logger().info(
                "Installments marked overdue",
                extra={
                    "plan_id": str(plan.id),
                    "count": changed,
                    "plan_status": locked.status,
                    "missed_installments": locked.missed_installments,
                },
            )
        return changed

    @classmethod
    def sweep_overdue(cls, now: datetime | None = None) -> dict[str, int]:
        """Run check_overdue for every ACTIVE or DEFAULTED plan."""
        now = now or timezone.now()
        plans = InstallmentPlan.objects.filter(
            status__in=[InstallmentPlanStatus.ACTIVE, InstallmentPlanStatus.DEFAULTED],
            installments__status=InstallmentStatus.PENDING,
            installments__due_date__lt=now,
        ).distinct()

        plans_checked = 0
        marked = 0
        for plan in plans.iterator():
            plans_checked += 1
            marked += cls.check_overdue(plan, now=now)

        return {"plans_checked": plans_checked, "installments_marked": marked}

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def get_plan(cls, plan_id: uuid.UUID) -> ServiceResult[InstallmentPlan]:
        try:
            return ServiceResult.success(cls._get_plan(plan_id))
        except PaymentNotFoundError as e:
            return ServiceResult.from_exception(e)

    @classmethod
    def get_installment(cls, plan_id: uuid.UUID, number: int) -> ServiceResult[Installment]:
        try:
            return ServiceResult.success(cls._get_installment(cls._get_plan(plan_id), number))
        except (PaymentNotFoundError, InstallmentNotFoundError) as e:
            return ServiceResult.from_exception(e)

    @staticmethod
    def _get_plan(plan_id: uuid.UUID) -> InstallmentPlan:
        try:
            return InstallmentPlan.objects.get(id=plan_id)
        except InstallmentPlan.DoesNotExist:
            raise PaymentNotFoundError(
                "Installment plan not found",
                details={"plan_id": str(plan_id)},
            )

    @staticmethod
    def _lock_plan(plan_id: uuid.UUID) -> InstallmentPlan:
        try:
            return InstallmentPlan.objects.select_for_update().get(id=plan_id)
        except InstallmentPlan.DoesNotExist:
            raise PaymentNotFoundError(
                "Installment plan not found",
                details={"plan_id": str(plan_id)},
            )

    @staticmethod
    def _get_installment(plan: InstallmentPlan, number: int) -> Installment:
        try:
            return plan.installments.get(number=number)
        except Installment.DoesNotExist:
            raise InstallmentNotFoundError(
                f"Plan has no installment number {number}",
                details={"plan_id": str(plan.id), "number": number},
            )
