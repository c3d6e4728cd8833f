"""
Revenue ledger service.

This module provides the RevenueLedgerService class which encapsulates
all writes to RevenueEntry and TeacherBalance.

Key features:
- Idempotency via unique keys (recording the same payment twice returns
  the existing entry)
- Forward-only status changes via conditional UPDATEs
- Atomic F() increments for teacher balance counters

Usage:
    from payments.ledger import revenue_ledger, RecordRevenueParams

    entry, created = revenue_ledger.record(RecordRevenueParams.for_order(order))
    if created:
        revenue_ledger.credit_teacher(order.teacher_id, order.teacher_earnings)

    # Periodic clearance (celery)
    revenue_ledger.clear_pending(now=timezone.now(), clearance_days=7)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from payments.commission import to_money
from payments.ledger.models import RevenueEntry, TeacherBalance
from payments.ledger.types import RecordRevenueParams
from payments.state_machines import PayoutRequestState, RevenueEntryStatus

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from payments.commission import SplitResult
    from payments.models import Installment, PaymentOrder, PayoutRequest

logger = logging.getLogger(__name__)


class RevenueLedgerService:
    """
    Service class for revenue ledger operations.

    No instance state is kept; use the module-level revenue_ledger.
    """

    # ==========================================================================
    # Revenue Entries
    # ==========================================================================

    @staticmethod
    def record(params: RecordRevenueParams) -> tuple[RevenueEntry, bool]:
        """
        Record a revenue entry, or return the one already recorded.

        Insert-or-detect on the unique idempotency_key: a concurrent
        insert of the same key loses inside its own savepoint and reads
        the winner's row.

        Args:
            params: Entry parameters including idempotency key

        Returns:
            Tuple of (entry, created)
        """
        existing = RevenueEntry.objects.filter(idempotency_key=params.idempotency_key).first()
        if existing:
            return existing, False

        try:
            with transaction.atomic():
                entry = RevenueEntry.objects.create(
                    idempotency_key=params.idempotency_key,
                    payment_order_id=params.payment_order_id,
                    installment_id=params.installment_id,
                    teacher_id=params.teacher_id,
                    amount=params.amount,
                    platform_share=params.platform_share,
                    teacher_share=params.teacher_share,
                    source=params.source,
                    commission_rate=params.commission_rate,
                    currency=params.currency,
                )
        except IntegrityError:
            return RevenueEntry.objects.get(idempotency_key=params.idempotency_key), False

        logger.info(
            "Revenue entry recorded",
            extra={
                "revenue_entry_id": str(entry.id),
                "idempotency_key": entry.idempotency_key,
                "teacher_id": entry.teacher_id,
                "amount": str(entry.amount),
                "teacher_share": str(entry.teacher_share),
            },
        )
        return entry, True

    @classmethod
    def record_for_order(cls, order: PaymentOrder) -> tuple[RevenueEntry, bool]:
        """Record the frozen split of a paid order (key "order:<id>")."""
        return cls.record(RecordRevenueParams.for_order(order))

    @classmethod
    def record_for_installment(
        cls,
        installment: Installment,
        split: SplitResult,
        payment_order_id: uuid.UUID | None = None,
    ) -> tuple[RevenueEntry, bool]:
        """Record a paid installment (key "installment:<id>")."""
        return cls.record(RecordRevenueParams.for_installment(installment, split, payment_order_id))

    @staticmethod
    def clear_pending(now: datetime | None = None, clearance_days: int = 7) -> int:
        """
        Promote PENDING entries older than the clearance window to PROCESSED.

        Args:
            now: Reference time (defaults to timezone.now())
            clearance_days: Minimum entry age in days

        Returns:
            Number of entries promoted
        """
        now = now or timezone.now()
        cutoff = now - timedelta(days=clearance_days)
        updated = RevenueEntry.objects.filter(
            status=RevenueEntryStatus.PENDING,
            created_at__lte=cutoff,
        ).update(
            status=RevenueEntryStatus.PROCESSED,
            processed_at=now,
            updated_at=now,
        )
        if updated:
            logger.info(
                "Pending revenue cleared",
                extra={"count": updated, "cutoff": cutoff.isoformat()},
            )
        return updated

    @staticmethod
    def mark_processed(entry_ids: list[uuid.UUID]) -> int:
        """
        Promote specific PENDING entries to PROCESSED (operator action).

        Each entry goes through its FSM transition under a row lock.
        Entries in any other status are left untouched.
        """
        with transaction.atomic():
            entries = list(
                RevenueEntry.objects.select_for_update()
                .filter(id__in=entry_ids, status=RevenueEntryStatus.PENDING)
                .order_by("id")
            )
            for entry in entries:
                entry.mark_processed()
                entry.save(update_fields=["status", "processed_at", "updated_at"])
        return len(entries)

    @staticmethod
    def record_refund(order: PaymentOrder, refund_amount: Decimal) -> Decimal:
        """
        Reverse the teacher's part of a refund on the order's entries.

        The teacher part is the refund times the entry's teacher/amount
        ratio, rounded half-up. Once the order is fully refunded the whole
        remaining teacher share is reversed. Must run inside the
        transaction that refunded the order.

        Returns:
            Teacher share reversed by this call (zero when the order has
            no revenue entry)
        """
        fully_refunded = order.refund_amount >= order.amount
        reversed_total = Decimal("0.00")
        entries = (
            RevenueEntry.objects.select_for_update()
            .filter(payment_order_id=order.id)
            .order_by("created_at", "id")
        )
        for entry in entries:
            remaining = entry.payable_share
            if remaining <= 0:
                continue
            if fully_refunded:
                part = remaining
            else:
                part = min(remaining, to_money(refund_amount * entry.teacher_share / entry.amount))
            RevenueEntry.objects.filter(id=entry.id).update(
                refunded_share=F("refunded_share") + part,
                updated_at=timezone.now(),
            )
            reversed_total += part

        if reversed_total:
            logger.info(
                "Refund reversed teacher share",
                extra={
                    "payment_order_id": str(order.id),
                    "refund_amount": str(refund_amount),
                    "teacher_share_reversed": str(reversed_total),
                },
            )
        return reversed_total

    @staticmethod
    def settle_entries_for_payout(payout: PayoutRequest) -> list[RevenueEntry]:
        """
        Advance to PAID every entry the completed payout fully drew down.

        An entry is PAID once unreleased allocations from COMPLETED
        payouts cover its teacher_share net of refunds. Entries the payout does not
        draw against are never touched.

        Must run inside the transaction that completed the payout.

        Returns:
            Entries advanced to PAID
        """
        entry_ids = payout.allocations.filter(released=False).values_list(
            "revenue_entry_id", flat=True
        )
        settled: list[RevenueEntry] = []
        entries = (
            RevenueEntry.objects.select_for_update()
            .filter(id__in=list(entry_ids), status=RevenueEntryStatus.PROCESSED)
            .order_by("id")
        )
        for entry in entries:
            drawn = (
                entry.payout_allocations.filter(
                    released=False,
                    payout__state=PayoutRequestState.COMPLETED,
                ).aggregate(total=Sum("amount"))["total"]
                or Decimal("0.00")
            )
            if drawn >= entry.payable_share:
                entry.mark_paid()
                entry.save(update_fields=["status", "paid_at", "updated_at"])
                settled.append(entry)

        if settled:
            logger.info(
                "Revenue entries settled by payout",
                extra={
                    "payout_id": str(payout.id),
                    "revenue_entry_ids": [str(e.id) for e in settled],
                },
            )
        return settled

    # ==========================================================================
    # Teacher Balance Counters
    # ==========================================================================

    @staticmethod
    def ensure_balance(teacher_id: int) -> TeacherBalance:
        """Return the teacher's balance row, creating it at zero if missing."""
        balance, _ = TeacherBalance.objects.get_or_create(teacher_id=teacher_id)
        return balance

    @staticmethod
    def lock_balance(teacher_id: int) -> TeacherBalance:
        """
        Lock and return the teacher's balance row.

        Serializes payout requests of one teacher. Must be called inside
        a transaction.
        """
        RevenueLedgerService.ensure_balance(teacher_id)
        return TeacherBalance.objects.select_for_update().get(teacher_id=teacher_id)

    @staticmethod
    def credit_teacher(teacher_id: int, amount: Decimal) -> None:
        """Atomically add amount to total_earnings and available_for_payout."""
        RevenueLedgerService.ensure_balance(teacher_id)
        TeacherBalance.objects.filter(teacher_id=teacher_id).update(
            total_earnings=F("total_earnings") + amount,
            available_for_payout=F("available_for_payout") + amount,
            updated_at=timezone.now(),
        )

    @staticmethod
    def adjust_available(teacher_id: int, delta: Decimal) -> Decimal:
        """
        Atomically add delta (may be negative) to available_for_payout.

        Returns:
            The balance after the update. It is not clamped at zero.
        """
        RevenueLedgerService.ensure_balance(teacher_id)
        TeacherBalance.objects.filter(teacher_id=teacher_id).update(
            available_for_payout=F("available_for_payout") + delta,
            updated_at=timezone.now(),
        )
        return TeacherBalance.objects.values_list("available_for_payout", flat=True).get(
            teacher_id=teacher_id
        )


revenue_ledger = RevenueLedgerService()
