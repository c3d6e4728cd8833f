"""
Ledger - Revenue split tracking for collected payments.

Every collected payment (one-off order or installment) produces exactly
one RevenueEntry holding the platform/teacher split. Entries clear from
PENDING to PROCESSED after the refund clearance window and become PAID
once completed payouts have drawn their whole teacher share.

Public API:
    Models:
        RevenueEntry - Split of one collected payment
        TeacherBalance - Running earnings counters per teacher

    Service:
        revenue_ledger - Singleton instance of RevenueLedgerService
        RevenueLedgerService - Class with all ledger operations

    Types:
        RecordRevenueParams - Parameters for recording entries

Usage:
    from payments.ledger import revenue_ledger, RecordRevenueParams

    entry, created = revenue_ledger.record(RecordRevenueParams.for_order(order))
"""

from .models import RevenueEntry, TeacherBalance
from .services import RevenueLedgerService, revenue_ledger
from .types import RecordRevenueParams

__all__ = [
    # Models
    "RevenueEntry",
    "TeacherBalance",
    # Service
    "revenue_ledger",
    "RevenueLedgerService",
    # Types
    "RecordRevenueParams",
]
