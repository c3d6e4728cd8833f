"""
State enums for payment models.

This module defines the state enums used by payment models with django-fsm,
plus the plain choice enums stored next to them. All are Django TextChoices
for database storage and admin integration.

State Machines Overview:

PaymentOrder States:
    created → paid → partial_refund → refunded
    created → paid → refunded
    created → failed/cancelled → created (retry, at most 3 times)

PayoutRequest States:
    requested → approved → processing → completed
    requested → rejected
    requested/approved → cancelled

RevenueEntry Status:
    pending → processed → paid (forward only)

InstallmentPlan Status:
    active → completed / defaulted / cancelled

Installment Status:
    pending → paid
    pending → overdue → paid
"""

from django.db import models


class PaymentOrderState(models.TextChoices):
    """
    States for the PaymentOrder lifecycle.

    Terminal states: REFUNDED (FAILED and CANCELLED become terminal once
    the retry limit is reached).

    State Flow:
        CREATED → PAID

    Failure Flow:
        CREATED → FAILED
        CREATED → CANCELLED (payer dropped out at the gateway)

    Recovery Flow:
        FAILED/CANCELLED → CREATED (retry)

    Refund Flow:
        PAID → REFUNDED / PARTIAL_REFUND
        PARTIAL_REFUND → PARTIAL_REFUND / REFUNDED
    """

    CREATED = "created", "Created"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    PARTIAL_REFUND = "partial_refund", "Partially Refunded"

    @classmethod
    def refundable_states(cls) -> list[str]:
        return [cls.PAID, cls.PARTIAL_REFUND]

    @classmethod
    def retryable_states(cls) -> list[str]:
        return [cls.FAILED, cls.CANCELLED]


class PayoutRequestState(models.TextChoices):
    """
    States for the PayoutRequest lifecycle.

    Terminal states: COMPLETED, REJECTED, CANCELLED

    State Flow:
        REQUESTED → APPROVED → PROCESSING → COMPLETED

    Admin Rejection:
        REQUESTED → REJECTED

    Cancellation:
        REQUESTED/APPROVED → CANCELLED

    Note:
        PROCESSING has no automatic exit other than COMPLETED. A gateway
        failure leaves the request in PROCESSING for an operator.
    """

    REQUESTED = "requested", "Requested"
    APPROVED = "approved", "Approved"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    REJECTED = "rejected", "Rejected"
    CANCELLED = "cancelled", "Cancelled"

    @classmethod
    def balance_holding_states(cls) -> list[str]:
        """States whose amount counts against the teacher's balance."""
        return [cls.REQUESTED, cls.APPROVED, cls.PROCESSING, cls.COMPLETED]


class RevenueEntryStatus(models.TextChoices):
    """
    Settlement status of a RevenueEntry.

    State Flow:
        PENDING → PROCESSED → PAID

    PENDING entries are inside the refund clearance window and cannot be
    withdrawn. PROCESSED entries are withdrawable. PAID entries have been
    fully drawn by completed payouts.
    """

    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    PAID = "paid", "Paid"

    @classmethod
    def withdrawable_statuses(cls) -> list[str]:
        return [cls.PROCESSED, cls.PAID]


class InstallmentPlanStatus(models.TextChoices):
    """
    Status of an InstallmentPlan, derived from its installments.

    COMPLETED: every installment paid
    DEFAULTED: three or more installments went overdue
    CANCELLED: closed by an operator (sticky)
    """

    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    DEFAULTED = "defaulted", "Defaulted"
    CANCELLED = "cancelled", "Cancelled"


class InstallmentStatus(models.TextChoices):
    """Status of a single scheduled installment."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"


class InstallmentFrequency(models.TextChoices):
    """Spacing between installment due dates."""

    WEEKLY = "weekly", "Weekly"
    BIWEEKLY = "biweekly", "Biweekly"
    MONTHLY = "monthly", "Monthly"


class PaymentSource(models.TextChoices):
    """Who acquired the buyer; selects the commission rate."""

    PLATFORM = "platform", "Platform"
    TEACHER = "teacher", "Teacher"


class PaymentMethod(models.TextChoices):
    """Instrument the payer used at the gateway."""

    CARD = "card", "Card"
    NETBANKING = "netbanking", "Net Banking"
    WALLET = "wallet", "Wallet"
    UPI = "upi", "UPI"
    EMI = "emi", "EMI"
    OTHER = "other", "Other"


class PayoutMethod(models.TextChoices):
    """Destination type for a teacher payout."""

    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    UPI = "upi", "UPI"


class GatewayTransactionStatus(models.TextChoices):
    """
    Outcome recorded for a gateway order by the webhook reconciler.

    RECEIVED is transient (the row is written and dispatched in the same
    transaction). PAID, FAILED and CANCELLED are terminal: later
    deliveries for the same gateway order are duplicates.
    """

    RECEIVED = "received", "Received"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"
    IGNORED = "ignored", "Ignored"

    @classmethod
    def terminal_statuses(cls) -> list[str]:
        return [cls.PAID, cls.FAILED, cls.CANCELLED]
