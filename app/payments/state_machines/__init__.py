"""
State machine enums for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    GatewayTransactionStatus,
    InstallmentFrequency,
    InstallmentPlanStatus,
    InstallmentStatus,
    PaymentMethod,
    PaymentOrderState,
    PaymentSource,
    PayoutMethod,
    PayoutRequestState,
    RevenueEntryStatus,
)

__all__ = [
    "GatewayTransactionStatus",
    "InstallmentFrequency",
    "InstallmentPlanStatus",
    "InstallmentStatus",
    "PaymentMethod",
    "PaymentOrderState",
    "PaymentSource",
    "PayoutMethod",
    "PayoutRequestState",
    "RevenueEntryStatus",
]
