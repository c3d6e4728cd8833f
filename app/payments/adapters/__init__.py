"""
Payment adapters for external services.

All payment gateway API calls and gateway signature checks go through
GatewayAdapter to ensure consistent error handling, timeouts,
idempotency and observability.

Usage:
    from payments.adapters import GatewayAdapter, IdempotencyKeyGenerator

    result = GatewayAdapter.create_order(
        amount=order.amount,
        currency=order.currency,
        payer_ref=str(order.payer_id),
        idempotency_key=IdempotencyKeyGenerator.generate("create_order", order.id),
    )
"""

from payments.adapters.gateway_adapter import (
    GatewayAdapter,
    GatewayOrderResult,
    GatewayPayoutResult,
    IdempotencyKeyGenerator,
)

__all__ = [
    "GatewayAdapter",
    "GatewayOrderResult",
    "GatewayPayoutResult",
    "IdempotencyKeyGenerator",
]
