"""
OpenAPI schema customizations for drf-spectacular.

This module provides hooks to customize the generated OpenAPI schema,
including summaries and tag groupings for better documentation
organization in ReDoc/Swagger UI.

Tag naming follows the pattern: [App Name] - [Group Name]
Examples:
- Auth (login, token refresh)
- Auth - User (current user)
- Payments - Orders
- Payments - Installments
- Payments - Payouts
- Payments - Webhooks
"""

# Natural language summaries for simplejwt and auth endpoints
# Maps operation_id to (summary, description)
AUTH_SUMMARIES = {
    "auth_login_create": (
        "Log in",
        "Authenticate with email and password to receive JWT tokens.",
    ),
    "auth_token_refresh_create": (
        "Refresh access token",
        "Get a new access token using a valid refresh token.",
    ),
    "auth_me_retrieve": (
        "Get current user",
        "Retrieve the currently authenticated user's details and role.",
    ),
}

TAG_DESCRIPTIONS = [
    {
        "name": "Auth",
        "description": "JWT login and token refresh.",
    },
    {
        "name": "Auth - User",
        "description": "Current user retrieval.",
    },
    {
        "name": "Payments - Orders",
        "description": "Payment orders: checkout, verification, retries and refunds.",
    },
    {
        "name": "Payments - Installments",
        "description": "Installment plans, scheduled installment payments and delinquency.",
    },
    {
        "name": "Payments - Payouts",
        "description": "Teacher balances and payout requests through approval and settlement.",
    },
    {
        "name": "Payments - Webhooks",
        "description": "Signed payment gateway callbacks.",
    },
]


def group_auth_endpoints(result, generator, request, public):
    """
    Postprocessing hook to group API endpoints by function.

    Auth groups:
        - Auth - User: current user endpoint
        - Auth: login and token refresh

    Payments groups are set via tags= in @extend_schema; this hook only
    attaches their descriptions.
    """
    paths = result.get("paths", {})

    for path, methods in paths.items():
        for method, operation in methods.items():
            if not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId", "")

            if operation_id in AUTH_SUMMARIES:
                summary, description = AUTH_SUMMARIES[operation_id]
                operation["summary"] = summary
                operation["description"] = description

            if operation_id.startswith("auth_me_"):
                operation["tags"] = ["Auth - User"]
            elif operation_id.startswith("auth_"):
                operation["tags"] = ["Auth"]

    result["tags"] = TAG_DESCRIPTIONS

    return result
