"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /api/schema/                   - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        login/                     - Email/password login (JWT pair)
        token/refresh/             - Refresh access token
        me/                        - Current user
    /api/v1/payments/              - Payment endpoints
        orders/                    - Create order
        orders/{id}/               - Order detail
        orders/{id}/verify/        - Verify client-side payment
        orders/{id}/refund/        - Refund (admin)
        orders/{id}/retry/         - Retry failed payment
        installment-plans/         - Create installment plan
        installment-plans/{id}/    - Plan detail
        installment-plans/{id}/cancel/         - Cancel plan
        installment-plans/{id}/check-overdue/  - Mark overdue installments (admin)
        installment-plans/{id}/installments/{n}/                 - Installment detail
        installment-plans/{id}/installments/{n}/pay/             - Pay installment
        installment-plans/{id}/installments/{n}/record-payment/  - Offline payment (admin)
        payouts/                   - List/request payouts
        payouts/balance/           - Teacher balance
        payouts/{id}/approve|reject|process|complete|cancel/   - Payout lifecycle
        webhooks/gateway/          - Gateway webhook endpoint (POST)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (JWT)
    path("auth/", include("authentication.urls")),
    # Payments, installments, payouts, webhooks
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Payments Admin"
admin.site.site_title = "Payments Admin Portal"
admin.site.index_title = "Payments, installments and payouts"
