"""
URL configuration for the payments app.

Routes:
    - orders/...              Payment orders
    - earnings/...            Teacher earnings and collected orders
    - admin/...               Admin order list and payment statistics
    - installment-plans/...   Installment plans and installments
    - payouts/...             Teacher payouts
    - webhooks/gateway/       Gateway webhook endpoint (signature authenticated)

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import gateway_webhook

app_name = "payments"

urlpatterns = [
    # Orders
    path("orders/", views.OrderListCreateView.as_view(), name="order-list"),
    path("orders/<uuid:order_id>/", views.OrderDetailView.as_view(), name="order-detail"),
    path("orders/<uuid:order_id>/verify/", views.OrderVerifyView.as_view(), name="order-verify"),
    path("orders/<uuid:order_id>/refund/", views.OrderRefundView.as_view(), name="order-refund"),
    path("orders/<uuid:order_id>/retry/", views.OrderRetryView.as_view(), name="order-retry"),
    # Earnings & reports
    path("earnings/", views.TeacherEarningsView.as_view(), name="teacher-earnings"),
    path("earnings/orders/", views.TeacherOrderListView.as_view(), name="teacher-orders"),
    path("admin/orders/", views.AdminOrderListView.as_view(), name="admin-order-list"),
    path("admin/stats/", views.AdminPaymentStatsView.as_view(), name="admin-stats"),
    # Installment plans
    path(
        "installment-plans/",
        views.InstallmentPlanCreateView.as_view(),
        name="installment-plan-create",
    ),
    path(
        "installment-plans/<uuid:plan_id>/",
        views.InstallmentPlanDetailView.as_view(),
        name="installment-plan-detail",
    ),
    path(
        "installment-plans/<uuid:plan_id>/cancel/",
        views.InstallmentPlanCancelView.as_view(),
        name="installment-plan-cancel",
    ),
    path(
        "installment-plans/<uuid:plan_id>/check-overdue/",
        views.InstallmentPlanCheckOverdueView.as_view(),
        name="installment-plan-check-overdue",
    ),
    path(
        "installment-plans/<uuid:plan_id>/installments/<int:number>/",
        views.InstallmentDetailView.as_view(),
        name="installment-detail",
    ),
    path(
        "installment-plans/<uuid:plan_id>/installments/<int:number>/pay/",
        views.InstallmentPayView.as_view(),
        name="installment-pay",
    ),
    path(
        "installment-plans/<uuid:plan_id>/installments/<int:number>/record-payment/",
        views.InstallmentRecordPaymentView.as_view(),
        name="installment-record-payment",
    ),
    # Payouts
    path("payouts/", views.PayoutListCreateView.as_view(), name="payout-list"),
    path("payouts/balance/", views.PayoutBalanceView.as_view(), name="payout-balance"),
    path("payouts/<uuid:payout_id>/", views.PayoutDetailView.as_view(), name="payout-detail"),
    path("payouts/<uuid:payout_id>/approve/", views.PayoutApproveView.as_view(), name="payout-approve"),
    path("payouts/<uuid:payout_id>/reject/", views.PayoutRejectView.as_view(), name="payout-reject"),
    path("payouts/<uuid:payout_id>/process/", views.PayoutProcessView.as_view(), name="payout-process"),
    path("payouts/<uuid:payout_id>/complete/", views.PayoutCompleteView.as_view(), name="payout-complete"),
    path("payouts/<uuid:payout_id>/cancel/", views.PayoutCancelView.as_view(), name="payout-cancel"),
    path(
        "payouts/<uuid:payout_id>/check-status/",
        views.PayoutCheckStatusView.as_view(),
        name="payout-check-status",
    ),
    # Webhooks
    path("webhooks/gateway/", gateway_webhook, name="gateway-webhook"),
]
