"""
DRF views for the payments app.

This module provides API views for:
- Payment orders: checkout, own order list, status, client verification,
  refunds, retries
- Reports: teacher earnings and collected orders, admin order list and
  statistics
- Installment plans: creation, schedule, gateway and offline payments,
  overdue checks
- Payouts: teacher requests and balances, admin approval and settlement

URL Structure (prefixed with /api/v1/payments/):
    orders/                                              GET, POST
    orders/{id}/                                         GET
    orders/{id}/verify/                                  POST
    orders/{id}/refund/                                  POST (admin)
    orders/{id}/retry/                                   POST
    earnings/                                            GET (teacher)
    earnings/orders/                                     GET (teacher)
    admin/orders/                                        GET (admin)
    admin/stats/                                         GET (admin)
    installment-plans/                                   POST
    installment-plans/{id}/                              GET
    installment-plans/{id}/cancel/                       POST
    installment-plans/{id}/check-overdue/                POST (admin)
    installment-plans/{id}/installments/{n}/             GET
    installment-plans/{id}/installments/{n}/pay/         POST
    installment-plans/{id}/installments/{n}/record-payment/  POST (admin)
    payouts/                                             GET, POST
    payouts/balance/                                     GET (teacher)
    payouts/{id}/                                        GET (owning teacher or admin)
    payouts/{id}/approve|reject|process|complete/        POST (admin)
    payouts/{id}/check-status/                           POST (admin)
    payouts/{id}/cancel/                                 POST

Design Decisions:
    - Views validate input with serializers and delegate to services
    - Service failures carry an error_code mapped to an HTTP status by
      payments.api_errors (404, 403, 409, 422, 502, otherwise 400)
    - Gateway failures propagate from services as exceptions and are
      answered with 502
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.permissions import IsPlatformAdmin, IsTeacher
from payments.api_errors import error_response, exception_response
from payments.exceptions import GatewayError, PayoutSettlementError
from payments.models import InstallmentPlan, PaymentOrder, PayoutRequest
from payments.serializers import (
    AdminOrderFilterSerializer,
    AdminPaymentOrderSerializer,
    BalanceSerializer,
    CompletePayoutSerializer,
    CreateInstallmentPlanSerializer,
    CreateOrderSerializer,
    CreatePayoutSerializer,
    InstallmentPlanSerializer,
    InstallmentSerializer,
    OrderFilterSerializer,
    PaymentOrderSerializer,
    PaymentStatsSerializer,
    PayoutRequestSerializer,
    RecordInstallmentPaymentSerializer,
    RefundSerializer,
    RejectPayoutSerializer,
    StatsFilterSerializer,
    TeacherEarningsSerializer,
    VerifyPaymentSerializer,
)
from payments.services import (
    InstallmentService,
    PaymentReportService,
    PaymentService,
    PayoutService,
)

logger = logging.getLogger(__name__)


def _not_found(message: str) -> Response:
    return Response(
        {"success": False, "error": message, "error_code": "NOT_FOUND"},
        status=status.HTTP_404_NOT_FOUND,
    )


def _forbidden(message: str) -> Response:
    return Response(
        {"success": False, "error": message, "error_code": "PERMISSION_DENIED"},
        status=status.HTTP_403_FORBIDDEN,
    )


def _can_view_order(user, order: PaymentOrder) -> bool:
    return user.is_platform_admin or user.pk in (order.payer_id, order.teacher_id)


def _can_view_plan(user, plan: InstallmentPlan) -> bool:
    return user.is_platform_admin or user.pk in (plan.student_id, plan.teacher_id)


def _paginated(view: GenericAPIView, queryset, serializer_class) -> Response:
    page = view.paginate_queryset(queryset)
    if page is not None:
        return view.get_paginated_response(serializer_class(page, many=True).data)
    return Response(serializer_class(queryset, many=True).data)


# =============================================================================
# Payment Orders
# =============================================================================


class OrderListCreateView(GenericAPIView):
    """
    List the caller's own orders, or create one and open it at the gateway.

    GET  /api/v1/payments/orders/?state=paid&date_from=...&date_to=...
    POST /api/v1/payments/orders/

    Request body:
        {"batch_id": "batch-42", "payment_method": "upi"}

    The price, teacher and source are looked up from the batch catalogue.
    Only platform admins may send source or discount_amount.

    Returns:
        201 with the CREATED order and its payment_link
    """

    permission_classes = [IsAuthenticated]
    serializer_class = PaymentOrderSerializer

    @extend_schema(
        operation_id="list_my_payment_orders",
        summary="List own payment orders",
        parameters=[OrderFilterSerializer],
        tags=["Payments - Orders"],
    )
    def get(self, request):
        filters = OrderFilterSerializer(data=request.query_params.dict())
        filters.is_valid(raise_exception=True)
        queryset = PaymentReportService.orders_for_payer(request.user, **filters.validated_data)
        return _paginated(self, queryset, PaymentOrderSerializer)

    @extend_schema(
        operation_id="create_payment_order",
        summary="Create payment order",
        request=CreateOrderSerializer,
        responses={
            201: PaymentOrderSerializer,
            400: OpenApiResponse(description="Invalid amount or discount"),
            403: OpenApiResponse(description="Pricing overrides sent by a non-admin"),
            404: OpenApiResponse(description="Batch not in the catalogue"),
            409: OpenApiResponse(description="Batch closed or student already enrolled"),
            502: OpenApiResponse(description="Gateway unavailable or rejected the order"),
        },
        tags=["Payments - Orders"],
    )
    def post(self, request):
        overrides = [f for f in CreateOrderSerializer.ADMIN_ONLY_FIELDS if f in request.data]
        if overrides and not request.user.is_platform_admin:
            return _forbidden(f"Only platform admins may set {', '.join(overrides)}")

        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = PaymentService.create_order_for_batch(payer=request.user, **serializer.validated_data)
        except GatewayError as e:
            return exception_response(e)

        if not result.success:
            return error_response(result)
        return Response(PaymentOrderSerializer(result.data).data, status=status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    """
    Order status for its payer, its teacher or an admin.

    GET /api/v1/payments/orders/{id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment_order",
        summary="Get payment order status",
        responses={200: PaymentOrderSerializer},
        tags=["Payments - Orders"],
    )
    def get(self, request, order_id):
        result = PaymentService.get_status(order_id)
        if not result.success:
            return error_response(result)
        if not _can_view_order(request.user, result.data):
            return _not_found("Payment order not found")
        return Response(PaymentOrderSerializer(result.data).data)


class OrderVerifyView(APIView):
    """
    Client-side confirmation after checkout.

    POST /api/v1/payments/orders/{id}/verify/

    Request body:
        {"gatewayPaymentId": "pay_123", "signature": "<hex hmac>"}

    The signature is checked against the gateway client secret. A
    verified payment is applied exactly like a payment.success webhook;
    whichever arrives first settles the order.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="verify_payment_order",
        summary="Verify payment",
        request=VerifyPaymentSerializer,
        responses={200: PaymentOrderSerializer},
        tags=["Payments - Orders"],
    )
    def post(self, request, order_id):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = PaymentOrder.objects.filter(id=order_id).first()
        if order is None or order.payer_id != request.user.pk:
            return _not_found("Payment order not found")

        data = serializer.validated_data
        result = PaymentService.mark_paid(
            order.id,
            data["gateway_payment_id"],
            data["signature"],
            payment_method=data["payment_method"],
        )
        if not result.success:
            return error_response(result)
        return Response(PaymentOrderSerializer(result.data).data)


class OrderRefundView(APIView):
    """
    Full or partial refund of a paid order.

    POST /api/v1/payments/orders/{id}/refund/

    Request body:
        {"amount": "250.00", "reason": "Batch cancelled"}

    Returns:
        The order plus the teacher's available balance after the
        deduction. balance_negative flags a refund of money already paid
        out.
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="refund_payment_order",
        summary="Refund payment order",
        request=RefundSerializer,
        tags=["Payments - Orders"],
    )
    def post(self, request, order_id):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PaymentService.refund(
            order_id,
            serializer.validated_data["amount"],
            serializer.validated_data["reason"],
            refunded_by=request.user,
        )
        if not result.success:
            return error_response(result)

        refund = result.data
        return Response(
            {
                "order": PaymentOrderSerializer(refund.order).data,
                "refunded_amount": str(refund.refunded_amount),
                "teacher_available_balance": str(refund.teacher_available_balance),
                "balance_negative": refund.balance_negative,
            }
        )


class OrderRetryView(APIView):
    """
    Reopen a failed or cancelled order with a fresh gateway order.

    POST /api/v1/payments/orders/{id}/retry/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="retry_payment_order",
        summary="Retry payment order",
        request=None,
        responses={
            200: PaymentOrderSerializer,
            409: OpenApiResponse(description="Not retryable or retry limit reached"),
        },
        tags=["Payments - Orders"],
    )
    def post(self, request, order_id):
        order = PaymentOrder.objects.filter(id=order_id).first()
        if order is None or order.payer_id != request.user.pk:
            return _not_found("Payment order not found")

        try:
            result = PaymentService.retry(order.id)
        except GatewayError as e:
            return exception_response(e)

        if not result.success:
            return error_response(result)
        return Response(PaymentOrderSerializer(result.data).data)


# =============================================================================
# Earnings & Reports
# =============================================================================


class TeacherEarningsView(APIView):
    """
    Earnings dashboard for the authenticated teacher.

    GET /api/v1/payments/earnings/

    Lifetime and this-month share net of refunds, payouts pending and
    paid, the withdrawable balance, a per-batch breakdown and the latest
    payout requests.
    """

    permission_classes = [IsAuthenticated, IsTeacher]

    @extend_schema(
        operation_id="get_teacher_earnings",
        summary="Get teacher earnings",
        responses={200: TeacherEarningsSerializer},
        tags=["Payments - Reports"],
    )
    def get(self, request):
        earnings = PaymentReportService.teacher_earnings(request.user)
        return Response(TeacherEarningsSerializer(earnings).data)


class TeacherOrderListView(GenericAPIView):
    """
    Orders that credited the authenticated teacher.

    GET /api/v1/payments/earnings/orders/?batch_id=...&date_from=...
    """

    permission_classes = [IsAuthenticated, IsTeacher]
    serializer_class = PaymentOrderSerializer

    @extend_schema(
        operation_id="list_teacher_payment_orders",
        summary="List teacher's collected orders",
        parameters=[OrderFilterSerializer],
        tags=["Payments - Reports"],
    )
    def get(self, request):
        filters = OrderFilterSerializer(data=request.query_params.dict())
        filters.is_valid(raise_exception=True)
        queryset = PaymentReportService.orders_for_teacher(request.user, **filters.validated_data)
        return _paginated(self, queryset, PaymentOrderSerializer)


class AdminOrderListView(GenericAPIView):
    """
    Every order, filtered.

    GET /api/v1/payments/admin/orders/?state=&source=&teacher=&payer=&batch_id=
        &date_from=&date_to=&needs_reconciliation=true
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]
    serializer_class = AdminPaymentOrderSerializer

    @extend_schema(
        operation_id="list_all_payment_orders",
        summary="List all payment orders",
        parameters=[AdminOrderFilterSerializer],
        tags=["Payments - Reports"],
    )
    def get(self, request):
        filters = AdminOrderFilterSerializer(data=request.query_params.dict())
        filters.is_valid(raise_exception=True)
        queryset = PaymentReportService.all_orders(**filters.validated_data)
        return _paginated(self, queryset, AdminPaymentOrderSerializer)


class AdminPaymentStatsView(APIView):
    """
    Collected revenue overall and per month and source.

    GET /api/v1/payments/admin/stats/?date_from=...&date_to=...
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="get_payment_stats",
        summary="Get payment statistics",
        parameters=[StatsFilterSerializer],
        responses={200: PaymentStatsSerializer},
        tags=["Payments - Reports"],
    )
    def get(self, request):
        filters = StatsFilterSerializer(data=request.query_params.dict())
        filters.is_valid(raise_exception=True)
        stats = PaymentReportService.payment_stats(**filters.validated_data)
        return Response(PaymentStatsSerializer(stats).data)


# =============================================================================
# Installment Plans
# =============================================================================


class InstallmentPlanCreateView(APIView):
    """
    Create an installment plan for the authenticated student.

    POST /api/v1/payments/installment-plans/

    The total comes from the batch catalogue; interest, grace period and
    late fee from the payment policy.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_installment_plan",
        summary="Create installment plan",
        request=CreateInstallmentPlanSerializer,
        responses={201: InstallmentPlanSerializer},
        tags=["Payments - Installments"],
    )
    def post(self, request):
        serializer = CreateInstallmentPlanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = InstallmentService.create_plan_for_batch(
            student=request.user, **serializer.validated_data
        )
        if not result.success:
            return error_response(result)
        return Response(InstallmentPlanSerializer(result.data).data, status=status.HTTP_201_CREATED)


class InstallmentPlanDetailView(APIView):
    """
    GET /api/v1/payments/installment-plans/{id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_installment_plan",
        summary="Get installment plan",
        responses={200: InstallmentPlanSerializer},
        tags=["Payments - Installments"],
    )
    def get(self, request, plan_id):
        result = InstallmentService.get_plan(plan_id)
        if not result.success:
            return error_response(result)
        if not _can_view_plan(request.user, result.data):
            return _not_found("Installment plan not found")
        return Response(InstallmentPlanSerializer(result.data).data)


class InstallmentPlanCancelView(APIView):
    """
    Cancel an active plan (its student or an admin).

    POST /api/v1/payments/installment-plans/{id}/cancel/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_installment_plan",
        summary="Cancel installment plan",
        request=None,
        responses={200: InstallmentPlanSerializer},
        tags=["Payments - Installments"],
    )
    def post(self, request, plan_id):
        plan = InstallmentPlan.objects.filter(id=plan_id).first()
        if plan is None or not _can_view_plan(request.user, plan):
            return _not_found("Installment plan not found")
        if not (request.user.is_platform_admin or request.user.pk == plan.student_id):
            return _forbidden("Only the plan's student or an admin can cancel it")

        result = InstallmentService.cancel_plan(plan.id)
        if not result.success:
            return error_response(result)
        return Response(InstallmentPlanSerializer(result.data).data)


class InstallmentPlanCheckOverdueView(APIView):
    """
    Run the overdue check for one plan now.

    POST /api/v1/payments/installment-plans/{id}/check-overdue/
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="check_installment_plan_overdue",
        summary="Check plan for overdue installments",
        request=None,
        tags=["Payments - Installments"],
    )
    def post(self, request, plan_id):
        result = InstallmentService.get_plan(plan_id)
        if not result.success:
            return error_response(result)

        marked = InstallmentService.check_overdue(result.data)
        plan = InstallmentPlan.objects.get(id=plan_id)
        return Response(
            {
                "installments_marked": marked,
                "plan": InstallmentPlanSerializer(plan).data,
            }
        )


class InstallmentDetailView(APIView):
    """
    GET /api/v1/payments/installment-plans/{id}/installments/{n}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_installment",
        summary="Get installment",
        responses={200: InstallmentSerializer},
        tags=["Payments - Installments"],
    )
    def get(self, request, plan_id, number):
        plan = InstallmentPlan.objects.filter(id=plan_id).first()
        if plan is None or not _can_view_plan(request.user, plan):
            return _not_found("Installment plan not found")

        result = InstallmentService.get_installment(plan.id, number)
        if not result.success:
            return error_response(result)
        return Response(InstallmentSerializer(result.data).data)


class InstallmentPayView(APIView):
    """
    Open a gateway order for one installment (amount plus late fee).

    POST /api/v1/payments/installment-plans/{id}/installments/{n}/pay/

    The installment is settled when the order is paid, via webhook or
    client verification.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="pay_installment",
        summary="Pay installment",
        request=None,
        responses={201: PaymentOrderSerializer},
        tags=["Payments - Installments"],
    )
    def post(self, request, plan_id, number):
        try:
            result = InstallmentService.create_installment_order(plan_id, number, payer=request.user)
        except GatewayError as e:
            return exception_response(e)

        if not result.success:
            return error_response(result)
        return Response(PaymentOrderSerializer(result.data).data, status=status.HTTP_201_CREATED)


class InstallmentRecordPaymentView(APIView):
    """
    Record an installment collected outside the gateway.

    POST /api/v1/payments/installment-plans/{id}/installments/{n}/record-payment/
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="record_installment_payment",
        summary="Record offline installment payment",
        request=RecordInstallmentPaymentSerializer,
        responses={200: InstallmentSerializer},
        tags=["Payments - Installments"],
    )
    def post(self, request, plan_id, number):
        serializer = RecordInstallmentPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = InstallmentService.mark_installment_paid(plan_id, number, **serializer.validated_data)
        if not result.success:
            return error_response(result)

        logger.info(
            "Offline installment payment recorded",
            extra={"plan_id": str(plan_id), "number": number, "admin_id": request.user.pk},
        )
        return Response(InstallmentSerializer(result.data).data)


# =============================================================================
# Payouts
# =============================================================================


class PayoutListCreateView(GenericAPIView):
    """
    List payout requests or request a new payout.

    GET  /api/v1/payments/payouts/  - own requests (teachers), all (admins)
    POST /api/v1/payments/payouts/  - teachers only
    """

    permission_classes = [IsAuthenticated]
    serializer_class = PayoutRequestSerializer

    def get_queryset(self):
        queryset = PayoutRequest.objects.order_by("-created_at")
        user = self.request.user
        if user.is_platform_admin:
            state = self.request.query_params.get("state")
            return queryset.filter(state=state) if state else queryset
        return queryset.filter(teacher=user)

    @extend_schema(
        operation_id="list_payouts",
        summary="List payout requests",
        tags=["Payments - Payouts"],
    )
    def get(self, request):
        return _paginated(self, self.get_queryset(), PayoutRequestSerializer)

    @extend_schema(
        operation_id="request_payout",
        summary="Request payout",
        request=CreatePayoutSerializer,
        responses={
            201: PayoutRequestSerializer,
            422: OpenApiResponse(description="Below minimum or insufficient balance"),
        },
        tags=["Payments - Payouts"],
    )
    def post(self, request):
        if not request.user.is_teacher:
            return _forbidden(IsTeacher.message)

        serializer = CreatePayoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PayoutService.request(teacher=request.user, **serializer.validated_data)
        if not result.success:
            return error_response(result)
        return Response(PayoutRequestSerializer(result.data).data, status=status.HTTP_201_CREATED)


class PayoutBalanceView(APIView):
    """
    GET /api/v1/payments/payouts/balance/
    """

    permission_classes = [IsAuthenticated, IsTeacher]

    @extend_schema(
        operation_id="get_payout_balance",
        summary="Get teacher earnings balance",
        responses={200: BalanceSerializer},
        tags=["Payments - Payouts"],
    )
    def get(self, request):
        result = PayoutService.get_available_balance(request.user)
        return Response(BalanceSerializer(result.data).data)


class PayoutApproveView(APIView):
    """POST /api/v1/payments/payouts/{id}/approve/"""

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="approve_payout",
        summary="Approve payout",
        request=None,
        responses={200: PayoutRequestSerializer},
        tags=["Payments - Payouts"],
    )
    def post(self, request, payout_id):
        result = PayoutService.approve(payout_id, admin=request.user)
        if not result.success:
            return error_response(result)
        return Response(PayoutRequestSerializer(result.data).data)


class PayoutRejectView(APIView):
    """
    POST /api/v1/payments/payouts/{id}/reject/

    Request body:
        {"reason": "Bank details do not match KYC"}
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="reject_payout",
        summary="Reject payout",
        request=RejectPayoutSerializer,
        responses={200: PayoutRequestSerializer},
        tags=["Payments - Payouts"],
    )
    def post(self, request, payout_id):
        serializer = RejectPayoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PayoutService.reject(payout_id, serializer.validated_data["reason"], admin=request.user)
        if not result.success:
            return error_response(result)
        return Response(PayoutRequestSerializer(result.data).data)


class PayoutProcessView(APIView):
    """
    Send an approved payout to the gateway.

    POST /api/v1/payments/payouts/{id}/process/

    If the gateway call fails the payout stays in PROCESSING with the
    failure recorded, and the response is a 502.
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="process_payout",
        summary="Process payout",
        request=None,
        responses={
            200: PayoutRequestSerializer,
            502: OpenApiResponse(description="Gateway payout failed; manual reconciliation needed"),
        },
        tags=["Payments - Payouts"],
    )
    def post(self, request, payout_id):
        try:
            result = PayoutService.process(payout_id, admin=request.user)
        except PayoutSettlementError as e:
            return exception_response(e)

        if not result.success:
            return error_response(result)
        return Response(PayoutRequestSerializer(result.data).data)


class PayoutCompleteView(APIView):
    """
    Confirm a processing payout with the gateway transfer reference.

    POST /api/v1/payments/payouts/{id}/complete/
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="complete_payout",
        summary="Complete payout",
        request=CompletePayoutSerializer,
        responses={200: PayoutRequestSerializer},
        tags=["Payments - Payouts"],
    )
    def post(self, request, payout_id):
        serializer = CompletePayoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PayoutService.complete(payout_id, serializer.validated_data["transaction_id"])
        if not result.success:
            return error_response(result)
        return Response(PayoutRequestSerializer(result.data).data)


class PayoutCancelView(APIView):
    """POST /api/v1/payments/payouts/{id}/cancel/ (owning teacher or admin)"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_payout",
        summary="Cancel payout",
        request=None,
        responses={200: PayoutRequestSerializer},
        tags=["Payments - Payouts"],
    )
    def post(self, request, payout_id):
        result = PayoutService.cancel(payout_id, actor=request.user)
        if not result.success:
            return error_response(result)
        return Response(PayoutRequestSerializer(result.data).data)


class PayoutDetailView(APIView):
    """GET /api/v1/payments/payouts/{id}/ (owning teacher or admin)"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payout",
        summary="Get payout request",
        responses={200: PayoutRequestSerializer},
        tags=["Payments - Payouts"],
    )
    def get(self, request, payout_id):
        result = PayoutService.get_payout(payout_id)
        if not result.success:
            return error_response(result)
        if not (request.user.is_platform_admin or result.data.teacher_id == request.user.pk):
            return _not_found("Payout request not found")
        return Response(PayoutRequestSerializer(result.data).data)


class PayoutCheckStatusView(APIView):
    """
    Poll the gateway for a processing payout and complete it if settled.

    POST /api/v1/payments/payouts/{id}/check-status/
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="check_payout_status",
        summary="Check payout transfer status",
        request=None,
        responses={
            200: PayoutRequestSerializer,
            502: OpenApiResponse(description="Gateway status unavailable"),
        },
        tags=["Payments - Payouts"],
    )
    def post(self, request, payout_id):
        try:
            result = PayoutService.check_status(payout_id)
        except GatewayError as e:
            return exception_response(e)

        if not result.success:
            return error_response(result)
        return Response(PayoutRequestSerializer(result.data).data)
