"""
Authentication views.

This module provides API views for:
- JWT login (email + password) and token refresh
- Current user lookup

Related files:
    - serializers.py: Request/response serialization
    - urls.py: URL routing
"""

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from authentication.serializers import RoleTokenObtainPairSerializer, UserSerializer


@extend_schema(
    summary="Log in",
    description="Authenticate with email and password to receive JWT tokens.",
    tags=["Auth"],
)
class LoginView(TokenObtainPairView):
    """
    POST /api/v1/auth/login/

    Request body:
        {"email": "teacher@example.com", "password": "..."}

    Returns:
        {"access": "...", "refresh": "...", "user": {...}}
    """

    serializer_class = RoleTokenObtainPairSerializer


class CurrentUserView(APIView):
    """
    GET /api/v1/auth/me/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_current_user",
        summary="Get current user",
        responses={200: UserSerializer},
        tags=["Auth"],
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)
