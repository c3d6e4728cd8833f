"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/login/            - Email/password login (JWT pair)
    /api/v1/auth/token/refresh/    - Rotate refresh token
    /api/v1/auth/me/               - Current user
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from authentication.views import CurrentUserView, LoginView

app_name = "authentication"

urlpatterns = [
    path("login/", LoginView.as_view(), name="login"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("me/", CurrentUserView.as_view(), name="me"),
]
