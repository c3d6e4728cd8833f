"""
Tests for authentication API views.
"""

import pytest
from django.urls import reverse
from rest_framework_simplejwt.tokens import AccessToken

from authentication.models import UserRole
from authentication.tests.factories import TeacherFactory


class TestLoginView:
    def test_returns_token_pair_with_role_claim(self, api_client, db):
        TeacherFactory(email="asha@example.com", password="S3cret-pass!")

        response = api_client.post(
            reverse("authentication:login"),
            {"email": "asha@example.com", "password": "S3cret-pass!"},
            format="json",
        )

        assert response.status_code == 200
        data = response.json()
        assert set(data) >= {"access", "refresh", "user"}
        assert data["user"]["role"] == UserRole.TEACHER
        assert AccessToken(data["access"])["role"] == UserRole.TEACHER

    def test_wrong_password(self, api_client, student):
        response = api_client.post(
            reverse("authentication:login"),
            {"email": student.email, "password": "wrong"},
            format="json",
        )

        assert response.status_code == 401

    def test_refresh(self, api_client, db):
        TeacherFactory(email="asha@example.com", password="S3cret-pass!")
        tokens = api_client.post(
            reverse("authentication:login"),
            {"email": "asha@example.com", "password": "S3cret-pass!"},
            format="json",
        ).json()

        response = api_client.post(
            reverse("authentication:token-refresh"),
            {"refresh": tokens["refresh"]},
            format="json",
        )

        assert response.status_code == 200
        assert "access" in response.json()


class TestCurrentUserView:
    def test_returns_current_user(self, api_client, platform_admin):
        api_client.force_authenticate(user=platform_admin)

        response = api_client.get(reverse("authentication:me"))

        assert response.status_code == 200
        assert response.json()["email"] == platform_admin.email
        assert response.json()["role"] == UserRole.ADMIN

    def test_bearer_token_is_accepted(self, api_client, student):
        token = AccessToken.for_user(student)
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        response = api_client.get(reverse("authentication:me"))

        assert response.status_code == 200
        assert response.json()["id"] == student.pk

    @pytest.mark.django_db
    def test_requires_authentication(self, api_client):
        response = api_client.get(reverse("authentication:me"))

        assert response.status_code == 401
