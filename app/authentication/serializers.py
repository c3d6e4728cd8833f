"""
Serializers for authentication models.

This module provides DRF serializers for:
- User model (read operations)
- JWT login, which adds the user's role to the token response

Related files:
    - models.py: User model
    - views.py: Views that use these serializers

Security:
    - Password fields are write-only (handled by simplejwt)
    - Role and staff flags are read-only
"""

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for User model (read operations).

    Used for the /api/v1/auth/me/ endpoint and embedded in the login
    response.
    """

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "full_name",
            "role",
            "date_joined",
        ]
        read_only_fields = fields


class RoleTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Email/password login returning JWT access and refresh tokens.

    The access token carries a "role" claim so clients can choose which
    payment screens to show without an extra request.
    """

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["role"] = user.role
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        data["user"] = UserSerializer(self.user).data
        return data
