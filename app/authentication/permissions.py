"""
Role-based permission classes for the payments API.

- IsPlatformAdmin: refunds, payout approval/rejection/settlement
- IsTeacher: payout requests and balance lookups

Permission classes are composable via DRF's AND logic, e.g.
permission_classes = [IsAuthenticated, IsTeacher].
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsPlatformAdmin(permissions.BasePermission):
    """Allows access only to users with the admin role (or superusers)."""

    message = "Only platform administrators can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.is_platform_admin)


class IsTeacher(permissions.BasePermission):
    """Allows access only to users with the teacher role."""

    message = "Only teachers can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.is_teacher)
