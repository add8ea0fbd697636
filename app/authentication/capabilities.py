"""
Capability checks for privileged marketplace operations.

There is exactly one privileged role: the platform admin. Every admin-only
service method calls require_admin() with the acting user before touching
any state, and the DRF permission IsPlatformAdmin applies the same rule at
the view layer.

Usage:
    from authentication.capabilities import require_admin

    @classmethod
    def admin_release(cls, payment_id, acting_admin):
        principal = require_admin(acting_admin)
        ...
        payment.resolved_by_id = principal.user_id
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rest_framework import permissions

from core.exceptions import PermissionDeniedError

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView

    from authentication.models import User


@dataclass(frozen=True)
class AdminPrincipal:
    """
    Proof that a user passed the admin capability check.

    Attributes:
        user: The admin user
        user_id: Shortcut to the admin's id for audit fields
    """

    user: User

    @property
    def user_id(self) -> uuid.UUID:
        return self.user.id


def is_admin(user: User | None) -> bool:
    """Check whether a user holds the platform admin role."""
    return bool(
        user is not None
        and getattr(user, "is_authenticated", False)
        and user.is_active
        and user.is_staff
    )


def require_admin(user: User | None) -> AdminPrincipal:
    """
    Require the platform admin capability.

    Args:
        user: The acting user (may be anonymous or None)

    Returns:
        AdminPrincipal wrapping the user

    Raises:
        PermissionDeniedError: If the user is not an active admin
    """
    if not is_admin(user):
        raise PermissionDeniedError(
            "Admin access required",
            error_code="ADMIN_REQUIRED",
            details={"user_id": str(user.pk) if getattr(user, "pk", None) else None},
        )
    return AdminPrincipal(user=user)


class IsPlatformAdmin(permissions.BasePermission):
    """Allows access only to active platform admins."""

    message = "Admin access required."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return is_admin(request.user)
