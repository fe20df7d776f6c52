from rest_framework import permissions
from .models import User


SCAN_OPERATOR_ROLES = {User.ROLE_ADMIN, User.ROLE_USER}


class IsAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == User.ROLE_ADMIN


class IsScanOperator(permissions.BasePermission):
    """Roles allowed to present a QR code at the gate."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role in SCAN_OPERATOR_ROLES


class IsSelfOrAdmin(permissions.BasePermission):
    """
    Admins may act on any identity; everyone else only on their own,
    identified by the `user_id` URL kwarg.
    """

    message = "Not authorized to view these logs"

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        if request.user.role == User.ROLE_ADMIN:
            return True
        return str(view.kwargs.get("user_id", "")) == str(request.user.pk)
