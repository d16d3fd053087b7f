from rest_framework.permissions import BasePermission
from .models import Role


class IsAdmin(BasePermission):
    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.role == Role.ADMIN
        )


class IsStaffMember(BasePermission):
    """Any of the three back-office roles."""

    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.role in Role.values
        )
