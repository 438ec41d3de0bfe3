# api/permissions.py
from rest_framework.permissions import BasePermission


class IsVerifiedAuthority(BasePermission):
    """Verified hospital, blood bank, doctor or admin accounts"""
    message = 'Only verified hospital, blood bank, doctor, or admin accounts can do this'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'is_verified_authority', False))
