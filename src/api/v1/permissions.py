"""Custom DRF permissions for the camp operations API."""
from rest_framework.permissions import SAFE_METHODS, BasePermission


class IsLicenseeOrHQ(BasePermission):
    """Licensee owners (scoped later to their territory) and HQ."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return bool(
            getattr(user, "is_hq_admin", False)
            or getattr(user, "is_licensee_owner", False)
        )


class IsHQAdminOrReadOnly(BasePermission):
    """Anyone authenticated may read; only HQ may write."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return True
        return bool(getattr(user, "is_hq_admin", False))
