from rest_framework.permissions import SAFE_METHODS, BasePermission


class IsStaffOrReadOnly(BasePermission):
    """
    Read: any authenticated user
    Write: Django staff users only
    """
    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if request.method in SAFE_METHODS:
            return True
        return bool(user.is_staff)


class IsStaffOnly(BasePermission):
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_staff)


class IsStaffOrAppointmentOwner(BasePermission):
    """
    Object-level guard for appointment writes.
    Staff may change any appointment; other users only those booked for
    the ClientProfile linked to their account.
    """
    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS or request.user.is_staff:
            return True
        client = getattr(obj, "client", None)
        return client is not None and client.user_id == request.user.pk
