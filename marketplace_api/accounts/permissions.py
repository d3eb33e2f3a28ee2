from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsClient(BasePermission):
    message = "Only client accounts can perform this action."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.user_type == 'client')


class IsFreelancer(BasePermission):
    message = "Only freelancer accounts can perform this action."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.user_type == 'freelancer')


class IsProfileOwnerOrReadOnly(BasePermission):
    """
    Anyone authenticated may read a client or freelancer profile;
    only its owner (or staff) may change it.
    """
    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS:
            return True
        return request.user.is_staff or obj.user_id == request.user.id


class IsBalanceOwnerOrAdmin(BasePermission):
    """
    Balance of a client account is visible and fundable only by that client or staff.
    Expects the view to have 'id' in kwargs.
    """
    def has_permission(self, request, view):
        if request.user.is_staff:
            return True
        return str(request.user.id) == str(view.kwargs.get('id'))
