from rest_framework.permissions import BasePermission

from .session import OWNER, VISITOR


class HasRole(BasePermission):
    role = None

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role == self.role)


class IsVisitor(HasRole):
    """
    Allows access only to signed-in visitors.
    """
    role = VISITOR
    message = f'{VISITOR} access required'


class IsOwner(HasRole):
    """
    Allows access only to signed-in place owners.
    """
    role = OWNER
    message = f'{OWNER} access required'
