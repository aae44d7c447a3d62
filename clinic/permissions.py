"""
Role based access control.

Every endpoint declares which roles may call it with ``@allow_roles(...)``;
one ``RolePermission`` class performs the check for all of them.  Views
serving several HTTP methods can narrow a single method, e.g.
``@allow_roles(POST=[Role.PATIENT])``.  Object scope (participant, payer,
sender) is checked by the services.
"""
from rest_framework.decorators import permission_classes
from rest_framework.permissions import BasePermission, IsAuthenticated

from clinic.models import Role

ALL_ROLES = frozenset(Role.values)


class RolePermission(BasePermission):
    """Allow authenticated users whose role is permitted for the request method."""
    allowed_roles: frozenset = ALL_ROLES
    method_roles: dict = {}
    message = 'Insufficient permissions'

    def roles_for(self, method: str) -> frozenset:
        return self.method_roles.get(method, self.allowed_roles)

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        return getattr(user, "role", None) in self.roles_for(request.method)


def role_permission(*roles, **method_roles) -> type[RolePermission]:
    """Build a ``RolePermission`` subclass bound to ``roles`` (all roles if empty)."""
    allowed = frozenset(roles) or ALL_ROLES
    per_method = {m.upper(): frozenset(r) for m, r in method_roles.items()}
    return type('RolePermission', (RolePermission,), {
        'allowed_roles': allowed,
        'method_roles': per_method,
    })


def allow_roles(*roles, **method_roles):
    """Decorator for ``@api_view`` functions: authenticated and role permitted."""
    return permission_classes([IsAuthenticated, role_permission(*roles, **method_roles)])
