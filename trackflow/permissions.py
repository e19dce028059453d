"""
Role-based permission checks.

Roles and permissions are closed enumerations; what each role may do is
one explicit table. Checks happen once, where an action is requested
(see workspace.Workspace), never inline in the board code.
"""
from enum import Enum
from typing import Any, Dict, FrozenSet

from .errors import PermissionDenied, ValidationError


class Role(Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"
    VIEWER = "viewer"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid role: {value!r}. Expected one of: {', '.join(r.value for r in cls)}"
            ) from None


class Permission(Enum):
    VIEW_DASHBOARD = "view:dashboard"
    VIEW_USERS = "view:users"
    CREATE_USERS = "create:users"
    EDIT_USERS = "edit:users"
    DELETE_USERS = "delete:users"
    MANAGE_SETTINGS = "manage:settings"
    VIEW_REPORTS = "view:reports"
    EXPORT_DATA = "export:data"
    VIEW_PROJECTS = "view:projects"
    CREATE_PROJECTS = "create:projects"
    EDIT_PROJECTS = "edit:projects"
    DELETE_PROJECTS = "delete:projects"
    CREATE_TASKS = "create:tasks"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.ADMIN: frozenset(Permission),
    Role.MANAGER: frozenset({
        Permission.VIEW_DASHBOARD,
        Permission.VIEW_USERS,
        Permission.CREATE_USERS,
        Permission.EDIT_USERS,
        Permission.VIEW_REPORTS,
        Permission.VIEW_PROJECTS,
        Permission.CREATE_PROJECTS,
        Permission.EDIT_PROJECTS,
        Permission.CREATE_TASKS,
    }),
    Role.USER: frozenset({
        Permission.VIEW_DASHBOARD,
        Permission.VIEW_USERS,
        Permission.VIEW_PROJECTS,
        Permission.CREATE_TASKS,
    }),
    Role.VIEWER: frozenset({
        Permission.VIEW_DASHBOARD,
        Permission.VIEW_USERS,
        Permission.VIEW_PROJECTS,
    }),
}

ROLE_LABELS: Dict[Role, str] = {
    Role.ADMIN: "Administrator",
    Role.MANAGER: "Manager",
    Role.USER: "Regular User",
    Role.VIEWER: "Viewer",
}


def permissions_for_role(role: Role) -> FrozenSet[Permission]:
    return ROLE_PERMISSIONS.get(role, frozenset())


def role_label(role: Role) -> str:
    return ROLE_LABELS[role]


def has_permission(user: Any, permission: Permission) -> bool:
    """True if the user's role grants the permission. No user → False."""
    role = getattr(user, "role", None)
    if role is None:
        return False
    if role is Role.ADMIN:
        return True
    return permission in permissions_for_role(role)


def require_permission(user: Any, permission: Permission) -> None:
    """
    Raise PermissionDenied unless the user's role grants the permission.
    """
    if user is None:
        raise PermissionDenied(f"Login required for {permission.value}")
    if not has_permission(user, permission):
        raise PermissionDenied(
            f"{user.name} ({user.role.value}) is not allowed to {permission.value}"
        )
