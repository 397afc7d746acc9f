"""
Role-based permission checks for the quota engine.

Defines permissions, the role-to-permission mapping and the Principal that
writers receive as ``actor``. Authentication happens elsewhere; the engine
only ever sees an already-resolved principal.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Set

from fluxquant.core.users import UserRole
from fluxquant.exceptions import ForbiddenError


class Permission(Enum):
    """Engine-wide permissions, assigned to roles below."""

    # Production reporting
    SUBMIT_REPORTS = "submit_reports"
    SUBMIT_REPORTS_FOR_OTHERS = "submit_reports_for_others"
    REVERT_REPORTS = "revert_reports"
    REVERT_REPORTS_FOR_OTHERS = "revert_reports_for_others"

    # Quota and allocation management
    ADJUST_QUOTA = "adjust_quota"
    VIEW_ALLOCATIONS = "view_allocations"
    VIEW_ALL_ALLOCATIONS = "view_all_allocations"
    EDIT_ALLOCATIONS = "edit_allocations"
    CREATE_ALLOCATIONS = "create_allocations"
    DELETE_ALLOCATIONS = "delete_allocations"

    # Projects and reporting views
    MANAGE_PROJECTS = "manage_projects"
    MANAGE_USERS = "manage_users"
    VIEW_MATRIX = "view_matrix"
    VIEW_DASHBOARD = "view_dashboard"


# Role-to-Permission mapping
ROLE_PERMISSIONS = {
    UserRole.ADMIN: set(Permission),

    UserRole.MANAGER: {
        Permission.SUBMIT_REPORTS,
        Permission.SUBMIT_REPORTS_FOR_OTHERS,
        Permission.REVERT_REPORTS,
        Permission.REVERT_REPORTS_FOR_OTHERS,
        Permission.ADJUST_QUOTA,
        Permission.VIEW_ALLOCATIONS,
        Permission.VIEW_ALL_ALLOCATIONS,
        Permission.EDIT_ALLOCATIONS,
        Permission.CREATE_ALLOCATIONS,
        Permission.MANAGE_PROJECTS,
        Permission.VIEW_MATRIX,
        Permission.VIEW_DASHBOARD,
    },

    # Employees see and report against their own allocations only
    UserRole.EMPLOYEE: {
        Permission.SUBMIT_REPORTS,
        Permission.REVERT_REPORTS,
        Permission.VIEW_ALLOCATIONS,
    },
}


@dataclass(frozen=True)
class Principal:
    """The acting identity behind a request."""
    user_id: Optional[int]
    role: UserRole
    username: str = ''

    @classmethod
    def from_user(cls, user) -> 'Principal':
        return cls(user_id=user.user_id, role=UserRole(user.role), username=user.username)

    @property
    def is_privileged(self) -> bool:
        """Managers and admins act on other users' data."""
        return self.role in (UserRole.MANAGER, UserRole.ADMIN)

    def __str__(self):
        return self.username or f"user:{self.user_id}"


# Trusted internal caller (CLI, maintenance jobs)
SYSTEM_PRINCIPAL = Principal(user_id=None, role=UserRole.ADMIN, username='system')


def get_permissions(principal: Principal) -> Set[Permission]:
    return set(ROLE_PERMISSIONS.get(UserRole(principal.role), ()))


def has_permission(principal: Optional[Principal], permission: Permission) -> bool:
    """
    Check if a principal has a specific permission.

    A missing principal means a trusted internal caller and is always allowed.
    """
    if principal is None:
        return True
    return permission in get_permissions(principal)


def require_permission(principal: Optional[Principal], permission: Permission) -> None:
    """
    Raise ForbiddenError unless the principal holds the permission.

    Raises:
        ForbiddenError: principal's role lacks the permission
    """
    if not has_permission(principal, permission):
        raise ForbiddenError(
            f"{principal} ({principal.role.value}) lacks permission '{permission.value}'",
            permission=permission.value,
        )
