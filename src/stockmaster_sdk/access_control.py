from __future__ import annotations

from dataclasses import dataclass

from .models import User, UserRole


@dataclass(frozen=True)
class RolePermissions:
    can_manage_users: bool
    can_approve: bool
    can_edit: bool
    can_export: bool


@dataclass(frozen=True)
class PermissionDecision:
    allowed: bool
    message: str = ""


ROLE_PERMISSIONS: dict[UserRole, RolePermissions] = {
    UserRole.ADMIN: RolePermissions(can_manage_users=True, can_approve=True, can_edit=True, can_export=True),
    # Leaders manage users too so a fresh install can bootstrap accounts.
    UserRole.LEADER: RolePermissions(can_manage_users=True, can_approve=True, can_edit=True, can_export=True),
    UserRole.STAFF: RolePermissions(can_manage_users=False, can_approve=False, can_edit=True, can_export=False),
}

_MANAGEMENT_VIEWS = {"master", "userManagement", "settings"}
_MANAGEMENT_ROLES = {UserRole.ADMIN, UserRole.LEADER}


def permissions_for(role: UserRole | str) -> RolePermissions:
    if isinstance(role, UserRole):
        return ROLE_PERMISSIONS[role]
    try:
        return ROLE_PERMISSIONS[UserRole(str(role).upper())]
    except ValueError:
        return ROLE_PERMISSIONS[UserRole.STAFF]


def can_open_view(user: User | None, view: str) -> PermissionDecision:
    if user is None:
        return PermissionDecision(False, "Sign in to open this view.")
    if view in _MANAGEMENT_VIEWS and user.role not in _MANAGEMENT_ROLES:
        return PermissionDecision(False, f"Role {user.role.value} cannot open {view}.")
    return PermissionDecision(True)


__all__ = ["PermissionDecision", "ROLE_PERMISSIONS", "RolePermissions", "can_open_view", "permissions_for"]
