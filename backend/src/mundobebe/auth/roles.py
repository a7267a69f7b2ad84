"""User roles and the role-management hierarchy."""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    USER = "USER"
    GUEST = "GUEST"


# Roles allowed to manage the catalog and user accounts
ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)

# Roles that may act on their own account
ACCOUNT_ROLES = (UserRole.USER, UserRole.ADMIN, UserRole.SUPER_ADMIN)

# Which roles each role may create, edit, assign or delete
MANAGEABLE_ROLES: dict[UserRole, frozenset[UserRole]] = {
    UserRole.SUPER_ADMIN: frozenset({UserRole.ADMIN, UserRole.USER, UserRole.GUEST}),
    UserRole.ADMIN: frozenset({UserRole.USER, UserRole.GUEST}),
    UserRole.USER: frozenset(),
    UserRole.GUEST: frozenset(),
}


def can_manage_role(actor: UserRole | str, target: UserRole | str) -> bool:
    """Check whether ``actor`` may manage accounts holding ``target``.

    Args:
        actor: Role of the acting user
        target: Role of the account being managed (or being assigned)

    Returns:
        True if the hierarchy allows it. Unknown roles manage nothing.
    """
    try:
        actor_role = UserRole(actor)
        target_role = UserRole(target)
    except ValueError:
        return False
    return target_role in MANAGEABLE_ROLES[actor_role]


def visible_roles(viewer: UserRole | str) -> list[UserRole]:
    """Roles whose accounts appear in the viewer's user list."""
    if UserRole(viewer) == UserRole.SUPER_ADMIN:
        return list(UserRole)
    return sorted(MANAGEABLE_ROLES[UserRole(viewer)], key=list(UserRole).index)
