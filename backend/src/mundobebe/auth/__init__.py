"""Authentication: roles, password hashing and signed tokens."""

from mundobebe.auth.jwt_service import (
    InvalidTokenError,
    JWTError,
    JWTService,
    TokenClaims,
    TokenExpiredError,
)
from mundobebe.auth.password import PasswordService, meets_password_policy
from mundobebe.auth.roles import ACCOUNT_ROLES, ADMIN_ROLES, UserRole, can_manage_role

__all__ = [
    "ACCOUNT_ROLES",
    "ADMIN_ROLES",
    "InvalidTokenError",
    "JWTError",
    "JWTService",
    "PasswordService",
    "TokenClaims",
    "TokenExpiredError",
    "UserRole",
    "can_manage_role",
    "meets_password_policy",
]
