"""The signed-in user's own account."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import Field, model_validator
from pydantic_core import PydanticCustomError
from sqlalchemy import delete, update

from mundobebe.accounts.users import (
    USER_TAGS,
    Email,
    Password,
    UserInput,
    find_user_by_email,
    find_user_by_id,
    public_user,
)
from mundobebe.actions import (
    ActionContext,
    compose_middleware,
    reject_null,
    require_session_or_fail,
    with_error_handling,
    with_rate_limit,
    with_validation,
)
from mundobebe.auth.roles import ACCOUNT_ROLES, UserRole
from mundobebe.cache import invalidate_tags
from mundobebe.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError, Violation
from mundobebe.messages import ERRORS
from mundobebe.persistence.database import utcnow
from mundobebe.persistence.schema import users
from mundobebe.text import normalize_email

if TYPE_CHECKING:
    from mundobebe.services import AppServices

logger = logging.getLogger(__name__)


class ProfileUpdate(UserInput):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    lastName: str | None = Field(default=None, max_length=120)
    username: str | None = Field(default=None, max_length=60)
    email: Email | None = None
    phone: str | None = Field(default=None, max_length=40)

    _not_null = reject_null("name", "lastName", "email")


class ChangePasswordInput(UserInput):
    currentPassword: str = Field(min_length=1)
    newPassword: Password
    confirmPassword: str | None = None

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.confirmPassword is not None and self.confirmPassword != self.newPassword:
            raise PydanticCustomError("password_mismatch", ERRORS["PASSWORD_MISMATCH"])
        return self


class DeleteAccountInput(UserInput):
    email: str = Field(min_length=1)


class AccountService:
    """Actions a signed-in USER, ADMIN or SUPER_ADMIN runs on their own account."""

    def __init__(self, services: AppServices):
        self.services = services
        signed_in = require_session_or_fail(services.sessions, ACCOUNT_ROLES)
        limiter = services.rate_limiter

        self.profile = compose_middleware(
            with_error_handling(),
            signed_in,
        )(self._profile)
        self.update_profile = compose_middleware(
            with_error_handling(),
            with_validation(ProfileUpdate, ERRORS["INVALID_INPUT"]),
            signed_in,
            with_rate_limit(limiter, requests=10, window="2m", prefix="ratelimit:update-profile"),
        )(self._update_profile)
        self.change_password = compose_middleware(
            with_error_handling(),
            with_validation(ChangePasswordInput, ERRORS["INVALID_INPUT"]),
            signed_in,
            with_rate_limit(limiter, requests=5, window="5m", prefix="ratelimit:change-password"),
        )(self._change_password)
        self.delete_account = compose_middleware(
            with_error_handling(),
            with_validation(DeleteAccountInput, ERRORS["INVALID_INPUT"]),
            signed_in,
            with_rate_limit(limiter, requests=3, window="5m", prefix="ratelimit:delete-account"),
        )(self._delete_account)

    def _current_user(self, conn, ctx: ActionContext):
        user = find_user_by_id(conn, ctx.session.user_id)
        if user is None:
            raise NotFoundError(ERRORS["USER_NOT_FOUND"], code="USER_NOT_FOUND")
        return user

    async def _profile(self, data: Any, ctx: ActionContext) -> dict[str, Any]:
        with self.services.db.connect() as conn:
            return public_user(self._current_user(conn, ctx))

    async def _update_profile(self, data: ProfileUpdate, ctx: ActionContext) -> dict[str, Any]:
        values = data.model_dump(exclude_unset=True)
        with self.services.db.transaction(ERRORS["EMAIL_ALREADY_EXISTS"], "EMAIL_ALREADY_EXISTS") as conn:
            user = self._current_user(conn, ctx)
            if data.email is not None and data.email != user.email:
                if find_user_by_email(conn, data.email) is not None:
                    raise ConflictError(ERRORS["EMAIL_ALREADY_EXISTS"], code="EMAIL_ALREADY_EXISTS")
            values["updatedAt"] = utcnow()
            conn.execute(update(users).where(users.c.id == user.id).values(**values))
            updated = find_user_by_id(conn, user.id)

        invalidate_tags(self.services.cache, *USER_TAGS)
        return public_user(updated)

    async def _change_password(self, data: ChangePasswordInput, ctx: ActionContext) -> dict[str, bool]:
        passwords = self.services.passwords
        now = utcnow()
        with self.services.db.transaction() as conn:
            user = self._current_user(conn, ctx)
            if not passwords.verify(data.currentPassword, user.password):
                raise ValidationError(
                    ERRORS["INVALID_PASSWORD"],
                    violations=[Violation("currentPassword", ERRORS["INVALID_PASSWORD"])],
                    code="INVALID_PASSWORD",
                )
            if data.newPassword == data.currentPassword:
                raise ValidationError(
                    ERRORS["SAME_PASSWORD"],
                    violations=[Violation("newPassword", ERRORS["SAME_PASSWORD"])],
                    code="SAME_PASSWORD",
                )
            conn.execute(
                update(users)
                .where(users.c.id == user.id)
                .values(password=passwords.hash(data.newPassword), passwordChangedAt=now, updatedAt=now)
            )

        logger.info("User %s changed their password", ctx.session.user_id)
        return {"changed": True}

    async def _delete_account(self, data: DeleteAccountInput, ctx: ActionContext) -> dict[str, bool]:
        with self.services.db.transaction() as conn:
            user = self._current_user(conn, ctx)
            if normalize_email(data.email) != normalize_email(user.email):
                raise ValidationError(
                    ERRORS["EMAIL_MISMATCH"],
                    violations=[Violation("email", ERRORS["EMAIL_MISMATCH"])],
                    code="EMAIL_MISMATCH",
                )
            if user.role == UserRole.SUPER_ADMIN.value:
                raise UnauthorizedError(ERRORS["SUPER_ADMIN_SELF_DELETE"], code="SUPER_ADMIN_SELF_DELETE")
            conn.execute(delete(users).where(users.c.id == user.id))

        invalidate_tags(self.services.cache, *USER_TAGS)
        logger.info("User %s deleted their account", user.id)
        return {"deleted": True}
