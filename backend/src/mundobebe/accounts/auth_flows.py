"""Public authentication flows: login, registration, password reset, invitations."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from pydantic import Field, model_validator
from pydantic_core import PydanticCustomError
from sqlalchemy import insert, select, update

from mundobebe.accounts.email import render_email
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
    require_session_or_redirect,
    with_error_handling,
    with_rate_limit,
    with_validation,
)
from mundobebe.actions.auth import LOGIN_PATH
from mundobebe.auth.jwt_service import JWTError
from mundobebe.auth.roles import UserRole
from mundobebe.cache import invalidate_tags
from mundobebe.errors import (
    ConflictError,
    NotFoundError,
    RateLimitedError,
    UnauthenticatedError,
    ValidationError,
    Violation,
)
from mundobebe.messages import ERRORS
from mundobebe.persistence.database import new_id, utcnow
from mundobebe.persistence.schema import invitations, users
from mundobebe.text import normalize_email

if TYPE_CHECKING:
    from mundobebe.services import AppServices

logger = logging.getLogger(__name__)

PASSWORD_CHANGE_COOLDOWN_MINUTES = 60
INVITATION_TTL = timedelta(days=7)

RESET_PASSWORD_PATH = "/resetear-contrasena"
REGISTER_PATH = "/registrarse"


class LoginInput(UserInput):
    email: Email
    password: str = Field(min_length=1)


class _ConfirmedPassword(UserInput):
    password: Password
    confirmPassword: str | None = None

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.confirmPassword is not None and self.confirmPassword != self.password:
            raise PydanticCustomError("password_mismatch", ERRORS["PASSWORD_MISMATCH"])
        return self


class RegisterInput(_ConfirmedPassword):
    name: str = Field(min_length=1, max_length=120)
    lastName: str = Field(default="", max_length=120)
    email: Email
    code: str | None = None


class ForgotPasswordInput(UserInput):
    email: Email


class ResetPasswordInput(_ConfirmedPassword):
    token: str = Field(min_length=1)


class InvitationInput(UserInput):
    email: Email


def _by_email(prefix: str):
    return lambda data: f"{prefix}:{data.email}"


class AuthFlowService:
    """Pipeline-wrapped authentication flows.

    Flows reachable without a session are rate limited per email; the
    invitation flow is a browser flow and redirects to the login page when
    there is no session.
    """

    def __init__(self, services: AppServices):
        self.services = services
        limiter = services.rate_limiter

        self.login = compose_middleware(
            with_error_handling(),
            with_validation(LoginInput, ERRORS["INVALID_CREDENTIALS"]),
            with_rate_limit(limiter, requests=10, window="5m", identifier=_by_email("login")),
        )(self._login)
        self.register = compose_middleware(
            with_error_handling(),
            with_validation(RegisterInput, ERRORS["INVALID_INPUT"]),
            with_rate_limit(limiter, requests=10, window="5m", identifier=_by_email("register")),
        )(self._register)
        self.forgot_password = compose_middleware(
            with_error_handling(),
            with_validation(ForgotPasswordInput, ERRORS["INVALID_INPUT"]),
            with_rate_limit(
                limiter, requests=10, window="10m", identifier=_by_email("forgot-password")
            ),
        )(self._forgot_password)
        self.reset_password = compose_middleware(
            with_error_handling(),
            with_validation(ResetPasswordInput, ERRORS["INVALID_INPUT"]),
            with_rate_limit(limiter, requests=5, window="10m", prefix="ratelimit:reset-password"),
        )(self._reset_password)
        self.create_invitation = compose_middleware(
            with_error_handling(),
            with_validation(InvitationInput, ERRORS["INVALID_INPUT"]),
            require_session_or_redirect(services.sessions, [UserRole.SUPER_ADMIN], LOGIN_PATH),
            with_rate_limit(limiter, requests=20, window="120s", identifier=_by_email("invite")),
        )(self._create_invitation)

    # ------------------------------------------------------------------
    # Login / registration
    # ------------------------------------------------------------------

    async def _login(self, data: LoginInput, ctx: ActionContext) -> dict[str, Any]:
        passwords = self.services.passwords
        with self.services.db.connect() as conn:
            user = find_user_by_email(conn, data.email)
        if user is None or not user.active or not passwords.verify(data.password, user.password):
            raise UnauthenticatedError(ERRORS["INVALID_CREDENTIALS"], code="INVALID_CREDENTIALS")

        if passwords.needs_rehash(user.password):
            with self.services.db.transaction() as conn:
                conn.execute(
                    update(users)
                    .where(users.c.id == user.id)
                    .values(password=passwords.hash(data.password))
                )

        token = self.services.jwt.generate_access_token(user.id, user.role, user.email)
        logger.info("User %s logged in", user.id)
        return {
            "accessToken": token,
            "tokenType": "Bearer",
            "expiresIn": self.services.jwt.access_token_ttl,
            "user": public_user(user),
        }

    async def _register(self, data: RegisterInput, ctx: ActionContext) -> dict[str, Any]:
        settings = self.services.settings
        now = utcnow()

        with self.services.db.transaction(ERRORS["USER_EXISTS"], "USER_EXISTS") as conn:
            if find_user_by_email(conn, data.email) is not None:
                raise ConflictError(ERRORS["USER_EXISTS"], code="USER_EXISTS")

            role = UserRole.USER
            if data.email in settings.super_admin_emails:
                role = UserRole.SUPER_ADMIN
            elif data.code:
                invitation = conn.execute(
                    select(invitations.c.id).where(
                        invitations.c.token == data.code,
                        invitations.c.email == data.email,
                        invitations.c.used.is_(False),
                        invitations.c.expiresAt > now,
                    )
                ).first()
                if invitation is None:
                    raise ValidationError(
                        ERRORS["INVALID_CODE"],
                        violations=[Violation("code", ERRORS["INVALID_CODE"])],
                        code="INVALID_CODE",
                    )
                conn.execute(
                    update(invitations)
                    .where(invitations.c.id == invitation.id)
                    .values(used=True, updatedAt=now)
                )
                role = UserRole.ADMIN

            user_id = new_id()
            conn.execute(
                insert(users).values(
                    id=user_id,
                    name=data.name,
                    lastName=data.lastName,
                    email=data.email,
                    password=self.services.passwords.hash(data.password),
                    role=role.value,
                    active=True,
                    createdAt=now,
                    updatedAt=now,
                )
            )
            created = find_user_by_id(conn, user_id)

        invalidate_tags(self.services.cache, *USER_TAGS)
        logger.info("User %s registered as %s", user_id, role.value)
        return public_user(created)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    async def _forgot_password(self, data: ForgotPasswordInput, ctx: ActionContext) -> dict[str, bool]:
        with self.services.db.connect() as conn:
            user = find_user_by_email(conn, data.email)
        if user is None:
            raise NotFoundError(ERRORS["USER_NOT_FOUND"], code="USER_NOT_FOUND")

        token = self.services.jwt.generate_reset_token(user.id, user.email)
        query = urlencode({"token": token, "email": user.email})
        link = f"{self.services.settings.app_url}{RESET_PASSWORD_PATH}?{query}"
        self.services.email.send(render_email("reset_password", user.email, link, user.name))
        return {"sent": True}

    async def _reset_password(self, data: ResetPasswordInput, ctx: ActionContext) -> dict[str, bool]:
        try:
            claims = self.services.jwt.validate_reset_token(data.token)
        except JWTError as exc:
            raise UnauthenticatedError(ERRORS["INVALID_JWT"], code="INVALID_JWT") from exc

        now = utcnow()
        with self.services.db.transaction() as conn:
            user = find_user_by_id(conn, claims.user_id)
            if user is None or normalize_email(claims.email or "") != user.email:
                raise NotFoundError(ERRORS["JWT_USER_NOT_FOUND"], code="JWT_USER_NOT_FOUND")

            _enforce_cooldown(user.passwordChangedAt, now)
            conn.execute(
                update(users)
                .where(users.c.id == user.id)
                .values(
                    password=self.services.passwords.hash(data.password),
                    passwordChangedAt=now,
                    updatedAt=now,
                )
            )

        logger.info("Password reset for user %s", user.id)
        return {"reset": True}

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def _create_invitation(self, data: InvitationInput, ctx: ActionContext) -> dict[str, Any]:
        now = utcnow()
        expires_at = now + INVITATION_TTL
        token = uuid.uuid4().hex

        with self.services.db.transaction() as conn:
            if find_user_by_email(conn, data.email) is not None:
                raise ConflictError(ERRORS["USER_EXISTS"], code="USER_EXISTS")
            active = conn.execute(
                select(invitations.c.id).where(
                    invitations.c.email == data.email,
                    invitations.c.used.is_(False),
                    invitations.c.expiresAt > now,
                )
            ).first()
            if active is not None:
                raise ConflictError(
                    ERRORS["INVITATION_ALREADY_ACTIVE"], code="INVITATION_ALREADY_ACTIVE"
                )
            conn.execute(
                insert(invitations).values(
                    id=new_id(),
                    email=data.email,
                    token=token,
                    expiresAt=expires_at,
                    used=False,
                    invitedBy=ctx.session.user_id,
                    createdAt=now,
                    updatedAt=now,
                )
            )

        query = urlencode({"code": token, "email": data.email})
        link = f"{self.services.settings.app_url}{REGISTER_PATH}?{query}"
        self.services.email.send(render_email("welcome", data.email, link))
        logger.info("Invitation sent to %s by %s", data.email, ctx.session.user_id)
        return {"email": data.email, "expiresAt": expires_at.isoformat()}


def _enforce_cooldown(changed_at, now) -> None:
    """Reject a second password change within the cooldown window.

    Raises:
        RateLimitedError: Telling how many minutes remain
    """
    if changed_at is None:
        return
    elapsed = (now - changed_at).total_seconds()
    remaining = PASSWORD_CHANGE_COOLDOWN_MINUTES * 60 - elapsed
    if remaining > 0:
        minutes = max(1, math.ceil(remaining / 60))
        raise RateLimitedError(
            f"Debes esperar {minutes} minutos antes de cambiar tu contraseña nuevamente.",
            retry_after=math.ceil(remaining),
            code="PASSWORD_CHANGE_COOLDOWN",
        )
