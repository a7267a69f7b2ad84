"""User management for administrators.

Role rules: SUPER_ADMIN manages ADMIN, USER and GUEST accounts; ADMIN
manages USER and GUEST accounts. Nobody manages their own account from
these screens (see :mod:`mundobebe.accounts.profile`), and the user list
never shows accounts the viewer cannot manage, so the viewer is part of
the list cache key.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from pydantic_core import PydanticCustomError
from sqlalchemy import Connection, and_, delete, func, insert, select, update

from mundobebe.actions import (
    ActionContext,
    compose_middleware,
    reject_null,
    require_session_or_fail,
    with_error_handling,
    with_rate_limit,
    with_validation,
)
from mundobebe.auth.password import meets_password_policy
from mundobebe.auth.roles import ADMIN_ROLES, UserRole, can_manage_role, visible_roles
from mundobebe.cache import invalidate_tags, with_cache
from mundobebe.datatable.query import ListQuery, fetch_page, order_by_clause
from mundobebe.errors import ConflictError, NotFoundError, UnauthorizedError
from mundobebe.filters import FieldType, FilterField, compile_filters, simple_where
from mundobebe.messages import ERRORS
from mundobebe.persistence.database import new_id, row_to_dict, utcnow
from mundobebe.persistence.schema import users
from mundobebe.text import normalize_email

if TYPE_CHECKING:
    from mundobebe.services import AppServices

logger = logging.getLogger(__name__)

USERS_TAG = "users"
ROLE_COUNTS_TAG = "user-role-counts"
USER_TAGS = (USERS_TAG, ROLE_COUNTS_TAG)

# Columns safe to return to clients
PUBLIC_COLUMNS = tuple(c for c in users.c if c.name != "password")


def _check_password(value: str) -> str:
    if not meets_password_policy(value):
        raise PydanticCustomError("weak_password", ERRORS["WEAK_PASSWORD"])
    return value


Password = Annotated[str, AfterValidator(_check_password)]
Email = Annotated[EmailStr, AfterValidator(normalize_email)]


def public_user(row: Any) -> dict[str, Any]:
    """Row as a dict without the password hash."""
    result = row_to_dict(row)
    result.pop("password", None)
    return result


def find_user_by_email(conn: Connection, email: str):
    return conn.execute(select(users).where(users.c.email == normalize_email(email))).first()


def find_user_by_id(conn: Connection, user_id: str):
    return conn.execute(select(users).where(users.c.id == user_id)).first()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class UserInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)


class UserCreate(UserInput):
    name: str = Field(min_length=1, max_length=120)
    lastName: str = Field(default="", max_length=120)
    username: str | None = Field(default=None, max_length=60)
    email: Email
    phone: str | None = Field(default=None, max_length=40)
    password: Password
    role: UserRole = UserRole.USER
    active: bool = True


class UserUpdate(UserInput):
    id: str = Field(min_length=1)
    name: str | None = Field(default=None, min_length=1, max_length=120)
    lastName: str | None = Field(default=None, max_length=120)
    username: str | None = Field(default=None, max_length=60)
    email: Email | None = None
    phone: str | None = Field(default=None, max_length=40)
    password: Password | None = None
    role: UserRole | None = None
    active: bool | None = None

    _not_null = reject_null("name", "lastName", "email", "password", "role", "active")


class DeleteUsersInput(UserInput):
    ids: list[str] = Field(min_length=1)


class UserListQuery(ListQuery):
    name: str | None = None
    username: str | None = None
    email: str | None = None
    phone: str | None = None
    role: list[UserRole] = Field(default_factory=list)
    active: bool | None = None


USER_FILTER_FIELDS = {
    "name": FilterField(users.c.name, FieldType.TEXT),
    "lastName": FilterField(users.c.lastName, FieldType.TEXT),
    "username": FilterField(users.c.username, FieldType.TEXT),
    "email": FilterField(users.c.email, FieldType.TEXT),
    "phone": FilterField(users.c.phone, FieldType.TEXT),
    "role": FilterField(users.c.role, FieldType.MULTI_SELECT),
    "active": FilterField(users.c.active, FieldType.BOOLEAN),
    "createdAt": FilterField(users.c.createdAt, FieldType.DATE),
}

USER_LIST_PARAMS = ("flags", "role")


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class UserManagementService:
    """Pipeline-wrapped user management actions for administrators."""

    def __init__(self, services: AppServices):
        self.services = services
        admin_only = require_session_or_fail(services.sessions, ADMIN_ROLES)
        limiter = services.rate_limiter
        ttl = services.settings.cache_ttl_seconds

        self.create_user = compose_middleware(
            with_error_handling(),
            with_validation(UserCreate, ERRORS["INVALID_INPUT"]),
            admin_only,
            with_rate_limit(limiter, requests=10, window="1m", prefix="ratelimit:users:create"),
        )(self._create_user)
        self.update_user = compose_middleware(
            with_error_handling(),
            with_validation(UserUpdate, ERRORS["INVALID_INPUT"]),
            admin_only,
            with_rate_limit(limiter, requests=10, window="1m", prefix="ratelimit:users:update"),
        )(self._update_user)
        self.delete_users = compose_middleware(
            with_error_handling(),
            with_validation(DeleteUsersInput, ERRORS["INVALID_INPUT"]),
            admin_only,
            with_rate_limit(limiter, requests=5, window="1m", prefix="ratelimit:users:delete"),
        )(self._delete_users)
        self.list_users = compose_middleware(
            with_error_handling(),
            with_validation(UserListQuery),
            admin_only,
            with_cache(services.cache, USERS_TAG, ttl, [USERS_TAG], key_extra=_viewer_key),
        )(self._list_users)
        self.role_counts = compose_middleware(
            with_error_handling(),
            admin_only,
            with_cache(services.cache, ROLE_COUNTS_TAG, ttl, [ROLE_COUNTS_TAG], key_extra=_viewer_key),
        )(self._role_counts)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _create_user(self, data: UserCreate, ctx: ActionContext) -> dict[str, Any]:
        actor = ctx.session
        if not can_manage_role(actor.role, data.role):
            raise UnauthorizedError(ERRORS["FORBIDDEN"], code="FORBIDDEN")

        now = utcnow()
        values = data.model_dump()
        values["password"] = self.services.passwords.hash(data.password)
        values.update(id=new_id(), role=data.role.value, createdAt=now, updatedAt=now)

        with self._transaction() as conn:
            if find_user_by_email(conn, data.email) is not None:
                raise ConflictError(ERRORS["EMAIL_ALREADY_EXISTS"], code="EMAIL_ALREADY_EXISTS")
            conn.execute(insert(users).values(**values))
            created = find_user_by_id(conn, values["id"])

        invalidate_tags(self.services.cache, *USER_TAGS)
        logger.info("User %s (%s) created by %s", values["id"], data.role.value, actor.user_id)
        return public_user(created)

    async def _update_user(self, data: UserUpdate, ctx: ActionContext) -> dict[str, Any]:
        actor = ctx.session
        values = data.model_dump(exclude_unset=True, exclude={"id"})

        with self._transaction() as conn:
            target = find_user_by_id(conn, data.id)
            if target is None:
                raise NotFoundError(ERRORS["USER_NOT_FOUND"], code="USER_NOT_FOUND")
            if target.id == actor.user_id or not can_manage_role(actor.role, target.role):
                raise UnauthorizedError(ERRORS["FORBIDDEN"], code="FORBIDDEN")

            if data.role is not None and data.role.value != target.role:
                if not can_manage_role(actor.role, data.role):
                    raise UnauthorizedError(
                        ERRORS["INSUFICIENT_PERMISSIONS_FOR_ROLE_CHANGE"],
                        code="INSUFICIENT_PERMISSIONS_FOR_ROLE_CHANGE",
                    )
            if data.role is not None:
                values["role"] = data.role.value

            if data.email is not None and data.email != target.email:
                if find_user_by_email(conn, data.email) is not None:
                    raise ConflictError(ERRORS["EMAIL_ALREADY_EXISTS"], code="EMAIL_ALREADY_EXISTS")

            if data.password is not None:
                values["password"] = self.services.passwords.hash(data.password)

            values["updatedAt"] = utcnow()
            conn.execute(update(users).where(users.c.id == data.id).values(**values))
            updated = find_user_by_id(conn, data.id)

        invalidate_tags(self.services.cache, *USER_TAGS)
        logger.info("User %s updated by %s", data.id, actor.user_id)
        return public_user(updated)

    async def _delete_users(self, data: DeleteUsersInput, ctx: ActionContext) -> dict[str, int]:
        actor = ctx.session
        with self._transaction() as conn:
            targets = conn.execute(select(users.c.id, users.c.role).where(users.c.id.in_(data.ids))).all()
            if not targets:
                raise NotFoundError(ERRORS["USER_NOT_FOUND"], code="USER_NOT_FOUND")
            for target in targets:
                if target.id == actor.user_id or not can_manage_role(actor.role, target.role):
                    raise UnauthorizedError(ERRORS["FORBIDDEN"], code="FORBIDDEN")
            result = conn.execute(delete(users).where(users.c.id.in_([t.id for t in targets])))
            deleted = result.rowcount

        invalidate_tags(self.services.cache, *USER_TAGS)
        logger.info("%d user(s) deleted by %s", deleted, actor.user_id)
        return {"deleted": deleted}

    def _transaction(self):
        return self.services.db.transaction(
            conflict_message=ERRORS["EMAIL_ALREADY_EXISTS"],
            conflict_code="EMAIL_ALREADY_EXISTS",
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def where_clause(self, query: UserListQuery, ctx: ActionContext):
        """Visibility scope of the viewer AND the requested filters."""
        viewer = ctx.session
        scope = [
            users.c.id != viewer.user_id,
            users.c.role.in_([role.value for role in visible_roles(viewer.role)]),
        ]
        if query.advanced:
            requested = compile_filters(USER_FILTER_FIELDS, query.filters, query.join_operator)
        else:
            requested = simple_where(
                text=[
                    (users.c.name + " " + users.c.lastName, query.name),
                    (users.c.username, query.username),
                    (users.c.email, query.email),
                    (users.c.phone, query.phone),
                ],
                equals=[(users.c.active, query.active)],
                any_of=[(users.c.role, [role.value for role in query.role])],
                date_column=users.c.createdAt,
                date_from=query.created_from,
                date_to=query.created_to,
            )
        if requested is not None:
            scope.append(requested)
        return scope

    async def _list_users(self, query: UserListQuery, ctx: ActionContext) -> dict[str, Any]:
        order_by = order_by_clause(
            {column.name: column for column in PUBLIC_COLUMNS},
            query.sort,
            default=users.c.createdAt.desc(),
        )
        with self.services.db.connect() as conn:
            return fetch_page(
                conn,
                users,
                and_(*self.where_clause(query, ctx)),
                order_by,
                query.page,
                query.per_page,
                columns=PUBLIC_COLUMNS,
            )

    async def _role_counts(self, data: Any, ctx: ActionContext) -> dict[str, int]:
        viewer = ctx.session
        roles = [role.value for role in visible_roles(viewer.role)]
        with self.services.db.connect() as conn:
            rows = conn.execute(
                select(users.c.role, func.count())
                .where(users.c.role.in_(roles), users.c.id != viewer.user_id)
                .group_by(users.c.role)
            ).all()
        counts = {role: 0 for role in roles}
        counts.update({role: total for role, total in rows})
        return counts


def _viewer_key(data: Any, ctx: ActionContext) -> dict[str, str]:
    session = ctx.session
    return {"viewer": session.user_id, "role": session.role.value}
