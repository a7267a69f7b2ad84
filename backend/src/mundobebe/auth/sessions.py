"""Session provider backed by signed access tokens."""

from __future__ import annotations

import logging

from sqlalchemy import select

from mundobebe.actions.context import ActionContext, Session
from mundobebe.auth.jwt_service import JWTError, JWTService
from mundobebe.auth.roles import UserRole
from mundobebe.persistence.database import Database
from mundobebe.persistence.schema import users

logger = logging.getLogger(__name__)


class JWTSessionProvider:
    """Resolve sessions from the bearer credentials carried by the context.

    The token proves identity; the role is read from the database so that
    role changes and deactivations apply immediately instead of waiting for
    the token to expire.
    """

    def __init__(self, jwt_service: JWTService, db: Database):
        self._jwt = jwt_service
        self._db = db

    def get_current_session(self, context: ActionContext) -> Session | None:
        if not context.credentials:
            return None
        try:
            claims = self._jwt.validate_access_token(context.credentials)
        except JWTError as exc:
            logger.debug("Rejected session token: %s", exc)
            return None

        with self._db.connect() as conn:
            row = conn.execute(
                select(users.c.id, users.c.role, users.c.email, users.c.active)
                .where(users.c.id == claims.user_id)
            ).first()
        if row is None or not row.active:
            return None
        return Session(user_id=row.id, role=UserRole(row.role), email=row.email)


class StaticSessionProvider:
    """Always returns the same session (or none). Used by CLI tasks and tests."""

    def __init__(self, session: Session | None):
        self._session = session

    def get_current_session(self, context: ActionContext) -> Session | None:
        return self._session
