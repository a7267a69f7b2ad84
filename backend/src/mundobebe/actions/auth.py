"""Authentication and role gating stages.

Two explicit variants exist and each entry point picks one:

* :func:`require_session_or_fail` for headless/API actions, raising
  :class:`UnauthenticatedError` when there is no session.
* :func:`require_session_or_redirect` for browser flows, raising
  :class:`RedirectRequired` so the UI layer navigates to the login page.

Both raise :class:`UnauthorizedError` when the session role is not allowed
and pass an enriched context (holding the session) downstream.
"""

from __future__ import annotations

import dataclasses
import functools
from typing import Any, Iterable

from mundobebe.actions.context import Action, ActionContext, Middleware, Session, SessionProvider
from mundobebe.auth.roles import UserRole
from mundobebe.errors import RedirectRequired, UnauthenticatedError, UnauthorizedError

LOGIN_PATH = "/iniciar-sesion"


def require_session_or_fail(
    provider: SessionProvider,
    roles: Iterable[UserRole | str],
) -> Middleware:
    """Require an authenticated session holding one of ``roles``.

    Args:
        provider: Session provider consulted on every call
        roles: Roles allowed through

    Raises:
        UnauthenticatedError: No session could be resolved
        UnauthorizedError: The session role is not in ``roles``
    """
    allowed = _normalize_roles(roles)

    def on_missing() -> None:
        raise UnauthenticatedError()

    return _session_stage(provider, allowed, on_missing)


def require_session_or_redirect(
    provider: SessionProvider,
    roles: Iterable[UserRole | str],
    redirect_to: str = LOGIN_PATH,
) -> Middleware:
    """Like :func:`require_session_or_fail` but redirects when unauthenticated.

    Args:
        provider: Session provider consulted on every call
        roles: Roles allowed through
        redirect_to: Location the UI should navigate to

    Raises:
        RedirectRequired: No session could be resolved
        UnauthorizedError: The session role is not in ``roles``
    """
    allowed = _normalize_roles(roles)

    def on_missing() -> None:
        raise RedirectRequired(redirect_to)

    return _session_stage(provider, allowed, on_missing)


def _normalize_roles(roles: Iterable[UserRole | str]) -> frozenset[UserRole]:
    return frozenset(UserRole(role) for role in roles)


def _session_stage(provider: SessionProvider, allowed: frozenset[UserRole], on_missing) -> Middleware:
    def stage(action: Action) -> Action:
        @functools.wraps(action)
        async def handler(data: Any, ctx: ActionContext) -> Any:
            session: Session | None = provider.get_current_session(ctx)
            if session is None:
                on_missing()
            if session.role not in allowed:
                raise UnauthorizedError(
                    context={"user_id": session.user_id, "role": session.role.value},
                )
            return await action(data, dataclasses.replace(ctx, session=session))

        return handler

    return stage
