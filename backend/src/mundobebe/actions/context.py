"""Per-invocation context threaded through the action pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from mundobebe.auth.roles import UserRole


@dataclass(frozen=True)
class Session:
    """An authenticated session.

    Attributes:
        user_id: Subject id of the authenticated user
        role: The user's role
        email: The user's email (used by per-email rate limits)
    """

    user_id: str
    role: UserRole
    email: str | None = None


@dataclass(frozen=True)
class ActionContext:
    """Context built fresh for every action invocation.

    Never persisted. The auth stage produces an enriched copy holding the
    session; stages never mutate the instance they receive.

    Attributes:
        session: The resolved session, set by the auth stage
        credentials: Raw bearer credentials taken from the request
        client_ip: Network origin of the request, used as a fallback
            rate-limit identifier
    """

    session: Session | None = None
    credentials: str | None = None
    client_ip: str | None = None


@runtime_checkable
class SessionProvider(Protocol):
    """Resolves the current session for an invocation."""

    def get_current_session(self, context: ActionContext) -> Session | None:
        """Return the session for ``context`` or None when unauthenticated."""
        ...


# An action takes (input, context) and returns an awaitable result.
Action = Callable[[Any, ActionContext], Awaitable[Any]]

# A middleware stage transforms an action into a wrapped action.
Middleware = Callable[[Action], Action]
