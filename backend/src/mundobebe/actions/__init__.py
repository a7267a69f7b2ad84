"""Action middleware pipeline.

Composable cross-cutting stages (error handling, validation, auth, rate
limiting, caching) wrapped around domain actions.
"""

from mundobebe.actions.auth import require_session_or_fail, require_session_or_redirect
from mundobebe.actions.context import Action, ActionContext, Middleware, Session, SessionProvider
from mundobebe.actions.pipeline import compose_middleware, reject_null, with_error_handling, with_validation
from mundobebe.actions.rate_limit import parse_duration, with_rate_limit

__all__ = [
    "Action",
    "ActionContext",
    "Middleware",
    "Session",
    "SessionProvider",
    "compose_middleware",
    "parse_duration",
    "reject_null",
    "require_session_or_fail",
    "require_session_or_redirect",
    "with_error_handling",
    "with_rate_limit",
    "with_validation",
]
