"""Domain error taxonomy.

Every failure surfaced to a caller resolves to one of a small closed set of
kinds. Each error carries a stable machine-readable ``code`` and a
user-readable, already localized ``message``. ``context`` is for logs only
and never leaves the process.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from mundobebe.messages import ERRORS


class ErrorKind(str, Enum):
    """Closed set of error kinds exposed to callers."""

    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Violation:
    """A single field-level validation failure.

    Attributes:
        path: Dotted path of the offending field (e.g. "address.city")
        message: Human-readable explanation
    """

    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message}


class AppError(Exception):
    """Base class for recognized domain errors."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message: str = ERRORS["INTERNAL_SERVER_ERROR"]

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.kind.value.upper()
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses. ``context`` is deliberately omitted."""
        return {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
        }


class ValidationError(AppError):
    """Input failed schema or business validation."""

    kind = ErrorKind.VALIDATION
    default_message = ERRORS["VALIDATION"]

    def __init__(
        self,
        message: str | None = None,
        violations: list[Violation] | None = None,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, context=context)
        self.violations = violations or []

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = [v.to_dict() for v in self.violations]
        return result


class UnauthenticatedError(AppError):
    """No authenticated session was found."""

    kind = ErrorKind.UNAUTHENTICATED
    default_message = ERRORS["UNAUTHENTICATED"]


class UnauthorizedError(AppError):
    """The session exists but lacks a required role."""

    kind = ErrorKind.UNAUTHORIZED
    default_message = ERRORS["UNAUTHORIZED"]


class RateLimitedError(AppError):
    """Quota or cooldown exceeded."""

    kind = ErrorKind.RATE_LIMITED
    default_message = ERRORS["TOO_MANY_REQUESTS"]

    def __init__(
        self,
        message: str | None = None,
        retry_after: int | None = None,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, context=context)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.retry_after is not None:
            result["retryAfter"] = self.retry_after
        return result


class NotFoundError(AppError):
    """A referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND
    default_message = ERRORS["NOT_FOUND"]


class ConflictError(AppError):
    """Uniqueness violation or business-rule conflict."""

    kind = ErrorKind.CONFLICT
    default_message = ERRORS["CONFLICT"]


class InternalError(AppError):
    """Unclassified or infrastructure fault.

    The original exception is kept as ``cause`` for logging and is never
    shown to the user.
    """

    kind = ErrorKind.INTERNAL
    default_message = ERRORS["INTERNAL_SERVER_ERROR"]

    def __init__(
        self,
        message: str | None = None,
        cause: BaseException | None = None,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, context=context)
        self.cause = cause


class RedirectRequired(Exception):
    """Control-flow signal asking the UI layer to navigate elsewhere.

    Raised by the redirecting auth stage for browser flows. It is not a
    domain error and passes through error handling untouched.
    """

    def __init__(self, location: str):
        self.location = location
        super().__init__(location)
