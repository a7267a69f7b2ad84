"""Composable middleware pipeline around domain actions.

A middleware stage is a function ``(action) -> action'`` where an action is
an async ``(input, context) -> output`` callable. Stages are stateless and
are combined with :func:`compose_middleware`:

    create_category = compose_middleware(
        with_error_handling(),
        with_validation(CategoryCreate, "Datos de categoría inválidos"),
        require_session_or_fail(sessions, ADMIN_ROLES),
        with_rate_limit(limiter, requests=10, window="1m"),
    )(_create_category)

By convention error handling is listed first so it observes every failure
raised further in, including validation, auth and rate limiting.
"""

from __future__ import annotations

import functools
import logging
from typing import Any

from pydantic import BaseModel, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from mundobebe.actions.context import Action, ActionContext, Middleware
from mundobebe.errors import AppError, InternalError, RedirectRequired, ValidationError, Violation
from mundobebe.messages import ERRORS

logger = logging.getLogger(__name__)


def compose_middleware(*stages: Middleware) -> Middleware:
    """Compose stages so that the first one listed is the outermost.

    Given ``[A, B, C]`` the composed call order is A wraps B wraps C wraps
    the base action. The composer does not care what the stages do.

    Args:
        *stages: Middleware stages, outermost first

    Returns:
        A middleware that applies every stage to a base action
    """

    def apply(action: Action) -> Action:
        wrapped = action
        for stage in reversed(stages):
            wrapped = stage(wrapped)
        return wrapped

    return apply


def with_error_handling() -> Middleware:
    """Normalize failures raised anywhere downstream.

    Recognized domain errors are logged and re-raised unchanged. Any other
    exception is logged with its traceback and wrapped into an
    :class:`InternalError` that keeps the original as its cause. Nothing
    is ever swallowed.
    """

    def stage(action: Action) -> Action:
        @functools.wraps(action)
        async def handler(data: Any, ctx: ActionContext) -> Any:
            try:
                return await action(data, ctx)
            except RedirectRequired:
                raise
            except AppError as exc:
                logger.warning(
                    "Action %s failed with %s: %s",
                    _action_name(action),
                    exc.code,
                    exc.message,
                )
                raise
            except Exception as exc:
                logger.exception("Unexpected error in action %s", _action_name(action))
                raise InternalError(
                    cause=exc,
                    context={"action": _action_name(action), "error": repr(exc)},
                ) from exc

        return handler

    return stage


def with_validation(schema: type[BaseModel], error_message: str | None = None) -> Middleware:
    """Parse the raw input with a pydantic model before continuing.

    On success the parsed model replaces the raw input, so downstream
    stages only ever see validated and coerced data.

    Args:
        schema: Pydantic model class describing the input
        error_message: Top-level message of the raised ValidationError

    Raises:
        ValidationError: With one violation per failing field
    """
    message = error_message or ERRORS["VALIDATION"]

    def stage(action: Action) -> Action:
        @functools.wraps(action)
        async def handler(data: Any, ctx: ActionContext) -> Any:
            try:
                parsed = schema.model_validate(data)
            except PydanticValidationError as exc:
                raise ValidationError(message, violations=violations_from(exc)) from None
            return await action(parsed, ctx)

        return handler

    return stage


def reject_null(*fields: str) -> Any:
    """Field validator refusing an explicit ``null`` for the named fields.

    Partial update schemas default optional fields to ``None`` meaning "not
    sent". A client that sends ``null`` for a NOT NULL column gets a
    validation violation on that field instead of a failed write.

    Usage::

        class CategoryUpdate(CatalogInput):
            name: str | None = None

            _name_not_null = reject_null("name")
    """

    def check(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("not_nullable", ERRORS["NOT_NULLABLE"])
        return value

    return field_validator(*fields, mode="before")(check)


def violations_from(exc: PydanticValidationError) -> list[Violation]:
    """Flatten pydantic errors into dotted-path violations."""
    return [
        Violation(
            path=".".join(str(part) for part in error["loc"]),
            message=error["msg"],
        )
        for error in exc.errors()
    ]


def _action_name(action: Action) -> str:
    return getattr(action, "__qualname__", None) or getattr(action, "__name__", repr(action))
