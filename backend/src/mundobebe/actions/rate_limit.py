"""Sliding-window rate limiting stage."""

from __future__ import annotations

import functools
import math
import re
from typing import Any, Callable

from mundobebe.actions.context import Action, ActionContext, Middleware
from mundobebe.errors import RateLimitedError
from mundobebe.messages import wait_minutes_message
from mundobebe.ratelimit.store import RateLimitStore

DEFAULT_IDENTIFIER = "127.0.0.1"

_DURATION = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d)\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400}

Identifier = str | Callable[[Any], str] | None


def parse_duration(window: str | int | float) -> float:
    """Convert a window such as ``"10m"`` or ``"120s"`` into seconds.

    Plain numbers are taken as seconds.

    Raises:
        ValueError: For malformed or non-positive durations
    """
    if isinstance(window, (int, float)):
        seconds = float(window)
    else:
        match = _DURATION.match(window)
        if not match:
            raise ValueError(f"Invalid rate-limit window: {window!r}")
        amount, unit = match.groups()
        seconds = int(amount) * _UNIT_SECONDS[unit]
    if seconds <= 0:
        raise ValueError(f"Rate-limit window must be positive: {window!r}")
    return seconds


def with_rate_limit(
    store: RateLimitStore,
    requests: int,
    window: str | int | float,
    identifier: Identifier = None,
    prefix: str = "ratelimit",
) -> Middleware:
    """Reject calls beyond ``requests`` per sliding ``window``.

    Args:
        store: Counter store shared by every worker
        requests: Quota per window
        window: Window length, e.g. ``"1m"``, ``"10m"``, ``"120s"`` or seconds
        identifier: Fixed key, a function of the validated input, or None to
            use the request's client IP
        prefix: Namespace for counter keys

    Raises:
        RateLimitedError: Quota exceeded. The message tells how long to wait.

    Store failures are not caught, so an unreachable store rejects the call.
    """
    if requests < 1:
        raise ValueError("requests must be at least 1")
    window_seconds = parse_duration(window)

    def stage(action: Action) -> Action:
        @functools.wraps(action)
        async def handler(data: Any, ctx: ActionContext) -> Any:
            key = f"{prefix}:{_resolve_identifier(identifier, data, ctx)}"
            result = store.increment(key, window_seconds, requests)
            if not result.allowed:
                wait_seconds = max(1, math.ceil(result.reset_after))
                raise RateLimitedError(
                    wait_minutes_message(max(1, math.ceil(wait_seconds / 60))),
                    retry_after=wait_seconds,
                    context={"key": key, "limit": requests, "window": window_seconds},
                )
            return await action(data, ctx)

        return handler

    return stage


def _resolve_identifier(identifier: Identifier, data: Any, ctx: ActionContext) -> str:
    if callable(identifier):
        return identifier(data)
    if identifier:
        return identifier
    return ctx.client_ip or DEFAULT_IDENTIFIER
