"""Request-to-action plumbing shared by every router."""

from collections.abc import Collection
from typing import Any

from fastapi import Request

from mundobebe.actions.context import ActionContext
from mundobebe.datatable.query import parse_search_params

SESSION_COOKIE = "session"


def client_ip(request: Request, trusted_proxies: Collection[str] = ()) -> str | None:
    """Resolve the caller's address.

    Proxy headers (``X-Forwarded-For``, then ``CF-Connecting-IP``) are only
    believed when the socket peer is a trusted proxy, or when
    ``trusted_proxies`` contains ``"*"``. Otherwise the socket peer wins.
    """
    peer = request.client.host if request.client else None
    if "*" in trusted_proxies or (peer is not None and peer in trusted_proxies):
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        cf_ip = request.headers.get("cf-connecting-ip")
        if cf_ip and cf_ip.strip():
            return cf_ip.strip()
    return peer


def get_action_context(request: Request) -> ActionContext:
    """Build a fresh ActionContext for the request.

    Credentials come from ``Authorization: Bearer`` or the session cookie.
    """
    credentials = None
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        credentials = auth_header[7:].strip()
    else:
        credentials = request.cookies.get(SESSION_COOKIE)
    services = getattr(request.app.state, "services", None)
    trusted = services.settings.trusted_proxies if services is not None else ()
    return ActionContext(credentials=credentials or None, client_ip=client_ip(request, trusted))


def search_params(request: Request, list_fields: tuple[str, ...] = ("flags",)) -> dict[str, Any]:
    return parse_search_params(request.query_params.multi_items(), list_fields=list_fields)


def success(message: str | None, data: Any = None) -> dict[str, Any]:
    return {"isSuccess": True, "message": message, "data": data}
