"""Map domain errors onto HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from mundobebe.errors import AppError, ErrorKind, RateLimitedError, RedirectRequired, ValidationError

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    body = {
        "isSuccess": False,
        "message": exc.message,
        "code": exc.code,
        "errors": [v.to_dict() for v in exc.violations] if isinstance(exc, ValidationError) else [],
    }
    headers = {}
    if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=STATUS_BY_KIND[exc.kind], content=body, headers=headers)


async def redirect_handler(request: Request, exc: RedirectRequired) -> RedirectResponse:
    return RedirectResponse(exc.location, status_code=303)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RedirectRequired, redirect_handler)
