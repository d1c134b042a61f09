# ridehub/common/error_handlers.py
"""
FastAPI exception handlers.
Every error leaves the API as ErrorResponse {error_code, message, details}.
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ridehub.common.exceptions import AuthenticationError, RideHubError
from ridehub.common.logger import log_error, log_warning
from ridehub.shared.models.common import ErrorResponse


def _render(status_code: int, body: ErrorResponse, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


async def domain_exception_handler(request: Request, exc: RideHubError) -> JSONResponse:
    """Domain errors carry their own status and code."""
    if exc.status_code >= 500:
        await log_error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=True)
    else:
        await log_warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return _render(
        exc.status_code,
        ErrorResponse(error_code=exc.error_code, message=exc.message, details=exc.details),
        headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body / parameter validation errors are reported as 400."""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return _render(
        status.HTTP_400_BAD_REQUEST,
        ErrorResponse(error_code="VALIDATION_ERROR", message="Validation error", details={"errors": errors}),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected is logged with its traceback and hidden from the client."""
    await log_error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}",
        exc_info=True,
    )
    return _render(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(error_code="INTERNAL_ERROR", message="Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RideHubError, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
