"""Request guards, response headers and error-envelope handlers for the API."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from identity.api.contracts import ApiErrorResponse
from identity.api.errors import (
    ApiErrorCode,
    identity_error_payload,
    to_error_payload,
    validation_message,
)
from identity.auth.errors import IdentityError
from identity.core.config import AppConfig
from identity.core.logging import set_correlation_id

# Responses carry tokens and profile data; none of it may be cached or framed.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


def _envelope(status_code: int, error_code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiErrorResponse(error_code=error_code, message=message).model_dump(),
    )


def _request_extra(request: Request, status_code: int, **fields: Any) -> dict[str, Any]:
    return {
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
        **fields,
    }


def register_http_middleware(app: FastAPI, *, config: AppConfig, logger: Any) -> None:
    """Attach body-size guard, correlation ids and security headers."""
    max_bytes = config.security.request_max_bytes

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > max_bytes:
            logger.warning(
                "request_rejected_too_large",
                extra=_request_extra(request, 413),
            )
            return _envelope(
                413,
                ApiErrorCode.REQUEST_TOO_LARGE,
                f"Request size exceeds configured limit ({max_bytes} bytes).",
            )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        set_correlation_id(correlation_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        response.headers.update(SECURITY_HEADERS)
        logger.info(
            "request_completed",
            extra=_request_extra(request, response.status_code),
        )
        return response


def register_exception_handlers(app: FastAPI, *, logger: Any) -> None:
    """Map domain, routing, validation and unexpected errors to the envelope."""

    @app.exception_handler(IdentityError)
    async def handle_identity_error(
        request: Request, exc: IdentityError
    ) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "identity_error",
            extra=_request_extra(request, exc.status_code, error_code=exc.error_code),
        )
        payload = identity_error_payload(exc)
        return _envelope(exc.status_code, payload["error_code"], payload["message"])

    # Registered on Starlette's class so unknown routes and methods get the envelope too.
    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        logger.warning("http_exception", extra=_request_extra(request, exc.status_code))
        payload = to_error_payload(exc.detail, exc.status_code)
        response = _envelope(exc.status_code, payload["error_code"], payload["message"])
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        logger.warning("validation_exception", extra=_request_extra(request, 422))
        return _envelope(
            422,
            ApiErrorCode.VALIDATION_ERROR,
            validation_message(list(exc.errors())),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception("unexpected_exception", extra=_request_extra(request, 500))
        return _envelope(
            500,
            ApiErrorCode.INTERNAL_SERVER_ERROR,
            "Internal server error",
        )
