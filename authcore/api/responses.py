"""Uniform response envelope and the exception handlers that produce error envelopes.

Success and error bodies share one shape:
``{status, statusCode, message, data, meta?, timestamp, path}``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from authcore.config import settings
from authcore.core.errors import DEFAULT_MESSAGES, STATUS_BY_KIND, AuthError, AuthErrorKind
from authcore.core.metrics import AUTH_ERRORS

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Internal server error"


def _envelope(
    request: Request,
    *,
    status: str,
    status_code: int,
    message: str,
    data: Any = None,
    meta: dict | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "status": status,
        "statusCode": status_code,
        "message": message,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }
    if meta:
        body["meta"] = meta
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def success_response(
    request: Request,
    *,
    message: str,
    data: Any = None,
    meta: dict | None = None,
    status_code: int = 200,
) -> JSONResponse:
    return _envelope(request, status="success", status_code=status_code, message=message, data=data, meta=meta)


def error_response(
    request: Request,
    *,
    status_code: int,
    message: str,
    meta: dict | None = None,
) -> JSONResponse:
    return _envelope(request, status="error", status_code=status_code, message=message, meta=meta)


def _internal_error_message(exc: Exception) -> str:
    if settings.debug:
        return f"{GENERIC_SERVER_ERROR}: {type(exc).__name__}: {exc}"
    return GENERIC_SERVER_ERROR


def register_exception_handlers(app: FastAPI) -> None:
    """Map AuthError, validation, HTTP, rate-limit, DB and unexpected errors to the envelope."""

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        AUTH_ERRORS.labels(kind=exc.kind.value).inc()
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "Auth error kind=%s status=%s path=%s: %s",
            exc.kind.value,
            exc.status_code,
            request.url.path,
            exc.message,
        )
        return error_response(request, status_code=exc.status_code, message=exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        kind = AuthErrorKind.VALIDATION
        AUTH_ERRORS.labels(kind=kind.value).inc()
        logger.info("Validation failed path=%s errors=%s", request.url.path, errors)
        return error_response(
            request,
            status_code=STATUS_BY_KIND[kind],
            message=DEFAULT_MESSAGES[kind],
            meta={"errors": errors},
        )

    @app.exception_handler(RateLimitExceeded)
    async def handle_rate_limit(request: Request, exc: RateLimitExceeded):
        logger.warning("Rate limit exceeded path=%s: %s", request.url.path, exc.detail)
        return error_response(request, status_code=429, message="Too many requests. Please try again later.")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error("HTTP error status=%s path=%s: %s", exc.status_code, request.url.path, exc.detail)
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        response = error_response(request, status_code=exc.status_code, message=message)
        if isinstance(exc, HTTPException) and exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(SQLAlchemyError)
    async def handle_db_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error path=%s method=%s", request.url.path, request.method)
        return error_response(request, status_code=500, message=_internal_error_message(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error path=%s method=%s", request.url.path, request.method)
        return error_response(request, status_code=500, message=_internal_error_message(exc))
