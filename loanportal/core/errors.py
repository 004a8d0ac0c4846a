from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base for errors raised by services and rendered with a fixed status/code."""

    status_code = 400
    code = "bad_request"

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class BadRequestError(DomainError):
    status_code = 400
    code = "bad_request"


class ForbiddenError(DomainError):
    status_code = 403
    code = "forbidden"


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class ConflictError(DomainError):
    status_code = 409
    code = "conflict"


class InvalidStatusTransition(ConflictError):
    code = "invalid_status_transition"


class StaleVersionError(ConflictError):
    code = "stale_version"


_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    413: "payload_too_large",
    422: "validation_error",
    429: "rate_limited",
}


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def error_envelope(
    status_code: int, code: str, message: str, details: Any = None, headers: dict | None = None
) -> JSONResponse:
    """Render an error in the same ``{code, message, data, details}`` shape as successful responses."""
    if details is None:
        details = {}
    elif isinstance(details, list):
        details = {"errors": details}
    elif not isinstance(details, dict):
        details = {"detail": str(details)}
    payload = {"code": code, "message": message, "data": None, "details": details}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload), headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, "http_error")
    detail = exc.detail
    if isinstance(detail, dict):
        code = detail.get("code") or code
        message = detail.get("message") or _phrase(exc.status_code)
        details = detail.get("details")
    elif isinstance(detail, str):
        message, details = detail, None
    else:
        message, details = _phrase(exc.status_code), detail
    return error_envelope(exc.status_code, code, message, details, headers=getattr(exc, "headers", None))


async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code == 409:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return error_envelope(exc.status_code, exc.code, exc.message, exc.details)


async def stale_data_exception_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    # two writers raced on the same loan application version
    logger.warning("Concurrent update rejected on %s %s", request.method, request.url.path)
    return error_envelope(409, StaleVersionError.code, "The record was modified by another request; reload and retry")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Validation failed"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in {"body", "query", "path", "form"})
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg") or message)
    return error_envelope(422, "validation_error", message, {"errors": errors})


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = error_envelope(429, "rate_limited", "Too many requests, slow down", getattr(exc, "detail", None))
    if isinstance(getattr(exc, "headers", None), dict):
        response.headers.update(exc.headers)
    return response


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_envelope(500, "internal_server_error", "Internal server error")


def register_exception_handlers(app) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(DomainError, domain_exception_handler)
    app.add_exception_handler(StaleDataError, stale_data_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
