"""Error normalizer: every failure becomes one JSON envelope.

`normalize_error` is a pure function from an exception to a
`NormalizedError`; `error_response` renders it. The handlers registered by
`install_error_handlers` and the catch-all in the request middleware both go
through `error_response`, so no exception leaves the app unrendered.

Envelope::

    {"error": str, "code": str, "statusCode": int,
     "details"?: any, "stack"?: str, "originalError"?: str}
"""
import traceback
from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...config import settings
from ...domain.errors import (
    AppError, DataAccessError, DataErrorKind, TokenExpiredError, TokenInvalidError, UploadError,
    UploadErrorKind,
)

logger = structlog.get_logger(__name__)

GENERIC_MESSAGE = "Something went wrong. Please try again later."

_DATA_ERRORS: dict[DataErrorKind, tuple[int, str, str]] = {
    DataErrorKind.REQUIRED_RELATION: (400, "INVALID_RELATION", "Invalid relation: required field is missing"),
    DataErrorKind.FOREIGN_KEY_VIOLATION: (400, "FOREIGN_KEY_VIOLATION", "Invalid reference: related record does not exist"),
    DataErrorKind.NOT_FOUND: (404, "NOT_FOUND", "Record not found"),
    DataErrorKind.SCHEMA_ERROR: (500, "DATABASE_ERROR", "Database schema error"),
    DataErrorKind.INVALID_DATA: (400, "VALIDATION_ERROR", "Invalid data provided"),
    DataErrorKind.CONNECTION_ERROR: (503, "DATABASE_CONNECTION_ERROR", "Database connection failed"),
    DataErrorKind.UNKNOWN: (500, "DATABASE_ERROR", "Database operation failed"),
}

_UPLOAD_MESSAGES = {
    UploadErrorKind.FILE_TOO_LARGE: "File size too large",
    UploadErrorKind.TOO_MANY_FILES: "Too many files uploaded",
    UploadErrorKind.UNEXPECTED_FIELD: "Unexpected file field",
    UploadErrorKind.UNSUPPORTED_TYPE: "Unsupported file type",
}

_REQUEST_PARTS = ("body", "query", "path", "header", "cookie")


@dataclass
class NormalizedError:
    status_code: int
    code: str
    message: str
    details: Any = None
    stack: str | None = None
    original: str | None = None

    def body(self) -> dict:
        out = {"error": self.message, "code": self.code, "statusCode": self.status_code}
        if self.details is not None:
            out["details"] = self.details
        if self.stack is not None:
            out["stack"] = self.stack
            out["originalError"] = self.original
        return out


def _safe_value(value: Any) -> Any:
    try:
        return jsonable_encoder(value)
    except (TypeError, ValueError):
        return repr(value)


def format_validation_errors(errors: list[dict]) -> list[dict]:
    """Flatten pydantic errors into `{field, message, value}` entries."""
    details = []
    for err in errors:
        loc = list(err.get("loc", ()))
        if loc and loc[0] in _REQUEST_PARTS:
            loc = loc[1:]
        details.append({
            "field": ".".join(str(p) for p in loc),
            "message": err.get("msg", "Invalid value"),
            "value": None if err.get("type") == "missing" else _safe_value(err.get("input")),
        })
    return details


def _from_validation(exc: RequestValidationError) -> NormalizedError:
    errors = list(exc.errors())
    if any(e.get("type") == "json_invalid" for e in errors):
        return NormalizedError(400, "INVALID_JSON", "Invalid JSON format")
    query_only = bool(errors) and all(e.get("loc", ("",))[0] == "query" for e in errors)
    message = "Invalid query parameters" if query_only else "Validation failed"
    return NormalizedError(400, "VALIDATION_ERROR", message, details=format_validation_errors(errors))


def _from_data_access(exc: DataAccessError) -> NormalizedError:
    if exc.kind is DataErrorKind.UNIQUE_VIOLATION:
        field = exc.field or "field"
        return NormalizedError(409, "DUPLICATE_ENTRY", f"A record with this {field} already exists",
                               details={"field": field, "constraint": "unique"})
    status, code, message = _DATA_ERRORS[exc.kind]
    details = {"driverCode": exc.driver_code} if exc.kind is DataErrorKind.UNKNOWN and exc.driver_code else None
    return NormalizedError(status, code, message, details=details)


def _from_http(exc: StarletteHTTPException) -> NormalizedError:
    if exc.status_code == 404:
        return NormalizedError(404, "NOT_FOUND", "Resource not found")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return NormalizedError(exc.status_code, "HTTP_ERROR", message)


def normalize_error(exc: BaseException, environment: str | None = None) -> NormalizedError:
    env = (environment or settings.ENV).lower()

    if isinstance(exc, AppError):
        result = NormalizedError(exc.status_code, exc.code, exc.message, details=exc.details)
    elif isinstance(exc, RequestValidationError):
        result = _from_validation(exc)
    elif isinstance(exc, DataAccessError):
        result = _from_data_access(exc)
    elif isinstance(exc, TokenExpiredError):
        result = NormalizedError(401, "TOKEN_EXPIRED", "Authentication token has expired")
    elif isinstance(exc, TokenInvalidError):
        result = NormalizedError(401, "INVALID_TOKEN", "Invalid authentication token")
    elif isinstance(exc, UploadError):
        status = 415 if exc.kind is UploadErrorKind.UNSUPPORTED_TYPE else 400
        result = NormalizedError(status, "UPLOAD_ERROR", _UPLOAD_MESSAGES[exc.kind])
    elif isinstance(exc, RateLimitExceeded):
        result = NormalizedError(429, "RATE_LIMITED", "Too many requests, please try again later",
                                 details={"limit": str(exc.detail)})
    elif isinstance(exc, StarletteHTTPException):
        result = _from_http(exc)
    else:
        result = NormalizedError(500, "INTERNAL_ERROR", str(exc) or "Internal server error")

    if env == "production" and result.status_code >= 500:
        result.message = GENERIC_MESSAGE
        result.details = None
    if env == "development":
        result.stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        result.original = str(exc)
    return result


def error_response(request: Request, exc: BaseException) -> JSONResponse:
    normalized = normalize_error(exc)
    log = logger.error if normalized.status_code >= 500 else logger.info
    log(
        "request_error",
        method=request.method,
        path=request.url.path,
        status_code=normalized.status_code,
        code=normalized.code,
        error=str(exc),
    )
    headers = getattr(exc, "headers", None) if isinstance(exc, StarletteHTTPException) else None
    return JSONResponse(status_code=normalized.status_code, content=jsonable_encoder(normalized.body()),
                        headers=headers)


async def _handle(request: Request, exc: Exception) -> JSONResponse:
    return error_response(request, exc)


def install_error_handlers(app: FastAPI) -> None:
    for exc_class in (AppError, RequestValidationError, DataAccessError, TokenExpiredError,
                      TokenInvalidError, UploadError, RateLimitExceeded, StarletteHTTPException):
        app.add_exception_handler(exc_class, _handle)
