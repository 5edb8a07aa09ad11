from unittest.mock import MagicMock

import pytest
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from registrar.domain.errors import (
    AppError, DataAccessError, DataErrorKind, TokenExpiredError, TokenInvalidError, UploadError,
    UploadErrorKind,
)
from registrar.infrastructure.repositories import to_data_access_error
from registrar.interfaces.http.errors import GENERIC_MESSAGE, normalize_error


@pytest.mark.parametrize("kind,status,code", [
    (DataErrorKind.REQUIRED_RELATION, 400, "INVALID_RELATION"),
    (DataErrorKind.FOREIGN_KEY_VIOLATION, 400, "FOREIGN_KEY_VIOLATION"),
    (DataErrorKind.NOT_FOUND, 404, "NOT_FOUND"),
    (DataErrorKind.SCHEMA_ERROR, 500, "DATABASE_ERROR"),
    (DataErrorKind.INVALID_DATA, 400, "VALIDATION_ERROR"),
    (DataErrorKind.CONNECTION_ERROR, 503, "DATABASE_CONNECTION_ERROR"),
    (DataErrorKind.UNKNOWN, 500, "DATABASE_ERROR"),
])
def test_data_access_kinds(kind, status, code):
    result = normalize_error(DataAccessError(kind), "test")
    assert (result.status_code, result.code) == (status, code)


def test_unique_violation_names_field():
    result = normalize_error(DataAccessError(DataErrorKind.UNIQUE_VIOLATION, field="email"), "test")
    assert result.status_code == 409
    assert result.code == "DUPLICATE_ENTRY"
    assert result.message == "A record with this email already exists"
    assert result.details == {"field": "email", "constraint": "unique"}


def test_app_error_passes_through():
    result = normalize_error(AppError("Course not found", 404, "COURSE_NOT_FOUND"), "test")
    assert (result.status_code, result.code, result.message) == (404, "COURSE_NOT_FOUND", "Course not found")


def test_token_errors():
    assert normalize_error(TokenExpiredError(), "test").code == "TOKEN_EXPIRED"
    invalid = normalize_error(TokenInvalidError(), "test")
    assert (invalid.status_code, invalid.code) == (401, "INVALID_TOKEN")


@pytest.mark.parametrize("kind,status,message", [
    (UploadErrorKind.FILE_TOO_LARGE, 400, "File size too large"),
    (UploadErrorKind.TOO_MANY_FILES, 400, "Too many files uploaded"),
    (UploadErrorKind.UNEXPECTED_FIELD, 400, "Unexpected file field"),
    (UploadErrorKind.UNSUPPORTED_TYPE, 415, "Unsupported file type"),
])
def test_upload_errors(kind, status, message):
    result = normalize_error(UploadError(kind), "test")
    assert (result.status_code, result.code, result.message) == (status, "UPLOAD_ERROR", message)


def test_validation_details():
    exc = RequestValidationError([
        {"type": "missing", "loc": ("body", "email"), "msg": "Field required", "input": {}},
        {"type": "string_too_short", "loc": ("body", "student", "city"), "msg": "too short", "input": "a"},
    ])
    result = normalize_error(exc, "test")
    assert result.message == "Validation failed"
    assert result.details == [
        {"field": "email", "message": "Field required", "value": None},
        {"field": "student.city", "message": "too short", "value": "a"},
    ]


def test_framework_not_found():
    result = normalize_error(StarletteHTTPException(status_code=404), "test")
    assert (result.status_code, result.code, result.message) == (404, "NOT_FOUND", "Resource not found")


def test_rate_limit_exceeded():
    limit = MagicMock(error_message=None, limit="10 per 1 minute")
    result = normalize_error(RateLimitExceeded(limit), "test")
    assert (result.status_code, result.code) == (429, "RATE_LIMITED")
    assert result.message == "Too many requests, please try again later"
    assert result.details == {"limit": "10 per 1 minute"}


def test_unknown_error_is_internal():
    result = normalize_error(RuntimeError("boom"), "test")
    assert (result.status_code, result.code) == (500, "INTERNAL_ERROR")
    assert result.stack is None


def test_production_masks_server_errors():
    result = normalize_error(DataAccessError(DataErrorKind.UNKNOWN, driver_code="XX000"), "production")
    assert result.message == GENERIC_MESSAGE
    assert result.details is None
    assert "stack" not in result.body()


def test_production_keeps_client_errors():
    result = normalize_error(AppError("Course not found", 404, "COURSE_NOT_FOUND"), "production")
    assert result.message == "Course not found"


def test_development_includes_stack():
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        body = normalize_error(e, "development").body()
    assert "RuntimeError" in body["stack"]
    assert body["originalError"] == "boom"
    assert body["statusCode"] == 500


def test_translate_sqlite_unique_violation():
    orig = Exception("UNIQUE constraint failed: users.email")
    err = to_data_access_error(IntegrityError("INSERT", {}, orig))
    assert err.kind is DataErrorKind.UNIQUE_VIOLATION
    assert err.field == "email"


def test_translate_postgres_foreign_key():
    orig = MagicMock(pgcode="23503")
    orig.__str__.return_value = 'insert violates foreign key constraint "registrations_course_id_fkey"'
    err = to_data_access_error(IntegrityError("INSERT", {}, orig))
    assert err.kind is DataErrorKind.FOREIGN_KEY_VIOLATION


def test_translate_missing_table():
    err = to_data_access_error(OperationalError("SELECT", {}, Exception("no such table: users")))
    assert err.kind is DataErrorKind.SCHEMA_ERROR


def test_unknown_route_envelope(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json() == {"error": "Resource not found", "code": "NOT_FOUND", "statusCode": 404}


def test_wrong_method_envelope(client):
    response = client.delete("/health")
    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed", "code": "HTTP_ERROR", "statusCode": 405}


def test_unhandled_exception_rendered(client, monkeypatch):
    """Failures nobody anticipated still come back in the error envelope"""
    from registrar.interfaces.http.routers import courses

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(courses.CourseRepository, "list", explode)
    response = client.get("/api/courses")
    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
