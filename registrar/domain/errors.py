"""Error types raised across the service.

`AppError` is the typed error handlers raise for expected business-rule
violations. The other classes describe failures of collaborators (database,
tokens, uploads) as closed kinds so the HTTP layer can switch on them without
knowing the third-party exception hierarchy behind them.
"""
from enum import Enum
from typing import Any


class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, code: str = "INTERNAL_ERROR",
                 details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


class ConfigurationError(RuntimeError):
    """Process-level misconfiguration (e.g. missing signing secret)."""


class DataErrorKind(str, Enum):
    UNIQUE_VIOLATION = "unique_violation"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    REQUIRED_RELATION = "required_relation"
    NOT_FOUND = "not_found"
    SCHEMA_ERROR = "schema_error"
    INVALID_DATA = "invalid_data"
    CONNECTION_ERROR = "connection_error"
    UNKNOWN = "unknown"


class DataAccessError(Exception):
    def __init__(self, kind: DataErrorKind, message: str = "", field: str | None = None,
                 driver_code: str | None = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.field = field
        self.driver_code = driver_code


class TokenError(Exception):
    pass


class TokenExpiredError(TokenError):
    pass


class TokenInvalidError(TokenError):
    pass


class UploadErrorKind(str, Enum):
    FILE_TOO_LARGE = "file_too_large"
    TOO_MANY_FILES = "too_many_files"
    UNEXPECTED_FIELD = "unexpected_field"
    UNSUPPORTED_TYPE = "unsupported_type"


class UploadError(Exception):
    def __init__(self, kind: UploadErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
