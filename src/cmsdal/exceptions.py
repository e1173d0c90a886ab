"""Exception hierarchy for the CMS data-access layer.

Every exception carries an HTTP-ish ``status_code`` and an ``error_code``
string. The CRUD engine turns the expected ones into result envelopes; the
rest propagate to the route layer.
"""
from typing import Any, Iterable, Optional


class DatabaseError(Exception):
    """Base exception for database operations."""
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(DatabaseError):
    """Raised when a requested record is not found."""
    error_code = "RECORD_NOT_FOUND"

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class ValidationError(DatabaseError):
    """Raised when field validation fails."""
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[Iterable[str]] = None):
        super().__init__(message, status_code=400)
        self.errors = list(errors) if errors is not None else [message]


class InvalidParamsError(ValidationError):
    """Raised when request parameters (ids, custom checks) are unusable."""
    error_code = "INVALID_PARAMS"


class EnumValidationError(ValidationError):
    """Raised when an array filter holds values outside its enum."""
    error_code = "ENUM_VALIDATION_FAILED"

    def __init__(self, field: str, invalid_values: Iterable[Any], allowed_values: Iterable[Any]):
        self.field = field
        self.invalid_values = list(invalid_values)
        self.allowed_values = list(allowed_values)
        message = "{} validation failed: invalid values: {}, allowed values: {}".format(
            field,
            ", ".join(str(v) for v in self.invalid_values),
            ", ".join(str(v) for v in self.allowed_values),
        )
        super().__init__(message)


class UniqueConstraintError(DatabaseError):
    """Raised when a record with the same unique value already exists."""
    error_code = "DUPLICATE_ENTRY"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, status_code=409)
        self.field = field


class UnsupportedOperatorError(DatabaseError):
    """Raised for a numeric comparison operator outside the whitelist."""

    def __init__(self, operator: str):
        super().__init__(f"Unsupported operator: {operator}", status_code=500)
        self.operator = operator


class UnsupportedMatchTypeError(DatabaseError):
    """Raised for an unknown string match type."""

    def __init__(self, match_type: str):
        super().__init__(f"Unsupported match type: {match_type}", status_code=500)
        self.match_type = match_type
