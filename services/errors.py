"""Failure kinds raised by the ingestion pipeline."""

from __future__ import annotations

from typing import Any, Iterable


class IngestError(Exception):
    """Base class for every outcome that ends a request with status ``00``."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationFailed(IngestError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class ValidationFailed(IngestError):
    """A payload was rejected by the validator."""


class InvalidPayloadError(ValidationFailed):
    pass


class MissingFieldsError(ValidationFailed):
    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = tuple(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class InvalidCommandError(ValidationFailed):
    def __init__(self, expected: str, actual: Any) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Invalid command code: expected {expected!r}, got {actual!r}")


class InvalidIndexError(ValidationFailed):
    def __init__(self, expected: str, actual: Any) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Invalid data index: expected {expected!r}, got {actual!r}")


class InvalidValueError(ValidationFailed):
    def __init__(self, field: str, value: Any, kind: str = "numeric") -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid {kind} value for {field}: {value!r}")


class StoreError(IngestError):
    """The record store could not persist or read a record."""


class RegistryError(ValueError):
    """Sensor registry configuration is inconsistent."""
