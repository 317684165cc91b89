"""Exceptions raised by the record engine.

Validation and uniqueness errors reach the caller unmodified. Backend
failures are wrapped in StorageIOError; the engine never retries.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stashbase.domain.services.record_validator import FieldError


class StashbaseError(Exception):
    """Base class for all engine errors."""
    pass


class SchemaError(StashbaseError):
    """Raised when a schema definition is invalid."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(f"{field}: {message}" if field else message)


class ValidationError(StashbaseError):
    """Raised when a record does not satisfy its schema."""

    def __init__(self, errors: list["FieldError"]):
        self.errors = list(errors)
        summary = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"Record validation failed: {summary}")


class UniqueConstraintError(StashbaseError):
    """Raised when a write collides with a unique index."""

    def __init__(self, collection: str, field: str | None = None, value: Any = None):
        self.collection = collection
        self.field = field
        self.value = value
        if field:
            message = f"Duplicate value for unique field '{field}' in '{collection}'"
        else:
            message = f"Unique constraint violated in '{collection}'"
        super().__init__(message)


class NotFoundError(StashbaseError):
    """Raised when a record, attachment, blob or source file does not exist."""
    pass


class StorageIOError(StashbaseError, OSError):
    """Raised when a storage backend fails to complete an operation."""
    pass
