"""Field entity for schema definitions.

A field's kind is resolved once, when the schema is parsed, into a
FieldType member; records are never re-inspected to decide how a field
should be treated.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional


class FieldType(str, Enum):
    """Supported field types for schemas."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    EMAIL = "email"
    URL = "url"
    OBJECT = "object"
    ARRAY = "array"
    ANY = "any"


# Alternate spellings accepted in schema definitions
FIELD_TYPE_ALIASES: dict[str, FieldType] = {
    "text": FieldType.STRING,
    "datetime": FieldType.DATE,
    "json": FieldType.OBJECT,
}


@dataclass(frozen=True)
class Field:
    """A single declared field.

    Attributes:
        name: Field name (key in the record mapping).
        type: Declared FieldType.
        required: Whether the field must be present and non-null.
        unique: Whether the storage adapter enforces a unique index on it.
        default: Value applied on create when the field is missing.
        compute: Read-time function ``(record) -> value`` for computed fields.
    """

    name: str
    type: FieldType
    required: bool = False
    unique: bool = False
    default: Any = None
    compute: Optional[Callable[[dict[str, Any]], Any]] = None

    @property
    def is_computed(self) -> bool:
        """Computed fields are derived at read time and never persisted."""
        return self.compute is not None

    @property
    def has_default(self) -> bool:
        return self.default is not None
