"""Domain services: schema parsing, record validation and pagination."""

from stashbase.domain.services.pagination import PageWindow, paginate
from stashbase.domain.services.record_validator import FieldError, RecordValidator
from stashbase.domain.services.schema_parser import SchemaParser

__all__ = [
    "FieldError",
    "PageWindow",
    "RecordValidator",
    "SchemaParser",
    "paginate",
]
