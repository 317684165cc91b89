"""StashBase - schema-driven record engine.

Validated CRUD over pluggable storage adapters, before/after hooks on
every operation, computed fields, pagination and blob attachments.
"""

__version__ = "0.1.0"

from stashbase.application.services import Resource, ResourceManager
from stashbase.core.exceptions import (
    NotFoundError,
    SchemaError,
    StashbaseError,
    StorageIOError,
    UniqueConstraintError,
    ValidationError,
)
from stashbase.domain.entities import Attachment, HookContext, PageMeta, RecordList, Schema
from stashbase.domain.services import FieldError

__all__ = [
    "Attachment",
    "FieldError",
    "HookContext",
    "NotFoundError",
    "PageMeta",
    "RecordList",
    "Resource",
    "ResourceManager",
    "Schema",
    "SchemaError",
    "StashbaseError",
    "StorageIOError",
    "UniqueConstraintError",
    "ValidationError",
    "__version__",
]
