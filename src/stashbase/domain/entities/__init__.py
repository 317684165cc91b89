"""Domain entities for StashBase.

Entities are plain Python objects describing records, fields and schemas.
They have no dependencies on storage backends.
"""

from stashbase.domain.entities.field import Field, FieldType
from stashbase.domain.entities.hook_context import HookContext
from stashbase.domain.entities.record import Attachment, PageMeta, RecordList
from stashbase.domain.entities.schema import Schema, ValidationResult

__all__ = [
    "Attachment",
    "Field",
    "FieldType",
    "HookContext",
    "PageMeta",
    "RecordList",
    "Schema",
    "ValidationResult",
]
