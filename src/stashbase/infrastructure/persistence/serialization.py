"""JSON encoding of record documents for text-based backends."""

import json
import uuid
from datetime import date, datetime
from typing import Any


def new_id() -> str:
    """Generate a record identifier."""
    return uuid.uuid4().hex


def _default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    """Serialize a document or filter value to compact JSON."""
    return json.dumps(value, default=_default, separators=(",", ":"), ensure_ascii=False)


def loads(text: str) -> Any:
    return json.loads(text)


def normalize(value: Any) -> Any:
    """Round-trip a value through JSON so in-memory copies match stored ones."""
    return loads(dumps(value))
