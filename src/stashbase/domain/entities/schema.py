"""Schema entity: declared fields, validation and the hook registry.

A Schema is immutable after construction except for hook registration.
Hooks belong to the Schema instance; two Schema objects never share hooks.
"""

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from stashbase.core.hooks import HookPhase, HookRegistry
from stashbase.domain.entities.field import Field
from stashbase.domain.entities.record import SYSTEM_KEYS
from stashbase.domain.services.record_validator import FieldError, RecordValidator
from stashbase.domain.services.schema_parser import SchemaParser


@dataclass
class ValidationResult:
    """Outcome of Schema.validate()."""

    valid: bool
    errors: list[FieldError] = field(default_factory=list)


class Schema:
    """Field definitions plus before/after hooks for one kind of record.

    Example:
        schema = Schema({
            "additional_properties": False,
            "fields": {
                "firstname": "string",
                "username": {"type": "string", "index": {"unique": True}},
                "nickname": {
                    "type": "string",
                    "computed": True,
                    "compute": lambda record: "little " + record.get("firstname", ""),
                },
            },
        })
    """

    def __init__(self, definition: Mapping[str, Any]) -> None:
        """Parse the definition.

        Raises:
            SchemaError: If the definition is invalid.
        """
        fields, additional_properties = SchemaParser.parse(definition)
        self._fields = MappingProxyType(fields)
        self._additional_properties = additional_properties
        self._hooks = HookRegistry()

    @property
    def fields(self) -> Mapping[str, Field]:
        return self._fields

    @property
    def additional_properties(self) -> bool:
        return self._additional_properties

    @property
    def unique_fields(self) -> list[str]:
        return [name for name, f in self._fields.items() if f.unique]

    @property
    def computed_fields(self) -> list[str]:
        return [name for name, f in self._fields.items() if f.is_computed]

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    # ------------------------------------------------------------------
    # Validation and record shaping
    # ------------------------------------------------------------------

    def validate(self, record: Mapping[str, Any]) -> ValidationResult:
        """Check a record against the declared fields.

        Uniqueness is not checked; that is the storage adapter's job.
        """
        errors = RecordValidator.validate(record, self._fields, self._additional_properties)
        return ValidationResult(valid=not errors, errors=errors)

    def apply_defaults(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``record`` with defaults filled in for missing fields."""
        result = dict(record)
        for name, f in self._fields.items():
            if name not in result and f.has_default:
                result[name] = copy.deepcopy(f.default)
        return result

    def strip(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``record`` without computed field values."""
        computed = set(self.computed_fields)
        return {k: v for k, v in record.items() if k not in computed}

    def user_data(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``record`` without system keys and computed values."""
        computed = set(self.computed_fields)
        return {k: v for k, v in record.items() if k not in computed and k not in SYSTEM_KEYS}

    def compute(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``record`` with every computed field resolved."""
        result = dict(record)
        for name, f in self._fields.items():
            if f.is_computed:
                result[name] = f.compute(result)
        return result

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def before(self, event: str, fn: Optional[Callable] = None) -> Any:
        """Register a ``before`` hook for ``event``.

        Works as a plain call returning the hook id, or as a decorator when
        ``fn`` is omitted:

            @schema.before("find")
            async def scope(payload, context):
                payload["query"]["owner"] = context.user
        """
        return self._register(HookPhase.BEFORE, event, fn)

    def after(self, event: str, fn: Optional[Callable] = None) -> Any:
        """Register an ``after`` hook for ``event``. See before()."""
        return self._register(HookPhase.AFTER, event, fn)

    def remove_hook(self, hook_id: str) -> bool:
        """Unregister a single hook by the id before()/after() returned."""
        return self._hooks.unregister(hook_id)

    def clear_hooks(self) -> None:
        """Drop every registered hook. Meant for test isolation."""
        self._hooks.clear()

    def _register(self, phase: str, event: str, fn: Optional[Callable]) -> Any:
        if fn is not None:
            return self._hooks.register(phase, event, fn)

        def decorator(func: Callable) -> Callable:
            self._hooks.register(phase, event, func)
            return func

        return decorator

    def __repr__(self) -> str:
        return f"Schema(fields={list(self._fields)}, additional_properties={self._additional_properties})"
