"""Schema definition parsing.

Turns a declarative schema definition into Field entries, rejecting unknown
types, unknown options and conflicting constraints up front so that
Resource setup fails fast with a SchemaError.
"""

import re
from typing import Any, Mapping

from stashbase.core.exceptions import SchemaError
from stashbase.domain.entities.field import FIELD_TYPE_ALIASES, Field, FieldType
from stashbase.domain.services.record_validator import RecordValidator

# Field names must not start with "_", which is reserved for system keys
NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")

FIELD_OPTIONS = frozenset({"type", "required", "default", "index", "computed", "compute"})
INDEX_OPTIONS = frozenset({"unique"})


class SchemaParser:
    """Parser for declarative schema definitions.

    Accepted definition shapes:
        {"fields": {...}, "additional_properties": False}
        {"fields": {...}, "additionalProperties": False}
        {...}  # a bare field map
    """

    MAX_FIELD_NAME_LENGTH = 64

    @classmethod
    def parse(cls, definition: Mapping[str, Any]) -> tuple[dict[str, Field], bool]:
        """Parse a full schema definition.

        Returns:
            Tuple of (fields by name, additional_properties flag).

        Raises:
            SchemaError: If the definition is malformed.
        """
        if not isinstance(definition, Mapping):
            raise SchemaError("Schema definition must be a mapping")

        if "fields" in definition:
            field_map = definition["fields"]
            extra_keys = set(definition) - {"fields", "additional_properties", "additionalProperties"}
            if extra_keys:
                raise SchemaError(f"Unknown schema option(s): {', '.join(sorted(extra_keys))}")
            additional = definition.get(
                "additional_properties", definition.get("additionalProperties", True)
            )
        else:
            field_map = definition
            additional = True

        if not isinstance(field_map, Mapping):
            raise SchemaError("Schema 'fields' must be a mapping")
        if not isinstance(additional, bool):
            raise SchemaError("additional_properties must be a boolean")

        fields = {name: cls.parse_field(name, spec) for name, spec in field_map.items()}
        return fields, additional

    @classmethod
    def parse_field(cls, name: str, spec: Any) -> Field:
        """Parse one field definition (a type name or an option mapping)."""
        cls.validate_field_name(name)

        if isinstance(spec, str):
            return Field(name=name, type=cls.resolve_type(name, spec))

        if not isinstance(spec, Mapping):
            raise SchemaError("Field definition must be a type name or a mapping", field=name)

        unknown = set(spec) - FIELD_OPTIONS
        if unknown:
            raise SchemaError(f"Unknown field option(s): {', '.join(sorted(unknown))}", field=name)

        field_type = cls.resolve_type(name, spec.get("type", FieldType.ANY.value))
        required = cls._flag(name, spec, "required")
        computed = cls._flag(name, spec, "computed")
        unique = cls._parse_index(name, spec.get("index"))
        default = spec.get("default")
        compute = spec.get("compute")

        if computed:
            if not callable(compute):
                raise SchemaError("Computed field requires a callable 'compute'", field=name)
            if required:
                raise SchemaError("Computed field cannot be required", field=name)
            if unique:
                raise SchemaError("Computed field cannot have a unique index", field=name)
            if default is not None:
                raise SchemaError("Computed field cannot declare a default", field=name)
        elif compute is not None:
            raise SchemaError("'compute' is only allowed on computed fields", field=name)

        if default is not None:
            error = RecordValidator.validate_field_value(default, field_type, name)
            if error:
                raise SchemaError(f"Default value is invalid: {error.message}", field=name)

        return Field(
            name=name,
            type=field_type,
            required=required,
            unique=unique,
            default=default,
            compute=compute if computed else None,
        )

    @classmethod
    def validate_field_name(cls, name: Any) -> None:
        if not isinstance(name, str) or not name:
            raise SchemaError("Field name is required")
        if len(name) > cls.MAX_FIELD_NAME_LENGTH:
            raise SchemaError(
                f"Field name must be at most {cls.MAX_FIELD_NAME_LENGTH} characters", field=name
            )
        if not NAME_PATTERN.match(name):
            raise SchemaError(
                "Field name must start with a letter and contain only alphanumeric characters and underscores",
                field=name,
            )

    @classmethod
    def resolve_type(cls, name: str, type_name: Any) -> FieldType:
        if not isinstance(type_name, str):
            raise SchemaError("Field type must be a string", field=name)
        key = type_name.lower()
        if key in FIELD_TYPE_ALIASES:
            return FIELD_TYPE_ALIASES[key]
        try:
            return FieldType(key)
        except ValueError:
            valid = ", ".join(t.value for t in FieldType)
            raise SchemaError(f"Unknown field type '{type_name}'. Valid types: {valid}", field=name) from None

    @staticmethod
    def _flag(name: str, spec: Mapping[str, Any], option: str) -> bool:
        value = spec.get(option, False)
        if not isinstance(value, bool):
            raise SchemaError(f"'{option}' must be a boolean", field=name)
        return value

    @staticmethod
    def _parse_index(name: str, index: Any) -> bool:
        if index is None:
            return False
        if not isinstance(index, Mapping):
            raise SchemaError("'index' must be a mapping such as {'unique': True}", field=name)
        unknown = set(index) - INDEX_OPTIONS
        if unknown:
            raise SchemaError(f"Unknown index option(s): {', '.join(sorted(unknown))}", field=name)
        unique = index.get("unique", False)
        if not isinstance(unique, bool):
            raise SchemaError("'index.unique' must be a boolean", field=name)
        return unique
