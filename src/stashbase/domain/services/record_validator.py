"""Record validation service for validating records against schemas.

Checks declared types, required-ness and unknown keys. Uniqueness is not
checked here; it needs a store lookup and is enforced by the storage
adapter as part of the write.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping

from stashbase.domain.entities.field import Field, FieldType
from stashbase.domain.entities.record import SYSTEM_KEYS


# Email validation pattern (simplified but effective)
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

# URL validation pattern (simplified)
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


@dataclass
class FieldError:
    """A single record validation error."""

    field: str
    message: str
    code: str


class RecordValidator:
    """Validator for record data against parsed schema fields."""

    @classmethod
    def validate_string(cls, value: Any, field_name: str) -> FieldError | None:
        if not isinstance(value, str):
            return FieldError(
                field=field_name,
                message=f"Expected string value, got {type(value).__name__}",
                code="invalid_type",
            )
        return None

    @classmethod
    def validate_number(cls, value: Any, field_name: str) -> FieldError | None:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return FieldError(
                field=field_name,
                message=f"Expected number value, got {type(value).__name__}",
                code="invalid_type",
            )
        return None

    @classmethod
    def validate_boolean(cls, value: Any, field_name: str) -> FieldError | None:
        if not isinstance(value, bool):
            return FieldError(
                field=field_name,
                message=f"Expected boolean value, got {type(value).__name__}",
                code="invalid_type",
            )
        return None

    @classmethod
    def validate_date(cls, value: Any, field_name: str) -> FieldError | None:
        """Validate a date field value.

        Accepts date/datetime objects or ISO 8601 formatted strings.
        """
        if isinstance(value, (datetime, date)):
            return None

        if isinstance(value, str):
            try:
                datetime.fromisoformat(value.replace("Z", "+00:00"))
                return None
            except ValueError:
                return FieldError(
                    field=field_name,
                    message="Invalid date format. Use ISO 8601 format (e.g., 2024-01-01T12:00:00Z)",
                    code="invalid_date_format",
                )

        return FieldError(
            field=field_name,
            message=f"Expected date string, got {type(value).__name__}",
            code="invalid_type",
        )

    @classmethod
    def validate_email(cls, value: Any, field_name: str) -> FieldError | None:
        error = cls.validate_string(value, field_name)
        if error:
            return error
        if not EMAIL_PATTERN.match(value):
            return FieldError(field=field_name, message="Invalid email format", code="invalid_email_format")
        return None

    @classmethod
    def validate_url(cls, value: Any, field_name: str) -> FieldError | None:
        error = cls.validate_string(value, field_name)
        if error:
            return error
        if not URL_PATTERN.match(value):
            return FieldError(
                field=field_name,
                message="Invalid URL format. Must start with http:// or https://",
                code="invalid_url_format",
            )
        return None

    @classmethod
    def validate_object(cls, value: Any, field_name: str) -> FieldError | None:
        if not isinstance(value, Mapping):
            return FieldError(
                field=field_name,
                message=f"Expected object value, got {type(value).__name__}",
                code="invalid_type",
            )
        return None

    @classmethod
    def validate_array(cls, value: Any, field_name: str) -> FieldError | None:
        if not isinstance(value, (list, tuple)):
            return FieldError(
                field=field_name,
                message=f"Expected array value, got {type(value).__name__}",
                code="invalid_type",
            )
        return None

    @classmethod
    def validate_field_value(
        cls, value: Any, field_type: FieldType, field_name: str
    ) -> FieldError | None:
        """Validate a single non-null value against its declared type.

        Returns:
            FieldError if invalid, None if valid.
        """
        validators = {
            FieldType.STRING: cls.validate_string,
            FieldType.NUMBER: cls.validate_number,
            FieldType.BOOLEAN: cls.validate_boolean,
            FieldType.DATE: cls.validate_date,
            FieldType.EMAIL: cls.validate_email,
            FieldType.URL: cls.validate_url,
            FieldType.OBJECT: cls.validate_object,
            FieldType.ARRAY: cls.validate_array,
        }
        validator = validators.get(field_type)
        if validator is None:
            # FieldType.ANY
            return None
        return validator(value, field_name)

    @classmethod
    def validate(
        cls,
        record: Mapping[str, Any],
        fields: Mapping[str, Field],
        additional_properties: bool = True,
    ) -> list[FieldError]:
        """Validate a full record.

        System keys and computed fields are skipped. Unknown keys are
        reported only when ``additional_properties`` is False.

        Returns:
            List of errors, empty when the record is valid.
        """
        errors: list[FieldError] = []

        if not additional_properties:
            for key in record:
                if key in SYSTEM_KEYS or key in fields:
                    continue
                errors.append(
                    FieldError(
                        field=key,
                        message=f"Unknown field '{key}' not defined in schema",
                        code="unknown_field",
                    )
                )

        for name, field in fields.items():
            if field.is_computed:
                continue

            if name not in record:
                if field.required:
                    errors.append(
                        FieldError(
                            field=name,
                            message=f"Required field '{name}' is missing",
                            code="required_missing",
                        )
                    )
                continue

            value = record[name]
            if value is None:
                if field.required:
                    errors.append(
                        FieldError(
                            field=name,
                            message=f"Required field '{name}' cannot be null",
                            code="required_null",
                        )
                    )
                continue

            error = cls.validate_field_value(value, field.type, name)
            if error:
                errors.append(error)

        return errors
