"""Unit tests for schema definition parsing."""

import pytest

from stashbase.core.exceptions import SchemaError
from stashbase.domain.entities.field import FieldType
from stashbase.domain.services.schema_parser import SchemaParser


class TestParseDefinition:
    def test_fields_key_with_additional_properties(self) -> None:
        fields, additional = SchemaParser.parse(
            {"fields": {"title": "string"}, "additional_properties": False}
        )

        assert list(fields) == ["title"]
        assert additional is False

    def test_camel_case_additional_properties_accepted(self) -> None:
        _, additional = SchemaParser.parse({"fields": {}, "additionalProperties": False})

        assert additional is False

    def test_bare_field_map(self) -> None:
        fields, additional = SchemaParser.parse({"title": "string", "views": "number"})

        assert fields["views"].type == FieldType.NUMBER
        assert additional is True

    def test_unknown_top_level_option_rejected(self) -> None:
        with pytest.raises(SchemaError, match="Unknown schema option"):
            SchemaParser.parse({"fields": {}, "strict": True})

    def test_non_boolean_additional_properties_rejected(self) -> None:
        with pytest.raises(SchemaError, match="additional_properties"):
            SchemaParser.parse({"fields": {}, "additional_properties": "no"})

    def test_non_mapping_definition_rejected(self) -> None:
        with pytest.raises(SchemaError):
            SchemaParser.parse(["title"])


class TestParseField:
    def test_type_name_string(self) -> None:
        field = SchemaParser.parse_field("firstname", "string")

        assert field.type == FieldType.STRING
        assert field.required is False
        assert field.unique is False

    @pytest.mark.parametrize(
        ("alias", "expected"),
        [("text", FieldType.STRING), ("datetime", FieldType.DATE), ("json", FieldType.OBJECT)],
    )
    def test_type_aliases(self, alias: str, expected: FieldType) -> None:
        assert SchemaParser.parse_field("value", alias).type == expected

    def test_type_defaults_to_any(self) -> None:
        assert SchemaParser.parse_field("blob", {}).type == FieldType.ANY

    def test_unique_index(self) -> None:
        field = SchemaParser.parse_field("username", {"type": "string", "index": {"unique": True}})

        assert field.unique is True

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(SchemaError, match="Unknown field type") as exc_info:
            SchemaParser.parse_field("age", "integer-ish")

        assert exc_info.value.field == "age"

    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(SchemaError, match="Unknown field option"):
            SchemaParser.parse_field("age", {"type": "number", "min": 0})

    def test_unknown_index_option_rejected(self) -> None:
        with pytest.raises(SchemaError, match="Unknown index option"):
            SchemaParser.parse_field("slug", {"type": "string", "index": {"sparse": True}})

    @pytest.mark.parametrize("name", ["_id", "1st", "has-dash", "with space", ""])
    def test_invalid_field_names_rejected(self, name: str) -> None:
        with pytest.raises(SchemaError):
            SchemaParser.parse_field(name, "string")

    def test_long_field_name_rejected(self) -> None:
        with pytest.raises(SchemaError, match="at most"):
            SchemaParser.parse_field("a" * 65, "string")

    def test_computed_field(self) -> None:
        field = SchemaParser.parse_field(
            "nickname",
            {"type": "string", "computed": True, "compute": lambda record: "x"},
        )

        assert field.is_computed is True

    def test_computed_without_compute_rejected(self) -> None:
        with pytest.raises(SchemaError, match="callable"):
            SchemaParser.parse_field("nickname", {"type": "string", "computed": True})

    def test_compute_without_computed_rejected(self) -> None:
        with pytest.raises(SchemaError, match="only allowed on computed"):
            SchemaParser.parse_field("nickname", {"type": "string", "compute": lambda r: "x"})

    @pytest.mark.parametrize(
        "option",
        [{"required": True}, {"index": {"unique": True}}, {"default": "x"}],
    )
    def test_computed_conflicts_rejected(self, option: dict) -> None:
        spec = {"type": "string", "computed": True, "compute": lambda r: "x", **option}

        with pytest.raises(SchemaError):
            SchemaParser.parse_field("nickname", spec)

    def test_default_of_wrong_type_rejected(self) -> None:
        with pytest.raises(SchemaError, match="Default value is invalid"):
            SchemaParser.parse_field("age", {"type": "number", "default": "ten"})

    def test_default_of_matching_type_kept(self) -> None:
        field = SchemaParser.parse_field("age", {"type": "number", "default": 0})

        assert field.has_default is True
        assert field.default == 0

    def test_non_boolean_flag_rejected(self) -> None:
        with pytest.raises(SchemaError, match="'required' must be a boolean"):
            SchemaParser.parse_field("age", {"type": "number", "required": "yes"})
