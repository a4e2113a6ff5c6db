"""
Tests for field value conversion.
"""

from datetime import date

import pytest


def _field(field_type, name="F", choices=None):
    field = {"name": name, "type": field_type}
    if choices is not None:
        field["options"] = {"choices": [{"name": c} for c in choices]}
    return field


class TestFormatFieldValue:
    """Tests for converting values to Airtable's shapes."""

    def test_none_passes_through(self):
        from airtable_mcp.field_converter import format_field_value

        assert format_field_value(None, _field("number")) is None

    def test_single_select_stringified(self):
        from airtable_mcp.field_converter import format_field_value

        assert format_field_value(5, _field("singleSelect")) == "5"

    def test_multiple_select_wraps_scalar(self):
        from airtable_mcp.field_converter import format_field_value

        assert format_field_value("VIP", _field("multipleSelects")) == ["VIP"]
        assert format_field_value(["A", "B"], _field("multipleSelects")) == ["A", "B"]

    def test_numeric_strings_converted(self):
        from airtable_mcp.field_converter import format_field_value

        assert format_field_value("12.5", _field("currency")) == 12.5
        assert format_field_value(3, _field("rating")) == 3

    def test_invalid_number_rejected(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.field_converter import format_field_value

        with pytest.raises(ValidationError, match="Invalid number"):
            format_field_value("lots", _field("number", name="Followers"))

    @pytest.mark.parametrize("value, expected", [(True, True), ("true", True), ("1", True), ("no", False), (0, False)])
    def test_checkbox(self, value, expected):
        from airtable_mcp.field_converter import format_field_value

        assert format_field_value(value, _field("checkbox")) is expected

    def test_dates_to_iso(self):
        from airtable_mcp.field_converter import format_field_value

        assert format_field_value(date(2024, 3, 1), _field("date")) == "2024-03-01"
        assert format_field_value("2024-03-01T10:00:00Z", _field("dateTime")) == "2024-03-01T10:00:00+00:00"

    def test_record_links_and_attachments(self):
        from airtable_mcp.field_converter import format_field_value

        assert format_field_value("rec1", _field("multipleRecordLinks")) == ["rec1"]
        assert format_field_value([{"id": "rec2"}], _field("multipleRecordLinks")) == ["rec2"]
        assert format_field_value("https://x/a.png", _field("multipleAttachments")) == [{"url": "https://x/a.png"}]
        assert format_field_value("usr1", _field("multipleCollaborators")) == [{"id": "usr1"}]

    @pytest.mark.parametrize("field_type", ["formula", "rollup", "autoNumber", "aiText"])
    def test_read_only_fields_rejected(self, field_type):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.field_converter import format_field_value

        with pytest.raises(ValidationError, match="read-only"):
            format_field_value("x", _field(field_type))


class TestValidateFieldValue:
    """Tests for choice, email and URL validation."""

    def test_single_select_choice(self):
        from airtable_mcp.field_converter import validate_field_value

        field = _field("singleSelect", "Age", ["18-24", "25-34"])

        assert validate_field_value("18-24", field) == (True, None)
        is_valid, error = validate_field_value("99+", field)
        assert not is_valid
        assert "Valid choices: 18-24, 25-34" in error

    def test_multiple_select_choices(self):
        from airtable_mcp.field_converter import validate_field_value

        field = _field("multipleSelects", "Tags", ["A", "B"])

        is_valid, error = validate_field_value(["A", "C"], field)
        assert not is_valid
        assert "C" in error

    def test_select_without_choices_accepts_anything(self):
        from airtable_mcp.field_converter import validate_field_value

        assert validate_field_value("x", _field("singleSelect"))[0]

    def test_email_and_url(self):
        from airtable_mcp.field_converter import validate_field_value

        assert validate_field_value("jane@example.com", _field("email"))[0]
        assert not validate_field_value("jane", _field("email"))[0]
        assert validate_field_value("https://example.com", _field("url"))[0]
        assert not validate_field_value("example", _field("url"))[0]


class TestConvertFields:
    """Tests for converting a whole record."""

    def test_converts_known_and_passes_unknown(self):
        from airtable_mcp.field_converter import convert_fields

        schema = [_field("number", "Followers"), _field("multipleSelects", "Tags")]

        converted = convert_fields({"Followers": "100", "Tags": "VIP", "Notes": "hi"}, schema)

        assert converted == {"Followers": 100.0, "Tags": ["VIP"], "Notes": "hi"}

    def test_invalid_choice_raises(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.field_converter import convert_fields

        with pytest.raises(ValidationError, match="Invalid choice"):
            convert_fields({"Age": "old"}, [_field("singleSelect", "Age", ["18-24"])])
