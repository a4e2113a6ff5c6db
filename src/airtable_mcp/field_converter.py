"""
Field Value Conversion

Convert values to and from the shapes Airtable expects for each field type.
"""

import re
from datetime import date, datetime
from typing import Any
from urllib.parse import urlparse

from airtable_mcp.errors import ValidationError


MULTIPLE_SELECT_TYPES = {"multipleSelect", "multipleSelects"}
DATE_TYPES = {"date", "dateTime"}
NUMERIC_TYPES = {"number", "currency", "percent", "rating", "duration"}
TEXT_TYPES = {"email", "url", "phoneNumber", "singleLineText", "multilineText", "richText"}
ATTACHMENT_TYPES = {"multipleAttachments", "attachment"}
AI_TYPES = {"aiText", "aiImage"}
COMPUTED_TYPES = {
    "formula", "rollup", "count", "lookup", "createdTime", "createdBy",
    "lastModifiedTime", "lastModifiedBy", "autoNumber",
}
LIST_TYPES = MULTIPLE_SELECT_TYPES | ATTACHMENT_TYPES | {"multipleRecordLinks", "multipleCollaborators"}

FIELD_TYPES = frozenset(
    MULTIPLE_SELECT_TYPES | DATE_TYPES | NUMERIC_TYPES | TEXT_TYPES | ATTACHMENT_TYPES
    | AI_TYPES | COMPUTED_TYPES | LIST_TYPES
    | {"singleSelect", "checkbox", "barcode", "button"}
)

_EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else [value]


def _to_iso(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).isoformat()
        except ValueError:
            return value
    return value


def format_field_value(value: Any, field: dict) -> Any:
    """
    Convert a value to the format Airtable expects for field's type.

    Args:
        value: Caller-supplied value
        field: Field metadata ({"name", "type", "options"})

    Raises:
        ValidationError: field is read-only (computed or AI-generated)
    """
    if value is None:
        return None

    field_type = field.get("type")

    if field_type == "singleSelect":
        return value if isinstance(value, str) else str(value)

    if field_type in MULTIPLE_SELECT_TYPES:
        return value if isinstance(value, list) else [str(value)]

    if field_type in DATE_TYPES:
        return _to_iso(value)

    if field_type in NUMERIC_TYPES:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        try:
            return float(str(value))
        except ValueError as e:
            raise ValidationError(f"Invalid number for field \"{field.get('name')}\": {value!r}") from e

    if field_type == "checkbox":
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() == "true" or value == "1"
        return bool(value)

    if field_type == "multipleRecordLinks":
        return [v if isinstance(v, str) else v["id"] for v in _as_list(value)]

    if field_type in ATTACHMENT_TYPES:
        return [{"url": v} if isinstance(v, str) else v for v in _as_list(value)]

    if field_type == "multipleCollaborators":
        return [{"id": v} if isinstance(v, str) else v for v in _as_list(value)]

    if field_type in TEXT_TYPES:
        return str(value)

    if field_type in AI_TYPES:
        raise ValidationError(f'Field type "{field_type}" is AI-generated and read-only')

    if field_type in COMPUTED_TYPES:
        raise ValidationError(f'Field type "{field_type}" is read-only and cannot be set')

    return value


def _choice_names(field: dict) -> list[str] | None:
    choices = (field.get("options") or {}).get("choices")
    if not choices:
        return None
    return [choice["name"] for choice in choices]


def validate_field_value(value: Any, field: dict) -> tuple[bool, str | None]:
    """
    Validate a value against field metadata.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None:
        return True, None

    field_type = field.get("type")
    name = field.get("name")

    if field_type == "singleSelect":
        valid_choices = _choice_names(field)
        if valid_choices and str(value) not in valid_choices:
            return False, (
                f'Invalid choice for field "{name}". Valid choices: {", ".join(valid_choices)}'
            )

    elif field_type in MULTIPLE_SELECT_TYPES:
        valid_choices = _choice_names(field)
        if valid_choices:
            invalid = [str(v) for v in _as_list(value) if str(v) not in valid_choices]
            if invalid:
                return False, (
                    f'Invalid choices for field "{name}": {", ".join(invalid)}. '
                    f'Valid choices: {", ".join(valid_choices)}'
                )

    elif field_type == "email":
        if not _EMAIL_PATTERN.fullmatch(str(value)):
            return False, f'Invalid email format for field "{name}"'

    elif field_type == "url":
        parsed = urlparse(str(value))
        if not parsed.scheme or not (parsed.netloc or parsed.path):
            return False, f'Invalid URL format for field "{name}"'

    return True, None


def convert_fields(fields: dict[str, Any], schema_fields: list[dict]) -> dict[str, Any]:
    """
    Validate and format every value in a record's fields.

    Fields without metadata are passed through unchanged.

    Raises:
        ValidationError: on the first invalid value
    """
    metadata = {f["name"]: f for f in schema_fields}
    formatted = {}

    for field_name, value in fields.items():
        field = metadata.get(field_name)
        if field is None:
            formatted[field_name] = value
            continue

        is_valid, error = validate_field_value(value, field)
        if not is_valid:
            raise ValidationError(error)

        formatted[field_name] = format_field_value(value, field)

    return formatted
