"""
Tool Input Schemas

Pydantic models for every MCP tool input. They bound array sizes and string
lengths, pin ID formats, and reject table/field names with unexpected
characters before anything reaches Airtable.

Smart query conditions form a closed tagged union discriminated on "type".
"""

import re
from typing import Annotated, Any, Literal, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from airtable_mcp.config import (
    DEFAULT_AGE_FIELD,
    MAX_AGE_RANGES,
    MAX_BATCH_SIZE,
    MAX_CONDITIONS,
    MAX_FIELDS,
    MAX_FORMULA_LENGTH,
    MAX_RECORDS,
    MAX_SORT_FIELDS,
    MAX_STRING_LENGTH,
    MAX_VALUES,
)
from airtable_mcp.errors import ValidationError
from airtable_mcp.field_converter import FIELD_TYPES

# ASCII word characters only; zero-width and other exotic characters are rejected
_NAME_PATTERN = re.compile(r"[A-Za-z0-9_\s\-()#+.,'!?&@$%]+")


def _name_validator(kind: str):
    def validate(value: str) -> str:
        if not value:
            raise ValueError(f"{kind} name cannot be empty")
        if len(value) > MAX_STRING_LENGTH:
            raise ValueError(f"{kind} name too long (max {MAX_STRING_LENGTH})")
        if not _NAME_PATTERN.fullmatch(value):
            raise ValueError(f"{kind} name contains potentially dangerous characters")
        return value

    return validate


def _field_map_validator(fields: dict[str, Any]) -> dict[str, Any]:
    if not fields:
        raise ValueError("At least one field must be provided")
    if len(fields) > MAX_FIELDS:
        raise ValueError(f"Too many fields (max {MAX_FIELDS})")
    return fields


def _field_type_validator(value: str) -> str:
    if value not in FIELD_TYPES:
        raise ValueError(f"Unknown field type: {value}")
    return value


TableName = Annotated[str, AfterValidator(_name_validator("Table"))]
FieldName = Annotated[str, AfterValidator(_name_validator("Field"))]
BaseId = Annotated[str, Field(pattern=r"^app[a-zA-Z0-9]{14}$")]
RecordId = Annotated[str, Field(pattern=r"^rec[a-zA-Z0-9]{14}$")]
Formula = Annotated[str, Field(max_length=MAX_FORMULA_LENGTH)]
ShortString = Annotated[str, Field(max_length=MAX_STRING_LENGTH)]
MaxRecords = Annotated[int, Field(gt=0, le=MAX_RECORDS)]
Age = Annotated[int, Field(ge=0, le=150)]
FiniteNumber = Annotated[float, Field(allow_inf_nan=False)]
FieldMap = Annotated[dict[FieldName, Any], AfterValidator(_field_map_validator)]
FieldTypeName = Annotated[str, AfterValidator(_field_type_validator)]

SortDirection = Literal["asc", "desc"]
Preset = Literal["minimal", "contact", "summary", "full"]
MatchType = Literal["hasAny", "hasAll", "hasNone"]
CombineWith = Literal["AND", "OR"]


class ToolInput(BaseModel):
    """Tool arguments arrive camelCased (baseId, maxRecords, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SortField(ToolInput):
    field: FieldName
    direction: SortDirection = "asc"


class AgeBounds(ToolInput):
    """Shared minAge <= maxAge check."""

    min_age: Age
    max_age: Age

    @model_validator(mode="after")
    def check_age_order(self):
        if self.min_age > self.max_age:
            raise ValueError("minAge must be less than or equal to maxAge")
        return self


# ============================================================================
# Smart Query Conditions
# ============================================================================

class AgeRangeCondition(AgeBounds):
    type: Literal["ageRange"]
    field_name: FieldName
    available_options: Annotated[list[str], Field(max_length=MAX_AGE_RANGES)] | None = None


class MultipleSelectCondition(ToolInput):
    type: Literal["multipleSelect"]
    field_name: FieldName
    match_type: MatchType
    values: Annotated[list[ShortString], Field(min_length=1, max_length=MAX_VALUES)]
    available_options: Annotated[list[ShortString], Field(max_length=MAX_VALUES)] | None = None
    use_fuzzy_match: bool = True


class NumberRangeCondition(ToolInput):
    type: Literal["numberRange"]
    field_name: FieldName
    min_value: FiniteNumber | None = Field(default=None, alias="min")
    max_value: FiniteNumber | None = Field(default=None, alias="max")


class DateRangeCondition(ToolInput):
    type: Literal["dateRange"]
    field_name: FieldName
    start_date: ShortString | None = None
    end_date: ShortString | None = None


class CustomFormulaCondition(ToolInput):
    """Raw formula passthrough. NOT validated beyond its length."""

    type: Literal["customFormula"]
    formula: Formula


Condition = Annotated[
    Union[
        AgeRangeCondition,
        MultipleSelectCondition,
        NumberRangeCondition,
        DateRangeCondition,
        CustomFormulaCondition,
    ],
    Field(discriminator="type"),
]


# ============================================================================
# Tool Input Schemas
# ============================================================================

class ListTablesInput(ToolInput):
    base_id: BaseId | None = None


class GetTableSchemaInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    refresh: bool = False


class ListRecordsInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    filter_by_formula: Formula | None = None
    max_records: MaxRecords | None = None
    view: ShortString | None = None
    fields: Annotated[list[FieldName], Field(max_length=MAX_FIELDS)] | None = None
    exclude_fields: Annotated[list[FieldName], Field(max_length=MAX_FIELDS)] | None = None
    exclude_attachments: bool | None = None
    exclude_long_text: bool | None = None
    preset: Preset | None = None
    sort: Annotated[list[SortField], Field(max_length=MAX_SORT_FIELDS)] | None = None


class GetRecordInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    record_id: RecordId


class CreateRecordInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    fields: FieldMap


class UpdateRecordInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    record_id: RecordId
    fields: FieldMap


class DeleteRecordInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    record_id: RecordId


class FieldDefinition(ToolInput):
    id: str | None = None
    name: FieldName
    type: FieldTypeName
    options: dict[str, Any] | None = None


class SetTableSchemaInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    fields: Annotated[list[FieldDefinition], Field(min_length=1, max_length=MAX_FIELDS)]


class QueryByAgeRangeInput(AgeBounds):
    base_id: BaseId | None = None
    table: TableName
    age_field_name: ShortString = DEFAULT_AGE_FIELD
    available_age_ranges: Annotated[list[str], Field(max_length=MAX_AGE_RANGES)] | None = None
    additional_filters: Formula | None = None
    max_records: MaxRecords | None = None
    fields: Annotated[list[FieldName], Field(max_length=MAX_FIELDS)] | None = None


class QueryMultipleSelectInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    field_name: FieldName
    match_type: MatchType
    values: Annotated[list[ShortString], Field(min_length=1, max_length=MAX_VALUES)]
    available_options: Annotated[list[ShortString], Field(max_length=MAX_VALUES)] | None = None
    use_fuzzy_match: bool = True
    additional_filters: Formula | None = None
    max_records: MaxRecords | None = None
    fields: Annotated[list[FieldName], Field(max_length=MAX_FIELDS)] | None = None


class SmartQueryInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    conditions: Annotated[list[Condition], Field(min_length=1, max_length=MAX_CONDITIONS)]
    combine_with: CombineWith = "AND"
    max_records: MaxRecords | None = None
    fields: Annotated[list[FieldName], Field(max_length=MAX_FIELDS)] | None = None
    sort: Annotated[list[SortField], Field(max_length=MAX_SORT_FIELDS)] | None = None


class BatchCreateRecordsInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    records: Annotated[list[FieldMap], Field(min_length=1, max_length=MAX_BATCH_SIZE)]


class RecordUpdate(ToolInput):
    id: RecordId
    fields: FieldMap


class BatchUpdateRecordsInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    updates: Annotated[list[RecordUpdate], Field(min_length=1, max_length=MAX_BATCH_SIZE)]


class BatchDeleteRecordsInput(ToolInput):
    base_id: BaseId | None = None
    table: TableName
    record_ids: Annotated[list[RecordId], Field(min_length=1, max_length=MAX_BATCH_SIZE)]


def format_validation_errors(error: PydanticValidationError) -> list[str]:
    """Render pydantic errors as "path: message" lines."""
    return [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in error.errors()
    ]


def validate_tool_args(model: type[ToolInput], args: dict[str, Any]) -> ToolInput:
    """
    Validate tool arguments against a schema.

    Raises:
        ValidationError: with one "path: message" detail per problem
    """
    try:
        return model.model_validate(args)
    except PydanticValidationError as e:
        raise ValidationError("Invalid tool arguments", format_validation_errors(e)) from e
