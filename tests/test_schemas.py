"""
Tests for tool input schemas.
"""

import pytest

BASE_ID = "appABCDEFGHIJKLMN"
RECORD_ID = "recABCDEFGHIJKLMN"


class TestNameValidation:
    """Tests for table and field name rules."""

    def test_accepts_camel_case_arguments(self):
        from airtable_mcp.schemas import GetRecordInput, validate_tool_args

        params = validate_tool_args(
            GetRecordInput, {"baseId": BASE_ID, "table": "Roster", "recordId": RECORD_ID}
        )

        assert params.base_id == BASE_ID
        assert params.record_id == RECORD_ID

    def test_accepts_snake_case_arguments(self):
        from airtable_mcp.schemas import GetRecordInput, validate_tool_args

        params = validate_tool_args(GetRecordInput, {"table": "Roster", "record_id": RECORD_ID})

        assert params.base_id is None

    @pytest.mark.parametrize("table", ["Roster", "Creators (2024)", "Q&A #1", "Bob's List"])
    def test_accepts_reasonable_table_names(self, table):
        from airtable_mcp.schemas import GetTableSchemaInput, validate_tool_args

        assert validate_tool_args(GetTableSchemaInput, {"table": table}).table == table

    @pytest.mark.parametrize("table", ["", "Roster{x}", "a​b", "emoji 🙂", "x" * 1001])
    def test_rejects_unsafe_table_names(self, table):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import GetTableSchemaInput, validate_tool_args

        with pytest.raises(ValidationError) as exc_info:
            validate_tool_args(GetTableSchemaInput, {"table": table})

        assert exc_info.value.details
        assert exc_info.value.details[0].startswith("table")

    @pytest.mark.parametrize("base_id", ["app123", "base1234567890123", "appABCDEFGHIJKLM!"])
    def test_rejects_bad_base_ids(self, base_id):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import ListTablesInput, validate_tool_args

        with pytest.raises(ValidationError):
            validate_tool_args(ListTablesInput, {"baseId": base_id})

    def test_rejects_bad_record_id(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import DeleteRecordInput, validate_tool_args

        with pytest.raises(ValidationError):
            validate_tool_args(DeleteRecordInput, {"table": "T", "recordId": "rec1"})


class TestRecordInputs:
    """Tests for record create/update/list inputs."""

    def test_create_requires_fields(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import CreateRecordInput, validate_tool_args

        with pytest.raises(ValidationError) as exc_info:
            validate_tool_args(CreateRecordInput, {"table": "T", "fields": {}})

        assert any("At least one field" in d for d in exc_info.value.details)

    def test_create_rejects_bad_field_name(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import CreateRecordInput, validate_tool_args

        with pytest.raises(ValidationError):
            validate_tool_args(CreateRecordInput, {"table": "T", "fields": {"Na{me": "x"}})

    def test_max_records_bounds(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import ListRecordsInput, validate_tool_args

        assert validate_tool_args(ListRecordsInput, {"table": "T", "maxRecords": 1000}).max_records == 1000
        with pytest.raises(ValidationError):
            validate_tool_args(ListRecordsInput, {"table": "T", "maxRecords": 1001})
        with pytest.raises(ValidationError):
            validate_tool_args(ListRecordsInput, {"table": "T", "maxRecords": 0})

    def test_formula_length_limit(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import ListRecordsInput, validate_tool_args

        with pytest.raises(ValidationError):
            validate_tool_args(ListRecordsInput, {"table": "T", "filterByFormula": "x" * 10001})

    def test_sort_defaults_to_ascending(self):
        from airtable_mcp.schemas import ListRecordsInput, validate_tool_args

        params = validate_tool_args(ListRecordsInput, {"table": "T", "sort": [{"field": "Name"}]})

        assert params.sort[0].direction == "asc"

    def test_rejects_unknown_preset(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import ListRecordsInput, validate_tool_args

        with pytest.raises(ValidationError):
            validate_tool_args(ListRecordsInput, {"table": "T", "preset": "everything"})

    def test_batch_limited_to_ten(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import BatchCreateRecordsInput, validate_tool_args

        records = [{"Name": str(i)} for i in range(11)]

        with pytest.raises(ValidationError):
            validate_tool_args(BatchCreateRecordsInput, {"table": "T", "records": records})

    def test_batch_update_shape(self):
        from airtable_mcp.schemas import BatchUpdateRecordsInput, validate_tool_args

        params = validate_tool_args(
            BatchUpdateRecordsInput,
            {"table": "T", "updates": [{"id": RECORD_ID, "fields": {"Status": "Done"}}]},
        )

        assert params.updates[0].id == RECORD_ID

    def test_field_definition_type_checked(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import SetTableSchemaInput, validate_tool_args

        ok = validate_tool_args(
            SetTableSchemaInput, {"table": "T", "fields": [{"name": "Age", "type": "singleSelect"}]}
        )
        assert ok.fields[0].type == "singleSelect"

        with pytest.raises(ValidationError):
            validate_tool_args(
                SetTableSchemaInput, {"table": "T", "fields": [{"name": "Age", "type": "bogus"}]}
            )


class TestQueryInputs:
    """Tests for smart query inputs."""

    def test_age_order_enforced(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import QueryByAgeRangeInput, validate_tool_args

        with pytest.raises(ValidationError) as exc_info:
            validate_tool_args(QueryByAgeRangeInput, {"table": "T", "minAge": 40, "maxAge": 20})

        assert any("minAge" in d for d in exc_info.value.details)

    def test_age_bounds(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import QueryByAgeRangeInput, validate_tool_args

        with pytest.raises(ValidationError):
            validate_tool_args(QueryByAgeRangeInput, {"table": "T", "minAge": -1, "maxAge": 20})
        with pytest.raises(ValidationError):
            validate_tool_args(QueryByAgeRangeInput, {"table": "T", "minAge": 1, "maxAge": 151})

    def test_age_field_defaults(self):
        from airtable_mcp.schemas import QueryByAgeRangeInput, validate_tool_args

        params = validate_tool_args(QueryByAgeRangeInput, {"table": "T", "minAge": 20, "maxAge": 30})

        assert params.age_field_name == "Age"
        assert params.available_age_ranges is None

    def test_multiple_select_requires_values(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import QueryMultipleSelectInput, validate_tool_args

        with pytest.raises(ValidationError):
            validate_tool_args(
                QueryMultipleSelectInput,
                {"table": "T", "fieldName": "Tags", "matchType": "hasAny", "values": []},
            )

    def test_multiple_select_rejects_unknown_match_type(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import QueryMultipleSelectInput, validate_tool_args

        with pytest.raises(ValidationError):
            validate_tool_args(
                QueryMultipleSelectInput,
                {"table": "T", "fieldName": "Tags", "matchType": "hasSome", "values": ["A"]},
            )

    def test_smart_query_condition_limit(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import SmartQueryInput, validate_tool_args

        conditions = [{"type": "customFormula", "formula": "TRUE()"}] * 21

        with pytest.raises(ValidationError):
            validate_tool_args(SmartQueryInput, {"table": "T", "conditions": conditions})

    def test_smart_query_discriminates_conditions(self):
        from airtable_mcp.schemas import (
            AgeRangeCondition,
            NumberRangeCondition,
            SmartQueryInput,
            validate_tool_args,
        )

        params = validate_tool_args(
            SmartQueryInput,
            {
                "table": "T",
                "conditions": [
                    {"type": "ageRange", "fieldName": "Age", "minAge": 20, "maxAge": 30},
                    {"type": "numberRange", "fieldName": "Followers", "min": 100},
                ],
            },
        )

        assert isinstance(params.conditions[0], AgeRangeCondition)
        assert isinstance(params.conditions[1], NumberRangeCondition)
        assert params.conditions[1].min_value == 100
        assert params.combine_with == "AND"

    def test_number_range_rejects_infinity(self):
        from airtable_mcp.errors import ValidationError
        from airtable_mcp.schemas import SmartQueryInput, validate_tool_args

        with pytest.raises(ValidationError):
            validate_tool_args(
                SmartQueryInput,
                {"table": "T", "conditions": [{"type": "numberRange", "fieldName": "N", "max": float("inf")}]},
            )
