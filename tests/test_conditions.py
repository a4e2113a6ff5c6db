"""
Tests for the smart query condition dispatcher.
"""

import pytest


class TestParseConditions:
    """Tests for condition parsing."""

    def test_unknown_type_rejected(self):
        from airtable_mcp.conditions import parse_conditions
        from airtable_mcp.errors import ValidationError

        with pytest.raises(ValidationError) as exc_info:
            parse_conditions([{"type": "regex", "fieldName": "Name"}])

        assert exc_info.value.message == "Invalid conditions"

    def test_missing_field_rejected(self):
        from airtable_mcp.conditions import parse_conditions
        from airtable_mcp.errors import ValidationError

        with pytest.raises(ValidationError):
            parse_conditions([{"type": "multipleSelect", "matchType": "hasAny", "values": ["A"]}])

    def test_inverted_age_range_rejected(self):
        from airtable_mcp.conditions import parse_conditions
        from airtable_mcp.errors import ValidationError

        with pytest.raises(ValidationError) as exc_info:
            parse_conditions([{"type": "ageRange", "fieldName": "Age", "minAge": 42, "maxAge": 29}])

        assert any("minAge must be less than or equal to maxAge" in d for d in exc_info.value.details)

    def test_fuzzy_defaults_on(self):
        from airtable_mcp.conditions import parse_conditions

        [condition] = parse_conditions(
            [{"type": "multipleSelect", "fieldName": "Tags", "matchType": "hasAll", "values": ["A"]}]
        )

        assert condition.use_fuzzy_match is True


class TestBuildConditionFormula:
    """Tests for single-condition dispatch."""

    def test_age_range_uses_default_buckets(self):
        from airtable_mcp.conditions import build_condition_formula, parse_conditions

        [condition] = parse_conditions([{"type": "ageRange", "fieldName": "Age", "minAge": 29, "maxAge": 42}])

        assert build_condition_formula(condition) == "OR({Age} = '25-34', {Age} = '35-44')"

    def test_age_range_uses_configured_buckets(self):
        from airtable_mcp.conditions import build_condition_formula, parse_conditions
        from airtable_mcp.config import save_runtime_config

        save_runtime_config({"default_age_ranges": ["0-30", "31-60", "61+"]})
        [condition] = parse_conditions([{"type": "ageRange", "fieldName": "Age", "minAge": 29, "maxAge": 42}])

        assert build_condition_formula(condition) == "OR({Age} = '0-30', {Age} = '31-60')"

    def test_age_range_with_custom_buckets(self):
        from airtable_mcp.conditions import build_condition_formula, parse_conditions

        [condition] = parse_conditions(
            [{"type": "ageRange", "fieldName": "Age", "minAge": 0, "maxAge": 10, "availableOptions": ["0-9"]}]
        )

        assert build_condition_formula(condition) == "{Age} = '0-9'"

    def test_multiple_select_dispatch(self):
        from airtable_mcp.conditions import build_condition_formula, parse_conditions

        [condition] = parse_conditions(
            [
                {
                    "type": "multipleSelect",
                    "fieldName": "Type",
                    "matchType": "hasNone",
                    "values": ["ugc"],
                    "availableOptions": ["UGC Creator", "Model"],
                }
            ]
        )

        assert build_condition_formula(condition) == "NOT(FIND('UGC Creator', ARRAYJOIN({Type})))"

    def test_number_range_dispatch(self):
        from airtable_mcp.conditions import build_condition_formula, parse_conditions

        [condition] = parse_conditions([{"type": "numberRange", "fieldName": "N", "min": 1, "max": 2}])

        assert build_condition_formula(condition) == "AND({N} >= 1, {N} <= 2)"

    def test_date_range_dispatch(self):
        from airtable_mcp.conditions import build_condition_formula, parse_conditions

        [condition] = parse_conditions([{"type": "dateRange", "fieldName": "D", "startDate": "2024-01-01"}])

        assert build_condition_formula(condition) == "IS_AFTER({D}, '2024-01-01')"

    def test_custom_formula_passes_through_verbatim(self):
        from airtable_mcp.conditions import build_condition_formula, parse_conditions

        [condition] = parse_conditions([{"type": "customFormula", "formula": "{Status} = 'Active'"}])

        assert build_condition_formula(condition) == "{Status} = 'Active'"


class TestSmartQueryFormula:
    """Tests for combining conditions."""

    def test_and_combination(self):
        from airtable_mcp.conditions import build_smart_query_formula, parse_conditions

        conditions = parse_conditions(
            [
                {"type": "ageRange", "fieldName": "Age", "minAge": 18, "maxAge": 24},
                {"type": "multipleSelect", "fieldName": "Tags", "matchType": "hasAny", "values": ["VIP"]},
            ]
        )

        assert build_smart_query_formula(conditions) == (
            "AND({Age} = '18-24', FIND('VIP', ARRAYJOIN({Tags})))"
        )

    def test_or_combination(self):
        from airtable_mcp.conditions import build_smart_query_formula, parse_conditions

        conditions = parse_conditions(
            [
                {"type": "customFormula", "formula": "{A} = 1"},
                {"type": "customFormula", "formula": "{B} = 2"},
            ]
        )

        assert build_smart_query_formula(conditions, "OR") == "OR({A} = 1, {B} = 2)"

    def test_true_sentinels_absorbed(self):
        from airtable_mcp.conditions import build_smart_query_formula, parse_conditions

        conditions = parse_conditions(
            [
                {"type": "numberRange", "fieldName": "N"},
                {"type": "customFormula", "formula": "{A} = 1"},
            ]
        )

        assert build_smart_query_formula(conditions) == "{A} = 1"

    def test_empty_conditions_rejected(self):
        from airtable_mcp.conditions import build_smart_query_formula
        from airtable_mcp.errors import ValidationError

        with pytest.raises(ValidationError, match="At least one condition"):
            build_smart_query_formula([])

    def test_one_bad_condition_fails_the_whole_query(self):
        from airtable_mcp.conditions import build_smart_query_formula, parse_conditions
        from airtable_mcp.errors import ValidationError

        conditions = parse_conditions(
            [
                {"type": "customFormula", "formula": "{A} = 1"},
                {"type": "dateRange", "fieldName": "D", "endDate": "last week"},
            ]
        )

        with pytest.raises(ValidationError, match="ISO 8601"):
            build_smart_query_formula(conditions)
