"""
Smart Query Condition Dispatcher

Routes each tagged condition to its formula builder and folds the results
into one filterByFormula expression.

TRUST BOUNDARY: customFormula conditions are passed through verbatim. They
bypass injection protection; only their length is bounded (by the schema).
"""

from typing import Any, Literal

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from airtable_mcp.config import get_default_age_ranges
from airtable_mcp.errors import ValidationError
from airtable_mcp.formulas import (
    build_age_range_formula,
    build_date_range_formula,
    build_multiple_select_has_all,
    build_multiple_select_has_any,
    build_multiple_select_has_none,
    build_number_range_formula,
    combine_formulas_and,
    combine_formulas_or,
)
from airtable_mcp.schemas import (
    AgeRangeCondition,
    Condition,
    CustomFormulaCondition,
    DateRangeCondition,
    MultipleSelectCondition,
    NumberRangeCondition,
    format_validation_errors,
)

_MULTIPLE_SELECT_BUILDERS = {
    "hasAny": build_multiple_select_has_any,
    "hasAll": build_multiple_select_has_all,
    "hasNone": build_multiple_select_has_none,
}

_conditions_adapter = TypeAdapter(list[Condition])


def parse_conditions(raw_conditions: list[dict[str, Any]]) -> list[Condition]:
    """Validate raw condition dicts into their tagged variants."""
    try:
        return _conditions_adapter.validate_python(raw_conditions)
    except PydanticValidationError as e:
        raise ValidationError("Invalid conditions", format_validation_errors(e)) from e


def build_condition_formula(condition: Condition) -> str:
    """Build the formula for a single condition."""
    match condition:
        case AgeRangeCondition():
            available = condition.available_options
            return build_age_range_formula(
                condition.field_name,
                condition.min_age,
                condition.max_age,
                get_default_age_ranges() if available is None else available,
            )
        case MultipleSelectCondition():
            builder = _MULTIPLE_SELECT_BUILDERS[condition.match_type]
            return builder(
                condition.field_name,
                condition.values,
                condition.available_options,
                condition.use_fuzzy_match,
            )
        case NumberRangeCondition():
            return build_number_range_formula(
                condition.field_name,
                condition.min_value,
                condition.max_value,
            )
        case DateRangeCondition():
            return build_date_range_formula(
                condition.field_name,
                condition.start_date,
                condition.end_date,
            )
        case CustomFormulaCondition():
            return condition.formula
        case _:
            raise ValidationError(f"Unsupported condition type: {type(condition).__name__}")


def build_smart_query_formula(
    conditions: list[Condition],
    combine_with: Literal["AND", "OR"] = "AND",
) -> str:
    """
    Build and combine formulas for every condition.

    Fails on the first condition that cannot be built; no partial formula
    is ever returned.
    """
    if not conditions:
        raise ValidationError("At least one condition required")

    formulas = [build_condition_formula(condition) for condition in conditions]

    if combine_with == "OR":
        return combine_formulas_or(*formulas)
    return combine_formulas_and(*formulas)
