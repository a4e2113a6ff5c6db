"""
Airtable Formula Builders

Translate structured query intents into Airtable formula strings:

- Age ranges over single-select bucket fields ("25-34", "65+")
- Multiple select hasAny / hasAll / hasNone, with fuzzy option resolution
- Number and date ranges
- AND / OR combination of sub-formulas

Every builder validates field names with sanitize_identifier() and escapes
every literal with escape_literal() before embedding it. Structurally empty
input produces the TRUE() / FALSE() sentinels, which the combinators absorb.
"""

import math
import numbers
import re
from dataclasses import dataclass

from airtable_mcp.config import logger
from airtable_mcp.errors import ValidationError
from airtable_mcp.security import escape_literal, sanitize_identifier

TRUE_FORMULA = "TRUE()"
FALSE_FORMULA = "FALSE()"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)", re.ASCII)
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}:\d{2}.*)?", re.ASCII)


# -------------------------------------------------------------------
# Age Ranges
# -------------------------------------------------------------------

@dataclass(frozen=True)
class AgeRangeOption:
    """A named age bucket. max_age is None for open-ended buckets like "65+"."""

    name: str
    min_age: float
    max_age: float | None

    @property
    def is_malformed(self) -> bool:
        return math.isnan(self.min_age) or (self.max_age is not None and math.isnan(self.max_age))

    def overlaps(self, min_age: float, max_age: float) -> bool:
        # NaN bounds compare False, so malformed buckets never overlap
        if self.max_age is None:
            return max_age >= self.min_age
        return self.min_age <= max_age and self.max_age >= min_age


def _parse_leading_int(text: str) -> float:
    """Read the leading integer of text; NaN if there is none."""
    match = _LEADING_INT.match(text)
    if not match:
        return math.nan
    return int(match.group(1))


def parse_age_range(range_str: str) -> AgeRangeOption:
    """
    Parse an age range label like "25-34" or "65+".

    Only the leading digits of each bound are read, so "25-34'; DELETE"
    parses as 25-34. A bound without digits becomes NaN.
    """
    if "+" in range_str:
        return AgeRangeOption(
            name=range_str,
            min_age=_parse_leading_int(range_str.replace("+", "", 1)),
            max_age=None,
        )

    parts = range_str.split("-")
    return AgeRangeOption(
        name=range_str,
        min_age=_parse_leading_int(parts[0]),
        max_age=_parse_leading_int(parts[1]) if len(parts) > 1 else math.nan,
    )


def find_overlapping_age_ranges(
    min_age: float,
    max_age: float,
    available_ranges: list[str],
) -> list[str]:
    """
    Find which age range options overlap a query range.

    Example:
        find_overlapping_age_ranges(29, 42, ["12-17", "18-24", "25-34", "35-44", "45-65", "65+"])
        returns ["25-34", "35-44"]
    """
    overlapping = []

    for option in map(parse_age_range, available_ranges):
        if option.is_malformed:
            logger.warning(f"Ignoring malformed age range option {option.name!r}")
            continue
        if option.overlaps(min_age, max_age):
            overlapping.append(option.name)

    return overlapping


def _field_ref(field_name: str) -> str:
    return "{" + field_name + "}"


def build_age_range_formula(
    field_name: str,
    min_age: float,
    max_age: float,
    available_ranges: list[str],
) -> str:
    """
    Build a formula matching every age bucket that overlaps [min_age, max_age].

    Example:
        build_age_range_formula("Age", 29, 42, [...])
        returns "OR({Age} = '25-34', {Age} = '35-44')"
    """
    field = sanitize_identifier(field_name)
    _require_finite(min_age, "Minimum age")
    _require_finite(max_age, "Maximum age")

    overlapping = find_overlapping_age_ranges(min_age, max_age, available_ranges)
    conditions = [f"{_field_ref(field)} = '{escape_literal(name)}'" for name in overlapping]

    if not conditions:
        return FALSE_FORMULA
    if len(conditions) == 1:
        return conditions[0]
    return f"OR({', '.join(conditions)})"


# -------------------------------------------------------------------
# Fuzzy Option Resolution
# -------------------------------------------------------------------

def fuzzy_match_options(search_term: str, available_options: list[str]) -> list[str]:
    """Options containing search_term, case-insensitively."""
    lower_search = search_term.lower()
    return [option for option in available_options if lower_search in option.lower()]


def resolve_options_with_fuzzy_match(
    values: list[str],
    available_options: list[str] | None = None,
) -> list[str]:
    """
    Resolve user values to exact option names.

    An exact case-insensitive match wins for its token; otherwise every
    option containing the token is taken, so "dslr" matches
    "DSLR Podcast Setup". Duplicates are dropped, first occurrence kept.
    """
    if not available_options:
        return values

    resolved: dict[str, None] = {}

    for value in values:
        lower_value = value.lower()
        exact = next((opt for opt in available_options if opt.lower() == lower_value), None)

        if exact is not None:
            resolved[exact] = None
        else:
            for match in fuzzy_match_options(value, available_options):
                resolved[match] = None

    return list(resolved)


# -------------------------------------------------------------------
# Multiple Select
# -------------------------------------------------------------------

def _multiple_select_leaves(
    field_name: str,
    values: list[str],
    available_options: list[str] | None,
    use_fuzzy_match: bool,
) -> list[str]:
    field = sanitize_identifier(field_name)
    if not values:
        return []

    if use_fuzzy_match and available_options:
        values = resolve_options_with_fuzzy_match(values, available_options)

    # ARRAYJOIN + FIND is substring containment: an option that is a
    # substring of another option matches both
    return [
        f"FIND('{escape_literal(value)}', ARRAYJOIN({_field_ref(field)}))"
        for value in values
    ]


def build_multiple_select_has_any(
    field_name: str,
    values: list[str],
    available_options: list[str] | None = None,
    use_fuzzy_match: bool = True,
) -> str:
    """Match records whose multiple select field contains ANY of values."""
    leaves = _multiple_select_leaves(field_name, values, available_options, use_fuzzy_match)

    if not leaves:
        return FALSE_FORMULA
    if len(leaves) == 1:
        return leaves[0]
    return f"OR({', '.join(leaves)})"


def build_multiple_select_has_all(
    field_name: str,
    values: list[str],
    available_options: list[str] | None = None,
    use_fuzzy_match: bool = True,
) -> str:
    """Match records whose multiple select field contains ALL of values."""
    leaves = _multiple_select_leaves(field_name, values, available_options, use_fuzzy_match)

    if not leaves:
        return TRUE_FORMULA
    return f"AND({', '.join(leaves)})"


def build_multiple_select_has_none(
    field_name: str,
    values: list[str],
    available_options: list[str] | None = None,
    use_fuzzy_match: bool = True,
) -> str:
    """Match records whose multiple select field contains NONE of values."""
    leaves = _multiple_select_leaves(field_name, values, available_options, use_fuzzy_match)

    if not leaves:
        return TRUE_FORMULA
    if len(leaves) == 1:
        return f"NOT({leaves[0]})"
    return f"NOT(OR({', '.join(leaves)}))"


# -------------------------------------------------------------------
# Number and Date Ranges
# -------------------------------------------------------------------

def _require_finite(value, label: str) -> None:
    if (
        isinstance(value, bool)
        or not isinstance(value, numbers.Real)
        or not math.isfinite(value)
    ):
        raise ValidationError(f"{label} must be a finite number")


def _format_number(value: numbers.Real) -> str:
    # 5.0 renders as 5, matching what Airtable echoes back
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _combine_bounds(conditions: list[str]) -> str:
    if not conditions:
        return TRUE_FORMULA
    if len(conditions) == 1:
        return conditions[0]
    return f"AND({', '.join(conditions)})"


def build_number_range_formula(
    field_name: str,
    min_value: float | None = None,
    max_value: float | None = None,
) -> str:
    """
    Build an inclusive range filter for any numeric field.

    Example:
        build_number_range_formula("Rating", 3, 5)
        returns "AND({Rating} >= 3, {Rating} <= 5)"
    """
    field = sanitize_identifier(field_name)
    conditions = []

    if min_value is not None:
        _require_finite(min_value, "Minimum value")
        conditions.append(f"{_field_ref(field)} >= {_format_number(min_value)}")

    if max_value is not None:
        _require_finite(max_value, "Maximum value")
        conditions.append(f"{_field_ref(field)} <= {_format_number(max_value)}")

    return _combine_bounds(conditions)


def _require_iso_date(value, label: str) -> str:
    if not isinstance(value, str) or not _ISO_DATE.fullmatch(value):
        raise ValidationError(
            f"{label} must be in ISO 8601 format (YYYY-MM-DD or YYYY-MM-DDTHH:mm:ss)"
        )
    return value


def build_date_range_formula(
    field_name: str,
    start_date: str | None = None,
    end_date: str | None = None,
) -> str:
    """
    Build a date range filter.

    Example:
        build_date_range_formula("Created", "2024-01-01", "2024-12-31")
        returns "AND(IS_AFTER({Created}, '2024-01-01'), IS_BEFORE({Created}, '2024-12-31'))"
    """
    field = sanitize_identifier(field_name)
    conditions = []

    if start_date:
        start = _require_iso_date(start_date, "Start date")
        conditions.append(f"IS_AFTER({_field_ref(field)}, '{escape_literal(start)}')")

    if end_date:
        end = _require_iso_date(end_date, "End date")
        conditions.append(f"IS_BEFORE({_field_ref(field)}, '{escape_literal(end)}')")

    return _combine_bounds(conditions)


# -------------------------------------------------------------------
# Combinators
# -------------------------------------------------------------------

def combine_formulas_and(*formulas: str) -> str:
    """AND the formulas together, dropping TRUE() and empty entries."""
    remaining = [f for f in formulas if f and f != TRUE_FORMULA]

    if not remaining:
        return TRUE_FORMULA
    if len(remaining) == 1:
        return remaining[0]
    return f"AND({', '.join(remaining)})"


def combine_formulas_or(*formulas: str) -> str:
    """OR the formulas together, dropping FALSE() and empty entries."""
    remaining = [f for f in formulas if f and f != FALSE_FORMULA]

    if not remaining:
        return FALSE_FORMULA
    if len(remaining) == 1:
        return remaining[0]
    return f"OR({', '.join(remaining)})"
