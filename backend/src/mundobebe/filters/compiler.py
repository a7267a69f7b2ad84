"""Compile declarative filter conditions into SQLAlchemy predicates.

Conditions arrive from the client, so nothing about them is trusted:

* the field must be declared in the fields schema, and the client-sent
  type must match the declared type;
* the operator must be allowed for that type (``FIELD_TYPE_OPERATORS``);
* the value must parse for the type.

Conditions failing any check are dropped (logged at debug level), as are
conditions whose value is still blank, unless the operator is isEmpty or
isNotEmpty. Remaining terms are combined with the single join operator of
the set. An empty result means "match all" and is returned as None.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime, timedelta
from typing import Any, Callable, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, func, or_
from sqlalchemy.sql.elements import ColumnElement

from mundobebe.filters.types import (
    VALUELESS_OPERATORS,
    FieldType,
    FilterCondition,
    FilterField,
    FilterOperator,
    JoinOperator,
    is_operator_allowed,
)

logger = logging.getLogger(__name__)

Predicate = ColumnElement[bool]

_O = FilterOperator

_EPOCH_MILLIS = re.compile(r"^\d{10,}$")


class _Skip(Exception):
    """Internal signal: the condition cannot be compiled and is dropped."""


def compile_filters(
    fields: Mapping[str, FilterField],
    conditions: Iterable[FilterCondition | Mapping[str, Any]],
    join_operator: JoinOperator | str = JoinOperator.AND,
) -> Predicate | None:
    """Translate a filter set into a single predicate.

    Args:
        fields: Declared filterable fields by id
        conditions: Filter conditions (models or raw dicts)
        join_operator: ``and`` or ``or``, applied across all conditions

    Returns:
        A predicate, or None when nothing is left to filter on
    """
    terms = [
        term
        for term in (compile_condition(fields, c) for c in conditions)
        if term is not None
    ]
    if not terms:
        return None
    if len(terms) == 1:
        return terms[0]
    if JoinOperator(join_operator) is JoinOperator.OR:
        return or_(*terms)
    return and_(*terms)


def compile_condition(
    fields: Mapping[str, FilterField],
    condition: FilterCondition | Mapping[str, Any],
) -> Predicate | None:
    """Compile one condition, or return None when it must be dropped."""
    if not isinstance(condition, FilterCondition):
        try:
            condition = FilterCondition.model_validate(condition)
        except PydanticValidationError as exc:
            logger.debug("Dropping malformed filter condition %r: %s", condition, exc)
            return None

    field = fields.get(condition.id)
    if field is None:
        logger.debug("Dropping filter on unknown field %s", condition.id)
        return None
    if condition.type is not field.type:
        logger.debug(
            "Dropping filter on %s: type %s does not match declared %s",
            condition.id,
            condition.type.value,
            field.type.value,
        )
        return None
    if not is_operator_allowed(field.type, condition.operator):
        logger.debug(
            "Dropping filter on %s: operator %s not allowed for %s",
            condition.id,
            condition.operator.value,
            field.type.value,
        )
        return None
    if condition.operator in VALUELESS_OPERATORS:
        return _emptiness(field, condition.operator)
    if _is_blank(condition.value):
        return None

    try:
        return _BUILDERS[field.type](field.column, condition.operator, condition.value)
    except _Skip as exc:
        logger.debug("Dropping filter on %s: %s", condition.id, exc)
        return None


def _is_blank(value: str | list[str] | None) -> bool:
    if value is None:
        return True
    if isinstance(value, list):
        return all(not v.strip() for v in value)
    return not value.strip()


def _as_list(value: str | list[str]) -> list[str]:
    values = value if isinstance(value, list) else [value]
    return [v.strip() for v in values if v.strip()]


def _first(value: str | list[str]) -> str:
    values = _as_list(value)
    if not values:
        raise _Skip("blank value")
    return values[0]


def _range_bounds(value: str | list[str]) -> tuple[str | None, str | None]:
    if not isinstance(value, list):
        raise _Skip("isBetween needs a two-item list")
    padded = [v.strip() for v in value] + ["", ""]
    low, high = padded[0] or None, padded[1] or None
    if low is None and high is None:
        raise _Skip("empty range")
    return low, high


# ---------------------------------------------------------------------------
# Emptiness
# ---------------------------------------------------------------------------

_STRING_TYPES = {FieldType.TEXT, FieldType.SELECT, FieldType.MULTI_SELECT}


def _emptiness(field: FilterField, operator: FilterOperator) -> Predicate:
    column = field.column
    if field.type in _STRING_TYPES:
        empty = or_(column.is_(None), column == "")
    else:
        empty = column.is_(None)
    if operator is _O.IS_EMPTY:
        return empty
    if field.type in _STRING_TYPES:
        return and_(column.is_not(None), column != "")
    return column.is_not(None)


# ---------------------------------------------------------------------------
# Per-type builders
# ---------------------------------------------------------------------------


def _text(column: Any, operator: FilterOperator, value: str | list[str]) -> Predicate:
    needle = _first(value).lower()
    lowered = func.lower(column)
    if operator is _O.CONTAINS:
        return lowered.contains(needle, autoescape=True)
    if operator is _O.NOT_CONTAINS:
        return or_(column.is_(None), ~lowered.contains(needle, autoescape=True))
    if operator is _O.EQUALS:
        return lowered == needle
    if operator is _O.NOT_EQUALS:
        return or_(column.is_(None), lowered != needle)
    raise _Skip(f"unsupported text operator {operator.value}")


def _parse_number(raw: str) -> float | int:
    try:
        number = float(raw)
    except ValueError:
        raise _Skip(f"not a number: {raw!r}")
    if number != number or number in (float("inf"), float("-inf")):
        raise _Skip(f"not a finite number: {raw!r}")
    return int(number) if number.is_integer() else number


def _number(column: Any, operator: FilterOperator, value: str | list[str]) -> Predicate:
    if operator is _O.IS_BETWEEN:
        low, high = _range_bounds(value)
        terms = []
        if low is not None:
            terms.append(column >= _parse_number(low))
        if high is not None:
            terms.append(column <= _parse_number(high))
        return and_(*terms) if len(terms) > 1 else terms[0]

    number = _parse_number(_first(value))
    comparisons: dict[FilterOperator, Callable[[], Predicate]] = {
        _O.EQUALS: lambda: column == number,
        _O.NOT_EQUALS: lambda: column != number,
        _O.LESS_THAN: lambda: column < number,
        _O.LESS_THAN_OR_EQUAL: lambda: column <= number,
        _O.GREATER_THAN: lambda: column > number,
        _O.GREATER_THAN_OR_EQUAL: lambda: column >= number,
    }
    if operator not in comparisons:
        raise _Skip(f"unsupported number operator {operator.value}")
    return comparisons[operator]()


def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("true", "1", "yes", "si", "sí"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise _Skip(f"not a boolean: {raw!r}")


def _boolean(column: Any, operator: FilterOperator, value: str | list[str]) -> Predicate:
    flag = _parse_bool(_first(value))
    if operator is _O.EQUALS:
        return column == flag
    return column != flag


def parse_day(raw: str) -> date:
    """Parse an ISO date/datetime or epoch milliseconds into a calendar day.

    Timezone-aware values are converted to UTC before taking the day.
    """
    text = raw.strip()
    try:
        if _EPOCH_MILLIS.match(text):
            return datetime.fromtimestamp(int(text) / 1000, tz=UTC).date()
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        raise _Skip(f"not a date: {raw!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.date()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Start of ``day`` and start of the following day (naive UTC)."""
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def _date(column: Any, operator: FilterOperator, value: str | list[str]) -> Predicate:
    if operator is _O.IS_BETWEEN:
        low, high = _range_bounds(value)
        terms = []
        if low is not None:
            terms.append(column >= day_bounds(parse_day(low))[0])
        if high is not None:
            terms.append(column < day_bounds(parse_day(high))[1])
        return and_(*terms) if len(terms) > 1 else terms[0]

    start, next_day = day_bounds(parse_day(_first(value)))
    if operator is _O.EQUALS:
        return and_(column >= start, column < next_day)
    if operator is _O.NOT_EQUALS:
        return or_(column < start, column >= next_day)
    if operator is _O.IS_BEFORE:
        return column < start
    if operator is _O.IS_AFTER:
        return column >= next_day
    raise _Skip(f"unsupported date operator {operator.value}")


def _select(column: Any, operator: FilterOperator, value: str | list[str]) -> Predicate:
    options = _as_list(value)
    if operator is _O.NOT_EQUALS:
        if len(options) == 1:
            return or_(column.is_(None), column != options[0])
        return or_(column.is_(None), column.not_in(options))
    if len(options) == 1:
        return column == options[0]
    return column.in_(options)


_BUILDERS: dict[FieldType, Callable[[Any, FilterOperator, str | list[str]], Predicate]] = {
    FieldType.TEXT: _text,
    FieldType.NUMBER: _number,
    FieldType.BOOLEAN: _boolean,
    FieldType.DATE: _date,
    FieldType.SELECT: _select,
    FieldType.MULTI_SELECT: _select,
}
