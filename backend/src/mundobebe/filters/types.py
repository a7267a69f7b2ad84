"""Filter condition types and the operator allow-list."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    SELECT = "select"
    MULTI_SELECT = "multi-select"


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"
    LESS_THAN = "lessThan"
    LESS_THAN_OR_EQUAL = "lessThanOrEqual"
    GREATER_THAN = "greaterThan"
    GREATER_THAN_OR_EQUAL = "greaterThanOrEqual"
    IS_BETWEEN = "isBetween"
    IS_BEFORE = "isBefore"
    IS_AFTER = "isAfter"
    IS_ANY_OF = "isAnyOf"


class JoinOperator(str, Enum):
    AND = "and"
    OR = "or"


# Operators that are meaningful without a value
VALUELESS_OPERATORS = frozenset({FilterOperator.IS_EMPTY, FilterOperator.IS_NOT_EMPTY})

_O = FilterOperator

# The single source of truth for which operators each field type accepts.
FIELD_TYPE_OPERATORS: dict[FieldType, frozenset[FilterOperator]] = {
    FieldType.TEXT: frozenset({
        _O.EQUALS, _O.NOT_EQUALS, _O.CONTAINS, _O.NOT_CONTAINS,
        _O.IS_EMPTY, _O.IS_NOT_EMPTY,
    }),
    FieldType.NUMBER: frozenset({
        _O.EQUALS, _O.NOT_EQUALS, _O.LESS_THAN, _O.LESS_THAN_OR_EQUAL,
        _O.GREATER_THAN, _O.GREATER_THAN_OR_EQUAL, _O.IS_BETWEEN,
        _O.IS_EMPTY, _O.IS_NOT_EMPTY,
    }),
    FieldType.BOOLEAN: frozenset({_O.EQUALS, _O.NOT_EQUALS}),
    FieldType.DATE: frozenset({
        _O.EQUALS, _O.NOT_EQUALS, _O.IS_BEFORE, _O.IS_AFTER, _O.IS_BETWEEN,
        _O.IS_EMPTY, _O.IS_NOT_EMPTY,
    }),
    FieldType.SELECT: frozenset({
        _O.EQUALS, _O.NOT_EQUALS, _O.IS_ANY_OF, _O.IS_EMPTY, _O.IS_NOT_EMPTY,
    }),
    FieldType.MULTI_SELECT: frozenset({
        _O.EQUALS, _O.NOT_EQUALS, _O.IS_ANY_OF, _O.IS_EMPTY, _O.IS_NOT_EMPTY,
    }),
}

# Operator names emitted by the data-table toolbar before the rename
LEGACY_OPERATOR_ALIASES: dict[str, str] = {
    "iLike": "contains",
    "notILike": "notContains",
    "eq": "equals",
    "ne": "notEquals",
    "lt": "lessThan",
    "lte": "lessThanOrEqual",
    "gt": "greaterThan",
    "gte": "greaterThanOrEqual",
}

# On date fields the legacy comparisons are day-granular: strict ones map to
# isBefore/isAfter, inclusive ones to a one-sided isBetween.
_LEGACY_DATE_OPERATORS: dict[FilterOperator, FilterOperator] = {
    FilterOperator.LESS_THAN: FilterOperator.IS_BEFORE,
    FilterOperator.GREATER_THAN: FilterOperator.IS_AFTER,
}


def is_operator_allowed(field_type: FieldType, operator: FilterOperator) -> bool:
    return operator in FIELD_TYPE_OPERATORS.get(field_type, frozenset())


class FilterCondition(BaseModel):
    """One field/operator/value term of an advanced filter.

    ``value`` is a string for single-valued operators, a list of strings
    for range and membership operators, or None for isEmpty/isNotEmpty.
    ``row_id`` is the client's stable identifier for list editing.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    type: FieldType
    operator: FilterOperator
    value: str | list[str] | None = None
    row_id: str | None = Field(default=None, alias="rowId")

    @field_validator("operator", mode="before")
    @classmethod
    def _normalize_operator(cls, value: Any) -> Any:
        if isinstance(value, str):
            return LEGACY_OPERATOR_ALIASES.get(value, value)
        return value

    @model_validator(mode="after")
    def _date_comparisons(self) -> FilterCondition:
        if self.type is not FieldType.DATE:
            return self
        if self.operator in _LEGACY_DATE_OPERATORS:
            self.operator = _LEGACY_DATE_OPERATORS[self.operator]
        elif isinstance(self.value, str):
            if self.operator is FilterOperator.LESS_THAN_OR_EQUAL:
                self.operator, self.value = FilterOperator.IS_BETWEEN, ["", self.value]
            elif self.operator is FilterOperator.GREATER_THAN_OR_EQUAL:
                self.operator, self.value = FilterOperator.IS_BETWEEN, [self.value, ""]
        return self

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_scalars(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, list):
            return [str(v) for v in value]
        return value


@dataclass(frozen=True)
class FilterField:
    """Declared filterable field.

    Attributes:
        column: SQLAlchemy column the predicate is built against
        type: Declared field type; client-sent types must match it
    """

    column: Any
    type: FieldType
