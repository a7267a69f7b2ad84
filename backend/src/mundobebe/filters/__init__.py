"""Declarative filter compiler for list queries."""

from mundobebe.filters.compiler import compile_condition, compile_filters
from mundobebe.filters.simple import simple_where
from mundobebe.filters.types import (
    FIELD_TYPE_OPERATORS,
    FieldType,
    FilterCondition,
    FilterField,
    FilterOperator,
    JoinOperator,
    is_operator_allowed,
)

__all__ = [
    "FIELD_TYPE_OPERATORS",
    "FieldType",
    "FilterCondition",
    "FilterField",
    "FilterOperator",
    "JoinOperator",
    "compile_condition",
    "compile_filters",
    "is_operator_allowed",
    "simple_where",
]
