"""Simple (non-advanced) list filtering.

The toolbar's simple mode only ever ANDs a few named fields together:
substring matches on text inputs, equality on flags, membership on
multi-choice inputs and an optional creation-date range. The advanced
compiler is bypassed entirely in this mode.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from sqlalchemy import and_, func
from sqlalchemy.sql.elements import ColumnElement

from mundobebe.filters.compiler import day_bounds


def simple_where(
    text: Iterable[tuple[Any, str | None]] = (),
    equals: Iterable[tuple[Any, Any]] = (),
    any_of: Iterable[tuple[Any, Iterable[Any] | None]] = (),
    date_column: Any = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> ColumnElement[bool] | None:
    """Build the AND of every provided simple filter.

    Args:
        text: (column or expression, needle) pairs, case-insensitive substring
        equals: (column, value) pairs; None values are skipped
        any_of: (column, accepted values) pairs; empty or None are skipped
        date_column: Column the date range applies to
        date_from: First day included
        date_to: Last day included

    Returns:
        A predicate, or None when no filter was provided
    """
    terms: list[ColumnElement[bool]] = []

    for column, needle in text:
        if needle is not None and needle.strip():
            terms.append(func.lower(column).contains(needle.strip().lower(), autoescape=True))

    for column, value in equals:
        if value is not None:
            terms.append(column == value)

    for column, values in any_of:
        accepted = list(values or [])
        if accepted:
            terms.append(column.in_(accepted))

    if date_column is not None:
        if date_from is not None:
            terms.append(date_column >= day_bounds(date_from)[0])
        if date_to is not None:
            terms.append(date_column < day_bounds(date_to)[1])

    if not terms:
        return None
    return and_(*terms)
