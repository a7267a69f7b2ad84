"""Data-table list parameters and paginated queries.

Every list screen sends the same search parameters: page, perPage, sort,
filters, joinOperator and an optional creation-date range, plus a few
screen-specific simple filters. ``flags`` tells whether the advanced
filter toolbar is in use.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import math
from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import Connection, Table, func, select
from sqlalchemy.sql.elements import ColumnElement

from mundobebe.filters.types import JoinOperator
from mundobebe.persistence.database import row_to_dict

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100


class TableFlag(str, Enum):
    ADVANCED_TABLE = "advancedTable"
    FLOATING_BAR = "floatingBar"


class SortItem(BaseModel):
    id: str
    desc: bool = False


class ListQuery(BaseModel):
    """Search parameters shared by every list screen.

    Subclasses add the screen's simple-mode fields.
    """

    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE, alias="perPage")
    sort: list[SortItem] = Field(default_factory=lambda: [SortItem(id="createdAt", desc=True)])
    flags: list[TableFlag] = Field(default_factory=list)
    # Raw dicts: each condition is validated individually by the compiler
    filters: list[dict[str, Any]] = Field(default_factory=list)
    join_operator: JoinOperator = Field(default=JoinOperator.AND, alias="joinOperator")
    created_from: date | None = Field(default=None, alias="from")
    created_to: date | None = Field(default=None, alias="to")

    @field_validator("flags", mode="before")
    @classmethod
    def _drop_unknown_flags(cls, value: Any) -> Any:
        if isinstance(value, list):
            known = {flag.value for flag in TableFlag}
            return [v for v in value if v in known]
        return value

    @property
    def advanced(self) -> bool:
        return TableFlag.ADVANCED_TABLE in self.flags

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


_JSON_PARAMS = {"sort", "filters"}


def parse_search_params(
    params: Mapping[str, Any] | Iterable[tuple[str, str]],
    list_fields: Iterable[str] = ("flags",),
) -> dict[str, Any]:
    """Decode URL search parameters into a dict ready for a ListQuery.

    ``sort`` and ``filters`` are JSON encoded by the data-table client;
    malformed JSON falls back to the default. List fields may be repeated
    (``?role=ADMIN&role=USER``) or comma separated (``?role=ADMIN,USER``).

    Args:
        params: A mapping or a multi-item sequence (e.g. ``request.query_params.multi_items()``)
        list_fields: Parameters collected into lists

    Returns:
        Plain dict of decoded parameters
    """
    items = params.items() if isinstance(params, Mapping) else params
    multi = set(list_fields)
    result: dict[str, Any] = {}

    for key, raw in items:
        if key in _JSON_PARAMS:
            try:
                decoded = json.loads(raw) if isinstance(raw, str) else raw
            except json.JSONDecodeError:
                logger.debug("Ignoring malformed %s parameter: %r", key, raw)
                continue
            if isinstance(decoded, list):
                result[key] = decoded
        elif key in multi:
            values = raw if isinstance(raw, list) else str(raw).split(",")
            result.setdefault(key, []).extend(v for v in values if v)
        elif raw != "":
            result[key] = raw
    return result


def order_by_clause(
    sortable: Mapping[str, Any],
    sort: Sequence[SortItem],
    default: Any,
) -> list[Any]:
    """Translate sort items into ORDER BY expressions.

    Unknown ids are ignored; when none is usable ``default`` applies.
    """
    clauses = []
    for item in sort:
        column = sortable.get(item.id)
        if column is None:
            continue
        clauses.append(column.desc() if item.desc else column.asc())
    return clauses or [default]


def fetch_page(
    conn: Connection,
    table: Table,
    where: ColumnElement[bool] | None,
    order_by: Sequence[Any],
    page: int,
    per_page: int,
    columns: Sequence[Any] | None = None,
) -> dict[str, Any]:
    """Run a paginated list query and its total count.

    Returns:
        ``{"data": [...], "pageCount": int, "total": int}``
    """
    query = select(*(columns or [table]))
    count_query = select(func.count()).select_from(table)
    if where is not None:
        query = query.where(where)
        count_query = count_query.where(where)

    total = conn.execute(count_query).scalar_one()
    rows = conn.execute(
        query.order_by(*order_by).limit(per_page).offset((page - 1) * per_page)
    ).all()

    return {
        "data": [row_to_dict(row) for row in rows],
        "pageCount": math.ceil(total / per_page) if total else 0,
        "total": total,
    }


def rows_to_csv(rows: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> str:
    """Render rows as CSV with a header line, in ``columns`` order."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(columns), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({column: _csv_value(row.get(column)) for column in columns})
    return buffer.getvalue()


def _csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value
