"""Generic data-table support: search params, pagination, sorting, CSV."""

from mundobebe.datatable.query import (
    ListQuery,
    SortItem,
    TableFlag,
    fetch_page,
    order_by_clause,
    parse_search_params,
    rows_to_csv,
)

__all__ = [
    "ListQuery",
    "SortItem",
    "TableFlag",
    "fetch_page",
    "order_by_clause",
    "parse_search_params",
    "rows_to_csv",
]
