"""Declarative description of a catalog entity.

A :class:`CatalogResource` captures everything that differs between the
taxonomy screens (table, input schemas, unique field, filterable fields,
messages, cache tags) so that one :class:`CatalogService` implementation
serves all of them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import Table

from mundobebe.datatable.query import ListQuery
from mundobebe.filters.types import FieldType, FilterField


class CatalogInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)


class IdInput(CatalogInput):
    id: str = Field(min_length=1)


class DeleteInput(CatalogInput):
    ids: list[str] = Field(min_length=1)


class CatalogListQuery(ListQuery):
    """List parameters shared by catalog screens.

    ``active`` defaults to True so soft-deleted rows stay hidden; send
    ``active=all`` to list every row.
    """

    name: str | None = None
    active: bool | None = True

    @field_validator("active", mode="before")
    @classmethod
    def _all_means_any(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in ("all", "todos"):
            return None
        return value


@dataclass(frozen=True)
class Reference:
    """A foreign key that must point at an existing row.

    Attributes:
        field: Input field holding the referenced id
        table: Referenced table
        message: NotFoundError message when the row is missing
    """

    field: str
    table: Table
    message: str


@dataclass(frozen=True)
class CatalogResource:
    """Everything the generic catalog service needs about one entity.

    Attributes:
        name: Plural entity name; also the list cache tag
        table: Backing table
        create_schema: Input model for creation
        update_schema: Input model for partial updates (must include ``id``)
        list_schema: Search parameters model
        unique_field: Column with a unique constraint (``slug`` or ``code``)
        normalize_unique: Fills in and normalizes the unique field in the
            values about to be written; receives ``(values, creating)``
        conflict_message: Message when the unique value is taken
        conflict_code: Stable code for that conflict
        validation_message: Top-level message for invalid input
        messages: Success copy keyed by ``created``/``updated``/``deleted``
        filter_fields: Fields accepted by the advanced filter toolbar
        simple_text: Simple-mode substring filters (query attr to column)
        simple_equals: Simple-mode equality filters (query attr to column)
        export_columns: Columns (in order) of the CSV export
        references: Foreign keys validated before writing
        extra_tags: Derived reads invalidated by every write
    """

    name: str
    table: Table
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]
    list_schema: type[CatalogListQuery]
    unique_field: str
    normalize_unique: Callable[[dict[str, Any], bool], dict[str, Any]]
    conflict_message: str
    conflict_code: str
    validation_message: str
    messages: Mapping[str, str]
    filter_fields: Mapping[str, FilterField]
    simple_text: Mapping[str, str] = field(default_factory=dict)
    simple_equals: Mapping[str, str] = field(default_factory=dict)
    export_columns: tuple[str, ...] = ()
    references: tuple[Reference, ...] = ()
    extra_tags: tuple[str, ...] = ()

    @property
    def count_tag(self) -> str:
        return f"{self.name}-count"

    @property
    def tags(self) -> tuple[str, ...]:
        """Every cache tag a write to this entity must invalidate."""
        return (self.name, self.count_tag, *self.extra_tags)


def standard_filter_fields(table: Table, text_columns: tuple[str, ...]) -> dict[str, FilterField]:
    """Filter fields common to every catalog table."""
    fields = {
        column: FilterField(table.c[column], FieldType.TEXT)
        for column in text_columns
    }
    fields["active"] = FilterField(table.c.active, FieldType.BOOLEAN)
    fields["createdAt"] = FilterField(table.c.createdAt, FieldType.DATE)
    fields["updatedAt"] = FilterField(table.c.updatedAt, FieldType.DATE)
    return fields
