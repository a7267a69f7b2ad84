"""Generic CRUD service for catalog taxonomy entities."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from sqlalchemy import Connection, func, insert, select, update

from mundobebe.actions import (
    ActionContext,
    compose_middleware,
    require_session_or_fail,
    with_error_handling,
    with_rate_limit,
    with_validation,
)
from mundobebe.auth.roles import ADMIN_ROLES
from mundobebe.cache import invalidate_tags, with_cache
from mundobebe.catalog.resource import CatalogListQuery, CatalogResource, DeleteInput, IdInput
from mundobebe.datatable.query import fetch_page, order_by_clause, rows_to_csv
from mundobebe.errors import ConflictError, NotFoundError
from mundobebe.filters import compile_filters, simple_where
from mundobebe.persistence.database import new_id, row_to_dict, utcnow

if TYPE_CHECKING:
    from mundobebe.services import AppServices

logger = logging.getLogger(__name__)

# Mutation quotas per client
WRITE_QUOTA = (10, "1m")
DELETE_QUOTA = (5, "1m")

EXPORT_ROW_LIMIT = 10_000


class CatalogService:
    """Pipeline-wrapped actions for one catalog resource.

    Every public attribute is an action ``(input, context) -> result``:

    * ``create``, ``update``, ``delete`` (soft delete) for ADMIN and
      SUPER_ADMIN, rate limited per client, invalidating every tag of the
      resource after commit;
    * ``list`` and ``count_by_status``, cached and tag-invalidated;
    * ``get`` and ``export_csv``.
    """

    def __init__(self, resource: CatalogResource, services: AppServices):
        self.resource = resource
        self.services = services
        name = resource.name
        ttl = services.settings.cache_ttl_seconds
        admin_only = require_session_or_fail(services.sessions, ADMIN_ROLES)

        def mutation(schema: type[BaseModel], quota: tuple[int, str], verb: str):
            requests, window = quota
            return compose_middleware(
                with_error_handling(),
                with_validation(schema, resource.validation_message),
                admin_only,
                with_rate_limit(
                    services.rate_limiter,
                    requests=requests,
                    window=window,
                    prefix=f"ratelimit:{name}:{verb}",
                ),
            )

        self.create = mutation(resource.create_schema, WRITE_QUOTA, "create")(self._create)
        self.update = mutation(resource.update_schema, WRITE_QUOTA, "update")(self._update)
        self.delete = mutation(DeleteInput, DELETE_QUOTA, "delete")(self._delete)

        self.list = compose_middleware(
            with_error_handling(),
            with_validation(resource.list_schema),
            admin_only,
            with_cache(services.cache, name, ttl, [name]),
        )(self._list)
        self.count_by_status = compose_middleware(
            with_error_handling(),
            admin_only,
            with_cache(services.cache, resource.count_tag, ttl, [resource.count_tag]),
        )(self._count_by_status)
        self.get = compose_middleware(
            with_error_handling(),
            with_validation(IdInput),
            admin_only,
        )(self._get)
        self.export_csv = compose_middleware(
            with_error_handling(),
            with_validation(resource.list_schema),
            admin_only,
        )(self._export_csv)

    @property
    def table(self):
        return self.resource.table

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _create(self, data: BaseModel, ctx: ActionContext) -> dict[str, Any]:
        values = self.resource.normalize_unique(data.model_dump(), True)
        now = utcnow()
        row = {"id": new_id(), **values, "createdAt": now, "updatedAt": now}

        with self._transaction() as conn:
            self._check_unique(conn, values[self.resource.unique_field])
            self._check_references(conn, values)
            conn.execute(insert(self.table).values(**row))

        invalidate_tags(self.services.cache, *self.resource.tags)
        logger.info("%s %s created by %s", self.resource.name, row["id"], _actor(ctx))
        return _jsonable(row)

    async def _update(self, data: BaseModel, ctx: ActionContext) -> dict[str, Any]:
        record_id = data.id
        values = self.resource.normalize_unique(
            data.model_dump(exclude_unset=True, exclude={"id"}),
            False,
        )

        with self._transaction() as conn:
            existing = self._fetch(conn, record_id)
            if existing is None:
                raise NotFoundError(context={"resource": self.resource.name, "id": record_id})

            unique_value = values.get(self.resource.unique_field)
            if unique_value is not None and unique_value != existing[self.resource.unique_field]:
                self._check_unique(conn, unique_value, exclude_id=record_id)
            self._check_references(conn, values)

            values["updatedAt"] = utcnow()
            conn.execute(update(self.table).where(self.table.c.id == record_id).values(**values))
            updated = self._fetch(conn, record_id)

        invalidate_tags(self.services.cache, *self.resource.tags)
        logger.info("%s %s updated by %s", self.resource.name, record_id, _actor(ctx))
        return updated

    async def _delete(self, data: DeleteInput, ctx: ActionContext) -> dict[str, Any]:
        with self._transaction() as conn:
            result = conn.execute(
                update(self.table)
                .where(self.table.c.id.in_(data.ids))
                .values(active=False, updatedAt=utcnow())
            )
            deleted = result.rowcount
        if deleted == 0:
            raise NotFoundError(context={"resource": self.resource.name, "ids": data.ids})

        invalidate_tags(self.services.cache, *self.resource.tags)
        logger.info(
            "%s soft-deleted %d row(s) by %s", self.resource.name, deleted, _actor(ctx)
        )
        return {"deleted": deleted}

    def _transaction(self):
        return self.services.db.transaction(
            conflict_message=self.resource.conflict_message,
            conflict_code=self.resource.conflict_code,
        )

    def _check_unique(self, conn: Connection, value: Any, exclude_id: str | None = None) -> None:
        """Fast-path duplicate check; the unique constraint remains authoritative."""
        column = self.table.c[self.resource.unique_field]
        query = select(self.table.c.id).where(column == value)
        if exclude_id is not None:
            query = query.where(self.table.c.id != exclude_id)
        if conn.execute(query).first() is not None:
            raise ConflictError(
                self.resource.conflict_message,
                code=self.resource.conflict_code,
                context={"field": self.resource.unique_field, "value": value},
            )

    def _check_references(self, conn: Connection, values: dict[str, Any]) -> None:
        for reference in self.resource.references:
            if reference.field not in values:
                continue
            found = conn.execute(
                select(reference.table.c.id).where(reference.table.c.id == values[reference.field])
            ).first()
            if found is None:
                raise NotFoundError(reference.message, context={reference.field: values[reference.field]})

    def _fetch(self, conn: Connection, record_id: str) -> dict[str, Any] | None:
        row = conn.execute(select(self.table).where(self.table.c.id == record_id)).first()
        return row_to_dict(row) if row is not None else None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def where_clause(self, query: CatalogListQuery):
        """Predicate for a list query, in simple or advanced mode."""
        if query.advanced:
            return compile_filters(
                self.resource.filter_fields,
                query.filters,
                query.join_operator,
            )
        return simple_where(
            text=[
                (self.table.c[column], getattr(query, attr))
                for attr, column in self.resource.simple_text.items()
            ],
            equals=[
                (self.table.c[column], getattr(query, attr))
                for attr, column in self.resource.simple_equals.items()
            ],
            date_column=self.table.c.createdAt,
            date_from=query.created_from,
            date_to=query.created_to,
        )

    def _order_by(self, query: CatalogListQuery) -> list[Any]:
        return order_by_clause(
            {column.name: column for column in self.table.c},
            query.sort,
            default=self.table.c.createdAt.desc(),
        )

    async def _list(self, query: CatalogListQuery, ctx: ActionContext) -> dict[str, Any]:
        with self.services.db.connect() as conn:
            return fetch_page(
                conn,
                self.table,
                self.where_clause(query),
                self._order_by(query),
                query.page,
                query.per_page,
            )

    async def _count_by_status(self, data: Any, ctx: ActionContext) -> dict[str, int]:
        with self.services.db.connect() as conn:
            rows = conn.execute(
                select(self.table.c.active, func.count()).group_by(self.table.c.active)
            ).all()
        counts = {"active": 0, "inactive": 0}
        for active, total in rows:
            counts["active" if active else "inactive"] += total
        return counts

    async def _get(self, data: IdInput, ctx: ActionContext) -> dict[str, Any]:
        with self.services.db.connect() as conn:
            row = self._fetch(conn, data.id)
        if row is None:
            raise NotFoundError(context={"resource": self.resource.name, "id": data.id})
        return row

    async def _export_csv(self, query: CatalogListQuery, ctx: ActionContext) -> str:
        where = self.where_clause(query)
        statement = select(self.table).order_by(*self._order_by(query)).limit(EXPORT_ROW_LIMIT)
        if where is not None:
            statement = statement.where(where)
        with self.services.db.connect() as conn:
            rows = [row_to_dict(row) for row in conn.execute(statement)]
        columns = self.resource.export_columns or tuple(c.name for c in self.table.c)
        return rows_to_csv(rows, columns)


def _jsonable(row: dict[str, Any]) -> dict[str, Any]:
    return {key: value.isoformat() if hasattr(value, "isoformat") else value for key, value in row.items()}


def _actor(ctx: ActionContext) -> str:
    return ctx.session.user_id if ctx.session else "anonymous"

