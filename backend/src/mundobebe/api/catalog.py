"""Catalog taxonomy endpoints, one set per resource."""

from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import Response

from mundobebe.actions.context import ActionContext
from mundobebe.api.context import get_action_context, search_params, success
from mundobebe.catalog import CatalogService, SubcategoryService


def create_catalog_router(
    get_catalog: Callable[[], dict[str, CatalogService]],
) -> APIRouter:
    """Create the router serving every catalog resource under /api/tienda.

    Args:
        get_catalog: Returns catalog services keyed by resource name
    """
    router = APIRouter(prefix="/api/tienda", tags=["catalog"])

    def _service(resource: str) -> CatalogService:
        service = get_catalog().get(resource)
        if service is None:
            raise HTTPException(404, f"Unknown catalog resource: {resource}")
        return service

    @router.get("/subcategories/active-categories")
    async def active_categories(ctx: ActionContext = Depends(get_action_context)) -> Any:
        service: SubcategoryService = _service("subcategories")
        return await service.active_categories(None, ctx)

    @router.get("/{resource}")
    async def list_rows(
        resource: str,
        request: Request,
        ctx: ActionContext = Depends(get_action_context),
    ) -> Any:
        return await _service(resource).list(search_params(request), ctx)

    @router.get("/{resource}/count")
    async def count_rows(resource: str, ctx: ActionContext = Depends(get_action_context)) -> Any:
        return await _service(resource).count_by_status(None, ctx)

    @router.get("/{resource}/export.csv")
    async def export_rows(
        resource: str,
        request: Request,
        ctx: ActionContext = Depends(get_action_context),
    ) -> Response:
        content = await _service(resource).export_csv(search_params(request), ctx)
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{resource}.csv"'},
        )

    @router.get("/{resource}/{record_id}")
    async def get_row(
        resource: str,
        record_id: str,
        ctx: ActionContext = Depends(get_action_context),
    ) -> Any:
        return await _service(resource).get({"id": record_id}, ctx)

    @router.post("/{resource}", status_code=201)
    async def create_row(
        resource: str,
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        service = _service(resource)
        created = await service.create(payload, ctx)
        return success(service.resource.messages["created"], created)

    @router.patch("/{resource}/{record_id}")
    async def update_row(
        resource: str,
        record_id: str,
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        service = _service(resource)
        updated = await service.update({**payload, "id": record_id}, ctx)
        return success(service.resource.messages["updated"], updated)

    @router.post("/{resource}/delete")
    async def delete_rows(
        resource: str,
        payload: dict[str, Any] = Body(...),
        ctx: ActionContext = Depends(get_action_context),
    ) -> dict[str, Any]:
        service = _service(resource)
        result = await service.delete(payload, ctx)
        return success(service.resource.messages["deleted"], result)

    return router
