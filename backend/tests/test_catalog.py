"""Tests for catalog taxonomy services (categories, subcategories, attributes)."""

import csv
import io

import pytest
from sqlalchemy import update

from mundobebe.actions import ActionContext
from mundobebe.catalog import build_catalog
from mundobebe.catalog.service import CatalogService
from mundobebe.errors import (
    ConflictError,
    NotFoundError,
    RateLimitedError,
    UnauthenticatedError,
    UnauthorizedError,
    ValidationError,
)
from mundobebe.persistence.schema import users


@pytest.fixture
def catalog(services):
    return build_catalog(services)


@pytest.fixture
def categories(catalog):
    return catalog["categories"]


@pytest.fixture
def subcategories(catalog):
    return catalog["subcategories"]


# ── Helpers ──────────────────────────────────────────────────────────


async def make_category(service, ctx, name, **extra):
    return await service.create({"name": name, **extra}, ctx)


async def seed_categories(service, ctx):
    for name in ("Ropa Bebé", "Ropa Niño", "Juguetes"):
        await make_category(service, ctx, name)


# =============================================================================
# Access control
# =============================================================================


class TestAccess:
    @pytest.mark.asyncio
    async def test_anonymous_is_rejected(self, categories):
        with pytest.raises(UnauthenticatedError):
            await categories.list({}, ActionContext())

    @pytest.mark.asyncio
    async def test_customers_cannot_write(self, categories, customer):
        with pytest.raises(UnauthorizedError):
            await categories.create({"name": "Ropa"}, customer.ctx)

    @pytest.mark.asyncio
    async def test_admin_and_super_admin_can_write(self, categories, admin, super_admin):
        await categories.create({"name": "Ropa"}, admin.ctx)
        await categories.create({"name": "Juguetes"}, super_admin.ctx)

        page = await categories.list({}, admin.ctx)
        assert page["total"] == 2

    @pytest.mark.asyncio
    async def test_deactivated_admin_loses_access(self, services, categories, admin):
        with services.db.transaction() as conn:
            conn.execute(update(users).where(users.c.id == admin.user_id).values(active=False))

        with pytest.raises(UnauthenticatedError):
            await categories.list({}, admin.ctx)


# =============================================================================
# Categories
# =============================================================================


class TestCategories:
    @pytest.mark.asyncio
    async def test_create_derives_slug(self, categories, admin):
        created = await make_category(categories, admin.ctx, "Ropa Bebé")

        assert created["slug"] == "ropa-bebe"
        assert created["active"] is True
        assert isinstance(created["createdAt"], str)

    @pytest.mark.asyncio
    async def test_explicit_slug_is_normalized(self, categories, admin):
        created = await make_category(categories, admin.ctx, "Ropa", slug="  Ropa de Niño ")
        assert created["slug"] == "ropa-de-nino"

    @pytest.mark.asyncio
    async def test_duplicate_slug_conflicts(self, categories, admin):
        await make_category(categories, admin.ctx, "Ropa Bebé")

        with pytest.raises(ConflictError) as exc_info:
            await make_category(categories, admin.ctx, "ropa bebe")

        assert exc_info.value.code == "CATEGORY_ALREADY_EXISTS"
        assert exc_info.value.message == "Ya existe una categoría con este slug"

    @pytest.mark.asyncio
    async def test_name_without_slug_characters_is_invalid(self, categories, admin):
        with pytest.raises(ValidationError) as exc_info:
            await make_category(categories, admin.ctx, "¡¡!!")
        assert exc_info.value.violations[0].path == "slug"

    @pytest.mark.asyncio
    async def test_invalid_input(self, categories, admin):
        with pytest.raises(ValidationError) as exc_info:
            await categories.create({"name": ""}, admin.ctx)

        assert exc_info.value.message == "Datos de categoría inválidos"
        assert exc_info.value.violations[0].path == "name"

    @pytest.mark.asyncio
    async def test_update_is_partial(self, categories, admin):
        created = await make_category(categories, admin.ctx, "Ropa", description="Prendas")

        updated = await categories.update({"id": created["id"], "name": "Ropa y más"}, admin.ctx)

        assert updated["name"] == "Ropa y más"
        assert updated["description"] == "Prendas"
        assert updated["slug"] == "ropa"

    @pytest.mark.asyncio
    async def test_update_to_taken_slug_conflicts(self, categories, admin):
        await make_category(categories, admin.ctx, "Ropa")
        other = await make_category(categories, admin.ctx, "Juguetes")

        with pytest.raises(ConflictError):
            await categories.update({"id": other["id"], "slug": "Ropa"}, admin.ctx)

    @pytest.mark.asyncio
    async def test_explicit_null_on_required_field_is_invalid(self, categories, admin):
        created = await make_category(categories, admin.ctx, "Ropa", description="Prendas")

        with pytest.raises(ValidationError) as exc_info:
            await categories.update({"id": created["id"], "name": None}, admin.ctx)

        assert exc_info.value.message == "Datos de categoría inválidos"
        assert [v.path for v in exc_info.value.violations] == ["name"]

    @pytest.mark.asyncio
    async def test_explicit_null_clears_optional_field(self, categories, admin):
        created = await make_category(categories, admin.ctx, "Ropa", description="Prendas")

        updated = await categories.update({"id": created["id"], "description": None}, admin.ctx)

        assert updated["description"] is None

    @pytest.mark.asyncio
    async def test_unique_constraint_catches_racing_insert(self, categories, admin, monkeypatch):
        await make_category(categories, admin.ctx, "Ropa Bebé")
        monkeypatch.setattr(CatalogService, "_check_unique", lambda self, conn, value, exclude_id=None: None)

        with pytest.raises(ConflictError) as exc_info:
            await make_category(categories, admin.ctx, "Ropa bebe")

        assert exc_info.value.code == "CATEGORY_ALREADY_EXISTS"
        assert exc_info.value.message == "Ya existe una categoría con este slug"

    @pytest.mark.asyncio
    async def test_update_keeping_own_slug_is_allowed(self, categories, admin):
        created = await make_category(categories, admin.ctx, "Ropa")

        updated = await categories.update({"id": created["id"], "slug": "ropa"}, admin.ctx)
        assert updated["slug"] == "ropa"

    @pytest.mark.asyncio
    async def test_update_missing_row(self, categories, admin):
        with pytest.raises(NotFoundError):
            await categories.update({"id": "nope", "name": "x"}, admin.ctx)

    @pytest.mark.asyncio
    async def test_get(self, categories, admin):
        created = await make_category(categories, admin.ctx, "Ropa")

        assert (await categories.get({"id": created["id"]}, admin.ctx))["name"] == "Ropa"
        with pytest.raises(NotFoundError):
            await categories.get({"id": "nope"}, admin.ctx)

    @pytest.mark.asyncio
    async def test_soft_delete_hides_rows_by_default(self, categories, admin):
        keep = await make_category(categories, admin.ctx, "Ropa")
        gone = await make_category(categories, admin.ctx, "Juguetes")

        result = await categories.delete({"ids": [gone["id"]]}, admin.ctx)

        assert result == {"deleted": 1}
        visible = await categories.list({}, admin.ctx)
        assert [row["id"] for row in visible["data"]] == [keep["id"]]
        everything = await categories.list({"active": "all"}, admin.ctx)
        assert everything["total"] == 2

    @pytest.mark.asyncio
    async def test_delete_unknown_ids(self, categories, admin):
        with pytest.raises(NotFoundError):
            await categories.delete({"ids": ["nope"]}, admin.ctx)

    @pytest.mark.asyncio
    async def test_delete_needs_ids(self, categories, admin):
        with pytest.raises(ValidationError):
            await categories.delete({"ids": []}, admin.ctx)

    @pytest.mark.asyncio
    async def test_count_by_status(self, categories, admin):
        await make_category(categories, admin.ctx, "Ropa")
        await make_category(categories, admin.ctx, "Juguetes", active=False)

        assert await categories.count_by_status(None, admin.ctx) == {"active": 1, "inactive": 1}

        await make_category(categories, admin.ctx, "Accesorios")
        assert await categories.count_by_status(None, admin.ctx) == {"active": 2, "inactive": 1}

    @pytest.mark.asyncio
    async def test_create_is_rate_limited(self, categories, admin):
        for i in range(10):
            await make_category(categories, admin.ctx, f"Categoria {i}")

        with pytest.raises(RateLimitedError):
            await make_category(categories, admin.ctx, "Una más")


# =============================================================================
# Cached lists
# =============================================================================


class TestCachedList:
    @pytest.mark.asyncio
    async def test_list_reflects_create_after_cached_empty_read(self, categories, admin):
        assert (await categories.list({}, admin.ctx))["total"] == 0

        await make_category(categories, admin.ctx, "Ropa")

        page = await categories.list({}, admin.ctx)
        assert [row["name"] for row in page["data"]] == ["Ropa"]

    @pytest.mark.asyncio
    async def test_repeat_reads_hit_the_cache(self, services, categories, admin):
        await make_category(categories, admin.ctx, "Ropa")
        await categories.list({"page": 1}, admin.ctx)
        entries = len(services.cache)

        await categories.list({"page": "1"}, admin.ctx)

        assert len(services.cache) == entries

    @pytest.mark.asyncio
    async def test_list_reflects_update_and_delete(self, categories, admin):
        created = await make_category(categories, admin.ctx, "Ropa")
        await categories.list({}, admin.ctx)

        await categories.update({"id": created["id"], "name": "Ropita"}, admin.ctx)
        assert (await categories.list({}, admin.ctx))["data"][0]["name"] == "Ropita"

        await categories.delete({"ids": [created["id"]]}, admin.ctx)
        assert (await categories.list({}, admin.ctx))["total"] == 0

    @pytest.mark.asyncio
    async def test_other_resources_stay_cached(self, services, catalog, admin):
        await catalog["colors"].list({}, admin.ctx)
        entries = len(services.cache)

        await catalog["sizes"].create({"name": "Recién nacido", "code": "rn"}, admin.ctx)

        assert len(services.cache) == entries


# =============================================================================
# List filtering
# =============================================================================


class TestListFiltering:
    @pytest.mark.asyncio
    async def test_simple_name_filter(self, categories, admin):
        await seed_categories(categories, admin.ctx)
        page = await categories.list({"name": "ROPA"}, admin.ctx)
        assert sorted(row["name"] for row in page["data"]) == ["Ropa Bebé", "Ropa Niño"]

    @pytest.mark.asyncio
    async def test_advanced_filters(self, categories, admin):
        await seed_categories(categories, admin.ctx)
        page = await categories.list({
            "flags": ["advancedTable"],
            "filters": [
                {"id": "slug", "type": "text", "operator": "equals", "value": "juguetes"},
                {"id": "slug", "type": "text", "operator": "contains", "value": "nino"},
            ],
            "joinOperator": "or",
            "name": "this is ignored in advanced mode",
        }, admin.ctx)
        assert sorted(row["slug"] for row in page["data"]) == ["juguetes", "ropa-nino"]

    @pytest.mark.asyncio
    async def test_invalid_advanced_filters_match_all(self, categories, admin):
        await seed_categories(categories, admin.ctx)
        page = await categories.list({
            "flags": ["advancedTable"],
            "filters": [{"id": "active", "type": "boolean", "operator": "contains", "value": "x"}],
        }, admin.ctx)
        assert page["total"] == 3

    @pytest.mark.asyncio
    async def test_pagination_and_sort(self, categories, admin):
        await seed_categories(categories, admin.ctx)
        page = await categories.list({
            "perPage": 2,
            "page": 2,
            "sort": [{"id": "name", "desc": False}],
        }, admin.ctx)

        assert page["total"] == 3
        assert page["pageCount"] == 2
        assert [row["name"] for row in page["data"]] == ["Ropa Niño"]

    @pytest.mark.asyncio
    async def test_export_csv(self, categories, admin):
        await seed_categories(categories, admin.ctx)
        text = await categories.export_csv({"sort": [{"id": "name", "desc": False}]}, admin.ctx)

        rows = list(csv.DictReader(io.StringIO(text)))
        assert [row["name"] for row in rows] == ["Juguetes", "Ropa Bebé", "Ropa Niño"]
        assert rows[0]["active"] == "true"
        assert "password" not in rows[0]


# =============================================================================
# Subcategories
# =============================================================================


class TestSubcategories:
    @pytest.mark.asyncio
    async def test_missing_category_is_not_found(self, subcategories, admin):
        with pytest.raises(NotFoundError) as exc_info:
            await subcategories.create({"name": "Bodies", "categoryId": "nope"}, admin.ctx)
        assert exc_info.value.message == "La categoría seleccionada no existe"

    @pytest.mark.asyncio
    async def test_create_and_filter_by_category(self, categories, subcategories, admin):
        ropa = await make_category(categories, admin.ctx, "Ropa")
        otros = await make_category(categories, admin.ctx, "Otros")
        await subcategories.create({"name": "Bodies", "categoryId": ropa["id"]}, admin.ctx)
        await subcategories.create({"name": "Varios", "categoryId": otros["id"]}, admin.ctx)

        page = await subcategories.list({"categoryId": ropa["id"]}, admin.ctx)

        assert [row["name"] for row in page["data"]] == ["Bodies"]

    @pytest.mark.asyncio
    async def test_active_categories_follow_category_writes(self, categories, subcategories, admin):
        ropa = await make_category(categories, admin.ctx, "Ropa")
        await make_category(categories, admin.ctx, "Accesorios")

        options = await subcategories.active_categories(None, admin.ctx)
        assert [o["name"] for o in options] == ["Accesorios", "Ropa"]

        await categories.delete({"ids": [ropa["id"]]}, admin.ctx)

        options = await subcategories.active_categories(None, admin.ctx)
        assert [o["slug"] for o in options] == ["accesorios"]


# =============================================================================
# Coded attributes
# =============================================================================


class TestCodedAttributes:
    @pytest.mark.asyncio
    async def test_code_is_uppercased(self, catalog, admin):
        created = await catalog["colors"].create({"name": "Rojo", "code": " rj "}, admin.ctx)
        assert created["code"] == "RJ"

    @pytest.mark.asyncio
    async def test_duplicate_code_conflicts_case_insensitively(self, catalog, admin):
        await catalog["sizes"].create({"name": "Recién nacido", "code": "RN"}, admin.ctx)

        with pytest.raises(ConflictError) as exc_info:
            await catalog["sizes"].create({"name": "Otro", "code": "rn"}, admin.ctx)

        assert exc_info.value.code == "SIZE_ALREADY_EXISTS"
        assert exc_info.value.message == "Ya existe una talla con este código"

    @pytest.mark.asyncio
    async def test_unique_code_constraint_without_precheck(self, catalog, admin, monkeypatch):
        await catalog["sizes"].create({"name": "Recién nacido", "code": "RN"}, admin.ctx)
        monkeypatch.setattr(CatalogService, "_check_unique", lambda self, conn, value, exclude_id=None: None)

        with pytest.raises(ConflictError) as exc_info:
            await catalog["sizes"].create({"name": "Otro", "code": "rn"}, admin.ctx)

        assert exc_info.value.code == "SIZE_ALREADY_EXISTS"

    @pytest.mark.asyncio
    async def test_null_code_or_active_is_invalid(self, catalog, admin):
        created = await catalog["colors"].create({"name": "Rojo", "code": "RJ"}, admin.ctx)

        with pytest.raises(ValidationError) as exc_info:
            await catalog["colors"].update({"id": created["id"], "code": None, "active": None}, admin.ctx)

        assert sorted(v.path for v in exc_info.value.violations) == ["active", "code"]

    @pytest.mark.asyncio
    async def test_same_code_in_different_resources(self, catalog, admin):
        await catalog["designs"].create({"name": "Estrellas", "code": "EST"}, admin.ctx)
        created = await catalog["product-types"].create(
            {"name": "Estuche", "code": "EST", "description": "Cajas"}, admin.ctx,
        )
        assert created["description"] == "Cajas"

    @pytest.mark.asyncio
    async def test_simple_code_filter(self, catalog, admin):
        colors = catalog["colors"]
        await colors.create({"name": "Rojo", "code": "RJ"}, admin.ctx)
        await colors.create({"name": "Azul", "code": "AZ"}, admin.ctx)

        page = await colors.list({"code": "az"}, admin.ctx)
        assert [row["name"] for row in page["data"]] == ["Azul"]
