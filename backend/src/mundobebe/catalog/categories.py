"""Categories and subcategories (slug-identified)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import Field
from sqlalchemy import select

from mundobebe.actions import (
    ActionContext,
    compose_middleware,
    reject_null,
    require_session_or_fail,
    with_error_handling,
)
from mundobebe.auth.roles import ADMIN_ROLES
from mundobebe.cache import with_cache
from mundobebe.catalog.resource import (
    CatalogInput,
    CatalogListQuery,
    CatalogResource,
    Reference,
    standard_filter_fields,
)
from mundobebe.catalog.service import CatalogService
from mundobebe.errors import ValidationError, Violation
from mundobebe.filters.types import FieldType, FilterField
from mundobebe.persistence.schema import categories, subcategories
from mundobebe.text import slugify

if TYPE_CHECKING:
    from mundobebe.services import AppServices

ACTIVE_CATEGORIES_TAG = "active-categories"


def slug_from_name(values: dict[str, Any], creating: bool) -> dict[str, Any]:
    """Fill ``slug`` from ``name`` on create and slugify whatever was sent.

    Raises:
        ValidationError: The slug is empty once normalized
    """
    if values.get("slug"):
        values["slug"] = slugify(values["slug"])
    elif creating:
        values["slug"] = slugify(values.get("name", ""))
    else:
        values.pop("slug", None)
        return values

    if not values["slug"]:
        raise ValidationError(
            violations=[Violation(path="slug", message="El slug no puede quedar vacío")],
        )
    return values


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class CategoryCreate(CatalogInput):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    slug: str | None = Field(default=None, max_length=160)
    active: bool = True


class CategoryUpdate(CatalogInput):
    id: str = Field(min_length=1)
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    slug: str | None = Field(default=None, max_length=160)
    active: bool | None = None

    _not_null = reject_null("name", "active")


class CategoryListQuery(CatalogListQuery):
    slug: str | None = None


CATEGORIES = CatalogResource(
    name="categories",
    table=categories,
    create_schema=CategoryCreate,
    update_schema=CategoryUpdate,
    list_schema=CategoryListQuery,
    unique_field="slug",
    normalize_unique=slug_from_name,
    conflict_message="Ya existe una categoría con este slug",
    conflict_code="CATEGORY_ALREADY_EXISTS",
    validation_message="Datos de categoría inválidos",
    messages={
        "created": "Categoría creada correctamente",
        "updated": "Categoría actualizada correctamente",
        "deleted": "Categoría(s) eliminada(s) correctamente",
    },
    filter_fields=standard_filter_fields(categories, ("name", "description", "slug")),
    simple_text={"name": "name", "slug": "slug"},
    simple_equals={"active": "active"},
    export_columns=("id", "name", "slug", "description", "active", "createdAt", "updatedAt"),
    extra_tags=(ACTIVE_CATEGORIES_TAG,),
)


# ---------------------------------------------------------------------------
# Subcategories
# ---------------------------------------------------------------------------


class SubcategoryCreate(CategoryCreate):
    categoryId: str = Field(min_length=1)


class SubcategoryUpdate(CategoryUpdate):
    categoryId: str | None = Field(default=None, min_length=1)

    _category_not_null = reject_null("categoryId")


class SubcategoryListQuery(CategoryListQuery):
    category_id: str | None = Field(default=None, alias="categoryId")


_subcategory_fields = standard_filter_fields(subcategories, ("name", "description", "slug"))
_subcategory_fields["categoryId"] = FilterField(subcategories.c.categoryId, FieldType.SELECT)

SUBCATEGORIES = CatalogResource(
    name="subcategories",
    table=subcategories,
    create_schema=SubcategoryCreate,
    update_schema=SubcategoryUpdate,
    list_schema=SubcategoryListQuery,
    unique_field="slug",
    normalize_unique=slug_from_name,
    conflict_message="Ya existe una subcategoría con este slug",
    conflict_code="SUBCATEGORY_ALREADY_EXISTS",
    validation_message="Datos de subcategoría inválidos",
    messages={
        "created": "Subcategoría creada correctamente",
        "updated": "Subcategoría actualizada correctamente",
        "deleted": "Subcategoría(s) eliminada(s) correctamente",
    },
    filter_fields=_subcategory_fields,
    simple_text={"name": "name", "slug": "slug"},
    simple_equals={"active": "active", "category_id": "categoryId"},
    export_columns=(
        "id", "name", "slug", "categoryId", "description", "active", "createdAt", "updatedAt",
    ),
    references=(Reference("categoryId", categories, "La categoría seleccionada no existe"),),
    extra_tags=(ACTIVE_CATEGORIES_TAG,),
)


class SubcategoryService(CatalogService):
    """Subcategory actions plus the active-category options of the form."""

    def __init__(self, services: AppServices):
        super().__init__(SUBCATEGORIES, services)
        self.active_categories = compose_middleware(
            with_error_handling(),
            require_session_or_fail(services.sessions, ADMIN_ROLES),
            with_cache(
                services.cache,
                ACTIVE_CATEGORIES_TAG,
                services.settings.cache_ttl_seconds,
                [ACTIVE_CATEGORIES_TAG],
            ),
        )(self._active_categories)

    async def _active_categories(self, data: Any, ctx: ActionContext) -> list[dict[str, str]]:
        with self.services.db.connect() as conn:
            rows = conn.execute(
                select(categories.c.id, categories.c.name, categories.c.slug)
                .where(categories.c.active.is_(True))
                .order_by(categories.c.name)
            ).all()
        return [{"id": row.id, "name": row.name, "slug": row.slug} for row in rows]
