"""Catalog taxonomy: categories, subcategories and product attributes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mundobebe.catalog.attributes import COLORS, DESIGNS, PRODUCT_TYPES, SIZES
from mundobebe.catalog.categories import CATEGORIES, SUBCATEGORIES, SubcategoryService
from mundobebe.catalog.resource import CatalogResource
from mundobebe.catalog.service import CatalogService

if TYPE_CHECKING:
    from mundobebe.services import AppServices

RESOURCES: tuple[CatalogResource, ...] = (
    CATEGORIES,
    SUBCATEGORIES,
    COLORS,
    SIZES,
    DESIGNS,
    PRODUCT_TYPES,
)


def build_catalog(services: AppServices) -> dict[str, CatalogService]:
    """Instantiate one service per catalog resource, keyed by resource name."""
    catalog: dict[str, CatalogService] = {}
    for resource in RESOURCES:
        if resource is SUBCATEGORIES:
            catalog[resource.name] = SubcategoryService(services)
        else:
            catalog[resource.name] = CatalogService(resource, services)
    return catalog


__all__ = [
    "CATEGORIES",
    "COLORS",
    "DESIGNS",
    "PRODUCT_TYPES",
    "RESOURCES",
    "SIZES",
    "SUBCATEGORIES",
    "CatalogResource",
    "CatalogService",
    "SubcategoryService",
    "build_catalog",
]
