"""Code-identified product attributes: colors, sizes, designs, product types."""

from __future__ import annotations

from typing import Any

from pydantic import Field
from sqlalchemy import Table

from mundobebe.actions import reject_null
from mundobebe.catalog.resource import (
    CatalogInput,
    CatalogListQuery,
    CatalogResource,
    standard_filter_fields,
)
from mundobebe.errors import ValidationError, Violation
from mundobebe.persistence.schema import colors, designs, product_types, sizes
from mundobebe.text import normalize_code


def upper_code(values: dict[str, Any], creating: bool) -> dict[str, Any]:
    """Normalize ``code`` to stripped uppercase."""
    if "code" not in values:
        return values
    values["code"] = normalize_code(values["code"] or "")
    if not values["code"]:
        raise ValidationError(
            violations=[Violation(path="code", message="El código no puede quedar vacío")],
        )
    return values


class CodedCreate(CatalogInput):
    name: str = Field(min_length=1, max_length=120)
    code: str = Field(min_length=1, max_length=40)
    active: bool = True


class CodedUpdate(CatalogInput):
    id: str = Field(min_length=1)
    name: str | None = Field(default=None, min_length=1, max_length=120)
    code: str | None = Field(default=None, min_length=1, max_length=40)
    active: bool | None = None

    _not_null = reject_null("name", "code", "active")


class DescribedCreate(CodedCreate):
    description: str | None = Field(default=None, max_length=500)


class DescribedUpdate(CodedUpdate):
    description: str | None = Field(default=None, max_length=500)


class CodedListQuery(CatalogListQuery):
    code: str | None = None


def _coded_resource(
    name: str,
    table: Table,
    singular: str,
    feminine: bool,
    conflict_code: str,
    described: bool,
) -> CatalogResource:
    ending = "a" if feminine else "o"
    text_columns = ("name", "code", "description") if described else ("name", "code")
    return CatalogResource(
        name=name,
        table=table,
        create_schema=DescribedCreate if described else CodedCreate,
        update_schema=DescribedUpdate if described else CodedUpdate,
        list_schema=CodedListQuery,
        unique_field="code",
        normalize_unique=upper_code,
        conflict_message=f"Ya existe un{'a' if feminine else ''} {singular} con este código",
        conflict_code=conflict_code,
        validation_message=f"Datos de {singular} inválidos",
        messages={
            "created": f"{singular.capitalize()} cread{ending} correctamente",
            "updated": f"{singular.capitalize()} actualizad{ending} correctamente",
            "deleted": f"{singular.capitalize()}(s) eliminad{ending}(s) correctamente",
        },
        filter_fields=standard_filter_fields(table, text_columns),
        simple_text={"name": "name", "code": "code"},
        simple_equals={"active": "active"},
        export_columns=("id", *text_columns, "active", "createdAt", "updatedAt"),
    )


COLORS = _coded_resource("colors", colors, "color", False, "COLOR_ALREADY_EXISTS", described=False)
SIZES = _coded_resource("sizes", sizes, "talla", True, "SIZE_ALREADY_EXISTS", described=False)
DESIGNS = _coded_resource("designs", designs, "diseño", False, "DESIGN_ALREADY_EXISTS", described=True)
PRODUCT_TYPES = _coded_resource(
    "product-types",
    product_types,
    "tipo de producto",
    False,
    "PRODUCT_TYPE_ALREADY_EXISTS",
    described=True,
)
