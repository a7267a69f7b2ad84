"""Table definitions (SQLAlchemy Core).

Column names are camelCase to match the JSON the admin UI exchanges.
Uniqueness of slugs, codes and emails is enforced here; application
prechecks only exist to return a friendlier message earlier.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()


def _timestamps() -> list[Column]:
    return [
        Column("createdAt", DateTime, nullable=False),
        Column("updatedAt", DateTime, nullable=False),
    ]


users = Table(
    "users",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(120), nullable=False),
    Column("lastName", String(120), nullable=False, server_default=""),
    Column("username", String(60)),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(40)),
    Column("password", String(255), nullable=False),
    Column("passwordChangedAt", DateTime),
    Column("role", String(20), nullable=False, index=True),
    Column("active", Boolean, nullable=False, default=True),
    *_timestamps(),
)

invitations = Table(
    "invitations",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, index=True),
    Column("token", String(64), nullable=False, unique=True),
    Column("expiresAt", DateTime, nullable=False),
    Column("used", Boolean, nullable=False, default=False),
    Column("invitedBy", String(32), ForeignKey("users.id", ondelete="SET NULL")),
    *_timestamps(),
)

categories = Table(
    "categories",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(120), nullable=False),
    Column("description", Text),
    Column("slug", String(160), nullable=False, unique=True),
    Column("active", Boolean, nullable=False, default=True, index=True),
    *_timestamps(),
)

subcategories = Table(
    "subcategories",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(120), nullable=False),
    Column("description", Text),
    Column("slug", String(160), nullable=False, unique=True),
    Column(
        "categoryId",
        String(32),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
    Column("active", Boolean, nullable=False, default=True, index=True),
    *_timestamps(),
)


def _coded_table(name: str, with_description: bool) -> Table:
    columns = [
        Column("id", String(32), primary_key=True),
        Column("name", String(120), nullable=False),
        Column("code", String(40), nullable=False, unique=True),
    ]
    if with_description:
        columns.append(Column("description", Text))
    columns.append(Column("active", Boolean, nullable=False, default=True, index=True))
    return Table(name, metadata, *columns, *_timestamps())


colors = _coded_table("colors", with_description=False)
sizes = _coded_table("sizes", with_description=False)
designs = _coded_table("designs", with_description=True)
product_types = _coded_table("product_types", with_description=True)
