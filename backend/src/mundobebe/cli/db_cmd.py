"""Server, schema and seed commands."""

import os
from pathlib import Path

import click
import yaml
from sqlalchemy import insert, select

from mundobebe.cache import invalidate_tags
from mundobebe.catalog import CATEGORIES, SUBCATEGORIES
from mundobebe.config import Settings
from mundobebe.persistence.database import new_id, utcnow
from mundobebe.persistence.schema import categories, subcategories
from mundobebe.services import AppServices
from mundobebe.text import slugify


def _resolve_base_path() -> Path:
    """Resolve the project root from cwd."""
    cwd = Path.cwd()
    return cwd.parent if cwd.name == "backend" else cwd


def load_services() -> AppServices:
    return AppServices.from_settings(Settings.from_env(_resolve_base_path()))


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=lambda: int(os.environ.get("MUNDOBEBE_PORT", "8000")), type=int)
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str, port: int, reload: bool):
    """Run the API with uvicorn."""
    import uvicorn

    settings = Settings.from_env(_resolve_base_path())
    uvicorn.run(
        "mundobebe.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level,
    )


@click.group()
def db():
    """Database commands."""
    pass


@db.command("init")
def init_db():
    """Create every table that does not exist yet."""
    services = load_services()
    services.db.create_all()
    click.echo(click.style(f"Database ready: {services.settings.database.url}", fg="green"))


@click.group()
def seed():
    """Seed catalog data."""
    pass


@seed.command("categories")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def seed_categories(file: Path):
    """Load categories (and nested subcategories) from a YAML file.

    Rows whose slug already exists are skipped.
    """
    with open(file, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    entries = data.get("categories", [])
    if not isinstance(entries, list):
        raise click.ClickException("'categories' must be a list")

    services = load_services()
    services.db.create_all()
    now = utcnow()
    created = skipped = 0

    with services.db.transaction() as conn:
        for entry in entries:
            category_slug = slugify(entry.get("slug") or entry["name"])
            category_id = conn.execute(
                select(categories.c.id).where(categories.c.slug == category_slug)
            ).scalar()
            if category_id is None:
                category_id = new_id()
                conn.execute(insert(categories).values(
                    id=category_id,
                    name=entry["name"],
                    description=entry.get("description"),
                    slug=category_slug,
                    active=entry.get("active", True),
                    createdAt=now,
                    updatedAt=now,
                ))
                created += 1
            else:
                skipped += 1

            for child in entry.get("subcategories", []) or []:
                child_slug = slugify(child.get("slug") or f"{category_slug}-{child['name']}")
                exists = conn.execute(
                    select(subcategories.c.id).where(subcategories.c.slug == child_slug)
                ).first()
                if exists is not None:
                    skipped += 1
                    continue
                conn.execute(insert(subcategories).values(
                    id=new_id(),
                    name=child["name"],
                    description=child.get("description"),
                    slug=child_slug,
                    categoryId=category_id,
                    active=child.get("active", True),
                    createdAt=now,
                    updatedAt=now,
                ))
                created += 1

    invalidate_tags(services.cache, *CATEGORIES.tags, *SUBCATEGORIES.tags)
    click.echo(click.style(f"Seeded {created} row(s), skipped {skipped} existing", fg="green"))
