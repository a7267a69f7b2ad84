"""Mundo Bebé CLI entry point."""

import click


@click.group()
def cli():
    """Mundo Bebé admin backend CLI."""
    pass


# Register subcommand groups
from mundobebe.cli.db_cmd import db, seed, serve  # noqa: E402
from mundobebe.cli.users_cmd import users  # noqa: E402

cli.add_command(serve)
cli.add_command(db)
cli.add_command(seed)
cli.add_command(users)
