"""Account commands."""

import click
from sqlalchemy import insert

from mundobebe.accounts.users import find_user_by_email
from mundobebe.auth.password import meets_password_policy
from mundobebe.auth.roles import UserRole
from mundobebe.cli.db_cmd import load_services
from mundobebe.messages import ERRORS
from mundobebe.persistence.database import new_id, utcnow
from mundobebe.persistence.schema import users as users_table
from mundobebe.text import normalize_email


@click.group()
def users():
    """User account commands."""
    pass


@users.command("create-super-admin")
@click.option("--email", required=True)
@click.option("--name", required=True)
@click.option("--last-name", default="")
@click.password_option()
def create_super_admin(email: str, name: str, last_name: str, password: str):
    """Create the first SUPER_ADMIN account."""
    if not meets_password_policy(password):
        raise click.ClickException(ERRORS["WEAK_PASSWORD"])

    services = load_services()
    services.db.create_all()
    email = normalize_email(email)

    with services.db.transaction() as conn:
        if find_user_by_email(conn, email) is not None:
            raise click.ClickException(ERRORS["USER_EXISTS"])
        now = utcnow()
        conn.execute(insert(users_table).values(
            id=new_id(),
            name=name,
            lastName=last_name,
            email=email,
            password=services.passwords.hash(password),
            role=UserRole.SUPER_ADMIN.value,
            active=True,
            createdAt=now,
            updatedAt=now,
        ))

    click.echo(click.style(f"Super admin {email} created", fg="green"))
