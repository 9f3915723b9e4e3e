# files_core/cli/credentials.py
"""Per-user remote storage credential commands"""
from pathlib import Path
from typing import Annotated, Optional

import cyclopts

from ..exceptions import EntityNotFound
from ..models.schemas import CredentialUpsert
from .common import console, format_date, key_value_table, load_input, run

credential_app = cyclopts.App(name="credential", help="Manage remote storage credentials")

Template = Annotated[Optional[Path], cyclopts.Parameter(name=["--template", "-t"], help="JSON or YAML input file")]


@credential_app.command(name="set")
def set_credentials(
    user_email: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    *,
    inactive: bool = False,
    template: Template = None,
):
    """Store (or replace) a user's storage credentials."""
    data = load_input(
        CredentialUpsert,
        template,
        user_email=user_email,
        email=email,
        password=password,
        is_active=False if inactive else None,
    )

    async def _set(c):
        user = await c.users.resolve(email=data.user_email)
        view = await c.credentials.upsert(user.id, data.email, data.password, data.is_active)
        # cached sessions still hold the old credentials
        c.gateway.clear_user_cache(user.id)
        return view

    view = run(_set)
    console.print(f"[green]✓ Storage credentials saved for {data.user_email} ({view.email})[/green]")


@credential_app.command
def show(user_email: str):
    """Show a user's storage account (never the password)."""

    async def _show(c):
        user = await c.users.resolve(email=user_email)
        return await c.credentials.get(user.id)

    view = run(_show)
    if not view:
        raise EntityNotFound(f"No readable storage credentials for {user_email}")
    console.print(
        key_value_table(
            "Storage credentials",
            [
                ("Account", view.email),
                ("Active", "yes" if view.is_active else "no"),
                ("Created", format_date(view.created_at)),
                ("Updated", format_date(view.updated_at)),
            ],
        )
    )


@credential_app.command
def toggle(user_email: str, *, active: bool = True):
    """Enable (--active) or disable (--no-active) a user's credentials."""

    async def _toggle(c):
        user = await c.users.resolve(email=user_email)
        view = await c.credentials.toggle_active(user.id, active)
        c.gateway.clear_user_cache(user.id)
        return view

    run(_toggle)
    console.print(f"[green]✓ Storage credentials {'enabled' if active else 'disabled'} for {user_email}[/green]")


@credential_app.command
def delete(user_email: str):
    """Remove a user's storage credentials."""

    async def _delete(c):
        user = await c.users.resolve(email=user_email)
        await c.credentials.delete(user.id)
        c.gateway.clear_user_cache(user.id)

    run(_delete)
    console.print(f"[green]✓ Storage credentials removed for {user_email}[/green]")
