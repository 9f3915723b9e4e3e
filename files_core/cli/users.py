# files_core/cli/users.py
"""User commands"""
from pathlib import Path
from typing import Annotated, Optional

import cyclopts
from rich.table import Table

from ..models.schemas import PageRequest, UserCreate, UserLookup, UserUpdate, UserUpdateRequest, UserVerify
from .common import console, format_date, key_value_table, load_input, run

user_app = cyclopts.App(name="user", help="Manage users")

Template = Annotated[Optional[Path], cyclopts.Parameter(name=["--template", "-t"], help="JSON or YAML input file")]


@user_app.command
def create(
    email: Optional[str] = None,
    name: Optional[str] = None,
    password: Optional[str] = None,
    *,
    template: Template = None,
):
    """Create a user."""
    data = load_input(UserCreate, template, email=email, name=name, password=password)

    async def _create(c):
        return await c.users.create(data)

    user = run(_create)
    console.print(f"[green]✓ User created: {user.email} ({user.id})[/green]")


@user_app.command
def read(
    id: Optional[str] = None,
    email: Optional[str] = None,
    *,
    template: Template = None,
):
    """Show a user by id or email."""
    lookup = load_input(UserLookup, template, id=id, email=email)

    async def _read(c):
        user = await c.users.resolve(lookup.id, lookup.email)
        return user, await c.users.count_documents(user.id)

    user, documents = run(_read)
    console.print(
        key_value_table(
            "User",
            [
                ("ID", user.id),
                ("Email", user.email),
                ("Name", user.name),
                ("Documents", documents),
                ("Created", format_date(user.created_at)),
                ("Updated", format_date(user.updated_at)),
            ],
        )
    )


@user_app.command(name="list")
def list_users(skip: int = 0, take: int = 20):
    """List users with their document counts."""
    page = PageRequest(skip=skip, take=take)

    async def _list(c):
        return await c.users.list(page.skip, page.take)

    users = run(_list)
    if not users:
        console.print("[yellow]No users found[/yellow]")
        return

    table = Table(title=f"Users ({len(users)})")
    table.add_column("ID", style="dim")
    table.add_column("Email", style="cyan")
    table.add_column("Name")
    table.add_column("Documents", justify="right")
    table.add_column("Created")
    for user, documents in users:
        table.add_row(str(user.id), user.email, user.name, str(documents), format_date(user.created_at))
    console.print(table)


@user_app.command
def update(
    id: Optional[str] = None,
    email: Optional[str] = None,
    *,
    name: Optional[str] = None,
    new_email: Optional[str] = None,
    password: Optional[str] = None,
    template: Template = None,
):
    """Update a user's name, email or password."""
    changes = {k: v for k, v in {"name": name, "email": new_email, "password": password}.items() if v is not None}
    request = load_input(UserUpdateRequest, template, id=id, email=email, changes=changes or None)

    async def _update(c):
        user = await c.users.resolve(request.id, request.email)
        return await c.users.update(user.id, request.changes)

    user = run(_update)
    console.print(f"[green]✓ User updated: {user.email}[/green]")


@user_app.command
def delete(
    id: Optional[str] = None,
    email: Optional[str] = None,
    *,
    template: Template = None,
):
    """Delete a user and everything they own."""
    lookup = load_input(UserLookup, template, id=id, email=email)

    async def _delete(c):
        user = await c.users.resolve(lookup.id, lookup.email)
        return user, await c.users.delete(user.id)

    user, documents = run(_delete)
    console.print(f"[green]✓ User {user.email} deleted ({documents} documents removed)[/green]")


@user_app.command
def verify(
    email: Optional[str] = None,
    password: Optional[str] = None,
    *,
    template: Template = None,
):
    """Check a user's password."""
    data = load_input(UserVerify, template, email=email, password=password)

    async def _verify(c):
        return await c.users.verify_password(data.email, data.password)

    user = run(_verify)
    if user:
        console.print(f"[green]✓ Valid credentials for {user.name} ({user.email})[/green]")
    else:
        console.print("[red]✗ Invalid email or password[/red]")
        return 1
