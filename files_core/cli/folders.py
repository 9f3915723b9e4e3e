# files_core/cli/folders.py
"""Folder commands"""
from pathlib import Path
from typing import Annotated, Optional

import cyclopts
from rich.table import Table

from ..models.schemas import FolderCreate, FolderListRequest, FolderRef, FolderUpdateRequest
from .common import console, format_date, format_size, key_value_table, load_input, run

folder_app = cyclopts.App(name="folder", help="Manage folders")

Template = Annotated[Optional[Path], cyclopts.Parameter(name=["--template", "-t"], help="JSON or YAML input file")]


@folder_app.command
def create(
    name: Optional[str] = None,
    owner_email: Optional[str] = None,
    *,
    description: Optional[str] = None,
    color: Optional[str] = None,
    parent_id: Optional[str] = None,
    mirror_remote: bool = False,
    template: Template = None,
):
    """Create a folder, optionally mirrored in remote storage."""
    data = load_input(
        FolderCreate,
        template,
        name=name,
        owner_email=owner_email,
        description=description,
        color=color,
        parent_id=parent_id,
        mirror_remote=mirror_remote or None,
    )

    async def _create(c):
        owner = await c.users.resolve(email=data.owner_email)
        return await c.folders.create(
            owner.id,
            data.name,
            description=data.description,
            color=data.color,
            parent_id=data.parent_id,
            mirror_remote=data.mirror_remote,
        )

    folder = run(_create)
    console.print(f"[green]✓ Folder created: {folder.name} ({folder.id})[/green]")
    if folder.remote_ref:
        console.print(f"[dim]Remote folder: {folder.remote_ref}[/dim]")


@folder_app.command
def read(id: str, owner_email: str):
    """Show a folder and its path."""
    ref = FolderRef(id=id, owner_email=owner_email)

    async def _read(c):
        owner = await c.users.resolve(email=ref.owner_email)
        return await c.folders.get(ref.id, owner.id), await c.folders.get_path(ref.id, owner.id)

    folder, path = run(_read)
    console.print(
        key_value_table(
            "Folder",
            [
                ("ID", folder.id),
                ("Name", folder.name),
                ("Path", path),
                ("Description", folder.description),
                ("Color", folder.color),
                ("Parent", folder.parent_id),
                ("Remote folder", folder.remote_ref),
                ("Created", format_date(folder.created_at)),
            ],
        )
    )


@folder_app.command(name="list")
def list_folders(
    owner_email: Optional[str] = None,
    *,
    parent_id: Optional[str] = None,
    template: Template = None,
):
    """List root folders, or the children of --parent-id."""
    request = load_input(FolderListRequest, template, owner_email=owner_email, parent_id=parent_id)

    async def _list(c):
        owner = await c.users.resolve(email=request.owner_email)
        if request.parent_id:
            return await c.folders.list_children(request.parent_id, owner.id)
        return await c.folders.list_root(owner.id)

    summaries = run(_list)
    if not summaries:
        console.print("[yellow]No folders found[/yellow]")
        return

    table = Table(title=f"Folders ({len(summaries)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Documents", justify="right")
    table.add_column("Subfolders", justify="right")
    table.add_column("Size", justify="right")
    for s in summaries:
        table.add_row(
            str(s.folder.id),
            f"[{s.folder.color}]■[/] {s.folder.name}" if s.folder.color else s.folder.name,
            str(s.document_count),
            str(s.subfolder_count),
            format_size(s.total_size),
        )
    console.print(table)


@folder_app.command
def update(
    id: Optional[str] = None,
    owner_email: Optional[str] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    color: Optional[str] = None,
    parent_id: Optional[str] = None,
    move_to_root: bool = False,
    template: Template = None,
):
    """Rename, recolor or move a folder."""
    changes = {
        k: v
        for k, v in {
            "name": name,
            "description": description,
            "color": color,
            "parent_id": parent_id,
            "move_to_root": move_to_root or None,
        }.items()
        if v is not None
    }
    request = load_input(FolderUpdateRequest, template, id=id, owner_email=owner_email, changes=changes or None)

    async def _update(c):
        owner = await c.users.resolve(email=request.owner_email)
        return await c.folders.update(request.id, owner.id, request.changes)

    folder = run(_update)
    console.print(f"[green]✓ Folder updated: {folder.name}[/green]")


@folder_app.command
def delete(id: str, owner_email: str):
    """Delete an empty folder."""
    ref = FolderRef(id=id, owner_email=owner_email)

    async def _delete(c):
        owner = await c.users.resolve(email=ref.owner_email)
        await c.folders.delete(ref.id, owner.id)

    run(_delete)
    console.print(f"[green]✓ Folder {ref.id} deleted[/green]")


@folder_app.command
def path(id: str, owner_email: str):
    """Print the folder's full path."""
    ref = FolderRef(id=id, owner_email=owner_email)

    async def _path(c):
        owner = await c.users.resolve(email=ref.owner_email)
        return await c.folders.get_path(ref.id, owner.id)

    console.print(run(_path))
