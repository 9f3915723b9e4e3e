# files_core/cli/documents.py
"""Document commands"""
from pathlib import Path
from typing import Annotated, List, Optional

import aiofiles
import cyclopts
from rich.table import Table

from ..exceptions import EntityNotFound, ValidationFailed
from ..models.schemas import (
    DocumentAction,
    DocumentCreate,
    DocumentDelete,
    DocumentListRequest,
    DocumentLookup,
    DocumentMove,
    DocumentUpdateRequest,
)
from .common import console, format_date, format_size, key_value_table, load_input, run

document_app = cyclopts.App(name="document", help="Manage documents")

Template = Annotated[Optional[Path], cyclopts.Parameter(name=["--template", "-t"], help="JSON or YAML input file")]


def _document_rows(document, owner=None):
    return [
        ("ID", document.id),
        ("Name", document.name),
        ("Type", document.type),
        ("Category", document.category),
        ("Size", format_size(document.size)),
        ("Description", document.description),
        ("Tags", document.tags),
        ("Favorite", "★" if document.is_favorite else ""),
        ("Owner", owner.email if owner else document.owner_id),
        ("Folder", document.folder_id),
        ("Remote file", document.file_ref),
        ("Hash", document.content_hash),
        ("Created", format_date(document.created_at)),
        ("Modified", format_date(document.modified_at)),
    ]


@document_app.command
def create(
    name: Optional[str] = None,
    owner_email: Optional[str] = None,
    file_path: Optional[str] = None,
    *,
    type: Optional[str] = None,
    category: Optional[str] = None,
    description: Optional[str] = None,
    tags: Optional[str] = None,
    folder_id: Optional[str] = None,
    remote_folder_ref: Optional[str] = None,
    template: Template = None,
):
    """Upload a file and create its document."""
    data = load_input(
        DocumentCreate,
        template,
        name=name,
        owner_email=owner_email,
        file_path=file_path,
        type=type,
        category=category,
        description=description,
        tags=tags,
        folder_id=folder_id,
        remote_folder_ref=remote_folder_ref,
    )

    async def _create(c):
        return await c.documents.create(data)

    document = run(_create)
    console.print(f"[green]✓ Document created: {document.name} ({document.id})[/green]")
    console.print(f"[dim]Remote file: {document.file_ref}[/dim]")


@document_app.command
def read(
    id: Optional[str] = None,
    name: Optional[str] = None,
    owner_email: Optional[str] = None,
    *,
    template: Template = None,
):
    """Show a document by id, or by name and owner email."""
    lookup = load_input(DocumentLookup, template, id=id, name=name, owner_email=owner_email)
    if not lookup.id and not (lookup.name and lookup.owner_email):
        raise ValidationFailed("Provide --id, or --name with --owner-email")

    async def _read(c):
        if lookup.id:
            document = await c.documents.get(lookup.id)
        else:
            document = await c.documents.get_by_name_and_owner(lookup.name, lookup.owner_email)
        if not document:
            raise EntityNotFound("Document not found")
        return document, await c.users.get(document.owner_id)

    document, owner = run(_read)
    console.print(key_value_table("Document", _document_rows(document, owner)))


@document_app.command(name="list")
def list_documents(
    skip: Optional[int] = None,
    take: Optional[int] = None,
    *,
    owner_email: Optional[str] = None,
    favorites: bool = False,
    type: Optional[str] = None,
    category: Optional[str] = None,
    tag: Optional[List[str]] = None,
    search: Optional[str] = None,
    template: Template = None,
):
    """List documents with optional filters."""
    filters = {k: v for k, v in {"type": type, "category": category, "tags": tag, "search": search}.items() if v}
    request = load_input(
        DocumentListRequest,
        template,
        skip=skip,
        take=take,
        owner_email=owner_email,
        favorites_only=favorites or None,
        filters=filters or None,
    )

    async def _list(c):
        if request.owner_email:
            owner = await c.documents.resolve_owner(owner_email=request.owner_email)
            if request.favorites_only:
                return await c.documents.list_favorites(owner.id)
            request.filters.owner_id = owner.id
        return await c.documents.list(request.skip, request.take, request.filters)

    documents = run(_list)
    if not documents:
        console.print("[yellow]No documents found[/yellow]")
        return

    table = Table(title=f"Documents ({len(documents)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Tags")
    table.add_column("★")
    table.add_column("Created")
    for d in documents:
        table.add_row(
            str(d.id),
            d.name,
            d.type,
            format_size(d.size),
            d.tags or "",
            "★" if d.is_favorite else "",
            format_date(d.created_at),
        )
    console.print(table)


@document_app.command
def update(
    id: Optional[str] = None,
    user_email: Optional[str] = None,
    *,
    name: Optional[str] = None,
    type: Optional[str] = None,
    category: Optional[str] = None,
    description: Optional[str] = None,
    tags: Optional[str] = None,
    template: Template = None,
):
    """Update document metadata."""
    changes = {
        k: v
        for k, v in {
            "name": name,
            "type": type,
            "category": category,
            "description": description,
            "tags": tags,
        }.items()
        if v is not None
    }
    request = load_input(DocumentUpdateRequest, template, id=id, user_email=user_email, changes=changes or None)

    async def _update(c):
        user = await c.users.resolve(email=request.user_email)
        return await c.documents.update(request.id, request.changes, user.id)

    document = run(_update)
    console.print(f"[green]✓ Document updated: {document.name}[/green]")


@document_app.command
def delete(
    id: Optional[str] = None,
    user_email: Optional[str] = None,
    *,
    scope_folder_ref: Optional[str] = None,
    template: Template = None,
):
    """Delete a document and, when reachable, its remote file."""
    request = load_input(DocumentDelete, template, id=id, user_email=user_email, scope_folder_ref=scope_folder_ref)

    async def _delete(c):
        user = await c.users.resolve(email=request.user_email)
        await c.documents.delete(request.id, user.id, request.scope_folder_ref)

    run(_delete)
    console.print(f"[green]✓ Document {request.id} deleted[/green]")


@document_app.command
def favorite(id: str, user_email: str):
    """Toggle the favorite flag."""
    request = DocumentAction(id=id, user_email=user_email)

    async def _toggle(c):
        user = await c.users.resolve(email=request.user_email)
        return await c.documents.toggle_favorite(request.id, user.id)

    document = run(_toggle)
    state = "added to" if document.is_favorite else "removed from"
    console.print(f"[green]✓ {document.name} {state} favorites[/green]")


@document_app.command
def download(id: str, user_email: str, *, output: Optional[Path] = None):
    """Download a document's file."""
    request = DocumentAction(id=id, user_email=user_email)

    async def _download(c):
        user = await c.users.resolve(email=request.user_email)
        downloaded = await c.documents.download(request.id, user.id)
        target = Path(output) if output else Path.cwd() / downloaded.filename
        if target.is_dir():
            target = target / downloaded.filename
        async with aiofiles.open(target, "wb") as f:
            await f.write(downloaded.data)
        return downloaded, target

    downloaded, target = run(_download)
    console.print(f"[green]✓ Saved {downloaded.filename} ({format_size(len(downloaded.data))}) to {target}[/green]")


@document_app.command
def url(id: str, user_email: str):
    """Print a temporary download URL."""
    request = DocumentAction(id=id, user_email=user_email)

    async def _url(c):
        user = await c.users.resolve(email=request.user_email)
        return await c.documents.get_url(request.id, user.id)

    result = run(_url)
    console.print(result["url"], soft_wrap=True)
    console.print(f"[dim]Expires in {result['expires_in']} seconds[/dim]")


@document_app.command
def move(
    id: Optional[str] = None,
    user_email: Optional[str] = None,
    *,
    folder_id: Optional[str] = None,
    template: Template = None,
):
    """Move a document into a folder (omit --folder-id for the root)."""
    request = load_input(DocumentMove, template, id=id, user_email=user_email, folder_id=folder_id)

    async def _move(c):
        user = await c.users.resolve(email=request.user_email)
        return await c.documents.move_to_folder(request.id, request.folder_id, user.id)

    document = run(_move)
    console.print(f"[green]✓ {document.name} moved to {request.folder_id or 'the root'}[/green]")


@document_app.command
def stats():
    """Document counts and sizes per type."""

    async def _stats(c):
        return await c.documents.stats()

    result = run(_stats)
    console.print(
        key_value_table(
            "Documents",
            [("Total", result["total_documents"]), ("Total size", format_size(result["total_size"]))],
        )
    )
    table = Table(title="By type")
    table.add_column("Type", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Size", justify="right")
    for doc_type, values in result["by_type"].items():
        table.add_row(doc_type, str(values["count"]), format_size(values["size"]))
    console.print(table)


@document_app.command
def tags(limit: int = 20):
    """Most used tags."""

    async def _tags(c):
        return await c.documents.tag_counts()

    counts = run(_tags)
    if not counts:
        console.print("[yellow]No tags found[/yellow]")
        return

    table = Table(title="Tags")
    table.add_column("Tag", style="cyan")
    table.add_column("Documents", justify="right")
    for tag, count in counts[:limit]:
        table.add_row(tag, str(count))
    console.print(table)
