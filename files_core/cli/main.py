# files_core/cli/main.py
import logging
import sys
from pathlib import Path
from typing import Annotated, List, Optional

import cyclopts
from pydantic import ValidationError
from rich.markup import escape

from .. import __version__
from ..config import settings
from ..exceptions import FilesCoreError
from ..models.schemas import SyncRequest
from .common import console, key_value_table, load_input, run
from .credentials import credential_app
from .documents import document_app
from .folders import folder_app
from .logs import log_app
from .users import user_app

logger = logging.getLogger(__name__)

app = cyclopts.App(
    name="files-core",
    help="Manage users, documents and folders backed by remote object storage",
    version=__version__,
)
app.command(user_app)
app.command(document_app)
app.command(folder_app)
app.command(log_app)
app.command(credential_app)


@app.command
def sync(
    owner_email: Optional[str] = None,
    *,
    folder_ref: Optional[str] = None,
    template: Annotated[
        Optional[Path], cyclopts.Parameter(name=["--template", "-t"], help="JSON or YAML input file")
    ] = None,
):
    """Reconcile remote storage with local document metadata.

    New remote files become documents owned by --owner-email; files already
    known by content hash have their metadata refreshed.
    """
    request = load_input(SyncRequest, template, owner_email=owner_email, folder_ref=folder_ref)

    async def _sync(c):
        owner = await c.users.resolve(email=request.owner_email)
        return await c.documents.synchronize(owner.id, request.folder_ref)

    result = run(_sync)
    console.print(
        f"[green]✓ Sync complete: {result.created_count} created, {result.updated_count} updated[/green]"
    )
    for document in result.created:
        console.print(f"  [cyan]+[/cyan] {document.name} ({document.type})")
    for document in result.updated:
        console.print(f"  [dim]~[/dim] {document.name}")


@app.command
def init():
    """Create the database tables and report the configuration."""

    async def _init(c):
        # tables are created by run()
        return c.settings

    config = run(_init)
    console.print("[green]✓ Database ready[/green]")
    console.print(
        key_value_table(
            config.APP_NAME,
            [
                ("Version", config.VERSION),
                ("Database", config.DATABASE_URL),
                ("Bucket", config.STORAGE_BUCKET),
                ("Endpoint", config.STORAGE_ENDPOINT_URL or "default"),
                ("Default credentials", "configured" if config.has_default_storage_credentials else "missing"),
                ("Encryption key", "configured" if config.ENCRYPTION_SECRET_KEY else "derived from SECRET_KEY"),
            ],
        )
    )
    if not config.has_default_storage_credentials:
        console.print("[yellow]Set STORAGE_EMAIL and STORAGE_PASSWORD, or add per-user credentials[/yellow]")


def configure_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main(tokens: Optional[List[str]] = None):
    tokens = list(sys.argv[1:] if tokens is None else tokens)
    verbose = False
    for flag in ("--verbose", "-v"):
        while flag in tokens:
            tokens.remove(flag)
            verbose = True
    configure_logging(verbose)

    try:
        result = app(tokens)
    except ValidationError as e:
        console.print(f"[red]Invalid input:[/red]\n{escape(str(e))}")
        sys.exit(1)
    except FilesCoreError as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error")
        console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        sys.exit(1)

    if isinstance(result, int) and result:
        sys.exit(result)


if __name__ == "__main__":
    main()
