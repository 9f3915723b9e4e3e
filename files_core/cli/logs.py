# files_core/cli/logs.py
"""Activity log commands"""
from pathlib import Path
from typing import Annotated, List, Optional

import cyclopts
from rich.table import Table

from ..exceptions import ValidationFailed
from ..models.database import ActivityLog
from ..models.schemas import LogQuery
from .common import console, format_date, key_value_table, load_input, run

log_app = cyclopts.App(name="log", help="Browse the activity log")

Template = Annotated[Optional[Path], cyclopts.Parameter(name=["--template", "-t"], help="JSON or YAML input file")]


def _print_logs(logs: List[ActivityLog], title: str):
    if not logs:
        console.print("[yellow]No log entries found[/yellow]")
        return

    table = Table(title=f"{title} ({len(logs)})")
    table.add_column("Date")
    table.add_column("Action", style="cyan")
    table.add_column("Entity")
    table.add_column("User", style="dim")
    table.add_column("Details")
    for log in logs:
        table.add_row(
            format_date(log.created_at),
            log.action,
            f"{log.entity} {log.entity_id[:8]}",
            str(log.user_id)[:8] if log.user_id else "",
            log.details or "",
        )
    console.print(table)


@log_app.command(name="list")
def list_logs(
    filter_type: Optional[str] = None,
    *,
    user_email: Optional[str] = None,
    document_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    template: Template = None,
):
    """List log entries: all, or by user, document or action."""
    query = load_input(
        LogQuery,
        template,
        filter_type=filter_type,
        user_email=user_email,
        document_id=document_id,
        action=action,
        limit=limit,
        offset=offset,
    )

    async def _list(c):
        if query.filter_type == "user":
            if not query.user_email:
                raise ValidationFailed("--user-email is required for user logs")
            return await c.activity.get_user_logs_by_email(query.user_email, query.limit)
        if query.filter_type == "document":
            if not query.document_id:
                raise ValidationFailed("--document-id is required for document logs")
            return await c.activity.get_document_logs(query.document_id, query.limit)
        if query.filter_type == "action":
            if not query.action:
                raise ValidationFailed("--action is required for action logs")
            return await c.activity.get_logs_by_action(query.action.upper(), query.limit)
        return await c.activity.get_all_logs(query.limit, query.offset)

    _print_logs(run(_list), "Activity log")


@log_app.command
def search(text: str, *, limit: int = 50):
    """Search actions and details."""

    async def _search(c):
        return await c.activity.search(text, limit)

    _print_logs(run(_search), f"Matches for '{text}'")


@log_app.command
def stats(*, days: Optional[int] = None):
    """Counts per action and entity, optionally over the last N days."""

    async def _stats(c):
        return await c.activity.stats(days)

    result = run(_stats)
    console.print(key_value_table("Activity", [("Total", result["total"]), ("Period", f"{days} days" if days else "all time")]))

    for title, counts in (("By action", result["by_action"]), ("By entity", result["by_entity"])):
        table = Table(title=title)
        table.add_column("Name", style="cyan")
        table.add_column("Count", justify="right")
        for name, count in sorted(counts.items(), key=lambda item: item[1], reverse=True):
            table.add_row(name, str(count))
        console.print(table)


@log_app.command
def recent(user_email: str, *, limit: int = 10):
    """Recent document activity for a user."""

    async def _recent(c):
        user = await c.users.resolve(email=user_email)
        return await c.activity.recent_activities(user.id, limit)

    activities = run(_recent)
    if not activities:
        console.print("[yellow]No recent activity[/yellow]")
        return

    table = Table(title="Recent activity")
    table.add_column("Date")
    table.add_column("Type", style="cyan")
    table.add_column("Document")
    for activity in activities:
        table.add_row(format_date(activity.date), activity.type, activity.document)
    console.print(table)
