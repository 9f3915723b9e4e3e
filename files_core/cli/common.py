# files_core/cli/common.py
"""Helpers shared by the command groups"""
import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from ..config import settings
from ..container import Container, build_container
from ..exceptions import ValidationFailed

console = Console()

M = TypeVar("M", bound=BaseModel)


def create_container() -> Container:
    return build_container(settings)


def run(operation: Callable[[Container], Awaitable[Any]]) -> Any:
    """Run one async operation against a freshly wired container"""

    async def _main():
        container = create_container()
        try:
            await container.init_models()
            return await operation(container)
        finally:
            await container.aclose()

    return asyncio.run(_main())


def read_template(path: Path) -> dict:
    """Load a JSON or YAML input file"""
    path = Path(path)
    if not path.is_file():
        raise ValidationFailed(f"Template not found: {path}")

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)

    if not isinstance(data, dict):
        raise ValidationFailed(f"Template {path} must contain an object")
    return data


def load_input(model: Type[M], template: Optional[Path] = None, **flags) -> M:
    """Build an input model from a template file, overridden by explicit flags"""
    data = read_template(template) if template else {}
    data.update({key: value for key, value in flags.items() if value is not None})
    return model.model_validate(data)


def key_value_table(title: str, rows) -> Table:
    table = Table(title=title, show_header=False, box=None)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for key, value in rows:
        table.add_row(key, "" if value is None else str(value))
    return table


def format_size(size: int) -> str:
    size = float(size or 0)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def format_date(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""
