"""Shared CLI output formatters."""

from __future__ import annotations

import json

from rich.console import Console
from rich.table import Table

from mysqlbox.handle import Handle  # noqa: TC001
from mysqlbox.runtime.models import ContainerSummary  # noqa: TC001

console = Console()


def print_handle(handle: Handle) -> None:
    """Print the endpoint details of a ready sandbox."""
    console.print(f"\n[bold green]Sandbox ready:[/bold green] {handle.container_name}")
    console.print(f"  URL:       {handle.url}")
    console.print(f"  Port:      {handle.port}")
    console.print(f"  Database:  {handle.database}")
    console.print(f"  Container: {handle.container_id[:12]}")


def print_containers_table(containers: list[ContainerSummary], *, as_json: bool = False) -> None:
    """Pretty-print labelled containers as a table."""
    if as_json:
        console.print_json(json.dumps([c.model_dump() for c in containers]))
        return

    table = Table(title="mysqlbox sandboxes")
    table.add_column("Name", style="cyan")
    table.add_column("ID")
    table.add_column("Image")
    table.add_column("Status")
    table.add_column("Ports")

    for c in containers:
        table.add_row(c.name, c.id[:12], c.image, c.status, _truncate(c.ports))

    console.print(table)


def _truncate(text: str, max_len: int = 60) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
