"""``mysqlbox ls`` / ``mysqlbox prune`` — inventory of labelled sandboxes."""

from __future__ import annotations

import asyncio
import sys

import click

from mysqlbox.cli_commands._output import console, print_containers_table
from mysqlbox.errors import ContainerNotFoundError, MySQLBoxError
from mysqlbox.runtime.docker_cli import DockerCLIBackend
from mysqlbox.runtime.models import MANAGED_LABEL


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def ls(as_json: bool) -> None:
    """List running sandboxes created by mysqlbox."""
    try:
        containers = asyncio.run(DockerCLIBackend().list_managed(MANAGED_LABEL))
    except MySQLBoxError as exc:
        console.print(f"[red]Listing error:[/red] {exc}")
        sys.exit(1)

    if not containers and not as_json:
        console.print("No sandboxes running.")
        return

    print_containers_table(containers, as_json=as_json)


@click.command()
@click.option("--timeout", type=float, default=10.0, show_default=True,
              help="Grace period before each container is killed.")
def prune(timeout: float) -> None:
    """Stop every sandbox created by mysqlbox."""
    try:
        stopped = asyncio.run(_prune(timeout))
    except MySQLBoxError as exc:
        console.print(f"[red]Prune error:[/red] {exc}")
        sys.exit(1)

    console.print(f"Stopped {stopped} sandbox(es).")


async def _prune(timeout: float) -> int:
    backend = DockerCLIBackend()
    containers = await backend.list_managed(MANAGED_LABEL)
    stopped = 0
    for container in containers:
        try:
            await backend.stop(container.id, timeout)
        except ContainerNotFoundError:
            continue
        console.print(f"  stopped {container.name}")
        stopped += 1
    return stopped
