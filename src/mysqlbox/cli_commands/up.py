"""``mysqlbox up`` — start a sandbox and keep it until Ctrl-C."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from mysqlbox.cli_commands._output import console, print_handle
from mysqlbox.errors import MySQLBoxError

if TYPE_CHECKING:
    from mysqlbox.config import Settings


@click.command()
@click.option("--config", "config_file", type=click.Path(exists=True), default=None,
              help="YAML settings file; options below override it.")
@click.option("--image", default=None, help="MySQL image reference.")
@click.option("--database", default=None, help="Database to create.")
@click.option("--name", "container_name", default=None, help="Container name.")
@click.option("--port", type=int, default=None, help="Host port (default: ephemeral).")
@click.option("--password", default=None, help="Explicit root password.")
@click.option("--random-password", is_flag=True, help="Let MySQL generate the root password.")
@click.option("--schema", type=click.Path(exists=True, dir_okay=False), default=None,
              help="SQL script run at first boot.")
@click.option("--detach", is_flag=True, help="Leave the sandbox running and exit.")
@click.option("--telemetry", is_flag=True, help="Print tracing spans to the console.")
@click.option("--otlp-endpoint", default=None, help="Export tracing spans over OTLP/gRPC.")
def up(
    config_file: str | None,
    image: str | None,
    database: str | None,
    container_name: str | None,
    port: int | None,
    password: str | None,
    random_password: bool,
    schema: str | None,
    detach: bool,
    telemetry: bool,
    otlp_endpoint: str | None,
) -> None:
    """Provision a MySQL sandbox and print its connection details."""
    from mysqlbox.config import Settings, load_settings
    from mysqlbox.data import InitialData

    try:
        settings = load_settings(Path(config_file)) if config_file else Settings()
        overrides = {
            "image": image,
            "database": database,
            "container_name": container_name,
            "port": port,
            "root_password": password,
            "random_root_password": random_password or None,
            "initial_data": InitialData.from_file(schema) if schema else None,
        }
        settings = settings.model_copy(
            update={k: v for k, v in overrides.items() if v is not None}
        )
    except MySQLBoxError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)

    if telemetry or otlp_endpoint:
        from mysqlbox.utils.telemetry import configure_telemetry

        configure_telemetry(export_to_console=telemetry, otlp_endpoint=otlp_endpoint)

    try:
        asyncio.run(_up(settings, detach=detach))
    except KeyboardInterrupt:
        pass
    except MySQLBoxError as exc:
        console.print(f"[red]Sandbox error:[/red] {exc}")
        sys.exit(1)


async def _up(settings: Settings, *, detach: bool) -> None:
    from mysqlbox.box import LifecycleManager

    handle = await LifecycleManager().provision(settings)
    if detach:
        print_handle(handle)
        console.print("Detached; remove it with [bold]mysqlbox prune[/bold].")
        await handle.close()
        return

    try:
        print_handle(handle)
        console.print("Press Ctrl-C to stop.")
        await asyncio.Event().wait()
    finally:
        await handle.stop()
        console.print(f"Stopped {handle.container_name}.")
