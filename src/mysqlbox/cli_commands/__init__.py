"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from mysqlbox.cli_commands.inventory import ls, prune
    from mysqlbox.cli_commands.up import up

    cli.add_command(up)
    cli.add_command(ls)
    cli.add_command(prune)
