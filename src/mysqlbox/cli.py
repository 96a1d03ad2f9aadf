"""mysqlbox CLI entrypoint."""

from __future__ import annotations

import click

from mysqlbox import __version__


@click.group()
@click.version_option(version=__version__, prog_name="mysqlbox")
def main() -> None:
    """mysqlbox — disposable MySQL sandboxes in Docker."""


# Register subcommands
from mysqlbox.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
