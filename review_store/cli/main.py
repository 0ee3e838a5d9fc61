"""
Main CLI entry point for REVIEW_STORE.

This module is part of REVIEW_STORE.
"""

from pathlib import Path

import click

from .. import __version__
from .commands.copy import copy
from .commands.ping import ping
from .commands.provision import provision
from .commands.schema import schema


@click.group()
@click.version_option(version=__version__, prog_name="review-store")
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="dotenv file with MONGO_* settings (default: nearest .env)",
)
@click.pass_context
def cli(ctx: click.Context, env_file: Path | None) -> None:
    """
    REVIEW_STORE command line tools.

    Provision collections, copy databases and check store health.
    """
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = str(env_file) if env_file else None


cli.add_command(provision)
cli.add_command(copy)
cli.add_command(ping)
cli.add_command(schema)


if __name__ == "__main__":
    cli()
