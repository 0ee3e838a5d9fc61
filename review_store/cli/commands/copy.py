"""
Copy command for CLI.

Copies every collection of one database into another.

This module is part of REVIEW_STORE.
"""

import click

from ...core import copy_database
from ..utils import load_config, run_with_pool


@click.command()
@click.argument("source")
@click.argument("target")
@click.pass_context
def copy(ctx: click.Context, source: str, target: str) -> None:
    """
    Copy data from SOURCE database into TARGET database.

    Examples:
        review-store copy scheduled_review scheduledReviewPOC
    """
    config = load_config(ctx)
    click.echo(f"Copying data from {source} into {target}...")

    copied = run_with_pool(config, lambda pool: copy_database(pool, source, target))

    for name, count in copied.items():
        click.echo(f"Number of docs inserted to {name} collection: {count}")
    click.echo(click.style("Data transfer complete!", fg="green"))
