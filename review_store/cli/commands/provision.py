"""
Provision command for CLI.

Creates every collection with its schema validator.

This module is part of REVIEW_STORE.
"""

import click

from ...core import SchemaProvisioner
from ..utils import load_config, run_with_pool


@click.command()
@click.option(
    "--allow-existing",
    is_flag=True,
    help="Re-apply validators to collections that already exist instead of failing",
)
@click.pass_context
def provision(ctx: click.Context, allow_existing: bool) -> None:
    """
    Create the collections and their validators.

    Examples:
        review-store provision
        review-store --env-file prod.env provision --allow-existing
    """
    config = load_config(ctx)

    async def _provision(pool):
        return await SchemaProvisioner(pool, allow_existing=allow_existing).provision()

    report = run_with_pool(config, _provision)

    for name, status in report.results.items():
        click.echo(f"{name}: {status}")
    click.echo(
        click.style(
            f"Database '{config.database}' is set up "
            f"({len(report.created)} created, {len(report.revalidated)} revalidated)",
            fg="green",
        )
    )
