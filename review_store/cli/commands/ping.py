"""
Ping command for CLI.

Runs the store health checks.

This module is part of REVIEW_STORE.
"""

import sys

import click

from ...observability import HealthStatus, check_store
from ..utils import format_json, load_config, run_with_pool


@click.command()
@click.option(
    "--timeout", type=float, default=5.0, show_default=True, help="Ping timeout in seconds"
)
@click.pass_context
def ping(ctx: click.Context, timeout: float) -> None:
    """
    Check that the store is reachable and provisioned.

    Exits with status 1 when the store is unhealthy.
    """
    config = load_config(ctx)

    async def _check(pool):
        return await check_store(pool, timeout_seconds=timeout)

    health = run_with_pool(config, _check)
    click.echo(format_json(health))

    if health["status"] == HealthStatus.UNHEALTHY.value:
        click.echo(click.style("Store is unhealthy", fg="red"), err=True)
        sys.exit(1)
