"""
Utility functions for CLI commands.

This module provides shared utilities for CLI operations.

This module is part of REVIEW_STORE.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from ..config import StoreConfig
from ..database import ConnectionPool
from ..exceptions import ReviewStoreError

T = TypeVar("T")


def load_config(ctx: click.Context) -> StoreConfig:
    """
    Load the store configuration for a command.

    Raises:
        click.ClickException: If the configuration is missing or invalid
    """
    env_file = (ctx.obj or {}).get("env_file")
    try:
        return StoreConfig.from_env(env_file=env_file)
    except ReviewStoreError as e:
        raise click.ClickException(str(e)) from e


def run_with_pool(config: StoreConfig, func: Callable[[ConnectionPool], Awaitable[T]]) -> T:
    """
    Run ``func`` against a fresh connection pool on a new event loop.

    The pool is always shut down afterwards.

    Raises:
        click.ClickException: If ``func`` raises a REVIEW_STORE error
    """

    async def _run() -> T:
        pool = ConnectionPool(config)
        try:
            return await func(pool)
        finally:
            await pool.shutdown()

    try:
        return asyncio.run(_run())
    except ReviewStoreError as e:
        raise click.ClickException(str(e)) from e


def format_json(data: Any) -> str:
    """Serialize command output; BSON values fall back to ``str``."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)
