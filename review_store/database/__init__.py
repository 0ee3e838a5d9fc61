"""
Database access layer.

Provides the process-wide connection pool and the per-operation lease.
"""

from .connection import ConnectionPool, close_pool, get_pool

__all__ = [
    "ConnectionPool",
    "get_pool",
    "close_pool",
]
