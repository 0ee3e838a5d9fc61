"""
Shared MongoDB Connection Pool

Provides the process-wide MongoDB client used by the provisioner, the
gateway and the copy utility. The driver keeps the physical connection pool;
this module owns its lifecycle (lazy initialization, graceful shutdown) and
hands out one logical lease per operation.

This module is part of REVIEW_STORE.

Usage:
    from review_store.database import get_pool

    pool = get_pool(config)
    async with pool.acquire() as db:
        await db["customer"].find_one({})
    await close_pool()
"""

import asyncio
import logging
import threading
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConfigurationError as PyMongoConfigurationError
from pymongo.errors import (
    ConnectionFailure,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from ..config import StoreConfig
from ..constants import DEFAULT_DRAIN_TIMEOUT_SECONDS
from ..exceptions import ConfigurationError, StoreConnectionError
from ..observability import get_logger as get_contextual_logger
from ..observability import get_store_metrics, record_operation

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class ConnectionPool:
    """
    Lifecycle owner for the MongoDB client.

    ``acquire()`` is an async context manager: every entry is paired with
    exactly one release, whether the body returns or raises. Leases are
    counted so that ``shutdown()`` can wait for in-flight operations.
    """

    def __init__(
        self,
        config: StoreConfig,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the pool. No connection is made until first use.

        Args:
            config: Validated store configuration
            drain_timeout: Seconds shutdown waits for leases to be released
        """
        self.config = config
        self.drain_timeout = drain_timeout

        self._mongo_client: AsyncIOMotorClient | None = None
        self._mongo_db: AsyncIOMotorDatabase | None = None
        self._initialized = False
        self._closed = False
        self._init_lock = asyncio.Lock()

        self._in_use = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self.acquired_count = 0
        self.released_count = 0

    async def initialize(self) -> None:
        """
        Create the client and verify the server is reachable.

        Safe to call repeatedly; only the first successful call connects.

        Raises:
            StoreConnectionError: If the server cannot be reached or the pool
                                  was shut down
            ConfigurationError: If the URL or client options are invalid
        """
        async with self._init_lock:
            if self._closed:
                raise StoreConnectionError(
                    "Connection pool has been shut down", database=self.config.database
                )
            if self._initialized:
                return

            start_time = time.time()
            contextual_logger.info(
                "Initializing MongoDB connection",
                extra={
                    "mongo_url": self.config.redacted_url,
                    "database": self.config.database,
                    "max_pool_size": self.config.max_pool_size,
                    "min_pool_size": self.config.min_pool_size,
                },
            )

            client: AsyncIOMotorClient | None = None
            try:
                client = AsyncIOMotorClient(self.config.mongo_url, **self.config.client_options())
                await client.admin.command("ping")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                self._discard_client(client)
                duration_ms = (time.time() - start_time) * 1000
                record_operation("connection.initialize", duration_ms, success=False)
                contextual_logger.critical(
                    "MongoDB connection failed",
                    extra={"error_type": type(e).__name__, "error": str(e)},
                    exc_info=True,
                )
                raise StoreConnectionError(
                    f"Failed to connect to MongoDB: {e}",
                    mongo_url=self.config.redacted_url,
                    database=self.config.database,
                    context={"error_type": type(e).__name__},
                ) from e
            except (PyMongoConfigurationError, TypeError, ValueError) as e:
                self._discard_client(client)
                duration_ms = (time.time() - start_time) * 1000
                record_operation("connection.initialize", duration_ms, success=False)
                raise ConfigurationError(
                    f"Invalid MongoDB client configuration: {e}",
                    config_key="MONGO_OPTIONS",
                    context={"error_type": type(e).__name__},
                ) from e
            except OperationFailure as e:
                self._discard_client(client)
                raise StoreConnectionError(
                    f"MongoDB rejected the connection: {e}",
                    mongo_url=self.config.redacted_url,
                    database=self.config.database,
                    context={"error_type": type(e).__name__, "code": e.code},
                ) from e

            self._mongo_client = client
            self._mongo_db = client[self.config.database]
            self._initialized = True

            duration_ms = (time.time() - start_time) * 1000
            record_operation("connection.initialize", duration_ms, success=True)
            contextual_logger.info(
                "MongoDB connection initialized successfully",
                extra={
                    "database": self.config.database,
                    "pool_size": f"{self.config.min_pool_size}-{self.config.max_pool_size}",
                    "duration_ms": round(duration_ms, 2),
                },
            )

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[AsyncIOMotorDatabase]:
        """
        Lease the target database for one operation.

        Raises:
            StoreConnectionError: If the pool is shut down or unreachable
        """
        if self._closed:
            raise StoreConnectionError(
                "Connection pool has been shut down", database=self.config.database
            )
        if not self._initialized:
            await self.initialize()

        self._in_use += 1
        self.acquired_count += 1
        self._idle.clear()
        try:
            yield self._mongo_db
        finally:
            self._in_use -= 1
            self.released_count += 1
            if self._in_use == 0:
                self._idle.set()

    async def ping(self) -> dict[str, Any]:
        """Run the ``ping`` command through a lease."""
        async with self.acquire():
            return await self.client.admin.command("ping")

    async def shutdown(self) -> None:
        """
        Stop handing out leases, wait for in-flight ones, close the client.

        This method is idempotent - it's safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True

        if not self._initialized:
            return

        start_time = time.time()
        contextual_logger.info(
            "Shutting down MongoDB connection...", extra={"in_use": self._in_use}
        )

        try:
            await asyncio.wait_for(self._idle.wait(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"{self._in_use} operation(s) still running after "
                f"{self.drain_timeout}s; closing MongoDB client anyway"
            )

        self._discard_client(self._mongo_client)
        self._mongo_client = None
        self._mongo_db = None
        self._initialized = False

        duration_ms = (time.time() - start_time) * 1000
        record_operation("connection.shutdown", duration_ms, success=True)
        contextual_logger.info(
            "MongoDB connection shutdown complete",
            extra={"duration_ms": round(duration_ms, 2), **get_store_metrics().totals()},
        )

    @staticmethod
    def _discard_client(client: AsyncIOMotorClient | None) -> None:
        if client is None:
            return
        try:
            client.close()
        except (AttributeError, RuntimeError) as e:
            logger.warning(f"Error closing MongoDB client: {e}")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def in_use(self) -> int:
        """Number of leases currently held."""
        return self._in_use

    @property
    def client(self) -> AsyncIOMotorClient:
        """
        The underlying client.

        Raises:
            StoreConnectionError: If the pool is not initialized
        """
        if self._mongo_client is None:
            raise StoreConnectionError(
                "Connection pool not initialized. Call initialize() first.",
                database=self.config.database,
            )
        return self._mongo_client


# Global singleton instance
_shared_pool: ConnectionPool | None = None
# Use threading.Lock for cross-thread safety in multi-threaded environments
_pool_lock = threading.Lock()


def get_pool(config: StoreConfig | None = None) -> ConnectionPool:
    """
    Get or create the process-wide connection pool.

    Args:
        config: Configuration used when the pool is first created; loaded
                from the environment when omitted

    Returns:
        Shared ConnectionPool instance
    """
    global _shared_pool

    if _shared_pool is not None and not _shared_pool.is_closed:
        return _shared_pool

    with _pool_lock:
        # Double-check pattern: another thread may have created it while we waited
        if _shared_pool is None or _shared_pool.is_closed:
            _shared_pool = ConnectionPool(config or StoreConfig.from_env())
            logger.debug("Created shared connection pool")
        return _shared_pool


async def close_pool() -> None:
    """
    Shut down the process-wide pool.
    Should be called during application shutdown.
    """
    global _shared_pool

    pool = _shared_pool
    _shared_pool = None
    if pool is not None:
        await pool.shutdown()
