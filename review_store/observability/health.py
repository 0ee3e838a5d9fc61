"""
Health check utilities for REVIEW_STORE.

Provides health check functions for monitoring store connectivity and the
presence of the provisioned collections.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pymongo.errors import (
    ConnectionFailure,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from ..constants import COLLECTION_NAMES
from ..exceptions import ReviewStoreError

if TYPE_CHECKING:
    from ..database import ConnectionPool

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    name: str
    status: HealthStatus
    message: str
    details: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


async def check_store_health(
    pool: "ConnectionPool | None", timeout_seconds: float = 5.0
) -> HealthCheckResult:
    """
    Check that the store answers a ping.

    Args:
        pool: ConnectionPool instance
        timeout_seconds: Timeout for health check

    Returns:
        HealthCheckResult
    """
    if pool is None:
        return HealthCheckResult(
            name="mongodb",
            status=HealthStatus.UNHEALTHY,
            message="Connection pool not configured",
        )

    try:
        await asyncio.wait_for(pool.ping(), timeout=timeout_seconds)
        return HealthCheckResult(
            name="mongodb",
            status=HealthStatus.HEALTHY,
            message="MongoDB connection is healthy",
            details={"timeout_seconds": timeout_seconds, "in_use": pool.in_use},
        )
    except asyncio.TimeoutError:
        return HealthCheckResult(
            name="mongodb",
            status=HealthStatus.UNHEALTHY,
            message=f"MongoDB ping timed out after {timeout_seconds}s",
        )
    except (
        ReviewStoreError,
        ConnectionFailure,
        OperationFailure,
        ServerSelectionTimeoutError,
    ) as e:
        return HealthCheckResult(
            name="mongodb",
            status=HealthStatus.UNHEALTHY,
            message=f"MongoDB health check failed: {str(e)}",
        )


async def check_collections_health(
    pool: "ConnectionPool", expected: Iterable[str] = COLLECTION_NAMES
) -> HealthCheckResult:
    """
    Check that every provisioned collection exists.

    Returns:
        HEALTHY when all exist, DEGRADED when some are missing
    """
    expected = list(expected)
    try:
        async with pool.acquire() as db:
            existing = set(await db.list_collection_names())
    except (ReviewStoreError, ConnectionFailure, OperationFailure) as e:
        return HealthCheckResult(
            name="collections",
            status=HealthStatus.UNHEALTHY,
            message=f"Could not list collections: {str(e)}",
        )

    missing = [name for name in expected if name not in existing]
    if missing:
        return HealthCheckResult(
            name="collections",
            status=HealthStatus.DEGRADED,
            message=f"{len(missing)} collection(s) not provisioned",
            details={"missing": missing},
        )
    return HealthCheckResult(
        name="collections",
        status=HealthStatus.HEALTHY,
        message="All collections provisioned",
        details={"count": len(expected)},
    )


def combine_status(results: Iterable[HealthCheckResult]) -> HealthStatus:
    """The worst status among ``results``."""
    statuses = {r.status for r in results}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


async def check_store(pool: "ConnectionPool", timeout_seconds: float = 5.0) -> dict[str, Any]:
    """
    Ping the store, then confirm the collections once it answers.

    Returns:
        Dictionary with overall status and individual check results
    """
    results = [await check_store_health(pool, timeout_seconds=timeout_seconds)]
    if results[0].status == HealthStatus.HEALTHY:
        results.append(await check_collections_health(pool))

    status = combine_status(results)
    if status != HealthStatus.HEALTHY:
        logger.warning(f"Store health is {status.value}")

    return {
        "status": status.value,
        "timestamp": datetime.now().isoformat(),
        "checks": [r.to_dict() for r in results],
    }
