"""
Observability components.

Provides structured logging, metrics collection and health check
capabilities.
"""

from .health import (
    HealthCheckResult,
    HealthStatus,
    check_collections_health,
    check_store,
    check_store_health,
    combine_status,
)
from .logging import (
    ContextualLoggerAdapter,
    LogsCollectionHandler,
    build_log_document,
    clear_operation_context,
    clear_trace_id,
    get_logger,
    get_logging_context,
    get_trace_id,
    log_operation,
    set_operation_context,
    set_trace_id,
)
from .metrics import (
    OperationStats,
    StoreMetrics,
    get_store_metrics,
    record_operation,
    timed_operation,
)

__all__ = [
    # Metrics
    "StoreMetrics",
    "OperationStats",
    "get_store_metrics",
    "record_operation",
    "timed_operation",
    # Logging
    "get_trace_id",
    "set_trace_id",
    "clear_trace_id",
    "set_operation_context",
    "clear_operation_context",
    "get_logging_context",
    "ContextualLoggerAdapter",
    "LogsCollectionHandler",
    "build_log_document",
    "get_logger",
    "log_operation",
    # Health
    "HealthStatus",
    "HealthCheckResult",
    "check_store",
    "check_store_health",
    "check_collections_health",
    "combine_status",
]
