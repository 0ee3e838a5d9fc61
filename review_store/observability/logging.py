"""
Enhanced logging utilities for REVIEW_STORE.

Provides structured logging with trace IDs and context, and a handler that
turns log records into documents for the ``logs`` collection.
"""

import contextvars
import logging
import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ..constants import LOG_BUFFER_CAPACITY, LOGS_COLLECTION
from ..exceptions import DocumentValidationError, ReviewStoreError

if TYPE_CHECKING:
    from ..core.gateway import Gateway

# Context variable for trace ID
_trace_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("trace_id", default=None)

# Context variable for operation context
_operation_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "operation_context", default=None
)


def get_trace_id() -> str | None:
    """Get the current trace ID from context."""
    return _trace_id.get()


def set_trace_id(trace_id: str | None = None) -> str:
    """
    Set a trace ID in the current context.

    Args:
        trace_id: Optional trace ID (generates new one if None)

    Returns:
        The trace ID that was set
    """
    if trace_id is None:
        trace_id = str(uuid.uuid4())
    _trace_id.set(trace_id)
    return trace_id


def clear_trace_id() -> None:
    """Clear the trace ID from context."""
    _trace_id.set(None)


def set_operation_context(**kwargs: Any) -> None:
    """
    Set operation context for logging.

    Args:
        **kwargs: Context values (collection, operation, etc.)
    """
    _operation_context.set(dict(kwargs))


def clear_operation_context() -> None:
    """Clear operation context."""
    _operation_context.set(None)


def get_logging_context() -> dict[str, Any]:
    """
    Get current logging context (trace ID and operation context).

    Returns:
        Dictionary with context information
    """
    context: dict[str, Any] = {}

    trace_id = get_trace_id()
    if trace_id:
        context["trace_id"] = trace_id

    operation_context = _operation_context.get()
    if operation_context:
        context.update(operation_context)

    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that automatically adds context to log records.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = get_logging_context()

        extra = kwargs.get("extra", {})
        if extra:
            context.update(extra)

        kwargs["extra"] = context
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a contextual logger that automatically adds trace ID and context.

    Args:
        name: Logger name (typically __name__)

    Returns:
        ContextualLoggerAdapter instance
    """
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.INFO,
    success: bool = True,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """
    Log an operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name
        level: Log level
        success: Whether operation succeeded
        duration_ms: Operation duration in milliseconds
        **context: Additional context
    """
    log_context = get_logging_context()
    log_context.update({"operation": operation, "success": success})

    if duration_ms is not None:
        log_context["duration_ms"] = round(duration_ms, 2)

    if context:
        log_context.update(context)

    message = f"Operation: {operation}"
    if not success:
        message = f"Operation failed: {operation}"
    if duration_ms is not None:
        message += f" (duration: {duration_ms:.2f}ms)"

    logger.log(level, message, extra=log_context)


def build_log_document(record: logging.LogRecord) -> dict[str, Any]:
    """
    Shape a log record as a ``logs`` collection document.

    The trace ID comes from the record's ``trace_id`` extra, falling back to
    the current context.
    """
    document: dict[str, Any] = {
        "unixTimestamp": datetime.fromtimestamp(record.created, tz=timezone.utc),
        "level": record.levelname.lower(),
        "message": record.getMessage(),
    }
    trace_id = getattr(record, "trace_id", None) or get_trace_id()
    if trace_id:
        document["traceID"] = str(trace_id)
    return document


class LogsCollectionHandler(logging.Handler):
    """
    Buffer log records as ``logs`` documents for later persistence.

    Logging calls happen in synchronous code, so records are only buffered
    here; ``flush_to`` writes them through the gateway from async code.
    Records emitted by this package's gateway module are ignored to avoid
    logging the flush itself.

    Example:
        handler = LogsCollectionHandler(level=logging.INFO)
        logging.getLogger().addHandler(handler)
        ...
        await handler.flush_to(gateway)
    """

    def __init__(self, level: int = logging.NOTSET, capacity: int = LOG_BUFFER_CAPACITY):
        super().__init__(level)
        self._buffer: deque[dict[str, Any]] = deque(maxlen=capacity)
        self._buffer_lock = threading.Lock()
        self.rejected = 0

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith("review_store.core.gateway"):
            return
        try:
            document = build_log_document(record)
        except (TypeError, ValueError):
            self.handleError(record)
            return
        with self._buffer_lock:
            self._buffer.append(document)

    @property
    def pending(self) -> int:
        """Number of buffered documents."""
        with self._buffer_lock:
            return len(self._buffer)

    def drain(self) -> list[dict[str, Any]]:
        """Remove and return all buffered documents."""
        with self._buffer_lock:
            documents = list(self._buffer)
            self._buffer.clear()
        return documents

    async def flush_to(self, gateway: "Gateway") -> int:
        """
        Persist buffered documents into the ``logs`` collection.

        If the write fails, documents that were not persisted are put back at
        the front of the buffer and the failure propagates. A document the
        ``logs`` validator rejects is discarded and counted in ``rejected``,
        so it cannot block later flushes.

        Returns:
            Number of documents written
        """
        documents = self.drain()
        if not documents:
            return 0
        try:
            outcome = await gateway.insert_many(LOGS_COLLECTION, documents)
        except ReviewStoreError as e:
            # Ordered insert: the first inserted_count documents are stored
            inserted = int(e.context.get("inserted_count", 0))
            remaining = documents[inserted:]
            failed_index = e.context.get("failed_index")
            if isinstance(e, DocumentValidationError) and failed_index == inserted:
                remaining = remaining[1:]
                self.rejected += 1
            with self._buffer_lock:
                self._buffer.extendleft(reversed(remaining))
            raise
        return len(outcome.inserted_ids)
