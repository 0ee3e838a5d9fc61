"""
Constants for REVIEW_STORE.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

from typing import Final

# ============================================================================
# COLLECTION CONSTANTS
# ============================================================================

CUSTOMER_COLLECTION: Final[str] = "customer"
SYNC_RECORD_COLLECTION: Final[str] = "syncRecord"
PACKAGE_COLLECTION: Final[str] = "package"
DOCUMENT_COLLECTION: Final[str] = "document"
CREDIT_MEMORANDUM_COLLECTION: Final[str] = "creditMemorandum"
TEMPLATE_COLLECTION: Final[str] = "template"
DICTIONARY_COLLECTION: Final[str] = "dictionary"
LOGS_COLLECTION: Final[str] = "logs"

# Provisioning order
COLLECTION_NAMES: Final[tuple[str, ...]] = (
    CUSTOMER_COLLECTION,
    SYNC_RECORD_COLLECTION,
    PACKAGE_COLLECTION,
    DOCUMENT_COLLECTION,
    CREDIT_MEMORANDUM_COLLECTION,
    TEMPLATE_COLLECTION,
    DICTIONARY_COLLECTION,
    LOGS_COLLECTION,
)

ALLOWED_COLLECTIONS: Final[frozenset[str]] = frozenset(COLLECTION_NAMES)
"""Collections the gateway is permitted to operate on."""

SYSTEM_COLLECTION_PREFIX: Final[str] = "system."
"""Prefix of MongoDB internal collections (never copied)."""

# ============================================================================
# DATABASE CONSTANTS
# ============================================================================

# Connection pool defaults
DEFAULT_MAX_POOL_SIZE: Final[int] = 50
"""Default maximum MongoDB connection pool size."""

DEFAULT_MIN_POOL_SIZE: Final[int] = 10
"""Default minimum MongoDB connection pool size."""

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

DEFAULT_MAX_IDLE_TIME_MS: Final[int] = 45000
"""Default maximum idle time before closing connections (milliseconds)."""

DEFAULT_OPERATION_TIMEOUT_MS: Final[int] = 30000
"""Default per-operation time limit in milliseconds (30 seconds)."""

DEFAULT_DRAIN_TIMEOUT_SECONDS: Final[float] = 10.0
"""How long shutdown waits for in-flight operations to release their lease."""

APP_NAME: Final[str] = "REVIEW_STORE"
"""Application name reported to the MongoDB server."""

# ============================================================================
# SERVER ERROR CODES
# ============================================================================

DOCUMENT_VALIDATION_FAILURE_CODE: Final[int] = 121
"""Server error code for writes rejected by a collection validator."""

DUPLICATE_KEY_CODE: Final[int] = 11000
"""Server error code for unique index violations."""

NAMESPACE_EXISTS_CODE: Final[int] = 48
"""Server error code returned when creating an existing collection."""

# ============================================================================
# GATEWAY CONSTANTS
# ============================================================================

FIND_OPTION_KEYS: Final[frozenset[str]] = frozenset({"sort", "skip", "limit"})
"""Query options accepted by Gateway.find()."""

UPDATE_OPERATOR_PREFIX: Final[str] = "$"
"""Field names starting with this prefix are rejected in update field bags."""

# ============================================================================
# LOGGING CONSTANTS
# ============================================================================

LOG_BUFFER_CAPACITY: Final[int] = 1000
"""Maximum number of log documents buffered before the oldest are dropped."""

# ============================================================================
# PROVISIONING STATUS CONSTANTS
# ============================================================================

PROVISION_STATUS_CREATED: Final[str] = "created"
PROVISION_STATUS_REVALIDATED: Final[str] = "revalidated"
