"""
REVIEW_STORE - MongoDB data-access layer

Provisions the schema-validated collections of the review workflow and
exposes guarded CRUD access to them.
"""

# Configuration
from .config import StoreConfig
# Core components
from .core import (DeleteOutcome, Gateway, InsertManyOutcome, InsertOneOutcome,
                   ProvisioningReport, SchemaProvisioner, UpdateOutcome,
                   copy_database)
# Database layer
from .database import ConnectionPool, close_pool, get_pool
# Errors
from .exceptions import (CollectionExistsError, CollectionNotAllowedError,
                         ConfigurationError, DocumentValidationError,
                         DuplicateDocumentError, InvalidRequestError,
                         OperationTimeoutError, ProvisioningError,
                         ReviewStoreError, SchemaDefinitionError,
                         StoreConnectionError, StoreOperationError)
# Schemas
from .schemas import COLLECTION_SCHEMAS, CollectionSchema, FieldSpec

__version__ = "0.1.0"

__all__ = [
    # Config
    "StoreConfig",
    # Core
    "SchemaProvisioner",
    "ProvisioningReport",
    "Gateway",
    "InsertOneOutcome",
    "InsertManyOutcome",
    "UpdateOutcome",
    "DeleteOutcome",
    "copy_database",
    # Database
    "ConnectionPool",
    "get_pool",
    "close_pool",
    # Schemas
    "COLLECTION_SCHEMAS",
    "CollectionSchema",
    "FieldSpec",
    # Errors
    "ReviewStoreError",
    "ConfigurationError",
    "StoreConnectionError",
    "CollectionNotAllowedError",
    "InvalidRequestError",
    "SchemaDefinitionError",
    "StoreOperationError",
    "DocumentValidationError",
    "DuplicateDocumentError",
    "OperationTimeoutError",
    "ProvisioningError",
    "CollectionExistsError",
]
