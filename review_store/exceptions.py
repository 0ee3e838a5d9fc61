"""
Custom exceptions for REVIEW_STORE.

Every failure surfaced by the provisioner or the gateway is one of these
classes, so callers can tell configuration, connection, request, schema and
store-level errors apart.
"""

from typing import Any, Dict, List, Optional


class ReviewStoreError(RuntimeError):
    """
    Base exception for REVIEW_STORE errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (collection,
                 operation, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ConfigurationError(ReviewStoreError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class StoreConnectionError(ReviewStoreError):
    """
    Raised when the store cannot be reached or the pool is closed.

    Attributes:
        message: Error message
        mongo_url: MongoDB connection URL (if available)
        database: Database name (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        mongo_url: Optional[str] = None,
        database: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if mongo_url:
            context["mongo_url"] = mongo_url
        if database:
            context["database"] = database
        super().__init__(message, context=context)
        self.mongo_url = mongo_url
        self.database = database


class CollectionNotAllowedError(ReviewStoreError):
    """Raised when an operation names a collection outside the allow-list."""

    def __init__(self, collection_name: Any, operation: Optional[str] = None) -> None:
        context: Dict[str, Any] = {"collection": collection_name}
        if operation:
            context["operation"] = operation
        super().__init__("Collection not recognized", context=context)
        self.collection_name = collection_name
        self.operation = operation


class InvalidRequestError(ReviewStoreError):
    """Raised when gateway arguments are malformed. Detected before any I/O."""


class SchemaDefinitionError(ReviewStoreError):
    """
    Raised when a declarative collection schema cannot be compiled.

    Attributes:
        collection_name: Collection whose schema is malformed
        error_path: Path inside the compiled validator (if available)
    """

    def __init__(
        self,
        message: str,
        collection_name: Optional[str] = None,
        error_path: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if collection_name:
            context["collection"] = collection_name
        if error_path:
            context["error_path"] = ".".join(str(p) for p in error_path)
        super().__init__(message, context=context)
        self.collection_name = collection_name
        self.error_path = error_path


class StoreOperationError(ReviewStoreError):
    """
    Raised when the store rejects or fails an operation.

    The driver exception is always chained as ``__cause__``.

    Attributes:
        operation: Gateway operation name
        collection_name: Target collection
        code: Server error code (if any)
        details: Raw error document returned by the server (if any)
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        collection_name: Optional[str] = None,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if operation:
            context["operation"] = operation
        if collection_name:
            context["collection"] = collection_name
        if code is not None:
            context["code"] = code
        super().__init__(message, context=context)
        self.operation = operation
        self.collection_name = collection_name
        self.code = code
        self.details = details or {}


class DocumentValidationError(StoreOperationError):
    """Raised when a write is rejected by the collection's schema validator."""


class DuplicateDocumentError(StoreOperationError):
    """Raised when a write violates a unique index."""


class OperationTimeoutError(StoreOperationError):
    """Raised when an operation exceeds the configured time limit."""


class ProvisioningError(ReviewStoreError):
    """
    Raised when a collection cannot be created.

    Attributes:
        collection_name: Collection that failed
    """

    def __init__(
        self,
        message: str,
        collection_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["collection"] = collection_name
        super().__init__(message, context=context)
        self.collection_name = collection_name


class CollectionExistsError(ProvisioningError):
    """Raised when provisioning finds a collection that already exists."""
