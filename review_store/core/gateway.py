"""
CRUD Gateway

Generic document operations restricted to the provisioned collections.

Every operation follows the same path:
1. Check the collection name against ``ALLOWED_COLLECTIONS``
2. Check the arguments
3. Lease the database from the connection pool
4. Run exactly one driver call
5. Release the lease (always) and return a normalized outcome

Steps 1 and 2 raise before the pool is touched. Driver errors are
translated into ``StoreOperationError`` subclasses with the original
exception chained.

This module is part of REVIEW_STORE.

Usage:
    from review_store import Gateway

    gateway = Gateway(pool)
    outcome = await gateway.insert_one("customer", {"customerID": "c1", ...})
    docs = await gateway.find("customer", {"customerID": "c1"})
"""

import logging
import time
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import (
    BulkWriteError,
    ConnectionFailure,
    DuplicateKeyError,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from ..constants import (
    ALLOWED_COLLECTIONS,
    DOCUMENT_VALIDATION_FAILURE_CODE,
    DUPLICATE_KEY_CODE,
    FIND_OPTION_KEYS,
    UPDATE_OPERATOR_PREFIX,
)
from ..database import ConnectionPool, get_pool
from ..exceptions import (
    CollectionNotAllowedError,
    DocumentValidationError,
    DuplicateDocumentError,
    InvalidRequestError,
    OperationTimeoutError,
    ReviewStoreError,
    StoreConnectionError,
    StoreOperationError,
)
from ..observability import get_logger as get_contextual_logger
from ..observability import record_operation

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


# ============================================================================
# OUTCOMES
# ============================================================================


@dataclass(frozen=True)
class InsertOneOutcome:
    inserted_id: Any


@dataclass(frozen=True)
class InsertManyOutcome:
    inserted_ids: list[Any]

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)


@dataclass(frozen=True)
class UpdateOutcome:
    matched_count: int
    modified_count: int


@dataclass(frozen=True)
class DeleteOutcome:
    deleted_count: int


# ============================================================================
# GATEWAY
# ============================================================================


class Gateway:
    """
    Guarded CRUD access to the allow-listed collections.

    The gateway holds no per-call state, so one instance can serve any
    number of concurrent callers.
    """

    def __init__(self, pool: ConnectionPool | None = None) -> None:
        """
        Args:
            pool: ConnectionPool to lease from. Defaults to the process-wide
                  pool, resolved on first use.
        """
        self._pool = pool

    @property
    def pool(self) -> ConnectionPool:
        if self._pool is None:
            self._pool = get_pool()
        return self._pool

    async def insert_one(self, collection: str, document: Mapping[str, Any]) -> InsertOneOutcome:
        """
        Insert a document.

        The caller's mapping is copied, not mutated.

        Returns:
            InsertOneOutcome with the new document's ``_id``

        Raises:
            DocumentValidationError: If the collection validator rejects it
        """
        _check_collection(collection, "insert_one")
        document = _require_mapping(document, "document")

        async with self._operation("insert_one", collection) as coll:
            result = await coll.insert_one(dict(document))
        return InsertOneOutcome(inserted_id=result.inserted_id)

    async def insert_many(
        self, collection: str, documents: Sequence[Mapping[str, Any]]
    ) -> InsertManyOutcome:
        """
        Insert documents in order.

        The insert is ordered: on failure, documents before the failing one
        are persisted and the raised error's ``context["inserted_count"]``
        says how many.

        Returns:
            InsertManyOutcome with ids in insertion order
        """
        _check_collection(collection, "insert_many")
        if isinstance(documents, (str, bytes, Mapping)) or not isinstance(documents, Sequence):
            raise InvalidRequestError(
                "documents must be a sequence of mappings",
                context={"operation": "insert_many", "type": type(documents).__name__},
            )
        if not documents:
            raise InvalidRequestError(
                "documents must not be empty", context={"operation": "insert_many"}
            )
        payload = [dict(_require_mapping(d, f"documents[{i}]")) for i, d in enumerate(documents)]

        async with self._operation("insert_many", collection) as coll:
            result = await coll.insert_many(payload, ordered=True)
        return InsertManyOutcome(inserted_ids=list(result.inserted_ids))

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any],
        projection: Mapping[str, Any] | Sequence[str] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Query documents.

        Args:
            collection: Collection name
            filter: Query predicate, e.g. ``{"status": "open"}``
            projection: Fields to include/exclude; all fields when omitted
            options: ``sort`` (``[("field", 1)]`` or ``{"field": -1}``),
                     ``skip`` and ``limit``. No implicit sort.

        Returns:
            Matching documents; an empty list when nothing matches
        """
        _check_collection(collection, "find")
        filter = _require_mapping(filter, "filter")
        projection = _normalize_projection(projection)
        find_kwargs = _normalize_find_options(options)

        async with self._operation("find", collection) as coll:
            cursor = coll.find(dict(filter), projection, **find_kwargs)
            documents = await cursor.to_list(length=None)
        return list(documents)

    async def update_one(
        self, collection: str, filter: Mapping[str, Any], fields: Mapping[str, Any]
    ) -> UpdateOutcome:
        """
        Set ``fields`` on the first document matching ``filter``.

        No match is not an error: the outcome reports zero counts.
        """
        _check_collection(collection, "update_one")
        filter = _require_mapping(filter, "filter")
        update = _set_update(fields, "update_one")

        async with self._operation("update_one", collection) as coll:
            result = await coll.update_one(dict(filter), update)
        return UpdateOutcome(
            matched_count=result.matched_count, modified_count=result.modified_count
        )

    async def update_many(
        self, collection: str, filter: Mapping[str, Any], fields: Mapping[str, Any]
    ) -> UpdateOutcome:
        """Set ``fields`` on every document matching ``filter``."""
        _check_collection(collection, "update_many")
        filter = _require_mapping(filter, "filter")
        update = _set_update(fields, "update_many")

        async with self._operation("update_many", collection) as coll:
            result = await coll.update_many(dict(filter), update)
        return UpdateOutcome(
            matched_count=result.matched_count, modified_count=result.modified_count
        )

    async def delete_one(self, collection: str, filter: Mapping[str, Any]) -> DeleteOutcome:
        """Delete at most one document matching ``filter``."""
        _check_collection(collection, "delete_one")
        filter = _require_mapping(filter, "filter")

        async with self._operation("delete_one", collection) as coll:
            result = await coll.delete_one(dict(filter))
        return DeleteOutcome(deleted_count=result.deleted_count)

    async def delete_many(self, collection: str, filter: Mapping[str, Any]) -> DeleteOutcome:
        """Delete every document matching ``filter``."""
        _check_collection(collection, "delete_many")
        filter = _require_mapping(filter, "filter")

        async with self._operation("delete_many", collection) as coll:
            result = await coll.delete_many(dict(filter))
        return DeleteOutcome(deleted_count=result.deleted_count)

    @asynccontextmanager
    async def _operation(self, operation: str, collection: str) -> AsyncIterator[Any]:
        """Lease, yield the collection handle, translate driver errors, record metrics."""
        contextual_logger.debug(
            f"gateway.{operation}", extra={"operation": operation, "collection": collection}
        )
        start_time = time.time()
        success = False
        try:
            async with self.pool.acquire() as db:
                yield db[collection]
            success = True
        except PyMongoError as e:
            translated = translate_error(e, operation, collection)
            logger.debug(
                f"gateway.{operation} on '{collection}' failed: "
                f"{type(translated).__name__}: {e}"
            )
            raise translated from e
        finally:
            duration_ms = (time.time() - start_time) * 1000
            record_operation(f"gateway.{operation}", duration_ms, success, collection=collection)


# ============================================================================
# REQUEST CHECKS
# ============================================================================


def _check_collection(collection: Any, operation: str) -> None:
    if not isinstance(collection, str) or collection not in ALLOWED_COLLECTIONS:
        raise CollectionNotAllowedError(collection, operation=operation)


def _require_mapping(value: Any, argument: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise InvalidRequestError(
            f"{argument} must be a mapping, got {type(value).__name__}",
            context={"argument": argument},
        )
    return value


def _set_update(fields: Any, operation: str) -> dict[str, Any]:
    fields = _require_mapping(fields, "fields")
    if not fields:
        raise InvalidRequestError(
            "fields must name at least one field to set", context={"operation": operation}
        )
    for key in fields:
        if not isinstance(key, str) or not key or key.startswith(UPDATE_OPERATOR_PREFIX):
            raise InvalidRequestError(
                f"Invalid field name in update: {key!r}",
                context={"operation": operation},
            )
    return {"$set": dict(fields)}


def _normalize_projection(projection: Any) -> Any:
    if projection is None:
        return None
    if isinstance(projection, Mapping):
        # The driver reads an empty projection as "_id only"
        return dict(projection) or None
    if isinstance(projection, Sequence) and not isinstance(projection, (str, bytes)):
        if not all(isinstance(name, str) for name in projection):
            raise InvalidRequestError("projection field names must be strings")
        return list(projection) or None
    raise InvalidRequestError(
        f"projection must be a mapping or a list of field names, got "
        f"{type(projection).__name__}"
    )


def _normalize_find_options(options: Any) -> dict[str, Any]:
    if options is None:
        return {}
    options = _require_mapping(options, "options")

    unknown = set(options) - FIND_OPTION_KEYS
    if unknown:
        raise InvalidRequestError(
            f"Unsupported query option(s): {', '.join(sorted(map(str, unknown)))}",
            context={"allowed": sorted(FIND_OPTION_KEYS)},
        )

    find_kwargs: dict[str, Any] = {}
    for key in ("skip", "limit"):
        if key in options:
            value = options[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidRequestError(
                    f"{key} must be a non-negative integer", context={key: value}
                )
            find_kwargs[key] = value

    if "sort" in options and options["sort"] is not None:
        find_kwargs["sort"] = _normalize_sort(options["sort"])

    return find_kwargs


def _normalize_sort(sort: Any) -> list[tuple[str, int]]:
    if isinstance(sort, str):
        return [(sort, ASCENDING)]
    if isinstance(sort, Mapping):
        pairs = list(sort.items())
    elif isinstance(sort, Sequence):
        pairs = []
        for entry in sort:
            if isinstance(entry, str):
                pairs.append((entry, ASCENDING))
            elif isinstance(entry, Sequence) and len(entry) == 2:
                pairs.append((entry[0], entry[1]))
            else:
                raise InvalidRequestError(f"Invalid sort entry: {entry!r}")
    else:
        raise InvalidRequestError(f"Invalid sort specification: {sort!r}")

    for key, direction in pairs:
        if not isinstance(key, str) or direction not in (ASCENDING, DESCENDING):
            raise InvalidRequestError(
                f"Invalid sort entry: ({key!r}, {direction!r}); direction must be 1 or -1"
            )
    return pairs


# ============================================================================
# ERROR TRANSLATION
# ============================================================================


def translate_error(exc: PyMongoError, operation: str, collection: str) -> ReviewStoreError:
    """
    Map a driver exception to the matching REVIEW_STORE exception.

    Server details (error document, code, write errors) are kept on the
    returned exception; the caller chains the original.
    """
    details = getattr(exc, "details", None) or {}
    code = getattr(exc, "code", None)
    context: dict[str, Any] = {"error_type": type(exc).__name__}

    if isinstance(exc, BulkWriteError):
        write_errors = details.get("writeErrors") or []
        context["inserted_count"] = details.get("nInserted", 0)
        if write_errors:
            code = write_errors[0].get("code", code)
            context["failed_index"] = write_errors[0].get("index")

    message = f"{operation} on '{collection}' failed: {exc}"

    if isinstance(exc, ServerSelectionTimeoutError):
        context.update({"operation": operation, "collection": collection})
        return StoreConnectionError(f"Cannot reach MongoDB: {exc}", context=context)

    if exc.timeout:
        return OperationTimeoutError(
            message,
            operation=operation,
            collection_name=collection,
            code=code,
            details=details,
            context=context,
        )

    if isinstance(exc, ConnectionFailure):
        context.update({"operation": operation, "collection": collection})
        return StoreConnectionError(f"Connection to MongoDB failed: {exc}", context=context)

    if isinstance(exc, DuplicateKeyError) or code == DUPLICATE_KEY_CODE:
        error_class: type[StoreOperationError] = DuplicateDocumentError
    elif code == DOCUMENT_VALIDATION_FAILURE_CODE:
        error_class = DocumentValidationError
    else:
        error_class = StoreOperationError

    return error_class(
        message,
        operation=operation,
        collection_name=collection,
        code=code,
        details=details,
        context=context,
    )
