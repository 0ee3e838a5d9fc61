"""
Schema Provisioner

Creates the fixed set of collections, each with its ``$jsonSchema``
validator. Meant to run once per deployment, before any gateway traffic.

This module is part of REVIEW_STORE.
"""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pymongo.errors import (
    CollectionInvalid,
    ConnectionFailure,
    OperationFailure,
    PyMongoError,
)

from ..constants import (
    NAMESPACE_EXISTS_CODE,
    PROVISION_STATUS_CREATED,
    PROVISION_STATUS_REVALIDATED,
)
from ..database import ConnectionPool
from ..exceptions import CollectionExistsError, ProvisioningError, StoreConnectionError
from ..observability import record_operation, timed_operation
from ..schemas import COLLECTION_SCHEMAS, CollectionSchema

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningReport:
    """Outcome of a provisioning run, in creation order."""

    results: dict[str, str] = field(default_factory=dict)

    @property
    def created(self) -> list[str]:
        return [n for n, s in self.results.items() if s == PROVISION_STATUS_CREATED]

    @property
    def revalidated(self) -> list[str]:
        return [n for n, s in self.results.items() if s == PROVISION_STATUS_REVALIDATED]

    def to_dict(self) -> dict[str, Any]:
        return {
            "collections": dict(self.results),
            "created": self.created,
            "revalidated": self.revalidated,
        }


class SchemaProvisioner:
    """
    Table-driven collection bootstrap.

    Example:
        provisioner = SchemaProvisioner(get_pool(config))
        report = await provisioner.provision()
    """

    def __init__(
        self,
        pool: ConnectionPool,
        schemas: Iterable[CollectionSchema] = COLLECTION_SCHEMAS,
        allow_existing: bool = False,
    ) -> None:
        """
        Args:
            pool: ConnectionPool used for the run
            schemas: Collections to create, in order
            allow_existing: Treat an existing collection as a warning and
                            re-apply its validator instead of failing
        """
        self._pool = pool
        self._schemas = tuple(schemas)
        self.allow_existing = allow_existing

    @timed_operation("provisioner.provision")
    async def provision(self) -> ProvisioningReport:
        """
        Create every collection sequentially.

        All validators are compiled up front, so a malformed schema aborts the
        run before anything is sent to the server.

        Returns:
            ProvisioningReport mapping collection name to its status

        Raises:
            SchemaDefinitionError: If a schema is malformed
            CollectionExistsError: If a collection exists and
                                   ``allow_existing`` is False
            ProvisioningError: If the server rejects a creation
            StoreConnectionError: If the server cannot be reached
        """
        logger.debug("provisioner.provision")
        validators = [(schema.name, schema.validator()) for schema in self._schemas]

        report = ProvisioningReport()
        async with self._pool.acquire() as db:
            logger.info(f"Setting up database: {getattr(db, 'name', '?')}")
            for name, validator in validators:
                report.results[name] = await self._create(db, name, validator)

        return report

    async def _create(self, db: Any, name: str, validator: dict[str, Any]) -> str:
        start_time = time.time()
        success = False
        try:
            status = await self._create_collection(db, name, validator)
            success = True
            return status
        finally:
            duration_ms = (time.time() - start_time) * 1000
            record_operation(
                "provisioner.create_collection", duration_ms, success, collection=name
            )

    async def _create_collection(self, db: Any, name: str, validator: dict[str, Any]) -> str:
        logger.debug(f"provisioner.create_collection: {name}")
        try:
            await db.create_collection(name, validator=validator)
        except CollectionInvalid as e:
            return await self._handle_existing(db, name, validator, e)
        except OperationFailure as e:
            if e.code == NAMESPACE_EXISTS_CODE:
                return await self._handle_existing(db, name, validator, e)
            raise ProvisioningError(
                f"Failed to create collection '{name}': {e}",
                collection_name=name,
                context={"code": e.code},
            ) from e
        except ConnectionFailure as e:
            raise StoreConnectionError(
                f"Lost connection while creating collection '{name}': {e}",
                context={"collection": name},
            ) from e
        except PyMongoError as e:
            raise ProvisioningError(
                f"Failed to create collection '{name}': {e}", collection_name=name
            ) from e

        logger.info(f"{name} collection created")
        return PROVISION_STATUS_CREATED

    async def _handle_existing(
        self, db: Any, name: str, validator: dict[str, Any], cause: Exception
    ) -> str:
        if not self.allow_existing:
            raise CollectionExistsError(
                f"Collection '{name}' already exists", collection_name=name
            ) from cause

        logger.warning(f"Collection '{name}' already exists; re-applying its validator")
        try:
            await db.command("collMod", name, validator=validator, validationLevel="strict")
        except ConnectionFailure as e:
            raise StoreConnectionError(
                f"Lost connection while updating collection '{name}': {e}",
                context={"collection": name},
            ) from e
        except PyMongoError as e:
            raise ProvisioningError(
                f"Failed to re-apply validator on collection '{name}': {e}",
                collection_name=name,
            ) from e

        logger.info(f"{name} collection validator re-applied")
        return PROVISION_STATUS_REVALIDATED
