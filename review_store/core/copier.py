"""
Database copy utility.

Copies every user collection of one database into another database on the
same server. System collections and empty collections are skipped.
"""

import logging

from pymongo.errors import PyMongoError

from ..constants import SYSTEM_COLLECTION_PREFIX
from ..database import ConnectionPool
from ..exceptions import InvalidRequestError
from ..observability import timed_operation
from .gateway import translate_error

logger = logging.getLogger(__name__)


@timed_operation("copier.copy_database")
async def copy_database(pool: ConnectionPool, source: str, target: str) -> dict[str, int]:
    """
    Copy all documents from ``source`` into ``target``.

    Collections are copied one at a time with an ordered ``insert_many``.
    Documents keep their ``_id``, so copying into a database that already
    holds them fails with ``DuplicateDocumentError``.

    Args:
        pool: ConnectionPool whose client reaches both databases
        source: Source database name
        target: Target database name

    Returns:
        Mapping of collection name to number of documents inserted

    Raises:
        InvalidRequestError: If source and target are the same database
        StoreOperationError: If a read or write fails
    """
    if not source or not target:
        raise InvalidRequestError("Source and target database names are required")
    if source == target:
        raise InvalidRequestError(
            "Source and target databases must differ", context={"database": source}
        )

    copied: dict[str, int] = {}
    logger.info(f"Copying data from {source} into {target}...")

    async with pool.acquire():
        client = pool.client
        source_db = client[source]
        target_db = client[target]

        try:
            names = await source_db.list_collection_names()
        except PyMongoError as e:
            raise translate_error(e, "list_collections", source) from e

        for name in sorted(names):
            if name.startswith(SYSTEM_COLLECTION_PREFIX):
                logger.debug(f"Skipping system collection {name}")
                continue

            try:
                documents = await source_db[name].find({}).to_list(length=None)
                if not documents:
                    logger.debug(f"Skipping empty collection {name}")
                    continue
                result = await target_db[name].insert_many(documents, ordered=True)
            except PyMongoError as e:
                raise translate_error(e, "copy", name) from e

            copied[name] = len(result.inserted_ids)
            logger.info(f"Number of docs inserted to {name} collection: {copied[name]}")

    logger.info("Data transfer complete!")
    return copied
