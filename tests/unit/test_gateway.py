"""
Unit tests for the CRUD Gateway.

Tests the allow-list check, argument validation, driver delegation,
result normalization, error translation and lease accounting.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import (
    AutoReconnect,
    BulkWriteError,
    DuplicateKeyError,
    ExecutionTimeout,
    OperationFailure,
    ServerSelectionTimeoutError,
    WriteError,
)

from review_store.constants import COLLECTION_NAMES
from review_store.core.gateway import (
    DeleteOutcome,
    Gateway,
    InsertManyOutcome,
    InsertOneOutcome,
    UpdateOutcome,
)
from review_store.exceptions import (
    CollectionNotAllowedError,
    DocumentValidationError,
    DuplicateDocumentError,
    InvalidRequestError,
    OperationTimeoutError,
    StoreConnectionError,
    StoreOperationError,
)
from review_store.observability import get_store_metrics

VALIDATION_FAILURE = {
    "index": 0,
    "code": 121,
    "errmsg": "Document failed validation",
    "errInfo": {"failingDocumentId": 1, "details": {"operatorName": "$jsonSchema"}},
}


def _untouched_pool():
    pool = MagicMock()
    pool.acquire = MagicMock(side_effect=AssertionError("pool must not be used"))
    return pool


# ============================================================================
# ALLOW-LIST AND ARGUMENT CHECKS
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestCollectionAllowList:
    @pytest.mark.parametrize(
        "operation,args",
        [
            ("insert_one", ({"a": 1},)),
            ("insert_many", ([{"a": 1}],)),
            ("find", ({},)),
            ("update_one", ({}, {"a": 1})),
            ("update_many", ({}, {"a": 1})),
            ("delete_one", ({},)),
            ("delete_many", ({},)),
        ],
    )
    async def test_unknown_collection_rejected_before_io(self, operation, args):
        pool = _untouched_pool()
        gateway = Gateway(pool)

        with pytest.raises(CollectionNotAllowedError) as exc_info:
            await getattr(gateway, operation)("users", *args)

        assert exc_info.value.message == "Collection not recognized"
        assert exc_info.value.context["operation"] == operation
        pool.acquire.assert_not_called()

    @pytest.mark.parametrize("name", ["", "Customer", "system.users", None, 42, "logs "])
    async def test_near_miss_names(self, name):
        with pytest.raises(CollectionNotAllowedError):
            await Gateway(_untouched_pool()).find(name, {})

    async def test_rejected_name_leaves_lease_counts_untouched(self, mock_pool):
        gateway = Gateway(mock_pool)
        with pytest.raises(CollectionNotAllowedError):
            await gateway.insert_one("users", {"a": 1})
        assert mock_pool.acquired_count == 0

    @pytest.mark.parametrize("name", COLLECTION_NAMES)
    async def test_every_provisioned_collection_allowed(self, mock_gateway, name):
        assert await mock_gateway.find(name, {}) == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestRequestValidation:
    async def test_document_must_be_mapping(self):
        with pytest.raises(InvalidRequestError):
            await Gateway(_untouched_pool()).insert_one("customer", ["not", "a", "doc"])

    async def test_documents_must_be_sequence(self):
        with pytest.raises(InvalidRequestError):
            await Gateway(_untouched_pool()).insert_many("customer", {"a": 1})

    async def test_documents_must_not_be_empty(self):
        with pytest.raises(InvalidRequestError, match="must not be empty"):
            await Gateway(_untouched_pool()).insert_many("customer", [])

    async def test_every_document_must_be_mapping(self):
        with pytest.raises(InvalidRequestError, match=r"documents\[1\]"):
            await Gateway(_untouched_pool()).insert_many("customer", [{"a": 1}, "b"])

    async def test_filter_must_be_mapping(self):
        with pytest.raises(InvalidRequestError):
            await Gateway(_untouched_pool()).find("customer", "customerID == 1")

    async def test_update_fields_must_not_be_empty(self):
        with pytest.raises(InvalidRequestError):
            await Gateway(_untouched_pool()).update_one("customer", {}, {})

    @pytest.mark.parametrize("fields", [{"$set": {"a": 1}}, {"$unset": ""}, {"": 1}])
    async def test_update_operators_rejected(self, fields):
        with pytest.raises(InvalidRequestError):
            await Gateway(_untouched_pool()).update_many("customer", {}, fields)

    @pytest.mark.parametrize(
        "options",
        [
            {"hint": "idx"},
            {"limit": -1},
            {"skip": "3"},
            {"limit": True},
            {"sort": [("a", 2)]},
            {"sort": 5},
        ],
    )
    async def test_bad_find_options(self, options):
        with pytest.raises(InvalidRequestError):
            await Gateway(_untouched_pool()).find("customer", {}, options=options)

    async def test_bad_projection(self):
        with pytest.raises(InvalidRequestError):
            await Gateway(_untouched_pool()).find("customer", {}, projection="abn")


# ============================================================================
# DRIVER DELEGATION (mocked driver)
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestDelegation:
    async def test_insert_one(self, mock_gateway, mock_mongo_database, sample_customer):
        outcome = await mock_gateway.insert_one("customer", sample_customer)

        assert outcome == InsertOneOutcome(inserted_id="test_id")
        sent = mock_mongo_database["customer"].insert_one.await_args.args[0]
        assert sent == sample_customer
        assert sent is not sample_customer

    async def test_insert_many(self, mock_gateway, mock_mongo_database):
        outcome = await mock_gateway.insert_many("logs", [{"a": 1}, {"a": 2}])

        assert outcome == InsertManyOutcome(inserted_ids=["id1", "id2"])
        assert outcome.inserted_count == 2
        kwargs = mock_mongo_database["logs"].insert_many.await_args.kwargs
        assert kwargs == {"ordered": True}

    async def test_find_without_options(self, mock_gateway, mock_mongo_database):
        collection = mock_mongo_database["package"]
        collection.find.return_value.to_list = AsyncMock(return_value=[{"packageID": "p1"}])

        docs = await mock_gateway.find("package", {"status": "open"})

        assert docs == [{"packageID": "p1"}]
        collection.find.assert_called_once_with({"status": "open"}, None)
        collection.find.return_value.to_list.assert_awaited_once_with(length=None)

    async def test_find_with_options(self, mock_gateway, mock_mongo_database):
        await mock_gateway.find(
            "package",
            {},
            projection={"packageID": 1},
            options={"sort": {"createdUnixTimestamp": -1}, "skip": 10, "limit": 5},
        )
        mock_mongo_database["package"].find.assert_called_once_with(
            {},
            {"packageID": 1},
            sort=[("createdUnixTimestamp", -1)],
            skip=10,
            limit=5,
        )

    async def test_find_empty_projection_returns_all_fields(
        self, mock_gateway, mock_mongo_database
    ):
        await mock_gateway.find("package", {}, projection={})
        mock_mongo_database["package"].find.assert_called_once_with({}, None)

    async def test_find_sort_forms(self, mock_gateway, mock_mongo_database):
        await mock_gateway.find("package", {}, options={"sort": ["status", ("packageID", -1)]})
        kwargs = mock_mongo_database["package"].find.call_args.kwargs
        assert kwargs["sort"] == [("status", 1), ("packageID", -1)]

    async def test_update_one_uses_set(self, mock_gateway, mock_mongo_database):
        outcome = await mock_gateway.update_one(
            "package", {"packageID": "p1"}, {"status": "confirmed"}
        )
        assert outcome == UpdateOutcome(matched_count=1, modified_count=1)
        mock_mongo_database["package"].update_one.assert_awaited_once_with(
            {"packageID": "p1"}, {"$set": {"status": "confirmed"}}
        )

    async def test_update_many(self, mock_gateway, mock_mongo_database):
        outcome = await mock_gateway.update_many("package", {}, {"status": "archived"})
        assert outcome == UpdateOutcome(matched_count=2, modified_count=2)

    async def test_delete_one(self, mock_gateway):
        assert await mock_gateway.delete_one("document", {"documentID": "d1"}) == DeleteOutcome(1)

    async def test_delete_many(self, mock_gateway):
        assert await mock_gateway.delete_many("document", {}) == DeleteOutcome(2)

    async def test_default_pool_is_shared(self, monkeypatch):
        sentinel = MagicMock()
        monkeypatch.setattr("review_store.core.gateway.get_pool", lambda: sentinel)
        assert Gateway().pool is sentinel


# ============================================================================
# ERROR TRANSLATION
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestErrorTranslation:
    async def test_schema_rejection(self, mock_gateway, mock_mongo_database, mock_pool):
        cause = WriteError("Document failed validation", 121, VALIDATION_FAILURE)
        mock_mongo_database["customer"].insert_one = AsyncMock(side_effect=cause)

        with pytest.raises(DocumentValidationError) as exc_info:
            await mock_gateway.insert_one("customer", {"customerID": "c1"})

        error = exc_info.value
        assert error.code == 121
        assert error.__cause__ is cause
        assert error.details["errInfo"]["details"]["operatorName"] == "$jsonSchema"
        assert error.collection_name == "customer"
        assert error.operation == "insert_one"
        assert mock_pool.in_use == 0

    async def test_partial_insert_many(self, mock_gateway, mock_mongo_database):
        cause = BulkWriteError(
            {
                "writeErrors": [dict(VALIDATION_FAILURE, index=1)],
                "writeConcernErrors": [],
                "nInserted": 1,
                "nUpserted": 0,
                "nMatched": 0,
                "nModified": 0,
                "nRemoved": 0,
                "upserted": [],
            }
        )
        mock_mongo_database["logs"].insert_many = AsyncMock(side_effect=cause)

        with pytest.raises(DocumentValidationError) as exc_info:
            await mock_gateway.insert_many("logs", [{"a": 1}, {"b": 2}, {"c": 3}])

        assert exc_info.value.context["inserted_count"] == 1
        assert exc_info.value.context["failed_index"] == 1
        assert exc_info.value.details["nInserted"] == 1

    async def test_duplicate_key(self, mock_gateway, mock_mongo_database):
        mock_mongo_database["customer"].insert_one = AsyncMock(
            side_effect=DuplicateKeyError("E11000 duplicate key error", 11000)
        )
        with pytest.raises(DuplicateDocumentError) as exc_info:
            await mock_gateway.insert_one("customer", {"_id": 1})
        assert exc_info.value.code == 11000

    async def test_operation_timeout(self, mock_gateway, mock_mongo_database):
        collection = mock_mongo_database["package"]
        collection.find.return_value.to_list = AsyncMock(
            side_effect=ExecutionTimeout("operation exceeded time limit", 50)
        )
        with pytest.raises(OperationTimeoutError):
            await mock_gateway.find("package", {})

    async def test_server_unreachable(self, mock_gateway, mock_mongo_database):
        mock_mongo_database["package"].delete_many = AsyncMock(
            side_effect=ServerSelectionTimeoutError("No servers found")
        )
        with pytest.raises(StoreConnectionError):
            await mock_gateway.delete_many("package", {})

    async def test_connection_dropped(self, mock_gateway, mock_mongo_database):
        mock_mongo_database["package"].update_one = AsyncMock(side_effect=AutoReconnect("reset"))
        with pytest.raises(StoreConnectionError) as exc_info:
            await mock_gateway.update_one("package", {}, {"status": "x"})
        assert exc_info.value.context["operation"] == "update_one"

    async def test_other_server_error(self, mock_gateway, mock_mongo_database):
        cause = OperationFailure("not authorized on db", code=13)
        mock_mongo_database["template"].delete_one = AsyncMock(side_effect=cause)

        with pytest.raises(StoreOperationError) as exc_info:
            await mock_gateway.delete_one("template", {})

        assert type(exc_info.value) is StoreOperationError
        assert exc_info.value.code == 13
        assert exc_info.value.__cause__ is cause

    async def test_non_driver_errors_propagate(self, mock_gateway, mock_mongo_database):
        mock_mongo_database["template"].insert_one = AsyncMock(side_effect=KeyError("x"))
        with pytest.raises(KeyError):
            await mock_gateway.insert_one("template", {})

    async def test_closed_pool(self, mock_gateway, mock_pool, mock_mongo_database):
        await mock_pool.shutdown()
        with pytest.raises(StoreConnectionError):
            await mock_gateway.insert_one("customer", {"a": 1})
        mock_mongo_database["customer"].insert_one.assert_not_awaited()


# ============================================================================
# LEASES, METRICS AND LOGGING
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestLeaseAccounting:
    async def test_lease_per_operation(self, mock_gateway, mock_pool):
        await mock_gateway.insert_one("customer", {"a": 1})
        await mock_gateway.find("customer", {})
        await mock_gateway.delete_many("customer", {})
        assert mock_pool.acquired_count == 3
        assert mock_pool.released_count == 3
        assert mock_pool.in_use == 0

    async def test_leases_balanced_on_failure(self, mock_gateway, mock_pool, mock_mongo_database):
        mock_mongo_database["customer"].insert_one = AsyncMock(
            side_effect=WriteError("Document failed validation", 121, VALIDATION_FAILURE)
        )
        for _ in range(3):
            with pytest.raises(DocumentValidationError):
                await mock_gateway.insert_one("customer", {})
        assert mock_pool.acquired_count == mock_pool.released_count == 3

    async def test_metrics_tagged_with_collection(self, mock_gateway, mock_mongo_database):
        mock_mongo_database["package"].delete_one = AsyncMock(
            side_effect=OperationFailure("boom", code=2)
        )
        await mock_gateway.insert_one("customer", {"a": 1})
        with pytest.raises(StoreOperationError):
            await mock_gateway.delete_one("package", {})

        metrics = get_store_metrics()
        assert metrics.calls("gateway.insert_one", collection="customer") == 1
        assert metrics.failures("gateway.delete_one", collection="package") == 1
        assert metrics.calls("gateway.insert_one", collection="package") == 0

    async def test_entry_logged_at_debug(self, mock_gateway, caplog):
        with caplog.at_level("DEBUG", logger="review_store.core.gateway"):
            await mock_gateway.find("dictionary", {})
        assert "gateway.find" in caplog.text


# ============================================================================
# BEHAVIOUR AGAINST AN IN-MEMORY STORE
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestInMemoryStore:
    async def test_insert_then_find(self, mongomock_gateway, sample_customer):
        outcome = await mongomock_gateway.insert_one("customer", sample_customer)

        docs = await mongomock_gateway.find("customer", {"customerID": "c1"})

        assert len(docs) == 1
        assert docs[0]["_id"] == outcome.inserted_id
        assert docs[0]["businessName"] == "Acme Pty Ltd"
        # The caller's mapping is not mutated
        assert "_id" not in sample_customer

    async def test_repeated_find_is_stable(self, mongomock_gateway):
        await mongomock_gateway.insert_many("package", [{"packageID": str(i)} for i in range(4)])
        options = {"sort": [("packageID", 1)]}
        first = await mongomock_gateway.find("package", {}, options=options)
        second = await mongomock_gateway.find("package", {}, options=options)
        assert first == second
        assert [d["packageID"] for d in first] == ["0", "1", "2", "3"]

    async def test_find_no_match(self, mongomock_gateway):
        assert await mongomock_gateway.find("customer", {"customerID": "nobody"}) == []

    async def test_insert_many_order(self, mongomock_gateway):
        outcome = await mongomock_gateway.insert_many(
            "dictionary",
            [{"lemma": w, "surfaceForms": [w]} for w in ("loan", "lender", "borrower")],
        )
        docs = await mongomock_gateway.find(
            "dictionary", {}, options={"sort": [("_id", 1)]}
        )
        assert outcome.inserted_count == 3
        assert [d["_id"] for d in docs] == sorted(outcome.inserted_ids)

    async def test_update_one_versus_many(self, mongomock_gateway):
        await mongomock_gateway.insert_many(
            "package", [{"packageID": str(i), "status": "open"} for i in range(3)]
        )

        one = await mongomock_gateway.update_one("package", {"status": "open"}, {"status": "x"})
        many = await mongomock_gateway.update_many(
            "package", {"status": "open"}, {"status": "closed"}
        )

        assert one == UpdateOutcome(matched_count=1, modified_count=1)
        assert many == UpdateOutcome(matched_count=2, modified_count=2)

    async def test_update_no_match(self, mongomock_gateway):
        outcome = await mongomock_gateway.update_one("package", {"packageID": "?"}, {"a": 1})
        assert outcome == UpdateOutcome(matched_count=0, modified_count=0)

    async def test_update_same_value_not_modified(self, mongomock_gateway):
        await mongomock_gateway.insert_one("package", {"packageID": "p1", "status": "open"})
        outcome = await mongomock_gateway.update_one(
            "package", {"packageID": "p1"}, {"status": "open"}
        )
        assert outcome == UpdateOutcome(matched_count=1, modified_count=0)

    async def test_update_preserves_other_fields(self, mongomock_gateway):
        await mongomock_gateway.insert_one("package", {"packageID": "p1", "status": "open"})
        await mongomock_gateway.update_one("package", {"packageID": "p1"}, {"status": "done"})
        [doc] = await mongomock_gateway.find("package", {"packageID": "p1"})
        assert doc["status"] == "done"
        assert doc["packageID"] == "p1"

    async def test_delete_counts(self, mongomock_gateway):
        await mongomock_gateway.insert_many("logs", [{"level": "info"}] * 3)

        assert await mongomock_gateway.delete_one("logs", {"level": "debug"}) == DeleteOutcome(0)
        assert await mongomock_gateway.delete_one("logs", {"level": "info"}) == DeleteOutcome(1)
        assert await mongomock_gateway.delete_many("logs", {}) == DeleteOutcome(2)

    async def test_sort_skip_limit_projection(self, mongomock_gateway):
        await mongomock_gateway.insert_many(
            "customer",
            [{"customerID": f"c{i}", "abn": str(i), "businessName": f"B{i}"} for i in range(5)],
        )

        docs = await mongomock_gateway.find(
            "customer",
            {},
            projection={"customerID": 1, "_id": 0},
            options={"sort": [("customerID", -1)], "skip": 1, "limit": 2},
        )

        assert docs == [{"customerID": "c3"}, {"customerID": "c2"}]

    async def test_duplicate_id(self, mongomock_gateway):
        await mongomock_gateway.insert_one("template", {"_id": "t1"})
        with pytest.raises(DuplicateDocumentError):
            await mongomock_gateway.insert_one("template", {"_id": "t1"})

    async def test_concurrent_operations_release_leases(self, mongomock_gateway, mongomock_pool):
        await asyncio.gather(
            *[mongomock_gateway.insert_one("logs", {"n": i}) for i in range(20)],
            *[mongomock_gateway.find("logs", {}) for _ in range(20)],
        )
        assert mongomock_pool.in_use == 0
        assert mongomock_pool.acquired_count == mongomock_pool.released_count == 40
