"""
Validation contracts for the provisioned collections.

Each entry is a ``CollectionSchema``; the provisioner walks
``COLLECTION_SCHEMAS`` in order.
"""

from ..constants import (
    CREDIT_MEMORANDUM_COLLECTION,
    CUSTOMER_COLLECTION,
    DICTIONARY_COLLECTION,
    DOCUMENT_COLLECTION,
    LOGS_COLLECTION,
    PACKAGE_COLLECTION,
    SYNC_RECORD_COLLECTION,
    TEMPLATE_COLLECTION,
)
from ..exceptions import SchemaDefinitionError
from .fields import (
    CollectionSchema,
    array_of,
    date,
    double,
    item_object,
    item_of,
    obj,
    string,
)

# {name, value, cloneName?} entries on a package
SUMMARISED_FIELD = item_object(
    string("name", required=True),
    string("value", required=True),
    string("cloneName"),
)

# Fields extracted from a scanned document
DATACAP_FIELD = item_object(
    string("category", required=True),
    string("rowLabel", required=True),
    string("columnLabel", required=True),
    string("value", required=True),
    double("confidence", required=True),
)

CUSTOMER_SCHEMA = CollectionSchema(
    CUSTOMER_COLLECTION,
    (
        string("customerID", required=True),
        string("abn", required=True),
        string("businessName", required=True),
    ),
)

SYNC_RECORD_SCHEMA = CollectionSchema(
    SYNC_RECORD_COLLECTION,
    (
        string("syncID", required=True),
        string("customerID", required=True),
        string("status", required=True),
        date("createdUnixTimestamp", required=True),
        string("createdBy", required=True),
        obj("originalValues", required=True),
        obj("newValues", required=True),
    ),
)

PACKAGE_SCHEMA = CollectionSchema(
    PACKAGE_COLLECTION,
    (
        string("packageID", required=True),
        string("customerID", required=True),
        string("status", required=True),
        date("createdUnixTimestamp", required=True),
        string("createdBy", required=True),
        array_of("summarisedFieldsOriginal", SUMMARISED_FIELD, min_items=1),
        array_of("summarisedFieldsConfirmed", SUMMARISED_FIELD, min_items=1),
        date("confirmedUnixTimestamp"),
        string("confirmedBy"),
    ),
)

DOCUMENT_SCHEMA = CollectionSchema(
    DOCUMENT_COLLECTION,
    (
        string("documentID", required=True),
        string("packageID", required=True),
        string("originalPdf", required=True),
        string("ocrPdf"),
        array_of("datacapFields", DATACAP_FIELD, min_items=1),
    ),
)

CREDIT_MEMORANDUM_SCHEMA = CollectionSchema(
    CREDIT_MEMORANDUM_COLLECTION,
    (
        string("creditMemorandumID", required=True),
        string("packageID", required=True),
        date("createdUnixTimestamp", required=True),
        string("createdBy", required=True),
        string("creditMemorandum", required=True),
        # Report-template field bag; more keys may be added freely
        obj(
            "fields",
            string("summaryCustomerGroupName", required=True),
            string("summaryBorrower", required=True),
            required=True,
        ),
    ),
)

TEMPLATE_SCHEMA = CollectionSchema(
    TEMPLATE_COLLECTION,
    (
        string("templateID", required=True),
        string("description", required=True),
        string("fileExtension", required=True),
        string("document", required=True),
        date("createdUnixTimestamp", required=True),
    ),
)

DICTIONARY_SCHEMA = CollectionSchema(
    DICTIONARY_COLLECTION,
    (
        string("lemma", required=True),
        array_of("surfaceForms", item_of("string"), min_items=1, required=True),
    ),
)

LOGS_SCHEMA = CollectionSchema(
    LOGS_COLLECTION,
    (
        string("traceID"),
        date("unixTimestamp", required=True),
        string("level", required=True),
        string("message", required=True),
    ),
)

COLLECTION_SCHEMAS: tuple[CollectionSchema, ...] = (
    CUSTOMER_SCHEMA,
    SYNC_RECORD_SCHEMA,
    PACKAGE_SCHEMA,
    DOCUMENT_SCHEMA,
    CREDIT_MEMORANDUM_SCHEMA,
    TEMPLATE_SCHEMA,
    DICTIONARY_SCHEMA,
    LOGS_SCHEMA,
)

_SCHEMAS_BY_NAME: dict[str, CollectionSchema] = {s.name: s for s in COLLECTION_SCHEMAS}


def get_schema(name: str) -> CollectionSchema:
    """
    Look up a collection schema by name.

    Raises:
        SchemaDefinitionError: If no schema is declared for the name
    """
    try:
        return _SCHEMAS_BY_NAME[name]
    except KeyError:
        raise SchemaDefinitionError(
            f"No schema declared for collection '{name}'", collection_name=name
        ) from None


def validator_for(name: str) -> dict:
    """Compiled ``validator`` document for one collection."""
    return get_schema(name).validator()
