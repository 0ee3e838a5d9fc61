"""
Collection schemas.

Declarative validation contracts and their compilation into MongoDB
``$jsonSchema`` validators.
"""

from .definitions import COLLECTION_SCHEMAS, get_schema, validator_for
from .fields import (
    BSON_TYPES,
    CollectionSchema,
    FieldSpec,
    check_json_schema,
)

__all__ = [
    "BSON_TYPES",
    "COLLECTION_SCHEMAS",
    "CollectionSchema",
    "FieldSpec",
    "check_json_schema",
    "get_schema",
    "validator_for",
]
