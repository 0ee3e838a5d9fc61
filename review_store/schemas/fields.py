"""
Declarative collection schemas.

A collection's validation contract is described as data (``FieldSpec``
trees) and compiled into a MongoDB ``$jsonSchema`` validator. Compiled
validators are checked against a meta-schema before they are sent to the
server, so a malformed description fails without any I/O.

This module is part of REVIEW_STORE.
"""

from dataclasses import dataclass, field
from typing import Any

from jsonschema import Draft7Validator, SchemaError
from jsonschema.exceptions import best_match

from ..exceptions import SchemaDefinitionError

BSON_TYPES: frozenset[str] = frozenset(
    {
        "string",
        "date",
        "object",
        "array",
        "double",
        "int",
        "long",
        "decimal",
        "bool",
        "objectId",
        "null",
    }
)

# Subset of $jsonSchema the schemas in this package are allowed to use
META_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "definitions": {
        "node": {
            "type": "object",
            "required": ["bsonType"],
            "properties": {
                "bsonType": {"enum": sorted(BSON_TYPES)},
                "description": {"type": "string"},
                "required": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1},
                    "uniqueItems": True,
                },
                "properties": {
                    "type": "object",
                    "propertyNames": {"minLength": 1},
                    "additionalProperties": {"$ref": "#/definitions/node"},
                },
                "items": {"$ref": "#/definitions/node"},
                "minItems": {"type": "integer", "minimum": 0},
            },
            "additionalProperties": False,
        }
    },
    "allOf": [{"$ref": "#/definitions/node"}],
}

_META_VALIDATOR = Draft7Validator(META_SCHEMA)


@dataclass(frozen=True)
class FieldSpec:
    """
    One field of a collection schema.

    Attributes:
        name: Field name (ignored for array item shapes)
        bson_type: BSON type alias (``string``, ``date``, ``object``...)
        required: Whether the enclosing object must contain the field
        description: Human readable rule; generated when omitted
        items: Shape of array elements (arrays only)
        min_items: Minimum array length (arrays only)
        properties: Nested fields (objects only). Keys not listed here are
                    still accepted by the validator.
    """

    name: str
    bson_type: str
    required: bool = False
    description: str | None = None
    items: "FieldSpec | None" = None
    min_items: int | None = None
    properties: tuple["FieldSpec", ...] = ()

    def to_json_schema(self) -> dict[str, Any]:
        """Compile this field into a ``$jsonSchema`` node."""
        node: dict[str, Any] = {
            "bsonType": self.bson_type,
            "description": self.description or _describe(self),
        }
        if self.properties:
            node.update(_object_body(self.properties))
        if self.min_items is not None:
            node["minItems"] = self.min_items
        if self.items is not None:
            node["items"] = self.items.to_json_schema()
        return node


@dataclass(frozen=True)
class CollectionSchema:
    """A named collection and the fields its documents must satisfy."""

    name: str
    fields: tuple[FieldSpec, ...] = field(default_factory=tuple)

    @property
    def required_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.required]

    def to_json_schema(self) -> dict[str, Any]:
        """Compile the top-level ``$jsonSchema`` document."""
        return {"bsonType": "object", **_object_body(self.fields)}

    def validator(self) -> dict[str, Any]:
        """
        Build the ``validator`` option for ``createCollection``.

        Raises:
            SchemaDefinitionError: If the description is malformed
        """
        _check_unique_names(self.fields, self.name, [])
        compiled = self.to_json_schema()
        check_json_schema(compiled, self.name)
        return {"$jsonSchema": compiled}


def _describe(spec: FieldSpec) -> str:
    article = "an" if spec.bson_type[:1] in ("a", "e", "i", "o", "u") else "a"
    if spec.name == "":
        return f"must be {article} {spec.bson_type}"
    requirement = "is required" if spec.required else "is not required"
    return f"must be {article} {spec.bson_type} and {requirement}"


def _object_body(fields: tuple[FieldSpec, ...]) -> dict[str, Any]:
    body: dict[str, Any] = {}
    required = [f.name for f in fields if f.required]
    if required:
        body["required"] = required
    body["properties"] = {f.name: f.to_json_schema() for f in fields}
    return body


def check_json_schema(compiled: dict[str, Any], collection_name: str) -> None:
    """
    Validate a compiled ``$jsonSchema`` document.

    Structural rules come from ``META_SCHEMA``; the cross-field rules
    (required names must be declared, array-only keywords) are checked here.

    Raises:
        SchemaDefinitionError: On the first problem found
    """
    try:
        error = best_match(_META_VALIDATOR.iter_errors(compiled))
    except SchemaError as e:
        raise SchemaDefinitionError(
            f"Meta-schema is invalid: {e.message}", collection_name=collection_name
        ) from e
    if error is not None:
        raise SchemaDefinitionError(
            f"Invalid schema definition: {error.message}",
            collection_name=collection_name,
            error_path=[str(p) for p in error.absolute_path],
        ) from error

    _check_node(compiled, collection_name, [])


def _check_unique_names(
    fields: tuple[FieldSpec, ...], collection_name: str, path: list[str]
) -> None:
    seen: set[str] = set()
    for child in fields:
        if child.name in seen:
            raise SchemaDefinitionError(
                f"Field '{child.name}' is declared more than once",
                collection_name=collection_name,
                error_path=path + [child.name],
            )
        seen.add(child.name)
        _check_unique_names(child.properties, collection_name, path + [child.name])
        if child.items is not None:
            _check_unique_names(child.items.properties, collection_name, path + [child.name])


def _check_node(node: dict[str, Any], collection_name: str, path: list[str]) -> None:
    properties = node.get("properties", {})
    for name in node.get("required", []):
        if name not in properties:
            raise SchemaDefinitionError(
                f"Required field '{name}' is not declared in properties",
                collection_name=collection_name,
                error_path=path + ["required"],
            )
    if node["bsonType"] != "array" and ("items" in node or "minItems" in node):
        raise SchemaDefinitionError(
            "'items' and 'minItems' are only valid on arrays",
            collection_name=collection_name,
            error_path=path,
        )
    if properties and node["bsonType"] != "object":
        raise SchemaDefinitionError(
            "'properties' is only valid on objects",
            collection_name=collection_name,
            error_path=path,
        )
    for name, child in properties.items():
        _check_node(child, collection_name, path + ["properties", name])
    if "items" in node:
        _check_node(node["items"], collection_name, path + ["items"])


# ============================================================================
# FIELD HELPERS
# ============================================================================


def string(name: str, required: bool = False) -> FieldSpec:
    return FieldSpec(name, "string", required)


def date(name: str, required: bool = False) -> FieldSpec:
    return FieldSpec(name, "date", required)


def double(name: str, required: bool = False) -> FieldSpec:
    return FieldSpec(name, "double", required)


def obj(name: str, *properties: FieldSpec, required: bool = False) -> FieldSpec:
    return FieldSpec(name, "object", required, properties=tuple(properties))


def array_of(
    name: str, item: FieldSpec, min_items: int | None = None, required: bool = False
) -> FieldSpec:
    return FieldSpec(name, "array", required, items=item, min_items=min_items)


def item_object(*properties: FieldSpec) -> FieldSpec:
    """Shape of an array element that is an object."""
    return FieldSpec("", "object", properties=tuple(properties))


def item_of(bson_type: str) -> FieldSpec:
    """Shape of a scalar array element."""
    return FieldSpec("", bson_type)
