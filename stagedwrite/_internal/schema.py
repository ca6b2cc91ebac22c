"""
Output Schema Descriptors

Parses the job's output schema descriptor into an Iceberg schema.

Descriptor format (JSON list of fields):

    [
        {"name": "word", "type": "STRING", "mode": "REQUIRED"},
        {"name": "count", "type": "INTEGER"},
        {"name": "tags", "type": "STRING", "mode": "REPEATED"},
        {"name": "origin", "type": "RECORD", "fields": [
            {"name": "host", "type": "STRING"}
        ]}
    ]

Mode defaults to NULLABLE. REPEATED fields become optional lists of
required elements.
"""

import json
from collections.abc import Iterator
from typing import Any

import pyarrow as pa
from pyiceberg.schema import Schema
from pyiceberg.types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    IcebergType,
    ListType,
    LongType,
    NestedField,
    StringType,
    StructType,
    TimestampType,
    TimestamptzType,
    TimeType,
)

from stagedwrite.core.exceptions import SchemaError

PRIMITIVE_TYPES: dict[str, IcebergType] = {
    "STRING": StringType(),
    "BYTES": BinaryType(),
    "INTEGER": LongType(),
    "INT64": LongType(),
    "FLOAT": DoubleType(),
    "FLOAT64": DoubleType(),
    "NUMERIC": DecimalType(38, 9),
    "BOOLEAN": BooleanType(),
    "BOOL": BooleanType(),
    "TIMESTAMP": TimestamptzType(),
    "DATETIME": TimestampType(),
    "DATE": DateType(),
    "TIME": TimeType(),
}

RECORD_TYPES = {"RECORD", "STRUCT"}
MODES = {"NULLABLE", "REQUIRED", "REPEATED"}


def parse_schema(descriptor: str | list[dict[str, Any]]) -> Schema:
    """
    Parse a schema descriptor

    Args:
        descriptor: JSON text or already-decoded list of field dicts

    Returns:
        Iceberg schema with field ids assigned depth-first from 1

    Raises:
        SchemaError: If the descriptor is empty or malformed
    """
    if isinstance(descriptor, str):
        if not descriptor.strip():
            raise SchemaError("Output schema is empty")
        try:
            descriptor = json.loads(descriptor)
        except json.JSONDecodeError as e:
            raise SchemaError(f"Output schema is not valid JSON: {e}") from e

    if isinstance(descriptor, dict) and "fields" in descriptor:
        descriptor = descriptor["fields"]

    ids = _field_ids()
    return Schema(*_parse_fields(descriptor, ids, path=""))


def arrow_schema(schema: Schema) -> pa.Schema:
    """Arrow schema used to build row batches for a table"""
    return schema.as_arrow()


def _field_ids() -> Iterator[int]:
    next_id = 1
    while True:
        yield next_id
        next_id += 1


def _parse_fields(fields: Any, ids: Iterator[int], path: str) -> list[NestedField]:
    where = path or "schema"
    if not isinstance(fields, list) or not fields:
        raise SchemaError(f"{where} must be a non-empty list of fields")

    parsed = []
    seen: set[str] = set()
    for entry in fields:
        if not isinstance(entry, dict):
            raise SchemaError(f"Field in {where} must be an object, got {entry!r}")

        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise SchemaError(f"Field in {where} is missing a name")
        if name.lower() in seen:
            raise SchemaError(f"Duplicate field name in {where}: {name}")
        seen.add(name.lower())

        field_type = str(entry.get("type") or "").upper()
        if not field_type:
            raise SchemaError(f"Field {path}{name} is missing a type")

        mode = str(entry.get("mode") or "NULLABLE").upper()
        if mode not in MODES:
            raise SchemaError(f"Field {path}{name} has unknown mode {mode}")

        field_id = next(ids)
        if field_type in RECORD_TYPES:
            element: IcebergType = StructType(*_parse_fields(entry.get("fields"), ids, f"{path}{name}."))
        elif field_type in PRIMITIVE_TYPES:
            element = PRIMITIVE_TYPES[field_type]
        else:
            raise SchemaError(f"Field {path}{name} has unsupported type {field_type}")

        if mode == "REPEATED":
            element = ListType(element_id=next(ids), element_type=element, element_required=True)

        parsed.append(NestedField(field_id, name, element, required=(mode == "REQUIRED")))

    return parsed
