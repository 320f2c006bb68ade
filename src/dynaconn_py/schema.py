from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Literal

from .errors import StoreError, TableNotFoundError
from .log import get_logger, timed
from .model import IndexDescriptor, ModelSchema, store_scalar_type

if TYPE_CHECKING:
    from .store import DataStore

type ProvisionOutcome = Literal["exists", "created", "active"]

_log = get_logger("schema")


def _key_schema(hash_attr: str, range_attr: str | None) -> list[dict[str, str]]:
    key_schema = [{"AttributeName": hash_attr, "KeyType": "HASH"}]
    if range_attr is not None:
        key_schema.append({"AttributeName": range_attr, "KeyType": "RANGE"})
    return key_schema


def _projection(idx: IndexDescriptor) -> dict[str, Any]:
    proj: dict[str, Any] = {"ProjectionType": idx.projection.type}
    if idx.projection.type == "INCLUDE" and idx.projection.fields:
        proj["NonKeyAttributes"] = list(idx.projection.fields)
    return proj


def _scalar_type(schema: ModelSchema, attr: str) -> str:
    attr_type = schema.attribute_type(attr)
    return store_scalar_type(attr_type) if attr_type is not None else "S"


def build_create_table_request(schema: ModelSchema) -> dict[str, Any]:
    settings = schema.settings
    attr_types: dict[str, str] = {schema.hash_key: _scalar_type(schema, schema.hash_key)}
    if schema.range_key is not None:
        attr_types[schema.range_key] = _scalar_type(schema, schema.range_key)

    lsis: list[dict[str, Any]] = []
    for idx in schema.local_indexes.values():
        if idx.range_attr is not None:
            attr_types[idx.range_attr] = _scalar_type(schema, idx.range_attr)
        lsis.append(
            {
                "IndexName": idx.index_name,
                "KeySchema": _key_schema(idx.hash_attr, idx.range_attr),
                "Projection": _projection(idx),
            }
        )

    gsis: list[dict[str, Any]] = []
    for idx in schema.global_indexes.values():
        attr_types[idx.hash_attr] = _scalar_type(schema, idx.hash_attr)
        if idx.range_attr is not None:
            attr_types[idx.range_attr] = _scalar_type(schema, idx.range_attr)
        gsis.append(
            {
                "IndexName": idx.index_name,
                "KeySchema": _key_schema(idx.hash_attr, idx.range_attr),
                "Projection": _projection(idx),
                "ProvisionedThroughput": {
                    "ReadCapacityUnits": idx.read_capacity_units or settings.read_capacity_units,
                    "WriteCapacityUnits": idx.write_capacity_units or settings.write_capacity_units,
                },
            }
        )

    req: dict[str, Any] = {
        "TableName": schema.table_name,
        "KeySchema": _key_schema(schema.hash_key, schema.range_key),
        "AttributeDefinitions": [
            {"AttributeName": name, "AttributeType": attr_types[name]} for name in sorted(attr_types)
        ],
        "ProvisionedThroughput": {
            "ReadCapacityUnits": settings.read_capacity_units,
            "WriteCapacityUnits": settings.write_capacity_units,
        },
    }
    if lsis:
        req["LocalSecondaryIndexes"] = lsis
    if gsis:
        req["GlobalSecondaryIndexes"] = gsis
    return req


def ensure_table(
    store: DataStore,
    schema: ModelSchema,
    *,
    wait_timeout_seconds: float = 300.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ProvisionOutcome:
    """Create the model's table when missing, optionally waiting for ACTIVE."""
    table_name = schema.table_name
    if table_name in store.list_tables():
        _log.info("%s: table %s already exists", schema.name, table_name)
        return "exists"

    req = build_create_table_request(schema)
    try:
        with timed(_log, f"CREATE TABLE {table_name}"):
            store.create_table(req)
    except StoreError as err:
        if err.code != "ResourceInUseException":
            raise
        _log.info("%s: table %s is already being created", schema.name, table_name)

    status = schema.settings.table_status
    if not status.wait_till_active:
        return "created"

    _wait_for_table_active(
        store,
        table_name,
        timeout_seconds=wait_timeout_seconds,
        poll_interval_seconds=status.poll_interval_seconds,
        sleep=sleep,
    )
    return "active"


def _wait_for_table_active(
    store: DataStore,
    table_name: str,
    *,
    timeout_seconds: float,
    poll_interval_seconds: float,
    sleep: Callable[[float], None],
) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            resp = store.describe_table(table_name)
        except TableNotFoundError:
            resp = {}

        table_status = str(resp.get("Table", {}).get("TableStatus", ""))
        _log.debug("table %s status: %s", table_name, table_status or "UNKNOWN")
        if table_status == "ACTIVE":
            _log.info("table %s is active", table_name)
            return
        sleep(poll_interval_seconds)

    raise StoreError(code="TableNotActive", message=f"timed out waiting for table ACTIVE: {table_name}")
