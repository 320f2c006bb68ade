from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .expression import ExpressionDescriptor
from .keys import to_epoch_millis
from .log import get_logger
from .query import Page

_log = get_logger("store")


class DataStore(Protocol):
    def list_tables(self) -> list[str]: ...

    def create_table(self, request: Mapping[str, Any]) -> None: ...

    def describe_table(self, table_name: str) -> dict[str, Any]: ...

    def get_item(self, table_name: str, key: Mapping[str, Any]) -> dict[str, Any] | None: ...

    def put_item(self, table_name: str, item: Mapping[str, Any]) -> None: ...

    def update_item(
        self, table_name: str, key: Mapping[str, Any], updates: Mapping[str, Any]
    ) -> dict[str, Any]: ...

    def delete_item(self, table_name: str, key: Mapping[str, Any]) -> dict[str, Any] | None: ...

    def query(
        self,
        table_name: str,
        expression: ExpressionDescriptor,
        *,
        start_key: Mapping[str, Any] | None = None,
    ) -> Page: ...

    def scan(
        self,
        table_name: str,
        expression: ExpressionDescriptor,
        *,
        start_key: Mapping[str, Any] | None = None,
    ) -> Page: ...


def to_wire_value(value: Any) -> Any:
    """Convert Python values into what ``TypeSerializer`` accepts."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, (datetime, date)):
        return to_epoch_millis(value)
    if isinstance(value, Mapping):
        return {str(k): to_wire_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire_value(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {to_wire_value(v) for v in value}
    return value


def from_wire_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, dict):
        return {k: from_wire_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_wire_value(v) for v in value]
    if isinstance(value, set):
        return {from_wire_value(v) for v in value}
    return value


class BotoDataStore:
    """``DataStore`` over a boto3 low-level DynamoDB client."""

    def __init__(self, client: Any) -> None:
        self._client = client
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    @property
    def client(self) -> Any:
        return self._client

    def _serialize(self, value: Any) -> dict[str, Any]:
        return self._serializer.serialize(to_wire_value(value))

    def _serialize_map(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {k: self._serialize(v) for k, v in values.items()}

    def _deserialize_map(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {k: from_wire_value(self._deserializer.deserialize(v)) for k, v in item.items()}

    def _call(self, method: str, **req: Any) -> Mapping[str, Any]:
        try:
            resp = getattr(self._client, method)(**req)
        except ClientError as err:
            raise map_client_error(err) from err

        consumed = resp.get("ConsumedCapacity")
        if consumed:
            _log.debug("%s %s consumed capacity: %s", method, req.get("TableName", ""), consumed)
        return resp

    def list_tables(self) -> list[str]:
        names: list[str] = []
        req: dict[str, Any] = {}
        while True:
            resp = self._call("list_tables", **req)
            names.extend(str(name) for name in resp.get("TableNames", []))
            last = resp.get("LastEvaluatedTableName")
            if not last:
                return names
            req["ExclusiveStartTableName"] = last

    def create_table(self, request: Mapping[str, Any]) -> None:
        self._call("create_table", **dict(request))

    def describe_table(self, table_name: str) -> dict[str, Any]:
        return dict(self._call("describe_table", TableName=table_name))

    def get_item(self, table_name: str, key: Mapping[str, Any]) -> dict[str, Any] | None:
        resp = self._call(
            "get_item",
            TableName=table_name,
            Key=self._serialize_map(key),
            ReturnConsumedCapacity="TOTAL",
        )
        item = resp.get("Item")
        if not item:
            return None
        return self._deserialize_map(item)

    def put_item(self, table_name: str, item: Mapping[str, Any]) -> None:
        self._call(
            "put_item",
            TableName=table_name,
            Item=self._serialize_map(item),
            ReturnConsumedCapacity="TOTAL",
        )

    def update_item(
        self, table_name: str, key: Mapping[str, Any], updates: Mapping[str, Any]
    ) -> dict[str, Any]:
        req: dict[str, Any] = {
            "TableName": table_name,
            "Key": self._serialize_map(key),
            "ReturnValues": "ALL_NEW",
            "ReturnConsumedCapacity": "TOTAL",
        }
        if updates:
            names: dict[str, str] = {}
            values: dict[str, Any] = {}
            assignments: list[str] = []
            for i, (attr, value) in enumerate(updates.items()):
                names[f"#u{i}"] = attr
                values[f":u{i}"] = self._serialize(value)
                assignments.append(f"#u{i} = :u{i}")
            req["UpdateExpression"] = "SET " + ", ".join(assignments)
            req["ExpressionAttributeNames"] = names
            req["ExpressionAttributeValues"] = values

        resp = self._call("update_item", **req)
        return self._deserialize_map(resp.get("Attributes") or {})

    def delete_item(self, table_name: str, key: Mapping[str, Any]) -> dict[str, Any] | None:
        resp = self._call(
            "delete_item",
            TableName=table_name,
            Key=self._serialize_map(key),
            ReturnValues="ALL_OLD",
            ReturnConsumedCapacity="TOTAL",
        )
        old = resp.get("Attributes")
        if not old:
            return None
        return self._deserialize_map(old)

    def _page_request(
        self,
        table_name: str,
        expression: ExpressionDescriptor,
        start_key: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        req = expression.to_request(table_name)
        if "ExpressionAttributeValues" in req:
            req["ExpressionAttributeValues"] = self._serialize_map(req["ExpressionAttributeValues"])
        if start_key is not None:
            req["ExclusiveStartKey"] = dict(start_key)
        req["ReturnConsumedCapacity"] = "TOTAL"
        return req

    def _page(self, resp: Mapping[str, Any]) -> Page:
        items = [self._deserialize_map(item) for item in resp.get("Items", [])]
        last = resp.get("LastEvaluatedKey")
        return Page(items=items, last_key=dict(last) if last else None)

    def query(
        self,
        table_name: str,
        expression: ExpressionDescriptor,
        *,
        start_key: Mapping[str, Any] | None = None,
    ) -> Page:
        return self._page(self._call("query", **self._page_request(table_name, expression, start_key)))

    def scan(
        self,
        table_name: str,
        expression: ExpressionDescriptor,
        *,
        start_key: Mapping[str, Any] | None = None,
    ) -> Page:
        return self._page(self._call("scan", **self._page_request(table_name, expression, start_key)))
