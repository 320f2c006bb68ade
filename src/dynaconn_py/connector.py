from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any

from .errors import ValidationError
from .expression import ExpressionDescriptor, compile_filter, compile_scan
from .keys import KeyCodec, coerce, coerce_item
from .log import get_logger, logger, resolve_level, timed
from .model import PRIMARY_ID, ModelRegistry, ModelSchema, ModelSettings, define_model
from .pagination import PageCollector
from .query import Filter
from .schema import ProvisionOutcome, ensure_table
from .settings import ConnectorSettings, create_dynamodb_client
from .store import BotoDataStore, DataStore

type RelationLoader = Callable[[str, list[dict[str, Any]], Any], list[dict[str, Any]]]

_log = get_logger("connector")

_FOREIGN_KEY_TYPES: dict[str, type] = {
    "string": str,
    "number": int,
    "boolean": bool,
    "date": datetime,
}


def _new_id() -> str:
    return str(uuid.uuid4())


class DynamoConnector:
    """Model-level CRUD and filtering over a ``DataStore``.

    ``define`` registers a model immediately and provisions its table on a
    single background worker; ``table_ready`` waits for that outcome.
    """

    def __init__(
        self,
        store: DataStore | None = None,
        *,
        settings: ConnectorSettings | Mapping[str, Any] | None = None,
        id_factory: Callable[[], Any] | None = None,
        relation_loader: RelationLoader | None = None,
        provision_tables: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not isinstance(settings, ConnectorSettings):
            settings = ConnectorSettings.from_mapping(settings)
        self._settings = settings
        if settings.log_level is not None:
            logger.setLevel(resolve_level(settings.log_level))

        self._store: DataStore = store or BotoDataStore(create_dynamodb_client(settings))
        self._registry = ModelRegistry()
        self._id_factory = id_factory or _new_id
        self._relation_loader = relation_loader
        self._provision_tables = provision_tables
        self._sleep = sleep
        self._executor: ThreadPoolExecutor | None = None
        self._provisioning: dict[str, Future[ProvisionOutcome]] = {}

    @classmethod
    def from_settings(cls, raw: Mapping[str, Any] | None = None, **kwargs: Any) -> DynamoConnector:
        return cls(settings=ConnectorSettings.from_mapping(raw), **kwargs)

    @property
    def settings(self) -> ConnectorSettings:
        return self._settings

    @property
    def store(self) -> DataStore:
        return self._store

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    def schema(self, model: str) -> ModelSchema:
        return self._registry.schema(model)

    def define(
        self,
        name: str,
        properties: Mapping[str, Any],
        settings: Mapping[str, Any] | ModelSettings | None = None,
    ) -> ModelSchema:
        schema = define_model(name, properties, settings)
        self._registry = self._registry.register(schema)
        _log.info("%s: model defined on table %s", name, schema.table_name)

        if self._provision_tables:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dynaconn-tables")
            future = self._executor.submit(ensure_table, self._store, schema, sleep=self._sleep)
            future.add_done_callback(lambda f: _log_provisioning(name, f))
            self._provisioning[name] = future
        return schema

    def table_ready(self, model: str, timeout: float | None = None) -> ProvisionOutcome:
        future = self._provisioning.get(model)
        if future is None:
            raise ValidationError(f"{model}: table provisioning was not started")
        return future.result(timeout=timeout)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> DynamoConnector:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _prepare_item(self, schema: ModelSchema, data: Mapping[str, Any]) -> dict[str, Any]:
        item = dict(data)
        if schema.hash_key != PRIMARY_ID and PRIMARY_ID in item and item[PRIMARY_ID] is None:
            del item[PRIMARY_ID]
        if schema.hash_key_uuid and item.get(schema.hash_key) is None:
            item[schema.hash_key] = self._id_factory()
        return KeyCodec(schema).assign_keys(coerce_item(item, schema.attribute_types))

    def _present(self, schema: ModelSchema, item: Mapping[str, Any]) -> dict[str, Any]:
        return coerce_item(item, schema.attribute_types)

    def create(self, model: str, data: Mapping[str, Any]) -> Any:
        schema = self.schema(model)
        item = self._prepare_item(schema, data)
        with timed(_log, f"PUT ITEM IN TABLE {schema.table_name}"):
            self._store.put_item(schema.table_name, item)
        return KeyCodec(schema).identifier(item)

    def save(self, model: str, data: Mapping[str, Any]) -> dict[str, Any]:
        schema = self.schema(model)
        item = self._prepare_item(schema, data)
        with timed(_log, f"PUT ITEM IN TABLE {schema.table_name}"):
            self._store.put_item(schema.table_name, item)
        return item

    def find(self, model: str, pk: Any) -> dict[str, Any] | None:
        schema = self.schema(model)
        key = KeyCodec(schema).key_for(pk)
        with timed(_log, f"GET AN ITEM FROM TABLE {schema.table_name}"):
            item = self._store.get_item(schema.table_name, key)
        if item is None:
            return None
        return self._present(schema, item)

    def exists(self, model: str, pk: Any) -> bool:
        return self.find(model, pk) is not None

    def _updates(
        self, schema: ModelSchema, key: Mapping[str, Any], data: Mapping[str, Any]
    ) -> dict[str, Any]:
        types = schema.attribute_types
        key_attrs = {schema.hash_key, schema.range_key, schema.composite_key}
        updates: dict[str, Any] = {}
        for attr, value in data.items():
            if attr in key_attrs:
                if value is not None and attr in key and coerce(attr, value, types) != key[attr]:
                    _log.warning("%s: key attribute %s cannot be updated; value ignored", schema.name, attr)
                continue
            if value is None:
                continue
            updates[attr] = coerce(attr, value, types)

        if schema.range_key is not None:
            composite = KeyCodec(schema).encode(key[schema.hash_key], key[schema.range_key])
            updates[schema.composite_key or PRIMARY_ID] = composite
        return updates

    def update_attributes(self, model: str, pk: Any, data: Mapping[str, Any]) -> dict[str, Any]:
        schema = self.schema(model)
        key = KeyCodec(schema).key_for(pk)
        updates = self._updates(schema, key, data)
        with timed(_log, f"UPDATE ITEM IN TABLE {schema.table_name}"):
            item = self._store.update_item(schema.table_name, key, updates)
        return self._present(schema, item)

    def destroy(self, model: str, pk: Any) -> dict[str, Any] | None:
        schema = self.schema(model)
        key = KeyCodec(schema).key_for(pk)
        with timed(_log, f"DELETE ITEM FROM TABLE {schema.table_name}"):
            old = self._store.delete_item(schema.table_name, key)
        if old is None:
            return None
        return self._present(schema, old)

    def destroy_all(self, model: str) -> int:
        schema = self.schema(model)
        expression = compile_scan(schema, Filter())
        deleted = 0
        with timed(_log, f"DELETE EVERYTHING IN TABLE {schema.table_name}"):
            for page in PageCollector(self._store, schema).pages(expression):
                for item in page.items:
                    key = {schema.hash_key: item[schema.hash_key]}
                    if schema.range_key is not None:
                        key[schema.range_key] = item[schema.range_key]
                    self._store.delete_item(schema.table_name, key)
                    deleted += 1
        return deleted

    def plan_all(
        self, model: str, filter: Filter | Mapping[str, Any] | None
    ) -> tuple[ModelSchema, Filter, ExpressionDescriptor]:
        """Resolve the filter and compile it, before any store call is made."""
        schema = self.schema(model)
        resolved = Filter.from_mapping(filter)
        if resolved.include is not None and self._relation_loader is None:
            raise ValidationError(f"{model}: include requires a relation loader")
        return schema, resolved, compile_filter(schema, resolved)

    def finish_all(
        self, schema: ModelSchema, filter: Filter, items: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        out = [self._present(schema, item) for item in items]
        if filter.include is not None and self._relation_loader is not None:
            out = self._relation_loader(schema.name, out, filter.include)
        return out

    def statement_for(self, schema: ModelSchema, expression: ExpressionDescriptor) -> str:
        return f"GET ALL ITEMS FROM TABLE {schema.table_name} WITH {expression.operation.upper()} OPERATION"

    def all(self, model: str, filter: Filter | Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        schema, resolved, expression = self.plan_all(model, filter)
        with timed(_log, self.statement_for(schema, expression)):
            items = PageCollector(self._store, schema).fetch_all(expression, resolved)
        return self.finish_all(schema, resolved, items)

    def count(self, model: str, where: Mapping[str, Any] | None = None) -> int:
        return len(self.all(model, {"where": where or {}}))

    def foreign_key_type(self, model: str) -> type:
        schema = self.schema(model)
        attr_type = schema.attribute_type(PRIMARY_ID) or schema.attribute_type(schema.hash_key) or "string"
        return _FOREIGN_KEY_TYPES[attr_type]


def _log_provisioning(name: str, future: Future[ProvisionOutcome]) -> None:
    if future.cancelled():
        _log.warning("%s: table provisioning cancelled", name)
        return
    err = future.exception()
    if err is not None:
        _log.error("%s: table provisioning failed: %s", name, err)
    else:
        _log.debug("%s: table provisioning finished: %s", name, future.result())
