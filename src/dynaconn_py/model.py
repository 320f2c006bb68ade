from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Literal, cast

from .errors import (
    DefinitionError,
    DuplicateIndexError,
    DuplicateKeyError,
    InvalidPrimaryKeyNameError,
    InvalidUUIDKeyError,
    MissingPrimaryKeyError,
    ValidationError,
)
from .log import get_logger

type AttributeType = Literal["string", "number", "boolean", "date"]
type KeyType = Literal["hash", "range", "pk"]
type IndexType = Literal["LSI", "GSI"]

PRIMARY_ID = "id"
DEFAULT_SEPARATOR = "--x--"

_log = get_logger("model")

_TYPE_NAMES: dict[str, AttributeType] = {
    "string": "string",
    "str": "string",
    "number": "number",
    "int": "number",
    "float": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "date": "date",
    "datetime": "date",
}

_PYTHON_TYPES: dict[type, AttributeType] = {
    str: "string",
    int: "number",
    float: "number",
    Decimal: "number",
    bool: "boolean",
    datetime: "date",
    date: "date",
}

_STORE_SCALAR_TYPES: dict[AttributeType, str] = {
    "string": "S",
    "number": "N",
    "boolean": "S",
    "date": "N",
}


def resolve_attribute_type(raw: Any) -> AttributeType:
    if isinstance(raw, type) and raw in _PYTHON_TYPES:
        return _PYTHON_TYPES[raw]
    if isinstance(raw, str):
        resolved = _TYPE_NAMES.get(raw.strip().lower())
        if resolved is not None:
            return resolved
    raise DefinitionError(f"unsupported attribute type: {raw!r}")


def store_scalar_type(attr_type: AttributeType) -> str:
    return _STORE_SCALAR_TYPES[attr_type]


@dataclass(frozen=True)
class Projection:
    type: str
    fields: tuple[str, ...] = ()

    @staticmethod
    def all() -> Projection:
        return Projection(type="ALL")

    @staticmethod
    def keys_only() -> Projection:
        return Projection(type="KEYS_ONLY")

    @staticmethod
    def include(*fields: str) -> Projection:
        return Projection(type="INCLUDE", fields=tuple(fields))

    @staticmethod
    def from_spec(project: Any) -> Projection:
        if isinstance(project, Sequence) and not isinstance(project, str):
            return Projection.include(*[str(f) for f in project])
        if project:
            return Projection.all()
        return Projection.keys_only()


@dataclass(frozen=True)
class IndexDescriptor:
    index_name: str
    type: IndexType
    hash_attr: str
    range_attr: str | None = None
    projection: Projection = field(default_factory=Projection.keys_only)
    read_capacity_units: int | None = None
    write_capacity_units: int | None = None


@dataclass(frozen=True)
class PropertySpec:
    name: str
    type: AttributeType
    key_type: KeyType | None = None
    uuid: bool = False
    separator: str | None = None
    index: Mapping[str, Any] | None = None

    @classmethod
    def from_value(cls, name: str, raw: Any) -> PropertySpec:
        if isinstance(raw, PropertySpec):
            return raw
        if not isinstance(raw, Mapping):
            return cls(name=name, type=resolve_attribute_type(raw))

        key_type = raw.get("keyType")
        if key_type is not None and key_type not in {"hash", "range", "pk"}:
            raise DefinitionError(f"{name}: unsupported keyType: {key_type!r}")

        index = raw.get("index")
        if index is not None and not isinstance(index, Mapping):
            raise DefinitionError(f"{name}: index must be a mapping with 'local' and/or 'global'")

        separator = raw.get("separator")
        return cls(
            name=name,
            type=resolve_attribute_type(raw.get("type", "string")),
            key_type=cast(KeyType | None, key_type),
            uuid=bool(raw.get("uuid", False)),
            separator=str(separator) if separator else None,
            index=index,
        )


@dataclass(frozen=True)
class TableStatus:
    wait_till_active: bool = True
    time_interval_ms: int = 5000

    @property
    def poll_interval_seconds(self) -> float:
        return self.time_interval_ms / 1000.0


@dataclass(frozen=True)
class ModelSettings:
    read_capacity_units: int = 5
    write_capacity_units: int = 10
    table_status: TableStatus = field(default_factory=TableStatus)
    table: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | ModelSettings | None) -> ModelSettings:
        if isinstance(raw, ModelSettings):
            return raw
        raw = raw or {}

        status_raw = raw.get("tableStatus") or {}
        wait = status_raw.get("waitTillActive")
        table_status = TableStatus(
            wait_till_active=True if wait is None else bool(wait),
            time_interval_ms=int(status_raw.get("timeInterval") or 5000),
        )
        table = raw.get("table")
        return cls(
            read_capacity_units=int(raw.get("ReadCapacityUnits") or 5),
            write_capacity_units=int(raw.get("WriteCapacityUnits") or 10),
            table_status=table_status,
            table=str(table) if table else None,
        )


@dataclass(frozen=True)
class ModelSchema:
    name: str
    table_name: str
    hash_key: str
    range_key: str | None
    composite_key: str | None
    composite_separator: str
    hash_key_uuid: bool
    attribute_types: Mapping[str, AttributeType]
    local_indexes: Mapping[str, IndexDescriptor]
    global_indexes: Mapping[str, IndexDescriptor]
    settings: ModelSettings = field(default_factory=ModelSettings)

    @property
    def indexes(self) -> tuple[IndexDescriptor, ...]:
        return (*self.local_indexes.values(), *self.global_indexes.values())

    @property
    def default_order_field(self) -> str:
        if self.range_key is not None:
            return self.composite_key or PRIMARY_ID
        return self.hash_key

    def attribute_type(self, attr: str) -> AttributeType | None:
        return self.attribute_types.get(attr)

    def index(self, index_name: str) -> IndexDescriptor:
        for idx in self.indexes:
            if idx.index_name == index_name:
                return idx
        raise ValidationError(f"{self.name}: unknown index: {index_name}")


def define_model(
    name: str,
    properties: Mapping[str, Any],
    settings: Mapping[str, Any] | ModelSettings | None = None,
) -> ModelSchema:
    """Resolve property specs into the key and index layout of one model.

    Raises a ``DefinitionError`` subclass for any schema that could not be
    served: duplicate keys, UUID generation on a key not named ``id``, or a
    range key without the ``id`` composite key (and the reverse).
    """
    if not name:
        raise DefinitionError("model name is required")

    resolved_settings = ModelSettings.from_mapping(settings)
    specs = [PropertySpec.from_value(str(prop), raw) for prop, raw in properties.items()]

    attribute_types: dict[str, AttributeType] = {}
    hash_key: str | None = None
    range_key: str | None = None
    composite_key: str | None = None
    separator = DEFAULT_SEPARATOR
    hash_key_uuid = False

    for spec in specs:
        attribute_types[spec.name] = spec.type

        if spec.key_type == "hash":
            if hash_key is not None:
                raise DuplicateKeyError(model=name, key_type="hash", existing=hash_key, duplicate=spec.name)
            if spec.uuid and spec.name != PRIMARY_ID:
                raise InvalidUUIDKeyError(
                    f"{name}: UUID generation is only allowed for attribute name {PRIMARY_ID!r} "
                    f"(got {spec.name!r})"
                )
            hash_key = spec.name
            hash_key_uuid = spec.uuid
            _log.debug("%s: hash key: %s (uuid=%s)", name, spec.name, spec.uuid)
        elif spec.key_type == "range":
            if range_key is not None:
                raise DuplicateKeyError(
                    model=name, key_type="range", existing=range_key, duplicate=spec.name
                )
            range_key = spec.name
            _log.debug("%s: range key: %s", name, spec.name)
        elif spec.key_type == "pk":
            if composite_key is not None:
                raise DuplicateKeyError(
                    model=name, key_type="composite", existing=composite_key, duplicate=spec.name
                )
            composite_key = spec.name
            separator = spec.separator or DEFAULT_SEPARATOR

    if composite_key is not None and composite_key != PRIMARY_ID:
        raise InvalidPrimaryKeyNameError(
            f"{name}: composite primary key must be named {PRIMARY_ID!r} (got {composite_key!r})"
        )
    if range_key is not None and composite_key is None:
        raise MissingPrimaryKeyError(f"{name}: range key is present but no composite primary key is declared")
    if composite_key is not None and range_key is None:
        raise MissingPrimaryKeyError(f"{name}: composite primary key is declared without a range key")

    if hash_key is None:
        if range_key is not None:
            raise MissingPrimaryKeyError(f"{name}: range key {range_key!r} requires a hash key")
        id_spec = next((s for s in specs if s.name == PRIMARY_ID), None)
        hash_key = PRIMARY_ID
        if id_spec is None:
            hash_key_uuid = True
            attribute_types[PRIMARY_ID] = "string"
        else:
            hash_key_uuid = id_spec.uuid
        _log.debug("%s: hash key defaults to %r (uuid=%s)", name, PRIMARY_ID, hash_key_uuid)

    local_indexes, global_indexes = _resolve_indexes(name, specs, hash_key, attribute_types)

    table_name = resolved_settings.table or name
    _log.debug(
        "%s: table %s, read capacity %d, write capacity %d",
        name,
        table_name,
        resolved_settings.read_capacity_units,
        resolved_settings.write_capacity_units,
    )

    return ModelSchema(
        name=name,
        table_name=table_name,
        hash_key=hash_key,
        range_key=range_key,
        composite_key=composite_key,
        composite_separator=separator,
        hash_key_uuid=hash_key_uuid,
        attribute_types=MappingProxyType(attribute_types),
        local_indexes=MappingProxyType(local_indexes),
        global_indexes=MappingProxyType(global_indexes),
        settings=resolved_settings,
    )


def _resolve_indexes(
    model: str,
    specs: Sequence[PropertySpec],
    hash_key: str,
    attribute_types: Mapping[str, AttributeType],
) -> tuple[dict[str, IndexDescriptor], dict[str, IndexDescriptor]]:
    local_indexes: dict[str, IndexDescriptor] = {}
    global_indexes: dict[str, IndexDescriptor] = {}
    seen_names: set[str] = set()

    def claim(index_name: str) -> str:
        if index_name in seen_names:
            raise DuplicateIndexError(f"{model}: duplicate index name: {index_name}")
        seen_names.add(index_name)
        return index_name

    for spec in specs:
        if not spec.index:
            continue

        local = spec.index.get("local")
        if local is not None and local is not False:
            opts: Mapping[str, Any] = local if isinstance(local, Mapping) else {}
            local_indexes[spec.name] = IndexDescriptor(
                index_name=claim(str(opts.get("name") or f"{spec.name}LocalIndex")),
                type="LSI",
                hash_attr=hash_key,
                range_attr=spec.name,
                projection=Projection.from_spec(opts.get("project")),
            )
            _log.debug("%s: local index %s", model, local_indexes[spec.name].index_name)

        global_ = spec.index.get("global")
        if global_ is not None and global_ is not False:
            opts = global_ if isinstance(global_, Mapping) else {}
            range_attr = opts.get("rangeKey")
            if range_attr is not None and range_attr not in attribute_types:
                raise DefinitionError(
                    f"{model}: global index on {spec.name!r}: unknown range attribute {range_attr!r}"
                )
            throughput = opts.get("throughput") or {}
            global_indexes[spec.name] = IndexDescriptor(
                index_name=claim(str(opts.get("name") or f"{spec.name}GlobalIndex")),
                type="GSI",
                hash_attr=spec.name,
                range_attr=str(range_attr) if range_attr is not None else None,
                projection=Projection.from_spec(opts.get("project")),
                read_capacity_units=int(throughput.get("read") or 5),
                write_capacity_units=int(throughput.get("write") or 10),
            )
            _log.debug("%s: global index %s", model, global_indexes[spec.name].index_name)

    return local_indexes, global_indexes


class ModelRegistry:
    """Immutable map of model name to resolved schema.

    ``register`` returns a new registry; existing registries never change.
    """

    def __init__(self, schemas: Mapping[str, ModelSchema] | None = None) -> None:
        self._schemas: Mapping[str, ModelSchema] = MappingProxyType(dict(schemas or {}))

    def register(self, schema: ModelSchema) -> ModelRegistry:
        schemas = dict(self._schemas)
        schemas[schema.name] = schema
        return ModelRegistry(schemas)

    def __getitem__(self, name: str) -> ModelSchema:
        return self.schema(name)

    def get(self, name: str) -> ModelSchema | None:
        return self._schemas.get(name)

    def schema(self, name: str) -> ModelSchema:
        found = self._schemas.get(name)
        if found is None:
            raise ValidationError(f"unknown model: {name}")
        return found

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)
