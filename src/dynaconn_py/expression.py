from __future__ import annotations

import re
import warnings
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Literal

from .errors import AmbiguityWarning, ValidationError
from .keys import to_epoch_millis
from .log import get_logger
from .model import IndexDescriptor, ModelSchema
from .query import Condition, Equals, Filter, InSet, Operator, Range

type Operation = Literal["query", "scan"]

MAX_IN_VALUES = 100

_log = get_logger("expression")
_UNSAFE_CHARS = re.compile(r"[^0-9A-Za-z_]")


@dataclass(frozen=True)
class ExpressionDescriptor:
    operation: Operation
    uses_index: bool = False
    index_name: str | None = None
    key_condition_parts: tuple[str, ...] = ()
    filter_parts: tuple[str, ...] = ()
    attribute_names: Mapping[str, str] = field(default_factory=dict)
    attribute_values: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_query(self) -> bool:
        return self.operation == "query"

    @property
    def key_condition_expression(self) -> str | None:
        return " AND ".join(self.key_condition_parts) or None

    @property
    def filter_expression(self) -> str | None:
        return " AND ".join(self.filter_parts) or None

    def to_request(self, table_name: str) -> dict[str, Any]:
        """Request parameters with placeholder values left unmarshaled."""
        req: dict[str, Any] = {"TableName": table_name}
        if self.index_name is not None:
            req["IndexName"] = self.index_name
        if self.key_condition_expression is not None:
            req["KeyConditionExpression"] = self.key_condition_expression
        if self.filter_expression is not None:
            req["FilterExpression"] = self.filter_expression
        if self.attribute_names:
            req["ExpressionAttributeNames"] = dict(self.attribute_names)
        if self.attribute_values:
            req["ExpressionAttributeValues"] = dict(self.attribute_values)
        return req


def _ambiguous(message: str) -> None:
    _log.warning("%s", message)
    warnings.warn(message, AmbiguityWarning, stacklevel=3)


class _Placeholders:
    def __init__(self) -> None:
        self.names: dict[str, str] = {}
        self.values: dict[str, Any] = {}

    def name(self, attr: str) -> str:
        safe = _UNSAFE_CHARS.sub("_", attr) or "_"
        for size in range(1, len(safe) + 1):
            ref = "#" + safe[:size].upper()
            if ref not in self.names:
                self.names[ref] = attr
                return ref

        counter = 1
        while f"#{safe.upper()}{counter}" in self.names:
            counter += 1
        ref = f"#{safe.upper()}{counter}"
        self.names[ref] = attr
        return ref

    def value(self, attr: str, value: Any, suffix: str = "", *, optional: bool = False) -> str:
        base = ":" + (_UNSAFE_CHARS.sub("_", attr) or "_") + suffix
        ref = base
        counter = 1
        while ref in self.values:
            counter += 1
            ref = f"{base}{counter}"
        if value is not None or not optional:
            self.values[ref] = to_expression_value(value)
        return ref


def to_expression_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return to_epoch_millis(value)
    return value


def _hash_role(schema: ModelSchema, attr: str) -> tuple[bool, IndexDescriptor | None]:
    if attr == schema.hash_key:
        return True, None
    if attr in (schema.range_key, schema.composite_key):
        return False, None
    gsi = schema.global_indexes.get(attr)
    if gsi is not None:
        return True, gsi
    return False, None


def _is_hash_equality(cond: Condition) -> bool:
    return isinstance(cond, Equals) and cond.value is not None


def _is_range_condition(cond: Condition) -> bool:
    if isinstance(cond, Equals):
        return cond.value is not None
    if isinstance(cond, Operator):
        return cond.op != "<>"
    if isinstance(cond, Range):
        return True
    return isinstance(cond, InSet) and cond.implicit and len(cond.values) == 2


def _range_space(
    schema: ModelSchema, hash_index: IndexDescriptor | None
) -> dict[str, IndexDescriptor | None]:
    if hash_index is not None:
        if hash_index.range_attr is None:
            return {}
        return {hash_index.range_attr: hash_index}

    space: dict[str, IndexDescriptor | None] = {}
    for idx in schema.local_indexes.values():
        if idx.range_attr is not None:
            space[idx.range_attr] = idx
    if schema.range_key is not None:
        space[schema.range_key] = None
    return space


def _between(ph: _Placeholders, name: str, attr: str, start: Any, end: Any) -> str:
    if start is None or end is None:
        _log.warning("%s: BETWEEN is missing a bound (start=%r, end=%r)", attr, start, end)
    start_ref = ph.value(attr, start, "_start", optional=True)
    end_ref = ph.value(attr, end, "_end", optional=True)
    return f"{name} BETWEEN {start_ref} AND {end_ref}"


def _range_fragment(ph: _Placeholders, name: str, attr: str, cond: Condition) -> str:
    if isinstance(cond, Equals):
        return f"{name} = {ph.value(attr, cond.value)}"
    if isinstance(cond, Operator):
        return f"{name} {cond.op} {ph.value(attr, cond.operand)}"
    if isinstance(cond, Range):
        return _between(ph, name, attr, cond.start, cond.end)
    return _between(ph, name, attr, cond.values[0], cond.values[1])


def _filter_fragment(ph: _Placeholders, name: str, attr: str, cond: Condition) -> str:
    if isinstance(cond, Equals):
        return f"{name} = {ph.value(attr, cond.value)}"
    if isinstance(cond, Operator):
        return f"{name} {cond.op} {ph.value(attr, cond.operand)}"
    if isinstance(cond, Range):
        return _between(ph, name, attr, cond.start, cond.end)

    if not cond.values:
        raise ValidationError(f"{attr}: IN requires at least one value")
    if len(cond.values) > MAX_IN_VALUES:
        raise ValidationError(f"{attr}: IN supports maximum {MAX_IN_VALUES} values")
    refs = [ph.value(attr, v, f"_{i}") for i, v in enumerate(cond.values)]
    return f"{name} IN ({', '.join(refs)})"


def choose_operation(schema: ModelSchema, filter: Filter) -> Operation:
    """Query when a table or global-index hash key has a plain equality, else scan."""
    for attr, cond in filter.where:
        is_hash, _ = _hash_role(schema, attr)
        if not is_hash:
            continue
        if _is_hash_equality(cond):
            return "query"
        _log.debug("%s: condition on hash key %s is not a plain equality", schema.name, attr)
    return "scan"


def compile_query(schema: ModelSchema, filter: Filter) -> ExpressionDescriptor:
    hash_candidates = [
        (attr, idx)
        for attr, cond in filter.where
        for is_hash, idx in [_hash_role(schema, attr)]
        if is_hash and _is_hash_equality(cond)
    ]
    if not hash_candidates:
        raise ValidationError(f"{schema.name}: query requires an equality condition on a hash key")

    hash_attr, hash_index = hash_candidates[-1]
    if len(hash_candidates) > 1:
        _ambiguous(
            f"{schema.name}: several hash key equalities {[a for a, _ in hash_candidates]}; "
            f"{hash_attr!r} is used as the key condition, the others are filtered"
        )

    space = _range_space(schema, hash_index)
    range_candidates = [
        (attr, space[attr])
        for attr, cond in filter.where
        if attr != hash_attr and attr in space and _is_range_condition(cond)
    ]
    range_attr: str | None = None
    range_index: IndexDescriptor | None = None
    if range_candidates:
        range_attr, range_index = range_candidates[-1]
        if len(range_candidates) > 1:
            _ambiguous(
                f"{schema.name}: several range key conditions {[a for a, _ in range_candidates]}; "
                f"{range_attr!r} is used as the key condition, the others are filtered"
            )

    selected = hash_index or range_index

    ph = _Placeholders()
    hash_part: str | None = None
    range_part: str | None = None
    filter_parts: list[str] = []

    for attr, cond in filter.where:
        name = ph.name(attr)
        if attr == hash_attr and isinstance(cond, Equals):
            hash_part = f"{name} = {ph.value(attr, cond.value)}"
        elif attr == range_attr:
            range_part = _range_fragment(ph, name, attr, cond)
        else:
            filter_parts.append(_filter_fragment(ph, name, attr, cond))

    key_parts = tuple(part for part in (hash_part, range_part) if part is not None)
    descriptor = ExpressionDescriptor(
        operation="query",
        uses_index=selected is not None,
        index_name=selected.index_name if selected is not None else None,
        key_condition_parts=key_parts,
        filter_parts=tuple(filter_parts),
        attribute_names=MappingProxyType(ph.names),
        attribute_values=MappingProxyType(ph.values),
    )
    _log.debug(
        "%s: query index=%s key=%r filter=%r",
        schema.name,
        descriptor.index_name,
        descriptor.key_condition_expression,
        descriptor.filter_expression,
    )
    return descriptor


def compile_scan(schema: ModelSchema, filter: Filter) -> ExpressionDescriptor:
    ph = _Placeholders()
    filter_parts = [_filter_fragment(ph, ph.name(attr), attr, cond) for attr, cond in filter.where]

    descriptor = ExpressionDescriptor(
        operation="scan",
        filter_parts=tuple(filter_parts),
        attribute_names=MappingProxyType(ph.names),
        attribute_values=MappingProxyType(ph.values),
    )
    _log.debug("%s: scan filter=%r", schema.name, descriptor.filter_expression)
    return descriptor


def compile_filter(schema: ModelSchema, filter: Filter | Mapping[str, Any] | None) -> ExpressionDescriptor:
    resolved = Filter.from_mapping(filter)
    if choose_operation(schema, resolved) == "query":
        return compile_query(schema, resolved)
    return compile_scan(schema, resolved)
