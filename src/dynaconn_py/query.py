from __future__ import annotations

import re
import warnings
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from .errors import AmbiguityWarning, InputError, InvalidLimitError, InvalidOffsetError, ValidationError
from .log import get_logger

_log = get_logger("query")

type ComparisonOp = Literal["=", "<", "<=", ">", ">=", "<>"]

_COMPARISON_OPS: dict[str, ComparisonOp] = {
    "=": "=",
    "eq": "=",
    "lt": "<",
    "lte": "<=",
    "gt": ">",
    "gte": ">=",
    "neq": "<>",
}

_ORDER_RE = re.compile(r"\s+(ASC|DESC)$", re.IGNORECASE)


@dataclass(frozen=True)
class Equals:
    value: Any


@dataclass(frozen=True)
class Operator:
    op: ComparisonOp
    operand: Any


@dataclass(frozen=True)
class Range:
    start: Any
    end: Any


@dataclass(frozen=True)
class InSet:
    values: tuple[Any, ...]
    implicit: bool = False


type Condition = Equals | Operator | Range | InSet


def _is_list(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _range_from(attr: str, operand: Any) -> Range:
    bounds = list(operand) if _is_list(operand) else [operand]
    if len(bounds) != 2:
        _log.warning("%s: between expects two bounds, got %d", attr, len(bounds))
    start = bounds[0] if len(bounds) > 0 else None
    end = bounds[1] if len(bounds) > 1 else None
    return Range(start=start, end=end)


def parse_condition(attr: str, raw: Any) -> Condition:
    """Resolve one raw ``where`` value into a condition variant."""
    if isinstance(raw, (Equals, Operator, Range, InSet)):
        return raw

    if isinstance(raw, Mapping):
        if not raw:
            raise ValidationError(f"{attr}: empty operator mapping")
        op_name, operand = next(iter(raw.items()))
        if len(raw) > 1:
            message = f"{attr}: only the first operator ({op_name!r}) of {sorted(raw)} is applied"
            _log.warning("%s", message)
            warnings.warn(message, AmbiguityWarning, stacklevel=3)

        op_key = str(op_name).lower()
        if op_key == "between":
            return _range_from(attr, operand)
        if op_key == "inq":
            values = tuple(operand) if _is_list(operand) else (operand,)
            return InSet(values=values)
        op = _COMPARISON_OPS.get(op_key)
        if op is None:
            message = f"{attr}: unsupported operator {op_name!r}, treated as equality"
            _log.warning("%s", message)
            warnings.warn(message, AmbiguityWarning, stacklevel=3)
            op = "="
        return Operator(op=op, operand=operand)

    if _is_list(raw):
        return InSet(values=tuple(raw), implicit=True)

    return Equals(value=raw)


@dataclass(frozen=True)
class OrderKey:
    field: str
    descending: bool = False


def parse_order(raw: Any) -> tuple[OrderKey, ...]:
    if raw is None:
        return ()
    entries = raw.split(",") if isinstance(raw, str) else list(raw)

    keys: list[OrderKey] = []
    for entry in entries:
        text = str(entry).strip()
        if not text:
            continue
        match = _ORDER_RE.search(text)
        descending = bool(match and match.group(1).upper() == "DESC")
        name = _ORDER_RE.sub("", text).strip()
        keys.append(OrderKey(field=name, descending=descending))
    return tuple(keys)


def _non_negative_int(value: Any, *, name: str, error: type[InputError]) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise error(f"{name} must be a number in Model.all function")
    if isinstance(value, float):
        if not value.is_integer():
            raise error(f"{name} must be a whole number")
        value = int(value)
    if value < 0:
        raise error(f"{name} must be >= 0")
    return value


@dataclass(frozen=True)
class Filter:
    where: tuple[tuple[str, Condition], ...] = ()
    order: tuple[OrderKey, ...] = ()
    limit: int | None = None
    offset: int | None = None
    min_results: int | None = None
    include: Any = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | Filter | None) -> Filter:
        if isinstance(raw, Filter):
            return raw
        raw = raw or {}

        where_raw = raw.get("where") or {}
        if not isinstance(where_raw, Mapping):
            raise ValidationError("where must be a mapping of attribute to condition")
        where = tuple((str(attr), parse_condition(str(attr), cond)) for attr, cond in where_raw.items())

        limit = raw.get("limit")
        if limit is not None:
            limit = _non_negative_int(limit, name="Limit", error=InvalidLimitError) or None

        offset = raw.get("offset")
        if offset is not None:
            offset = _non_negative_int(offset, name="Offset", error=InvalidOffsetError)
        elif raw.get("skip") is not None:
            offset = _non_negative_int(raw["skip"], name="Skip", error=InvalidOffsetError)

        min_results = raw.get("minResults")
        if min_results is not None:
            min_results = _non_negative_int(min_results, name="minResults", error=InputError) or None

        return cls(
            where=where,
            order=parse_order(raw.get("order")),
            limit=limit,
            offset=offset,
            min_results=min_results,
            include=raw.get("include"),
        )

    def condition(self, attr: str) -> Condition | None:
        for name, cond in self.where:
            if name == attr:
                return cond
        return None


@dataclass(frozen=True)
class Page:
    items: list[dict[str, Any]]
    last_key: dict[str, Any] | None = None
