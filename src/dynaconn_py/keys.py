from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any

from .errors import MissingHashValueError, MissingRangeValueError, ValidationError
from .model import DEFAULT_SEPARATOR, AttributeType, ModelSchema


def to_epoch_millis(value: datetime | date) -> int:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


def _from_decimal(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _key_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return str(to_epoch_millis(value))
    if isinstance(value, Decimal):
        return str(_from_decimal(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def encode_composite_key(hash_value: Any, range_value: Any, separator: str = DEFAULT_SEPARATOR) -> str:
    """Join hash and range values into the external ``id``.

    Separator occurrences inside either value are not escaped, so such
    values cannot be decoded back unambiguously.
    """
    if hash_value is None:
        raise MissingHashValueError("hash key value cannot be null or undefined")
    if range_value is None:
        raise MissingRangeValueError("range key value cannot be null or undefined")
    return f"{_key_text(hash_value)}{separator}{_key_text(range_value)}"


def split_composite_key(value: Any, separator: str = DEFAULT_SEPARATOR) -> tuple[str, str]:
    text = str(value)
    head, found, tail = text.partition(separator)
    if not found:
        raise MissingRangeValueError(f"composite key {text!r} does not contain separator {separator!r}")
    return head, tail


def _parse_number(attr: str, raw: Any) -> int | float:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)):
        return raw
    if isinstance(raw, Decimal):
        return _from_decimal(raw)
    text = str(raw).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError as err:
        raise ValidationError(f"{attr}: expected a number, got {raw!r}") from err


def _parse_epoch(attr: str, raw: Any) -> int | float:
    if isinstance(raw, (datetime, date)):
        return to_epoch_millis(raw)
    if isinstance(raw, str):
        try:
            return _parse_number(attr, raw)
        except ValidationError:
            try:
                return to_epoch_millis(datetime.fromisoformat(raw.strip()))
            except ValueError as err:
                raise ValidationError(f"{attr}: expected a date or epoch number, got {raw!r}") from err
    return _parse_number(attr, raw)


def coerce(attr: str, raw: Any, attribute_types: Mapping[str, AttributeType]) -> Any:
    if raw is None:
        return None

    attr_type = attribute_types.get(attr)
    if attr_type == "number":
        return _parse_number(attr, raw)
    if attr_type == "date":
        return _parse_epoch(attr, raw)
    if isinstance(raw, Decimal):
        return _from_decimal(raw)
    return raw


def coerce_item(item: Mapping[str, Any], attribute_types: Mapping[str, AttributeType]) -> dict[str, Any]:
    return {attr: coerce(attr, value, attribute_types) for attr, value in item.items()}


class KeyCodec:
    def __init__(self, schema: ModelSchema) -> None:
        self._schema = schema

    def encode(self, hash_value: Any, range_value: Any) -> str:
        return encode_composite_key(hash_value, range_value, self._schema.composite_separator)

    def decode(self, composite: Any) -> tuple[Any, Any]:
        schema = self._schema
        if schema.range_key is None:
            raise ValidationError(f"{schema.name}: model has no range key")
        head, tail = split_composite_key(composite, schema.composite_separator)
        return (
            coerce(schema.hash_key, head, schema.attribute_types),
            coerce(schema.range_key, tail, schema.attribute_types),
        )

    def key_for(self, pk: Any) -> dict[str, Any]:
        schema = self._schema
        if pk is None:
            raise MissingHashValueError(f"{schema.name}: primary key value cannot be null or undefined")

        if schema.range_key is None:
            return {schema.hash_key: coerce(schema.hash_key, pk, schema.attribute_types)}

        hash_value, range_value = self.decode(pk)
        return {schema.hash_key: hash_value, schema.range_key: range_value}

    def assign_keys(self, data: Mapping[str, Any]) -> dict[str, Any]:
        schema = self._schema
        out = dict(data)

        if out.get(schema.hash_key) is None:
            raise MissingHashValueError(f"Hash Key `{schema.hash_key}` cannot be null or undefined.")
        out[schema.hash_key] = coerce(schema.hash_key, out[schema.hash_key], schema.attribute_types)

        if schema.range_key is not None:
            if out.get(schema.range_key) is None:
                raise MissingRangeValueError(f"Range Key `{schema.range_key}` cannot be null or undefined.")
            out[schema.range_key] = coerce(schema.range_key, out[schema.range_key], schema.attribute_types)
            composite = schema.composite_key or "id"
            out[composite] = self.encode(out[schema.hash_key], out[schema.range_key])

        return out

    def identifier(self, item: Mapping[str, Any]) -> Any:
        schema = self._schema
        if schema.range_key is None:
            return item.get(schema.hash_key)
        composite = item.get(schema.composite_key or "id")
        if composite is not None:
            return composite
        return self.encode(item.get(schema.hash_key), item.get(schema.range_key))
