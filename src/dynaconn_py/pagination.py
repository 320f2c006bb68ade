from __future__ import annotations

import asyncio
from collections.abc import Iterator, Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from .expression import ExpressionDescriptor
from .keys import to_epoch_millis
from .log import get_logger
from .model import AttributeType, ModelSchema
from .query import Filter, OrderKey, Page

if TYPE_CHECKING:
    from .store import DataStore

_log = get_logger("pagination")


def apply_window(
    items: Sequence[dict[str, Any]], *, offset: int | None, limit: int | None
) -> list[dict[str, Any]]:
    start = offset or 0
    if limit is None:
        return list(items[start:])
    return list(items[start : start + limit])


def resolve_order(schema: ModelSchema, filter: Filter) -> tuple[OrderKey, ...]:
    if filter.order:
        return filter.order
    return (OrderKey(field=schema.default_order_field),)


def _sort_value(value: Any, attr_type: AttributeType | None) -> tuple[int, Any]:
    if isinstance(value, (bool, int, float, Decimal)):
        return 0, value
    if isinstance(value, (datetime, date)):
        return 0, to_epoch_millis(value)
    if isinstance(value, str):
        return 1, value.lower() if attr_type in (None, "string") else value
    return 2, str(value)


def sort_items(
    items: Sequence[dict[str, Any]],
    order: Sequence[OrderKey],
    attribute_types: Mapping[str, AttributeType],
) -> list[dict[str, Any]]:
    """Stable multi-key sort; items missing a field go last for that key."""
    out = list(items)
    for key in reversed(order):
        attr_type = attribute_types.get(key.field)
        present = [item for item in out if item.get(key.field) is not None]
        missing = [item for item in out if item.get(key.field) is None]
        present.sort(key=lambda item: _sort_value(item[key.field], attr_type), reverse=key.descending)
        out = present + missing
    return out


class PageCollector:
    def __init__(self, store: DataStore, schema: ModelSchema) -> None:
        self._store = store
        self._schema = schema

    def _fetch_page(self, expression: ExpressionDescriptor, start_key: Mapping[str, Any] | None) -> Page:
        table = self._schema.table_name
        if expression.is_query:
            return self._store.query(table, expression, start_key=start_key)
        return self._store.scan(table, expression, start_key=start_key)

    def _next_start_key(self, page: Page, fetched: int, min_results: int | None) -> Mapping[str, Any] | None:
        if page.last_key is None:
            return None
        if min_results is not None and fetched >= min_results:
            _log.debug(
                "%s: %d items fetched, minResults %d reached; not following continuation key",
                self._schema.name,
                fetched,
                min_results,
            )
            return None
        return page.last_key

    def pages(self, expression: ExpressionDescriptor, *, min_results: int | None = None) -> Iterator[Page]:
        start_key: Mapping[str, Any] | None = None
        fetched = 0
        number = 0
        while True:
            page = self._fetch_page(expression, start_key)
            number += 1
            fetched += len(page.items)
            _log.debug(
                "%s: %s page %d: %d items", self._schema.name, expression.operation, number, len(page.items)
            )
            yield page

            start_key = self._next_start_key(page, fetched, min_results)
            if start_key is None:
                return

    def finish(self, items: Sequence[dict[str, Any]], filter: Filter) -> list[dict[str, Any]]:
        windowed = apply_window(items, offset=filter.offset, limit=filter.limit)
        return sort_items(windowed, resolve_order(self._schema, filter), self._schema.attribute_types)

    def fetch_all(self, expression: ExpressionDescriptor, filter: Filter) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for page in self.pages(expression, min_results=filter.min_results):
            items.extend(page.items)
        return self.finish(items, filter)

    async def async_fetch_all(
        self, expression: ExpressionDescriptor, filter: Filter, *, timeout: float | None = None
    ) -> list[dict[str, Any]]:
        """Fetch pages in a worker thread; ``timeout`` bounds each page fetch."""
        items: list[dict[str, Any]] = []
        start_key: Mapping[str, Any] | None = None
        while True:
            async with asyncio.timeout(timeout):
                page = await asyncio.to_thread(self._fetch_page, expression, start_key)
            items.extend(page.items)
            start_key = self._next_start_key(page, len(items), filter.min_results)
            if start_key is None:
                break
        return self.finish(items, filter)
