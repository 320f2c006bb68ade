from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

from .connector import DynamoConnector
from .log import get_logger, timed
from .pagination import PageCollector
from .query import Filter

_log = get_logger("aio")


class AsyncDynamoConnector:
    """Awaitable facade over ``DynamoConnector``.

    Every store call runs in a worker thread; ``timeout`` (seconds) bounds each
    call to the store, so ``all`` bounds every page fetch on its own.
    """

    def __init__(self, connector: DynamoConnector, *, timeout: float | None = None) -> None:
        self._connector = connector
        self._timeout = timeout

    @property
    def connector(self) -> DynamoConnector:
        return self._connector

    async def _run[R](self, fn: Callable[..., R], *args: Any) -> R:
        async with asyncio.timeout(self._timeout):
            return await asyncio.to_thread(fn, *args)

    async def create(self, model: str, data: Mapping[str, Any]) -> Any:
        return await self._run(self._connector.create, model, data)

    async def save(self, model: str, data: Mapping[str, Any]) -> dict[str, Any]:
        return await self._run(self._connector.save, model, data)

    async def find(self, model: str, pk: Any) -> dict[str, Any] | None:
        return await self._run(self._connector.find, model, pk)

    async def exists(self, model: str, pk: Any) -> bool:
        return await self._run(self._connector.exists, model, pk)

    async def update_attributes(self, model: str, pk: Any, data: Mapping[str, Any]) -> dict[str, Any]:
        return await self._run(self._connector.update_attributes, model, pk, data)

    async def destroy(self, model: str, pk: Any) -> dict[str, Any] | None:
        return await self._run(self._connector.destroy, model, pk)

    async def all(self, model: str, filter: Filter | Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        connector = self._connector
        schema, resolved, expression = connector.plan_all(model, filter)
        collector = PageCollector(connector.store, schema)
        with timed(_log, connector.statement_for(schema, expression)):
            items = await collector.async_fetch_all(expression, resolved, timeout=self._timeout)
        return connector.finish_all(schema, resolved, items)

    async def count(self, model: str, where: Mapping[str, Any] | None = None) -> int:
        return len(await self.all(model, {"where": where or {}}))
