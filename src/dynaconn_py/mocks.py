from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()

type RequestCheck = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]


def _mismatch(expected: Any, actual: Any, path: str) -> str | None:
    """Describe the first place ``actual`` diverges from ``expected``, if any.

    Mappings match partially: keys absent from ``expected`` are not checked.
    Lists must have the same length.
    """
    if expected is ANY:
        return None

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return f"{path}: expected dict, got {type(actual).__name__}"
        for key, sub in expected.items():
            if key not in actual:
                return f"{path}: missing key {key!r}"
            found = _mismatch(sub, actual[key], f"{path}.{key}")
            if found is not None:
                return found
        return None

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return f"{path}: expected list, got {type(actual).__name__}"
        if len(expected) != len(actual):
            return f"{path}: expected {len(expected)} items, got {len(actual)}"
        for pos, (want, got) in enumerate(zip(expected, actual, strict=True)):
            found = _mismatch(want, got, f"{path}[{pos}]")
            if found is not None:
                return found
        return None

    if expected != actual:
        return f"{path}: expected {expected!r}, got {actual!r}"
    return None


@dataclass(frozen=True)
class ScriptedCall:
    method: str
    check: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


def _operation(name: str) -> Callable[..., Mapping[str, Any]]:
    def call(self: FakeDynamoDBClient, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle(name, kwargs)

    call.__name__ = name
    return call


class FakeDynamoDBClient:
    """Scripted stand-in for a boto3 DynamoDB client.

    Calls must arrive in the order they were expected; each request is matched
    partially against the expectation (``ANY`` matches everything).
    """

    def __init__(self) -> None:
        self._script: deque[ScriptedCall] = deque()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        method: str,
        expected: RequestCheck | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._script.append(ScriptedCall(method=method, check=expected, response=response, error=error))

    def assert_no_pending(self) -> None:
        if self._script:
            raise AssertionError(f"pending expected calls: {list(self._script)!r}")

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [req for name, req in self.calls if name == method]

    def _handle(self, method: str, req: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append((method, dict(req)))
        if not self._script:
            raise AssertionError(f"unexpected call: {method}")

        scripted = self._script.popleft()
        if scripted.method != method:
            raise AssertionError(f"expected {scripted.method}, got {method}")

        if callable(scripted.check):
            scripted.check(req)
        elif scripted.check is not None:
            problem = _mismatch(scripted.check, req, method)
            if problem is not None:
                raise AssertionError(problem)

        if scripted.error is not None:
            raise scripted.error
        return dict(scripted.response or {})

    list_tables = _operation("list_tables")
    create_table = _operation("create_table")
    describe_table = _operation("describe_table")
    get_item = _operation("get_item")
    put_item = _operation("put_item")
    update_item = _operation("update_item")
    delete_item = _operation("delete_item")
    query = _operation("query")
    scan = _operation("scan")
