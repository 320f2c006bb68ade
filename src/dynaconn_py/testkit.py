from __future__ import annotations

from collections.abc import Callable

from .mocks import ANY, FakeDynamoDBClient


def no_sleep(_: float) -> None:
    return None


def sequential_ids(prefix: str = "id-") -> Callable[[], str]:
    if not prefix:
        raise ValueError("prefix must be non-empty")
    counter = 0

    def next_id() -> str:
        nonlocal counter
        counter += 1
        return f"{prefix}{counter}"

    return next_id


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "no_sleep",
    "sequential_ids",
]
