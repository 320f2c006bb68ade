from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .errors import (
    AmbiguityWarning,
    ConditionFailedError,
    DefinitionError,
    DuplicateIndexError,
    DuplicateKeyError,
    DynaconnPyError,
    InputError,
    InvalidLimitError,
    InvalidOffsetError,
    InvalidPrimaryKeyNameError,
    InvalidUUIDKeyError,
    MissingHashValueError,
    MissingPrimaryKeyError,
    MissingRangeValueError,
    StoreError,
    TableNotFoundError,
    ValidationError,
)
from .expression import ExpressionDescriptor, choose_operation, compile_filter, compile_query, compile_scan
from .keys import KeyCodec, coerce, encode_composite_key, split_composite_key
from .log import configure_logging
from .model import (
    IndexDescriptor,
    ModelRegistry,
    ModelSchema,
    ModelSettings,
    Projection,
    TableStatus,
    define_model,
)
from .query import Equals, Filter, InSet, Operator, OrderKey, Page, Range, parse_condition
from .settings import ConnectorSettings

if TYPE_CHECKING:
    from .aio import AsyncDynamoConnector
    from .connector import DynamoConnector
    from .pagination import PageCollector, apply_window, sort_items
    from .schema import build_create_table_request, ensure_table
    from .store import BotoDataStore, DataStore


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "DynamoConnector":
        from .connector import DynamoConnector

        return DynamoConnector
    if name == "AsyncDynamoConnector":
        from .aio import AsyncDynamoConnector

        return AsyncDynamoConnector
    if name in {"PageCollector", "apply_window", "sort_items"}:
        from . import pagination

        return getattr(pagination, name)
    if name in {"build_create_table_request", "ensure_table"}:
        from . import schema

        return getattr(schema, name)
    if name in {"BotoDataStore", "DataStore"}:
        from . import store

        return getattr(store, name)
    raise AttributeError(name)


__all__ = [
    "AmbiguityWarning",
    "apply_window",
    "AsyncDynamoConnector",
    "BotoDataStore",
    "build_create_table_request",
    "choose_operation",
    "coerce",
    "compile_filter",
    "compile_query",
    "compile_scan",
    "ConditionFailedError",
    "configure_logging",
    "ConnectorSettings",
    "DataStore",
    "define_model",
    "DefinitionError",
    "DuplicateIndexError",
    "DuplicateKeyError",
    "DynaconnPyError",
    "DynamoConnector",
    "encode_composite_key",
    "ensure_table",
    "Equals",
    "ExpressionDescriptor",
    "Filter",
    "IndexDescriptor",
    "InputError",
    "InSet",
    "InvalidLimitError",
    "InvalidOffsetError",
    "InvalidPrimaryKeyNameError",
    "InvalidUUIDKeyError",
    "KeyCodec",
    "MissingHashValueError",
    "MissingPrimaryKeyError",
    "MissingRangeValueError",
    "ModelRegistry",
    "ModelSchema",
    "ModelSettings",
    "Operator",
    "OrderKey",
    "Page",
    "PageCollector",
    "parse_condition",
    "Projection",
    "Range",
    "sort_items",
    "split_composite_key",
    "StoreError",
    "TableNotFoundError",
    "TableStatus",
    "ValidationError",
    "__repo_version__",
    "__version__",
]
