from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger("dynaconn_py")

_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def get_logger(name: str) -> logging.Logger:
    return logger.getChild(name)


def resolve_level(level: str | int | None) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    resolved = _LEVELS.get(level.strip().lower())
    if resolved is None:
        raise ValueError(f"unknown log level: {level}")
    return resolved


def configure_logging(level: str | int | None = None, *, handler: logging.Handler | None = None) -> None:
    """Set the package log level and attach a stream handler once."""
    logger.setLevel(resolve_level(level))
    if handler is not None:
        logger.addHandler(handler)
        return
    if not any(getattr(h, "_dynaconn_default", False) for h in logger.handlers):
        default = logging.StreamHandler()
        default.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        default._dynaconn_default = True  # type: ignore[attr-defined]
        logger.addHandler(default)


@contextmanager
def timed(log: logging.Logger, statement: str, *, level: int = logging.INFO) -> Iterator[None]:
    start = time.monotonic()
    yield
    elapsed_ms = int((time.monotonic() - start) * 1000)
    log.log(level, "%s [%d ms]", statement, elapsed_ms)
