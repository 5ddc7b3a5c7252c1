"""Logging setup for transportgen.

Plain standard-library logging: one stream handler on the root logger,
level taken from the caller, then ``TRANSPORTGEN_LOG_LEVEL``, then INFO.
"""

from __future__ import annotations

import logging
import os
from typing import Final

DEFAULT_LOGGER_NAME: Final[str] = "transportgen"
ENV_LOG_LEVEL: Final[str] = "TRANSPORTGEN_LOG_LEVEL"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"


class TransportgenHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """StreamHandler installed by :func:`setup_logging`."""


def _has_handler(root: logging.Logger) -> bool:
    return any(isinstance(handler, TransportgenHandler) for handler in root.handlers)


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL)
        if not level:
            return logging.INFO

    if isinstance(level, int):
        return level

    value = getattr(logging, str(level).upper(), None)
    if not isinstance(value, int):
        return logging.INFO
    return value


def setup_logging(level: int | str | None = None, *, force: bool = False) -> None:
    """Configure the root logger once; ``force`` replaces an earlier setup."""
    root = logging.getLogger()

    if _has_handler(root) and not force:
        return

    for handler in list(root.handlers):
        if isinstance(handler, TransportgenHandler):
            root.removeHandler(handler)
            handler.close()

    resolved = _resolve_level(level)
    root.setLevel(resolved)

    handler = TransportgenHandler()
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, datefmt=DEFAULT_DATEFMT))
    root.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a named logger under the ``transportgen`` namespace."""
    if not name:
        return logging.getLogger(DEFAULT_LOGGER_NAME)
    if name == DEFAULT_LOGGER_NAME or name.startswith(DEFAULT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{DEFAULT_LOGGER_NAME}.{name}")


__all__ = ["DEFAULT_LOGGER_NAME", "ENV_LOG_LEVEL", "get_logger", "setup_logging"]
