"""Logging configuration shared by the CLI and the HTTP gateway.

Library modules only ever call ``get_logger("inventory_ledger.<module>")``;
handlers are attached once, by whichever entrypoint starts the process, via
``configure_logging()``. Until then the package logger carries a
``NullHandler`` so embedding the synchronizer elsewhere stays silent.

Log lines use a ``event key=value`` message convention (for example
``sync:done branch=Delhi rows=12``) so they remain greppable in plain text.

When the gateway runs under uvicorn, uvicorn's own loggers are routed through
the same handler so request logs and synchronization logs share one format.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterable
from typing import IO

_PKG_LOGGER_NAME = "inventory_ledger"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_SERVER_LOGGERS: tuple[str, ...] = ("uvicorn", "uvicorn.error", "uvicorn.access")
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        level = os.getenv("INVENTORY_LEDGER_LOG_LEVEL")
        if not level:
            return logging.INFO
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    # Unknown names fall back to INFO rather than failing startup.
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
    server_loggers: Iterable[str] = _SERVER_LOGGERS,
) -> None:
    """Attach one ``StreamHandler`` to the package logger (first call wins).

    ``level`` falls back to ``INVENTORY_LEDGER_LOG_LEVEL`` and then ``INFO``;
    ``fmt`` falls back to ``INVENTORY_LEDGER_LOG_FORMAT`` and then a
    timestamp/name/level prefix. Loggers named in ``server_loggers`` share the
    handler so the process writes a single, consistent stream.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or os.getenv("INVENTORY_LEDGER_LOG_FORMAT") or _DEFAULT_FORMAT)
    )

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)
    pkg_logger.setLevel(resolved)
    pkg_logger.addHandler(handler)
    # One handler per record; the root logger would print it again.
    pkg_logger.propagate = False

    for name in server_loggers:
        server_logger = logging.getLogger(name)
        server_logger.handlers = [handler]
        server_logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger, keeping the package silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
