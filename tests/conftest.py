"""Pytest configuration for test isolation.

The workspace is not installed as a distribution when tests run from a
checkout, so the package roots (``packages/`` and ``libs/db/src``) and the repo
root (for ``tests.helpers``) are put on ``sys.path`` here.

The shared SQLAlchemy engine in ``db.client`` is process-global. Tests that
bind it to a temporary SQLite file would otherwise leak that binding into
later tests, so an autouse fixture disposes it after every test and clears
the ledger-related environment variables. Package log records are kept
propagating to the root logger so ``caplog`` sees them.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
_PATHS = [_ROOT / "packages", _ROOT / "libs" / "db" / "src", _ROOT]
sys.path[:0] = [str(p) for p in _PATHS if str(p) not in sys.path]

from db.client import dispose_engine  # noqa: E402

_ENV_VARS = (
    "DATABASE_URL",
    "INVENTORY_BRANCHES",
    "INVENTORY_SPREADSHEET_ID",
    "INVENTORY_WINDOW_DAYS",
    "GOOGLE_SHEETS_CREDENTIALS",
    "GOOGLE_APPLICATION_CREDENTIALS",
)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # configure_logging() turns propagation off; caplog listens on the root logger.
    monkeypatch.setattr(logging.getLogger("inventory_ledger"), "propagate", True)
    yield
    dispose_engine()
