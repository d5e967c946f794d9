"""Runtime configuration resolved from the environment.

Entrypoints call ``load_dotenv()`` first and then :func:`load_settings`; the
library itself only ever reads the resulting :class:`Settings`.

Recognized variables
--------------------
- ``DATABASE_URL``: catalog database (SQLAlchemy URL).
- ``INVENTORY_BRANCHES``: comma-separated branch names (e.g. ``Chandigarh,Delhi``).
- ``<BRANCH>_SHEET_ID``: spreadsheet id for a branch (upper-cased, non
  alphanumerics replaced by ``_``). Falls back to ``INVENTORY_SPREADSHEET_ID``.
- ``INVENTORY_WINDOW_DAYS``: rolling window size W (default 15).
- ``INVENTORY_CATALOG_TTL_SECONDS``: catalog cache time-to-live (default 300).
- ``INVENTORY_LOCK_TIMEOUT_SECONDS``: per-branch lock wait (default 30).
- ``INVENTORY_SHEETS_TIMEOUT_SECONDS`` / ``INVENTORY_SHEETS_RETRIES``: Sheets
  transport timeout and retry count (defaults 30 and 3).
- ``GOOGLE_SHEETS_CREDENTIALS`` (inline JSON) or
  ``GOOGLE_APPLICATION_CREDENTIALS`` (path): service-account credentials.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from .errors import UnknownBranchError

DEFAULT_WINDOW_DAYS = 15

_ENV_KEY_RE = re.compile(r"[^A-Z0-9]+")


@dataclass(frozen=True, slots=True)
class BranchConfig:
    """Where a branch's ledger lives: one sheet inside a spreadsheet."""

    name: str
    spreadsheet_id: str
    sheet_name: str


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None = None
    branches: Mapping[str, BranchConfig] = field(default_factory=dict)
    window_days: int = DEFAULT_WINDOW_DAYS
    catalog_ttl_seconds: float = 300.0
    lock_timeout_seconds: float = 30.0
    sheets_timeout_seconds: float = 30.0
    sheets_retries: int = 3
    credentials_json: str | None = None
    credentials_file: str | None = None

    def branch(self, name: str) -> BranchConfig:
        """Resolve ``name`` (case-insensitively) to its configured ledger."""

        key = (name or "").strip()
        cfg = self.branches.get(key)
        if cfg is not None:
            return cfg
        folded = key.casefold()
        for candidate in self.branches.values():
            if candidate.name.casefold() == folded:
                return candidate
        raise UnknownBranchError(name)


def branch_env_key(branch: str) -> str:
    """Return the env var holding ``branch``'s spreadsheet id (``DELHI_SHEET_ID``)."""

    return _ENV_KEY_RE.sub("_", branch.strip().upper()).strip("_") + "_SHEET_ID"


def _int_env(env: Mapping[str, str], key: str, default: int, *, minimum: int = 0) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def _float_env(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from ``env`` (defaults to ``os.environ``).

    Branches without a resolvable spreadsheet id are rejected eagerly so a
    misconfigured deployment fails at startup rather than on first submission.
    """

    env = os.environ if env is None else env

    fallback_sheet = (env.get("INVENTORY_SPREADSHEET_ID") or "").strip() or None
    branches: dict[str, BranchConfig] = {}
    for raw_name in (env.get("INVENTORY_BRANCHES") or "").split(","):
        name = raw_name.strip()
        if not name:
            continue
        sheet_id = (env.get(branch_env_key(name)) or "").strip() or fallback_sheet
        if sheet_id is None:
            raise ValueError(
                f"No spreadsheet configured for branch {name!r}: set "
                f"{branch_env_key(name)} or INVENTORY_SPREADSHEET_ID"
            )
        branches[name] = BranchConfig(name=name, spreadsheet_id=sheet_id, sheet_name=name)

    return Settings(
        database_url=(env.get("DATABASE_URL") or "").strip() or None,
        branches=branches,
        window_days=_int_env(env, "INVENTORY_WINDOW_DAYS", DEFAULT_WINDOW_DAYS, minimum=1),
        catalog_ttl_seconds=_float_env(env, "INVENTORY_CATALOG_TTL_SECONDS", 300.0),
        lock_timeout_seconds=_float_env(env, "INVENTORY_LOCK_TIMEOUT_SECONDS", 30.0),
        sheets_timeout_seconds=_float_env(env, "INVENTORY_SHEETS_TIMEOUT_SECONDS", 30.0),
        sheets_retries=_int_env(env, "INVENTORY_SHEETS_RETRIES", 3),
        credentials_json=(env.get("GOOGLE_SHEETS_CREDENTIALS") or "").strip() or None,
        credentials_file=(env.get("GOOGLE_APPLICATION_CREDENTIALS") or "").strip() or None,
    )


__all__ = [
    "DEFAULT_WINDOW_DAYS",
    "BranchConfig",
    "Settings",
    "branch_env_key",
    "load_settings",
]
