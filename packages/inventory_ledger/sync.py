"""Synchronization pass orchestration.

One pass for a branch is a read-modify-write against its sheet::

    validate -> lock(branch) -> catalog snapshot -> ensure -> read
             -> parse -> reconcile -> write (single call) -> unlock

The whole pass holds a per-branch lock so two submissions for the same branch
in this process cannot interleave between ``read`` and ``write`` and lose an
update. Different branches use different locks and run in parallel. Writers
outside this process (another replica, someone editing the sheet by hand) are
not coordinated with; that lost-update window is accepted.

The catalog snapshot comes from the in-process cache of the catalog store.
Catalog edits made by another process (the CLI's ``catalog-import`` while the
gateway runs) reach a pass only after that cache expires, i.e. up to
``INVENTORY_CATALOG_TTL_SECONDS`` later.

Nothing is written unless every earlier step succeeded, so a failed pass
leaves the previous ledger untouched.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

from .config import Settings
from .errors import BranchBusyError, SubmissionError
from .logging_setup import get_logger
from .matrix import pad_to_extent, parse_ledger
from .models import Catalog, ReconcileSummary
from .reconcile import coerce_submission, reconcile
from .sheets import LedgerKey, LedgerProvider
from .window import today_utc

_logger = get_logger("inventory_ledger.sync")


class CatalogSource(Protocol):
    def snapshot(self) -> Catalog: ...


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    branch: str
    sheet_name: str
    today: date
    window: tuple[date, ...]
    rows_written: int
    created_sheet: bool
    summary: ReconcileSummary

    def to_json(self) -> dict[str, Any]:
        return {
            "branch": self.branch,
            "sheet": self.sheet_name,
            "date": self.today.isoformat(),
            "window": [d.isoformat() for d in reversed(self.window)],
            "rows": self.rows_written,
            "createdSheet": self.created_sheet,
            **self.summary.to_json(),
        }


class BranchLocks:
    """Registry of one lock per branch, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, branch: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(branch.casefold(), threading.Lock())

    @contextmanager
    def hold(self, branch: str, timeout: float) -> Iterator[None]:
        lock = self._lock_for(branch)
        if not lock.acquire(timeout=timeout):
            raise BranchBusyError(branch, timeout)
        try:
            yield
        finally:
            lock.release()


class Synchronizer:
    """Runs reconciliation passes for configured branches."""

    def __init__(
        self,
        *,
        settings: Settings,
        catalog: CatalogSource,
        provider: LedgerProvider,
        clock: Callable[[], date] = today_utc,
        locks: BranchLocks | None = None,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._provider = provider
        self._clock = clock
        self._locks = locks or BranchLocks()

    @property
    def settings(self) -> Settings:
        return self._settings

    def _key(self, branch: str) -> tuple[str, LedgerKey]:
        if not isinstance(branch, str) or not branch.strip():
            raise SubmissionError("branch is required")
        cfg = self._settings.branch(branch)
        return cfg.name, LedgerKey(spreadsheet_id=cfg.spreadsheet_id, sheet_name=cfg.sheet_name)

    def synchronize(self, branch: str, data: Any, *, today: date | None = None) -> SyncOutcome:
        """Merge ``data`` (item -> {quantity, category}) into ``branch``'s ledger.

        Input is fully validated before the first external call. Raises
        :class:`~inventory_ledger.errors.SubmissionError` /
        :class:`~inventory_ledger.errors.UnknownBranchError` for bad input,
        :class:`~inventory_ledger.errors.BranchBusyError` when the branch lock
        cannot be taken in time, and the collaborator errors unchanged.
        """

        if data is None:
            raise SubmissionError("data is required")
        submission = coerce_submission(data)
        name, key = self._key(branch)
        day = today or self._clock()

        with self._locks.hold(name, self._settings.lock_timeout_seconds):
            # One snapshot for the whole pass; catalog edits made meanwhile
            # apply to the next pass.
            catalog = self._catalog.snapshot()
            created = self._provider.ensure(key)
            header, rows = self._provider.read(key)
            parsed = parse_ledger(header, rows)
            result = reconcile(catalog, parsed, submission, self._settings.window_days, day)
            matrix = pad_to_extent(result.matrix, width=parsed.width, height=parsed.height)
            self._provider.write(key, matrix)

        outcome = SyncOutcome(
            branch=name,
            sheet_name=key.sheet_name,
            today=day,
            window=result.window,
            rows_written=len(result.rows),
            created_sheet=created,
            summary=result.summary,
        )
        _logger.info(
            "sync:done branch=%s date=%s rows=%d new=%d updated=%d preserved=%d unmatched=%d",
            name,
            day.isoformat(),
            outcome.rows_written,
            result.summary.items_new,
            result.summary.items_updated,
            result.summary.items_preserved,
            len(result.summary.items_unmatched),
        )
        if result.summary.items_unmatched:
            _logger.warning(
                "sync:unmatched_items branch=%s items=%s",
                name,
                list(result.summary.items_unmatched),
            )
        if result.summary.items_duplicate:
            _logger.warning(
                "sync:duplicate_items branch=%s superseded=%s",
                name,
                list(result.summary.items_duplicate),
            )
        return outcome

    def provision(self, branch: str, *, today: date | None = None) -> SyncOutcome:
        """Create the branch sheet if needed and rewrite it in canonical shape.

        Equivalent to an empty submission: history is carried forward, headers
        follow the configured window and rows follow the current catalog.
        """

        return self.synchronize(branch, {}, today=today)

    def last_submission(self, branch: str) -> date | None:
        """Most recent date column holding any count in ``branch``'s ledger.

        Derived from the ledger itself, so it survives restarts and reflects
        edits made directly in the sheet. ``None`` when nothing is recorded.
        """

        _, key = self._key(branch)
        if key.sheet_name not in self._provider.list_sheets(key.spreadsheet_id):
            return None
        header, rows = self._provider.read(key)
        parsed = parse_ledger(header, rows)
        latest: date | None = None
        for d, offset in parsed.date_columns:
            if latest is not None and d <= latest:
                continue
            if any(offset < len(r) and r[offset].strip() for r in parsed.rows.values()):
                latest = d
        return latest


__all__ = ["BranchLocks", "CatalogSource", "SyncOutcome", "Synchronizer"]
