# ruff: noqa: I001
from __future__ import annotations

import threading
from datetime import date

import pytest

from inventory_ledger.config import BranchConfig, Settings
from inventory_ledger.errors import (
    BranchBusyError,
    CatalogUnavailableError,
    LedgerUnavailableError,
    SubmissionError,
    UnknownBranchError,
)
from inventory_ledger.models import Catalog, CatalogCategory, CatalogItem
from inventory_ledger.sheets import LedgerKey
from inventory_ledger.sync import BranchLocks, Synchronizer
from tests.helpers.sheets_stub import InMemoryLedger

SHEET_ID = "sheet-123"
DELHI = LedgerKey(spreadsheet_id=SHEET_ID, sheet_name="Delhi")


class _StaticCatalog:
    def __init__(self, catalog: Catalog | None) -> None:
        self.catalog = catalog
        self.calls = 0

    def snapshot(self) -> Catalog:
        self.calls += 1
        if self.catalog is None:
            raise CatalogUnavailableError("catalog database error: down")
        return self.catalog


def _catalog(items: list[tuple[str, str, str]]) -> Catalog:
    by_cat: dict[str, list[CatalogItem]] = {}
    for cat, name, unit in items:
        by_cat.setdefault(cat, []).append(CatalogItem(category=cat, name=name, unit=unit))
    return Catalog(
        categories=tuple(CatalogCategory(name=c, items=tuple(i)) for c, i in by_cat.items())
    )


def _settings(window_days: int = 3, lock_timeout: float = 1.0) -> Settings:
    return Settings(
        branches={
            name: BranchConfig(name=name, spreadsheet_id=SHEET_ID, sheet_name=name)
            for name in ("Delhi", "Chandigarh")
        },
        window_days=window_days,
        lock_timeout_seconds=lock_timeout,
    )


@pytest.fixture()
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture()
def catalog() -> _StaticCatalog:
    return _StaticCatalog(_catalog([("Dairy", "Milk", "ml"), ("Dairy", "Curd", "Kg")]))


@pytest.fixture()
def sync(ledger: InMemoryLedger, catalog: _StaticCatalog) -> Synchronizer:
    return Synchronizer(settings=_settings(), catalog=catalog, provider=ledger)


# ---- Happy path --------------------------------------------------------------


def test_first_sync_creates_sheet_and_writes_once(sync: Synchronizer, ledger: InMemoryLedger):
    outcome = sync.synchronize("Delhi", {"Milk": {"quantity": "5"}}, today=date(2024, 1, 3))

    assert outcome.created_sheet is True
    assert outcome.rows_written == 2
    assert len(ledger.writes()) == 1
    assert ledger.grid(DELHI) == [
        ["Category", "Item", "Unit", "2024-01-01 (Qty)", "2024-01-02 (Qty)", "2024-01-03 (Qty)"],
        ["Dairy", "Milk", "ml", "", "", "5"],
        ["Dairy", "Curd", "Kg"],
    ]
    assert [name for name, _ in ledger.calls] == ["ensure", "read", "write"]


def test_outcome_json_reports_window_oldest_first(sync: Synchronizer):
    body = sync.synchronize("delhi", {"Milk": {"quantity": "5"}}, today=date(2024, 1, 3)).to_json()
    assert body["branch"] == "Delhi"
    assert body["window"] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert body["itemsNew"] == 1
    assert body["createdSheet"] is True


def test_consecutive_days_roll_the_window(sync: Synchronizer, ledger: InMemoryLedger):
    sync.synchronize("Delhi", {"Milk": {"quantity": "5"}}, today=date(2024, 1, 3))
    sync.synchronize("Delhi", {"Curd": {"quantity": "2"}}, today=date(2024, 1, 4))

    grid = ledger.grid(DELHI)
    assert grid[0][3:] == ["2024-01-02 (Qty)", "2024-01-03 (Qty)", "2024-01-04 (Qty)"]
    assert grid[1] == ["Dairy", "Milk", "ml", "", "5"]
    assert grid[2] == ["Dairy", "Curd", "Kg", "", "", "2"]


def test_shrinking_ledger_clears_stale_cells(ledger: InMemoryLedger, catalog: _StaticCatalog):
    wide = Synchronizer(settings=_settings(window_days=5), catalog=catalog, provider=ledger)
    wide.synchronize("Delhi", {"Curd": {"quantity": "1"}}, today=date(2024, 1, 3))

    catalog.catalog = _catalog([("Dairy", "Milk", "ml")])
    narrow = Synchronizer(settings=_settings(window_days=2), catalog=catalog, provider=ledger)
    narrow.synchronize("Delhi", {"Milk": {"quantity": "4"}}, today=date(2024, 1, 3))

    assert ledger.grid(DELHI) == [
        ["Category", "Item", "Unit", "2024-01-02 (Qty)", "2024-01-03 (Qty)"],
        ["Dairy", "Milk", "ml", "", "4"],
    ]


def test_provision_reshapes_existing_sheet(sync: Synchronizer, ledger: InMemoryLedger):
    ledger.put(DELHI, [["Category", "Item", "2024-01-02 (Kg)"], ["Dairy", "Milk", "7"]])
    outcome = sync.provision("Delhi", today=date(2024, 1, 3))

    assert outcome.created_sheet is False
    assert ledger.grid(DELHI)[1] == ["Dairy", "Milk", "ml", "", "7"]


def test_catalog_snapshot_taken_once_per_pass(sync: Synchronizer, catalog: _StaticCatalog):
    sync.synchronize("Delhi", {}, today=date(2024, 1, 3))
    assert catalog.calls == 1


# ---- Validation and failures -------------------------------------------------


@pytest.mark.parametrize("branch", ["", "   "])
def test_missing_branch_is_rejected_before_any_call(
    sync: Synchronizer, ledger: InMemoryLedger, branch: str
):
    with pytest.raises(SubmissionError):
        sync.synchronize(branch, {})
    assert ledger.calls == []


def test_unknown_branch_is_rejected_before_any_call(sync: Synchronizer, ledger: InMemoryLedger):
    with pytest.raises(UnknownBranchError):
        sync.synchronize("Mumbai", {"Milk": {"quantity": "1"}})
    assert ledger.calls == []


def test_missing_or_malformed_data_is_rejected(sync: Synchronizer, ledger: InMemoryLedger):
    with pytest.raises(SubmissionError):
        sync.synchronize("Delhi", None)
    with pytest.raises(SubmissionError):
        sync.synchronize("Delhi", {"Milk": {"quantity": "lots"}})
    assert ledger.calls == []


def test_catalog_failure_writes_nothing(sync: Synchronizer, ledger: InMemoryLedger, catalog):
    catalog.catalog = None
    with pytest.raises(CatalogUnavailableError):
        sync.synchronize("Delhi", {"Milk": {"quantity": "1"}})
    assert ledger.writes() == []


def test_read_failure_leaves_previous_ledger_untouched(
    sync: Synchronizer, ledger: InMemoryLedger
):
    sync.synchronize("Delhi", {"Milk": {"quantity": "5"}}, today=date(2024, 1, 3))
    before = ledger.grid(DELHI)
    ledger.fail_on.add("read")

    with pytest.raises(LedgerUnavailableError):
        sync.synchronize("Delhi", {"Milk": {"quantity": "9"}}, today=date(2024, 1, 3))
    assert ledger.grid(DELHI) == before
    assert len(ledger.writes()) == 1


# ---- Locking -----------------------------------------------------------------


def test_busy_branch_times_out():
    locks = BranchLocks()
    entered = threading.Event()
    release = threading.Event()

    def _holder() -> None:
        with locks.hold("Delhi", timeout=1):
            entered.set()
            release.wait(5)

    t = threading.Thread(target=_holder)
    t.start()
    try:
        assert entered.wait(5)
        with pytest.raises(BranchBusyError):
            with locks.hold("DELHI", timeout=0.05):
                pass
        # Other branches are independent.
        with locks.hold("Chandigarh", timeout=0.05):
            pass
    finally:
        release.set()
        t.join()


class _GatedLedger(InMemoryLedger):
    """Ledger whose first ``read`` captures the sheet and then waits for ``proceed``.

    The captured state is what the paused pass goes on to reconcile, so a
    second pass that read and wrote in the meantime would be overwritten.
    """

    def __init__(self) -> None:
        super().__init__()
        self.reading = threading.Event()
        self.proceed = threading.Event()
        self._gated = False

    def arm(self) -> None:
        self._gated = True

    def read(self, key: LedgerKey) -> tuple[list[str], list[list[str]]]:
        snapshot = super().read(key)
        if self._gated:
            self._gated = False
            self.reading.set()
            assert self.proceed.wait(5)
        return snapshot


def _start_pass(sync: Synchronizer, branch: str, data, today: date, errors: list) -> threading.Thread:
    def _run() -> None:
        try:
            sync.synchronize(branch, data, today=today)
        except Exception as e:  # surfaced through ``errors``
            errors.append(e)

    t = threading.Thread(target=_run)
    t.start()
    return t


def test_second_pass_waits_for_the_first_and_both_counts_survive(catalog: _StaticCatalog):
    ledger = _GatedLedger()
    sync = Synchronizer(settings=_settings(lock_timeout=5), catalog=catalog, provider=ledger)
    today = date(2024, 1, 3)
    sync.synchronize("Delhi", {}, today=today)
    ledger.arm()
    errors: list[Exception] = []

    first = _start_pass(sync, "Delhi", {"Milk": {"quantity": "1"}}, today, errors)
    try:
        assert ledger.reading.wait(5)
        second = _start_pass(sync, "Delhi", {"Curd": {"quantity": "2"}}, today, errors)
        # The second pass must not get past the lock while the first sits
        # between read and write.
        second.join(timeout=0.3)
        assert second.is_alive()
        assert len(ledger.writes()) == 1
        assert [name for name, _ in ledger.calls].count("read") == 2
    finally:
        ledger.proceed.set()
        first.join(5)
    second.join(5)

    assert errors == []
    grid = ledger.grid(DELHI)
    assert grid[1][-1] == "1"
    assert grid[2][-1] == "2"


def test_second_pass_times_out_while_branch_is_held(catalog: _StaticCatalog):
    ledger = _GatedLedger()
    sync = Synchronizer(settings=_settings(lock_timeout=0.05), catalog=catalog, provider=ledger)
    today = date(2024, 1, 3)
    ledger.arm()
    errors: list[Exception] = []

    first = _start_pass(sync, "Delhi", {"Milk": {"quantity": "1"}}, today, errors)
    try:
        assert ledger.reading.wait(5)
        calls_before = len(ledger.calls)
        with pytest.raises(BranchBusyError):
            sync.synchronize("Delhi", {"Curd": {"quantity": "2"}}, today=today)
        assert len(ledger.calls) == calls_before
        # Another branch is not blocked by Delhi's pass.
        sync.synchronize("Chandigarh", {"Curd": {"quantity": "3"}}, today=today)
    finally:
        ledger.proceed.set()
        first.join(5)

    assert errors == []
    grid = ledger.grid(DELHI)
    assert grid[1][-1] == "1"
    assert grid[2] == ["Dairy", "Curd", "Kg"]


# ---- Last submission ---------------------------------------------------------


def test_last_submission_is_none_without_sheet(sync: Synchronizer):
    assert sync.last_submission("Delhi") is None


def test_last_submission_is_latest_date_with_a_value(sync: Synchronizer, ledger: InMemoryLedger):
    sync.synchronize("Delhi", {"Milk": {"quantity": "5"}}, today=date(2024, 1, 2))
    sync.synchronize("Delhi", {}, today=date(2024, 1, 3))
    assert sync.last_submission("Delhi") == date(2024, 1, 2)


def test_last_submission_for_empty_sheet_is_none(sync: Synchronizer):
    sync.provision("Delhi", today=date(2024, 1, 3))
    assert sync.last_submission("Delhi") is None
