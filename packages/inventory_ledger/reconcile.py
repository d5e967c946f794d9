"""Ledger reconciliation: merge a day's submission into the rolling window.

A reconciliation pass is a pure function of

- the catalog snapshot (authoritative for which rows exist and their order),
- the parsed prior ledger (history to carry forward),
- the submission (today's counts), and
- the window size ``W`` and the anchor date ``today``.

Rules
-----
- Rows are emitted for exactly the catalog entries, in catalog order. Prior
  rows for retired entries are dropped; new entries start blank.
- Prior values are carried over by *date*, not by position: a value recorded
  under ``2024-01-02`` lands in the ``2024-01-02`` column wherever that column
  now sits. Dates that fall out of the window are evicted.
- A submitted non-empty quantity overwrites today's cell (last write wins, so
  repeating a submission on the same day is idempotent). Items missing from
  the submission, or submitted blank, keep whatever today's cell already held.
- Malformed prior data never fails a pass; it simply contributes no history.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any

from .errors import CatalogUnavailableError, SubmissionError
from .logging_setup import get_logger
from .matrix import FIXED_HEADER
from .models import (
    Catalog,
    CatalogItem,
    LedgerRow,
    ParsedLedger,
    ReconcileResult,
    ReconcileSummary,
    RowKey,
    SubmissionEntry,
    name_key,
    normalize_name,
    normalize_quantity,
)
from .window import date_label, plan_window

_logger = get_logger("inventory_ledger.reconcile")


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------


def coerce_submission(data: Any) -> dict[str, SubmissionEntry]:
    """Validate ``data`` and return it as ``{item_name: SubmissionEntry}``.

    Entries may be :class:`SubmissionEntry` instances or mappings with
    ``quantity`` and optional ``category`` keys. Raises
    :class:`~inventory_ledger.errors.SubmissionError` when the payload is not
    a mapping, an item name is blank, or a quantity is not a decimal.
    """

    if not isinstance(data, Mapping):
        raise SubmissionError(
            f"submission must be a mapping of item name to entry, got {type(data).__name__}"
        )

    out: dict[str, SubmissionEntry] = {}
    for raw_name, entry in data.items():
        if not isinstance(raw_name, str) or not raw_name.strip():
            raise SubmissionError("submission item names must be non-empty strings")
        if isinstance(entry, SubmissionEntry):
            raw_qty: Any = entry.quantity
            raw_cat: Any = entry.category
        elif isinstance(entry, Mapping):
            raw_qty = entry.get("quantity")
            raw_cat = entry.get("category")
        else:
            raise SubmissionError(
                f"submission entry for {raw_name!r} must be an object with a quantity"
            )
        try:
            quantity = normalize_quantity(raw_qty)
        except ValueError as e:
            raise SubmissionError(f"invalid quantity for {raw_name!r}: {e}") from e
        if raw_cat is not None and not isinstance(raw_cat, str):
            raise SubmissionError(f"category for {raw_name!r} must be a string")
        out[raw_name] = SubmissionEntry(
            item_name=normalize_name(raw_name),
            quantity=quantity,
            category=normalize_name(raw_cat or ""),
        )
    return out


def _catalog_entries(catalog: Catalog | Iterable[CatalogItem] | None) -> list[CatalogItem]:
    if catalog is None:
        raise CatalogUnavailableError("catalog snapshot is unavailable")
    if isinstance(catalog, Catalog):
        return catalog.entries()
    return list(catalog)


class _SubmissionIndex:
    """Lookup of submission entries by item name.

    The item name alone picks the catalog row whenever it is unambiguous; an
    entry's category only decides between rows sharing an item name. Keys that
    differ only in case or spacing (``"Milk"`` / ``" milk"``) for the same
    category are duplicates: the later one wins and the earlier is reported.
    """

    def __init__(
        self, submission: Mapping[str, SubmissionEntry], entries: Sequence[CatalogItem]
    ) -> None:
        self._entries = dict(submission)
        self._matched: set[str] = set()
        self._duplicates: list[str] = []
        # item key -> {category key ("" when uncategorized): raw submission key}
        self._by_item: dict[str, dict[str, str]] = {}
        self._rows_per_item = Counter(item for _, item in {it.key for it in entries})
        for raw_name, entry in submission.items():
            slot = self._by_item.setdefault(name_key(entry.item_name or raw_name), {})
            category = name_key(entry.category)
            previous = slot.get(category)
            if previous is not None:
                self._duplicates.append(previous)
            slot[category] = raw_name

    def match(self, item: CatalogItem) -> SubmissionEntry | None:
        item_key = name_key(item.name)
        candidates = self._by_item.get(item_key)
        if not candidates:
            return None
        chosen = candidates.get(name_key(item.category))
        if chosen is None:
            chosen = candidates.get("")
        if chosen is None and self._rows_per_item[item_key] == 1:
            # Only one row carries this name, so an unknown category cannot
            # point anywhere else.
            chosen = next(iter(candidates.values()))
        if chosen is None:
            return None
        self._matched.add(chosen)
        return self._entries[chosen]

    def unmatched(self) -> tuple[str, ...]:
        skipped = set(self._duplicates)
        return tuple(
            raw
            for raw, entry in self._entries.items()
            if raw not in self._matched and raw not in skipped and entry.quantity
        )

    def duplicates(self) -> tuple[str, ...]:
        return tuple(self._duplicates)


# ---------------------------------------------------------------------------
# Reconciliation pass
# ---------------------------------------------------------------------------


def _carry_forward(
    prior: Sequence[str] | None,
    surviving: Sequence[tuple[date, int]],
) -> dict[date, str]:
    cells: dict[date, str] = {}
    if prior is None:
        return cells
    for d, offset in surviving:
        value = prior[offset] if offset < len(prior) else ""
        if value.strip():
            cells[d] = value
    return cells


def render_matrix(rows: Sequence[LedgerRow], window: Sequence[date]) -> list[list[str]]:
    """Lay ``rows`` out as header + data rows, dates oldest-to-newest."""

    columns = list(reversed(window))
    header = [*FIXED_HEADER, *(date_label(d) for d in columns)]
    return [header, *(row.render(columns) for row in rows)]


def reconcile(
    catalog: Catalog | Iterable[CatalogItem] | None,
    parsed: ParsedLedger | None,
    submission: Any,
    window_size: int,
    today: date,
) -> ReconcileResult:
    """Merge ``submission`` into the ``parsed`` prior ledger over ``catalog``.

    Returns the new rows (catalog order), the rendered matrix ready for a
    full-overwrite write, the newest-first window and a diagnostic summary.
    """

    entries = _catalog_entries(catalog)
    submitted = _SubmissionIndex(coerce_submission(submission), entries)

    window = plan_window(window_size, today)
    in_window = set(window)

    prior = parsed if (parsed is not None and parsed.has_data) else ParsedLedger()
    surviving = [(d, off) for d, off in prior.date_columns if d in in_window]
    evicted = len(prior.date_columns) - len(surviving)

    rows: list[LedgerRow] = []
    seen: set[RowKey] = set()
    items_new = items_updated = items_preserved = 0

    for item in entries:
        key = item.key
        if key in seen:
            _logger.warning(
                "reconcile:duplicate_catalog_entry; category=%s item=%s (skipped)",
                item.category,
                item.name,
            )
            continue
        seen.add(key)

        row = LedgerRow(
            category=item.category,
            item=item.name,
            unit=item.unit,
            cells=_carry_forward(prior.rows.get(key), surviving),
        )

        entry = submitted.match(item)
        if entry is not None and entry.quantity and today in in_window:
            if today in row.cells:
                items_updated += 1
            else:
                items_new += 1
            row.cells[today] = entry.quantity
        elif row.cells:
            items_preserved += 1

        rows.append(row)

    dropped = len(set(prior.rows) - seen)
    summary = ReconcileSummary(
        items_new=items_new,
        items_updated=items_updated,
        items_preserved=items_preserved,
        items_unmatched=submitted.unmatched(),
        items_duplicate=submitted.duplicates(),
    )
    _logger.debug(
        (
            "reconcile:done today=%s window=%d rows=%d new=%d updated=%d preserved=%d "
            "unmatched=%d dropped_rows=%d evicted_columns=%d"
        ),
        today.isoformat(),
        len(window),
        len(rows),
        summary.items_new,
        summary.items_updated,
        summary.items_preserved,
        len(summary.items_unmatched),
        dropped,
        evicted,
    )

    return ReconcileResult(
        window=tuple(window),
        rows=tuple(rows),
        matrix=render_matrix(rows, window),
        summary=summary,
    )


__all__ = ["coerce_submission", "reconcile", "render_matrix"]
