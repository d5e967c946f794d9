"""Parse a persisted ledger block into a structured, sparse representation.

The persisted layout is::

    Category | Item | Unit | 2024-01-01 (Qty) | ... | 2024-01-15 (Qty)

Parsing is deliberately tolerant. Header cells that do not start with an ISO
date are ignored rather than rejected, so legacy layouts (e.g. the earlier
``Category | Item | <date> (Kg)`` sheets without a unit column) and hand-edited
headers degrade to "that column carries no history" instead of failing a
submission. The parser never moves values; it only records where each date's
values live so the reconciler can remap them.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date
from typing import Any

from .logging_setup import get_logger
from .models import ParsedLedger, RowKey, normalize_name, row_key

FIXED_HEADER: tuple[str, ...] = ("Category", "Item", "Unit")

# Category and item always occupy the first two columns; date columns are
# searched for from here on (the unit column never matches the date pattern).
_KEY_COLUMNS = 2

_DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")

_logger = get_logger("inventory_ledger.matrix")


def _cell(row: Sequence[Any], idx: int) -> str:
    # The Sheets API drops trailing empty cells, so short rows are normal.
    if idx >= len(row):
        return ""
    v = row[idx]
    return "" if v is None else str(v)


def parse_header_date(label: Any) -> date | None:
    """Return the date a header cell starts with, or ``None``.

    ``"2024-01-03 (Qty)"`` -> ``date(2024, 1, 3)``. Strings that match the
    pattern but are not real calendar dates (``"2024-13-40"``) yield ``None``.
    """

    if label is None:
        return None
    m = _DATE_PREFIX_RE.match(str(label).strip())
    if m is None:
        return None
    try:
        return date.fromisoformat(m.group(1))
    except ValueError:
        return None


def header_matches(header: Sequence[Any]) -> bool:
    """True when ``header`` starts with the canonical fixed columns."""

    got = tuple(normalize_name(_cell(header, i)).casefold() for i in range(len(FIXED_HEADER)))
    return got == tuple(h.casefold() for h in FIXED_HEADER)


def _is_blank_row(row: Sequence[Any]) -> bool:
    return all(not _cell(row, i).strip() for i in range(len(row)))


def parse_ledger(
    header: Sequence[Any] | None,
    rows: Sequence[Sequence[Any]] | None,
) -> ParsedLedger:
    """Parse ``header`` and ``rows`` as returned by the ledger provider.

    Returns a :class:`ParsedLedger` whose ``has_data`` is ``False`` when the
    block is empty or holds only a header; callers then treat every prior cell
    as blank.
    """

    header = list(header or [])
    rows = [list(r or []) for r in (rows or [])]
    width = max([len(header), *(len(r) for r in rows)]) if (header or rows) else 0
    height = (1 if header else 0) + len(rows)

    if not header and not rows:
        return ParsedLedger(width=0, height=0)

    if header and not header_matches(header):
        _logger.warning(
            "ledger:header_drift; expected prefix=%s got=%s",
            list(FIXED_HEADER),
            [_cell(header, i) for i in range(len(FIXED_HEADER))],
        )

    date_columns: list[tuple[date, int]] = []
    seen_dates: set[date] = set()
    for offset in range(_KEY_COLUMNS, len(header)):
        d = parse_header_date(header[offset])
        if d is None:
            continue
        if d in seen_dates:
            _logger.warning(
                "ledger:duplicate_date_column; date=%s offset=%d (first column wins)",
                d.isoformat(),
                offset,
            )
            continue
        seen_dates.add(d)
        date_columns.append((d, offset))

    parsed_rows: dict[RowKey, list[str]] = {}
    for line_no, raw in enumerate(rows, start=2):
        if _is_blank_row(raw):
            continue
        category = normalize_name(_cell(raw, 0))
        item = normalize_name(_cell(raw, 1))
        if not category or not item:
            _logger.debug("ledger:skip_row_without_key; line=%d", line_no)
            continue
        key = row_key(category, item)
        if key in parsed_rows:
            _logger.warning(
                "ledger:duplicate_row; category=%s item=%s line=%d (first row wins)",
                category,
                item,
                line_no,
            )
            continue
        parsed_rows[key] = [_cell(raw, i) for i in range(max(len(raw), len(header)))]

    return ParsedLedger(
        date_columns=tuple(date_columns),
        rows=parsed_rows,
        has_data=bool(parsed_rows),
        width=width,
        height=height,
    )


def pad_to_extent(
    matrix: Sequence[Sequence[str]], *, width: int, height: int
) -> list[list[str]]:
    """Pad ``matrix`` with blanks so it covers at least ``width`` x ``height``.

    Writing the padded matrix over the previous block clears rows and columns
    the new ledger no longer uses (retired items, an older, wider window).
    """

    cols = max(width, max((len(r) for r in matrix), default=0))
    out = [list(r) + [""] * (cols - len(r)) for r in matrix]
    out.extend([""] * cols for _ in range(max(0, height - len(out))))
    return out


__all__ = [
    "FIXED_HEADER",
    "header_matches",
    "pad_to_extent",
    "parse_header_date",
    "parse_ledger",
]
