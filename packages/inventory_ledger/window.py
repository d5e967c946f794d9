"""Rolling window of date columns anchored on "today"."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

QTY_SUFFIX = " (Qty)"


def plan_window(window_size: int, today: date) -> list[date]:
    """Return ``[today, today-1, ..., today-(W-1)]``; empty for ``W <= 0``."""

    return [today - timedelta(days=i) for i in range(max(0, window_size))]


def date_label(d: date) -> str:
    """Header label for a date column, e.g. ``"2024-01-03 (Qty)"``."""

    return f"{d.isoformat()}{QTY_SUFFIX}"


def today_utc() -> date:
    # Submissions are dated by the UTC calendar day, matching the ledger's history.
    return datetime.now(UTC).date()


__all__ = ["QTY_SUFFIX", "date_label", "plan_window", "today_utc"]
