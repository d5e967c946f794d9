"""In-memory stand-in for the Google Sheets ledger provider.

Mimics the parts of the Sheets API the synchronizer relies on: values are
written from ``A1`` over whatever was there (cells outside the written range
survive), and reads drop trailing empty cells and rows the way
``values.get`` does.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from inventory_ledger.errors import LedgerUnavailableError
from inventory_ledger.sheets import LedgerKey


class InMemoryLedger:
    def __init__(self) -> None:
        self.sheets: dict[tuple[str, str], list[list[str]]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_on: set[str] = set()

    # ---- test conveniences -------------------------------------------------

    def put(self, key: LedgerKey, values: Sequence[Sequence[Any]]) -> None:
        self.sheets[(key.spreadsheet_id, key.sheet_name)] = [
            ["" if c is None else str(c) for c in row] for row in values
        ]

    def grid(self, key: LedgerKey) -> list[list[str]]:
        """Stored cells with trailing blanks trimmed (what a read returns)."""

        header, rows = self._trimmed(key)
        return [header, *rows] if header or rows else []

    def writes(self) -> list[Any]:
        return [arg for name, arg in self.calls if name == "write"]

    def _check(self, op: str) -> None:
        if op in self.fail_on:
            raise LedgerUnavailableError(f"simulated {op} failure")

    def _trimmed(self, key: LedgerKey) -> tuple[list[str], list[list[str]]]:
        stored = self.sheets.get((key.spreadsheet_id, key.sheet_name), [])
        rows = [list(r) for r in stored]
        for r in rows:
            while r and not r[-1]:
                r.pop()
        while rows and not rows[-1]:
            rows.pop()
        if not rows:
            return [], []
        return rows[0], rows[1:]

    # ---- LedgerProvider ----------------------------------------------------

    def list_sheets(self, spreadsheet_id: str) -> list[str]:
        self.calls.append(("list_sheets", spreadsheet_id))
        self._check("list_sheets")
        return [name for sid, name in self.sheets if sid == spreadsheet_id]

    def ensure(self, key: LedgerKey) -> bool:
        self.calls.append(("ensure", key))
        self._check("ensure")
        if (key.spreadsheet_id, key.sheet_name) in self.sheets:
            return False
        self.sheets[(key.spreadsheet_id, key.sheet_name)] = []
        return True

    def read(self, key: LedgerKey) -> tuple[list[str], list[list[str]]]:
        self.calls.append(("read", key))
        self._check("read")
        return self._trimmed(key)

    def write(self, key: LedgerKey, matrix: Sequence[Sequence[str]]) -> None:
        self.calls.append(("write", [list(r) for r in matrix]))
        self._check("write")
        grid = self.sheets.setdefault((key.spreadsheet_id, key.sheet_name), [])
        for i, row in enumerate(matrix):
            while len(grid) <= i:
                grid.append([])
            target = grid[i]
            while len(target) < len(row):
                target.append("")
            for j, value in enumerate(row):
                target[j] = value
