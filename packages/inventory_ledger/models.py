"""Data models and type aliases for ``inventory_ledger``.

Two families live here:

- frozen dataclasses used by the synchronization core (catalog snapshots,
  submissions, ledger rows and reconciliation results);
- pydantic DTOs validating the HTTP gateway's request bodies.

Catalog and ledger keys are compared case-insensitively after whitespace
normalization (see :func:`row_key`); the display casing stored in the catalog
is what gets written back to the sheet.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Keys and normalization
# ---------------------------------------------------------------------------

type RowKey = tuple[str, str]
"""``(category, item)`` identity of a ledger row, case-folded and trimmed."""


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name``.

    Does not change case; keys are case-folded separately by :func:`name_key`.
    """

    return " ".join(str(name).strip().split())


def name_key(name: str) -> str:
    return normalize_name(name).casefold()


def row_key(category: str, item: str) -> RowKey:
    return (name_key(category), name_key(item))


def normalize_quantity(raw: Any) -> str:
    """Validate a submitted quantity and return it as a trimmed string.

    Accepts strings and plain numbers; an empty/whitespace string is returned
    as ``""`` (meaning "no count for today"). Anything else must parse as a
    finite, non-negative decimal.
    """

    if raw is None:
        return ""
    if isinstance(raw, bool) or not isinstance(raw, (str, int, float, Decimal)):
        raise ValueError(f"quantity must be a decimal string, got {type(raw).__name__}")
    s = str(raw).strip()
    if not s:
        return ""
    try:
        d = Decimal(s)
    except InvalidOperation as e:
        raise ValueError(f"quantity is not a decimal number: {s!r}") from e
    if not d.is_finite():
        raise ValueError(f"quantity must be finite: {s!r}")
    if d < 0:
        raise ValueError(f"quantity must be non-negative: {s!r}")
    return s


# ---------------------------------------------------------------------------
# Catalog snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CatalogItem:
    category: str
    name: str
    unit: str

    @property
    def key(self) -> RowKey:
        return row_key(self.category, self.name)


@dataclass(frozen=True, slots=True)
class CatalogCategory:
    name: str
    items: tuple[CatalogItem, ...] = ()

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "items": [{"name": it.name, "unit": it.unit} for it in self.items],
        }


@dataclass(frozen=True, slots=True)
class Catalog:
    """An immutable, ordered snapshot of the catalog.

    Order is authoritative: categories in catalog order, items in their
    within-category order. Ledger rows are materialized in exactly this order.
    """

    categories: tuple[CatalogCategory, ...] = ()

    def entries(self) -> list[CatalogItem]:
        return [item for cat in self.categories for item in cat.items]

    def __iter__(self) -> Iterator[CatalogCategory]:
        return iter(self.categories)

    def __len__(self) -> int:
        return len(self.categories)

    def find(self, name: str) -> CatalogCategory | None:
        key = name_key(name)
        for cat in self.categories:
            if name_key(cat.name) == key:
                return cat
        return None

    def to_json(self) -> list[dict[str, Any]]:
        return [cat.to_json() for cat in self.categories]


# ---------------------------------------------------------------------------
# Submissions and ledger rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SubmissionEntry:
    """One item's count for "today". ``quantity`` is a decimal string."""

    item_name: str
    quantity: str
    category: str = ""


type Submission = Mapping[str, SubmissionEntry]
"""Item name -> entry; every entry is implicitly dated "today"."""


@dataclass(slots=True)
class LedgerRow:
    """A catalog entry's sparse quantity history.

    ``cells`` holds only recorded dates; an absent date means no count.
    """

    category: str
    item: str
    unit: str
    cells: dict[date, str] = field(default_factory=dict)

    @property
    def key(self) -> RowKey:
        return row_key(self.category, self.item)

    def render(self, columns: Sequence[date]) -> list[str]:
        """Return the persisted row for ``columns`` (blank where absent)."""

        return [self.category, self.item, self.unit, *(self.cells.get(d, "") for d in columns)]


@dataclass(frozen=True, slots=True)
class ParsedLedger:
    """Structured view over a persisted header + data rows.

    ``date_columns`` maps each recognized date to its source column offset in
    header order; ``rows`` maps row keys to the raw row they came from. The
    original extent (``width`` x ``height`` including the header) is kept so
    writers can blank out cells the new matrix no longer covers.
    """

    date_columns: tuple[tuple[date, int], ...] = ()
    rows: Mapping[RowKey, Sequence[str]] = field(default_factory=dict)
    has_data: bool = False
    width: int = 0
    height: int = 0

    @property
    def dates(self) -> list[date]:
        return [d for d, _ in self.date_columns]

    def offsets(self) -> dict[date, int]:
        return dict(self.date_columns)


@dataclass(frozen=True, slots=True)
class ReconcileSummary:
    """Diagnostic counts for one reconciliation pass (not contractual)."""

    items_new: int = 0
    items_updated: int = 0
    items_preserved: int = 0
    items_unmatched: tuple[str, ...] = ()
    items_duplicate: tuple[str, ...] = ()

    def to_json(self) -> dict[str, Any]:
        return {
            "itemsNew": self.items_new,
            "itemsUpdated": self.items_updated,
            "itemsPreserved": self.items_preserved,
            "itemsUnmatched": list(self.items_unmatched),
            "itemsDuplicate": list(self.items_duplicate),
        }


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Output of a reconciliation pass.

    ``window`` is newest-first (``[today, today-1, ...]``); ``matrix`` lays the
    same dates out oldest-to-newest, left to right, after the fixed columns.
    """

    window: tuple[date, ...]
    rows: tuple[LedgerRow, ...]
    matrix: list[list[str]]
    summary: ReconcileSummary


# ---------------------------------------------------------------------------
# DTOs for the HTTP gateway
# ---------------------------------------------------------------------------


class SubmissionEntryIn(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    quantity: str = ""
    category: str = ""

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity_decimal(cls, v: Any) -> str:
        return normalize_quantity(v)

    @field_validator("category", mode="before")
    @classmethod
    def _category_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class SyncRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    branch: str = Field(min_length=1)
    data: dict[str, SubmissionEntryIn]

    def submission(self) -> dict[str, SubmissionEntry]:
        return {
            name: SubmissionEntry(item_name=name, quantity=e.quantity, category=e.category)
            for name, e in self.data.items()
        }


class CatalogItemIn(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str
    unit: str


class CategoryIn(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str
    items: list[CatalogItemIn] = Field(default_factory=list)

    def item_pairs(self) -> list[tuple[str, str]]:
        return [(it.name, it.unit) for it in self.items]


class DeleteItemsIn(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    items_to_delete: list[str] = Field(alias="itemsToDelete", min_length=1)
