"""Public interface for the ``inventory_ledger`` package.

This module exposes the synchronization core (window planning, ledger
parsing, reconciliation), the synchronizer that wires it to the catalog and
Google Sheets, and the public models/types as the stable import surface.
There is no runtime logic here, only symbol re-exports.
"""

from .errors import (
    BranchBusyError,
    CatalogUnavailableError,
    CategoryNotFoundError,
    LedgerError,
    LedgerUnavailableError,
    SubmissionError,
    UnknownBranchError,
)
from .matrix import FIXED_HEADER, pad_to_extent, parse_ledger
from .models import (
    Catalog,
    CatalogCategory,
    CatalogItem,
    LedgerRow,
    ParsedLedger,
    ReconcileResult,
    ReconcileSummary,
    Submission,
    SubmissionEntry,
)
from .reconcile import coerce_submission, reconcile, render_matrix
from .sync import BranchLocks, SyncOutcome, Synchronizer
from .window import date_label, plan_window, today_utc

__all__ = [
    # Core
    "plan_window",
    "date_label",
    "today_utc",
    "parse_ledger",
    "pad_to_extent",
    "FIXED_HEADER",
    "reconcile",
    "render_matrix",
    "coerce_submission",
    # Orchestration
    "Synchronizer",
    "SyncOutcome",
    "BranchLocks",
    # Models / types
    "Catalog",
    "CatalogCategory",
    "CatalogItem",
    "LedgerRow",
    "ParsedLedger",
    "ReconcileResult",
    "ReconcileSummary",
    "Submission",
    "SubmissionEntry",
    # Errors
    "LedgerError",
    "SubmissionError",
    "UnknownBranchError",
    "CategoryNotFoundError",
    "CatalogUnavailableError",
    "LedgerUnavailableError",
    "BranchBusyError",
]
