"""Exception types raised by the ledger synchronizer and its collaborators.

The split mirrors how callers react:

- input problems (``SubmissionError``, ``UnknownBranchError``) are rejected
  before any external call and map to client errors;
- collaborator failures (``CatalogUnavailableError``,
  ``LedgerUnavailableError``) wrap the underlying exception via
  ``raise ... from e`` and leave the persisted ledger untouched;
- ``BranchBusyError`` reports a bounded wait on the per-branch lock.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ``inventory_ledger`` errors."""


class SubmissionError(LedgerError, ValueError):
    """The submission payload is missing or malformed."""


class UnknownBranchError(LedgerError, ValueError):
    """The branch has no configured ledger resource."""

    def __init__(self, branch: str) -> None:
        super().__init__(f"Unknown branch: {branch!r}")
        self.branch = branch


class CategoryNotFoundError(LedgerError, LookupError):
    """A catalog mutation referenced a category that does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Category not found: {name!r}")
        self.name = name


class CatalogUnavailableError(LedgerError, RuntimeError):
    """The catalog snapshot could not be obtained."""


class LedgerUnavailableError(LedgerError, RuntimeError):
    """The ledger resource could not be read, provisioned, or written."""


class BranchBusyError(LedgerError, RuntimeError):
    """Another synchronization for the same branch held the lock too long."""

    def __init__(self, branch: str, timeout: float) -> None:
        super().__init__(
            f"Branch {branch!r} is busy; lock not acquired within {timeout:.1f}s"
        )
        self.branch = branch
        self.timeout = timeout


__all__ = [
    "LedgerError",
    "SubmissionError",
    "UnknownBranchError",
    "CategoryNotFoundError",
    "CatalogUnavailableError",
    "LedgerUnavailableError",
    "BranchBusyError",
]
