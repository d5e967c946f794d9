"""Catalog domain helpers and the cached catalog store.

The catalog is the ordered set of categories and their items (name + unit).
It is authoritative for which ledger rows exist and in what order.

Session-level operations (``upsert_category``, ``delete_category``,
``delete_items``, ``load_catalog``) take a SQLAlchemy session and leave the
transaction scope to the caller. :class:`CatalogStore` wraps them with
``session_scope`` and a read-through cache that has a fixed time-to-live and
is invalidated synchronously after every mutation commits.

Names are compared case-insensitively after whitespace normalization; the
casing of the first submission is what gets stored and displayed.
"""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass

from db.client import session_scope
from db.models.inventory import InvCategory, InvItem
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .errors import CatalogUnavailableError, CategoryNotFoundError, LedgerError
from .logging_setup import get_logger
from .models import Catalog, CatalogCategory, CatalogItem, name_key, normalize_name

_logger = get_logger("inventory_ledger.catalog")

# ---------------------------
# Name normalization/validation
# ---------------------------

_ALLOWED_RE = re.compile(r"^[\w &\-/().,'+%]+$")

MAX_NAME_LEN = 64
MAX_UNIT_LEN = 16


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = MAX_NAME_LEN) -> NameValidation:
    """Validate a category or item name.

    Rules
    -----
    - Trim and collapse whitespace; enforce length bounds ``min_len..max_len``.
    - Allowed characters: letters, numbers, spaces and ``& - / ( ) . , ' + %``.
    """

    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    if not _ALLOWED_RE.match(n):
        return NameValidation(
            False, "Only letters, numbers, spaces, and & - / ( ) . , ' + % are allowed"
        )
    return NameValidation(True, None)


def _require_valid(label: str, value: str, *, max_len: int = MAX_NAME_LEN) -> str:
    n = normalize_name(value)
    v = validate_name(n, max_len=max_len)
    if not v.ok:
        raise ValueError(f"Invalid {label} {value!r}: {v.reason}")
    return n


def clean_catalog(
    categories: Iterable[tuple[str, Sequence[tuple[str, str]]]],
) -> list[tuple[str, list[tuple[str, str]]]]:
    """Validate every name and unit and fold case-insensitive duplicates.

    A category repeated under other casing is merged into its first
    occurrence; a repeated item keeps its first position and spelling and
    takes the later unit (the same outcome as merging via ``upsert_category``).
    Raises ``ValueError`` on the first invalid name or unit.
    """

    merged: dict[str, tuple[str, dict[str, tuple[str, str]]]] = {}
    for name, items in categories:
        cat_name = _require_valid("category name", name)
        _, by_item = merged.setdefault(name_key(cat_name), (cat_name, {}))
        for item_name, unit in items:
            clean_item = _require_valid("item name", item_name)
            clean_unit = _require_valid("unit", unit, max_len=MAX_UNIT_LEN)
            first = by_item.get(name_key(clean_item))
            by_item[name_key(clean_item)] = (first[0] if first else clean_item, clean_unit)
    return [(cat_name, list(by_item.values())) for cat_name, by_item in merged.values()]


# ---------------------------
# Session-level operations
# ---------------------------


def _find_category(session: Session, name: str) -> InvCategory | None:
    return (
        session.execute(
            select(InvCategory)
            .where(func.lower(InvCategory.name) == normalize_name(name).lower())
            .options(selectinload(InvCategory.items))
        )
        .scalars()
        .first()
    )


def _to_snapshot(row: InvCategory) -> CatalogCategory:
    items = sorted(row.items, key=lambda it: (it.sort_order, it.id))
    return CatalogCategory(
        name=row.name,
        items=tuple(CatalogItem(category=row.name, name=it.name, unit=it.unit) for it in items),
    )


def load_catalog(session: Session) -> Catalog:
    """Return the full catalog ordered by category, then item sort order."""

    rows = (
        session.execute(
            select(InvCategory)
            .options(selectinload(InvCategory.items))
            .order_by(InvCategory.sort_order, InvCategory.id)
        )
        .scalars()
        .all()
    )
    return Catalog(categories=tuple(_to_snapshot(r) for r in rows))


def upsert_category(
    session: Session,
    *,
    name: str,
    items: Sequence[tuple[str, str]] = (),
) -> tuple[CatalogCategory, bool]:
    """Create ``name`` or merge ``items`` into the existing category.

    Existing items (matched case-insensitively) get their unit updated; new
    items are appended after the current last item. Returns the resulting
    category snapshot and whether the category itself was created.
    """

    cat_name = _require_valid("category name", name)
    cleaned: list[tuple[str, str]] = [
        (
            _require_valid("item name", item_name),
            _require_valid("unit", unit, max_len=MAX_UNIT_LEN),
        )
        for item_name, unit in items
    ]

    row = _find_category(session, cat_name)
    created = row is None
    if row is None:
        next_order = session.execute(
            select(func.coalesce(func.max(InvCategory.sort_order), -1))
        ).scalar_one()
        row = InvCategory(name=cat_name, sort_order=int(next_order) + 1)
        session.add(row)

    by_key: dict[str, InvItem] = {name_key(it.name): it for it in row.items}
    next_item_order = max((it.sort_order for it in row.items), default=-1) + 1
    for item_name, unit in cleaned:
        existing = by_key.get(name_key(item_name))
        if existing is not None:
            if existing.unit != unit:
                existing.unit = unit
                existing.updated_at = func.now()
            continue
        new_item = InvItem(name=item_name, unit=unit, sort_order=next_item_order)
        row.items.append(new_item)
        by_key[name_key(item_name)] = new_item
        next_item_order += 1

    if not created and cleaned:
        row.updated_at = func.now()
    try:
        session.flush()
    except IntegrityError as e:
        session.rollback()
        raise ValueError(
            f"Category {cat_name!r} was modified concurrently; retry the request"
        ) from e
    session.refresh(row)
    return _to_snapshot(row), created


def delete_category(session: Session, *, name: str) -> None:
    """Delete a category and all of its items."""

    row = _find_category(session, name)
    if row is None:
        raise CategoryNotFoundError(name)
    session.delete(row)
    session.flush()


def delete_items(session: Session, *, category: str, names: Iterable[str]) -> CatalogCategory:
    """Delete the named items from ``category`` and return what remains.

    Names that do not exist in the category are ignored (and logged).
    """

    row = _find_category(session, category)
    if row is None:
        raise CategoryNotFoundError(category)

    wanted = {name_key(n) for n in names if normalize_name(n)}
    doomed = [it for it in row.items if name_key(it.name) in wanted]
    missing = wanted - {name_key(it.name) for it in doomed}
    if missing:
        _logger.info(
            "catalog:delete_items_missing; category=%s missing=%s", row.name, sorted(missing)
        )
    for it in doomed:
        row.items.remove(it)
    if doomed:
        row.updated_at = func.now()
    session.flush()
    session.refresh(row)
    return _to_snapshot(row)


# ---------------------------
# Cached store
# ---------------------------


class CatalogCache:
    """Time-bounded, explicitly invalidated holder of one catalog snapshot."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Catalog | None = None
        self._loaded_at = 0.0

    def get(self, loader: Callable[[], Catalog]) -> Catalog:
        with self._lock:
            if self._snapshot is not None and self._clock() - self._loaded_at < self._ttl:
                return self._snapshot
            snapshot = loader()
            self._snapshot = snapshot
            self._loaded_at = self._clock()
            return snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None


class CatalogStore:
    """Catalog access for the gateway and the synchronizer.

    Each operation runs in its own short transaction. Reads go through the
    cache; every mutation invalidates it once its transaction has ended, so
    the next :meth:`snapshot` observes the change.

    Invalidation only reaches this store's own cache. Edits made by another
    process (``inventory-ledger catalog-import`` against a running gateway,
    another replica, manual SQL) stay invisible here until the snapshot ages
    past ``ttl_seconds`` (``INVENTORY_CATALOG_TTL_SECONDS``).
    """

    def __init__(
        self,
        *,
        database_url: str | None = None,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._database_url = database_url
        self._cache = CatalogCache(ttl_seconds, clock=clock)

    @contextmanager
    def _transaction(self, *, mutating: bool) -> Iterator[Session]:
        try:
            with session_scope(database_url=self._database_url) as session:
                yield session
        except LedgerError:
            raise
        except (SQLAlchemyError, RuntimeError) as e:
            raise CatalogUnavailableError(f"catalog database error: {e}") from e
        finally:
            if mutating:
                self.invalidate()

    def _load(self) -> Catalog:
        with self._transaction(mutating=False) as session:
            return load_catalog(session)

    def snapshot(self) -> Catalog:
        """Return a catalog snapshot, loading it when the cache is cold or stale."""

        return self._cache.get(self._load)

    def invalidate(self) -> None:
        self._cache.invalidate()

    def add_category(
        self, name: str, items: Sequence[tuple[str, str]] = ()
    ) -> tuple[CatalogCategory, bool]:
        with self._transaction(mutating=True) as session:
            category, created = upsert_category(session, name=name, items=items)
        _logger.info(
            "catalog:upsert category=%s created=%s items=%d",
            category.name,
            created,
            len(category.items),
        )
        return category, created

    def bulk_import(self, categories: Iterable[tuple[str, Sequence[tuple[str, str]]]]) -> Catalog:
        """Create/merge many categories in a single transaction."""

        with self._transaction(mutating=True) as session:
            for name, items in categories:
                upsert_category(session, name=name, items=items)
            catalog = load_catalog(session)
        _logger.info("catalog:bulk_import categories=%d", len(catalog))
        return catalog

    def delete_category(self, name: str) -> None:
        with self._transaction(mutating=True) as session:
            delete_category(session, name=name)
        _logger.info("catalog:delete_category category=%s", name)

    def delete_items(self, category: str, names: Iterable[str]) -> CatalogCategory:
        with self._transaction(mutating=True) as session:
            remaining = delete_items(session, category=category, names=list(names))
        _logger.info(
            "catalog:delete_items category=%s remaining=%d", remaining.name, len(remaining.items)
        )
        return remaining


__all__ = [
    "MAX_NAME_LEN",
    "MAX_UNIT_LEN",
    "CatalogCache",
    "CatalogStore",
    "NameValidation",
    "clean_catalog",
    "delete_category",
    "delete_items",
    "load_catalog",
    "upsert_category",
    "validate_name",
]
