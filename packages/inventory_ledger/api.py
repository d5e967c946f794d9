"""HTTP gateway for branch submissions and catalog maintenance.

The routes are thin: request bodies are validated with pydantic and handed to
:class:`~inventory_ledger.sync.Synchronizer` or
:class:`~inventory_ledger.catalog.CatalogStore`. Handlers are plain ``def``
functions so FastAPI runs them in its worker threadpool; the synchronizer's
per-branch locks are ordinary thread locks.

Errors are returned as ``{"error": "..."}`` with:

- 400 for malformed payloads, invalid names and unknown branches;
- 404 for unknown categories;
- 409 when a branch is busy with another submission;
- 502 when the catalog database or Google Sheets is unavailable.
"""

from __future__ import annotations

import os
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .catalog import CatalogStore
from .config import Settings, load_settings
from .errors import (
    BranchBusyError,
    CatalogUnavailableError,
    CategoryNotFoundError,
    LedgerError,
    LedgerUnavailableError,
)
from .logging_setup import configure_logging, get_logger
from .models import CategoryIn, DeleteItemsIn, SyncRequest
from .sheets import GoogleSheetsLedger, LedgerProvider
from .sync import Synchronizer

_logger = get_logger("inventory_ledger.api")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _status_for(exc: LedgerError) -> int:
    if isinstance(exc, CategoryNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, BranchBusyError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, (CatalogUnavailableError, LedgerUnavailableError)):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_400_BAD_REQUEST


def _validation_message(exc: RequestValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def _cors_origins() -> list[str]:
    raw = os.getenv("INVENTORY_CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


def create_app(
    *,
    settings: Settings | None = None,
    catalog: CatalogStore | None = None,
    provider: LedgerProvider | None = None,
    synchronizer: Synchronizer | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Collaborators default to the production wiring derived from ``settings``
    (which itself defaults to :func:`~inventory_ledger.config.load_settings`);
    tests pass their own catalog store and ledger provider.
    """

    configure_logging()
    settings = settings or load_settings()
    catalog = catalog or CatalogStore(
        database_url=settings.database_url, ttl_seconds=settings.catalog_ttl_seconds
    )
    provider = provider or GoogleSheetsLedger.from_settings(settings)
    sync = synchronizer or Synchronizer(settings=settings, catalog=catalog, provider=provider)

    app = FastAPI(title="Inventory Ledger", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.catalog = catalog
    app.state.synchronizer = sync

    @app.exception_handler(RequestValidationError)
    async def _on_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, _validation_message(exc))

    @app.exception_handler(LedgerError)
    async def _on_ledger_error(request: Request, exc: LedgerError) -> JSONResponse:
        code = _status_for(exc)
        if code >= 500:
            _logger.error("api:collaborator_failed path=%s error=%s", request.url.path, exc)
        return _error(code, str(exc))

    # ---- health ------------------------------------------------------------

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "branches": sorted(settings.branches),
            "windowDays": settings.window_days,
        }

    # ---- submissions -------------------------------------------------------

    @app.post("/update-sheets")
    def update_sheets(body: SyncRequest) -> dict[str, Any]:
        outcome = sync.synchronize(body.branch, body.submission())
        return {
            "message": f"Google Sheets updated for {outcome.branch}",
            "details": outcome.to_json(),
        }

    @app.get("/last-submission/{branch}")
    def last_submission(branch: str) -> dict[str, Any]:
        last = sync.last_submission(branch)
        return {"branch": branch, "date": last.isoformat() if last else None}

    # ---- catalog -----------------------------------------------------------

    @app.get("/api/categories")
    def list_categories() -> list[dict[str, Any]]:
        return catalog.snapshot().to_json()

    @app.post("/api/categories")
    def add_category(body: CategoryIn) -> JSONResponse:
        try:
            category, created = catalog.add_category(body.name, body.item_pairs())
        except ValueError as e:
            return _error(status.HTTP_400_BAD_REQUEST, str(e))
        return JSONResponse(
            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
            content={"category": category.to_json(), "created": created},
        )

    @app.post("/api/categories/bulk")
    def bulk_import(body: list[CategoryIn]) -> Any:
        try:
            result = catalog.bulk_import((c.name, c.item_pairs()) for c in body)
        except ValueError as e:
            return _error(status.HTTP_400_BAD_REQUEST, str(e))
        return result.to_json()

    @app.delete("/api/categories/{name}")
    def delete_category(name: str) -> dict[str, Any]:
        catalog.delete_category(name)
        return {"message": "Category deleted", "name": name}

    @app.post("/api/categories/{name}/delete-items")
    def delete_items(name: str, body: DeleteItemsIn) -> dict[str, Any]:
        remaining = catalog.delete_items(name, body.items_to_delete)
        return {"message": "Items deleted", "category": remaining.to_json()}

    return app


__all__ = ["create_app"]
