"""Ledger resource provider backed by the Google Sheets v4 API.

Each branch's ledger is one sheet (tab) inside a spreadsheet, addressed by a
:class:`LedgerKey`. The provider exposes exactly what the synchronizer needs:

- ``ensure(key)``: create the sheet when absent (idempotent);
- ``read(key)``: return ``(header, rows)`` for the whole sheet;
- ``write(key, matrix)``: overwrite the sheet from ``A1`` in a single
  ``values.update`` call;
- ``list_sheets(spreadsheet_id)``: sheet titles in the spreadsheet.

``write`` only touches the cells covered by ``matrix``; callers that shrink a
ledger pad the matrix with blanks to the previous extent first (see
:func:`inventory_ledger.matrix.pad_to_extent`) so stale rows and columns are
cleared in the same call.

Transport concerns stay here: every request carries the configured socket
timeout and is retried by ``googleapiclient`` (``num_retries``) on transient
failures. Anything still failing is raised as
:class:`~inventory_ledger.errors.LedgerUnavailableError`.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import google_auth_httplib2
import httplib2
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import Settings
from .errors import LedgerUnavailableError
from .logging_setup import get_logger

SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/spreadsheets",)

_logger = get_logger("inventory_ledger.sheets")


@dataclass(frozen=True, slots=True)
class LedgerKey:
    spreadsheet_id: str
    sheet_name: str

    @property
    def a1_sheet(self) -> str:
        """The sheet name quoted for A1 notation (``'Delhi'``)."""

        return "'" + self.sheet_name.replace("'", "''") + "'"


class LedgerProvider(Protocol):
    def ensure(self, key: LedgerKey) -> bool: ...

    def read(self, key: LedgerKey) -> tuple[list[str], list[list[str]]]: ...

    def write(self, key: LedgerKey, matrix: Sequence[Sequence[str]]) -> None: ...

    def list_sheets(self, spreadsheet_id: str) -> list[str]: ...


class GoogleSheetsLedger:
    """:class:`LedgerProvider` over the Sheets API with service-account auth.

    Pass ``service`` to reuse an already-built ``sheets`` v4 resource;
    otherwise one is built lazily on first use from ``credentials_info``
    (inline JSON) or ``credentials_file``.
    """

    def __init__(
        self,
        service: Any | None = None,
        *,
        credentials_info: str | None = None,
        credentials_file: str | None = None,
        timeout_seconds: float = 30.0,
        retries: int = 3,
    ) -> None:
        self._service = service
        self._credentials_info = credentials_info
        self._credentials_file = credentials_file
        self._timeout = timeout_seconds
        self._retries = retries

    @classmethod
    def from_settings(cls, settings: Settings) -> GoogleSheetsLedger:
        return cls(
            credentials_info=settings.credentials_json,
            credentials_file=settings.credentials_file,
            timeout_seconds=settings.sheets_timeout_seconds,
            retries=settings.sheets_retries,
        )

    # ---- service plumbing -------------------------------------------------

    def _credentials(self) -> service_account.Credentials:
        try:
            if self._credentials_info:
                info = json.loads(self._credentials_info)
                return service_account.Credentials.from_service_account_info(
                    info, scopes=list(SCOPES)
                )
            if self._credentials_file:
                return service_account.Credentials.from_service_account_file(
                    self._credentials_file, scopes=list(SCOPES)
                )
        except (ValueError, OSError) as e:
            raise LedgerUnavailableError(f"invalid Google service-account credentials: {e}") from e
        raise LedgerUnavailableError(
            "Google credentials are not configured; set GOOGLE_SHEETS_CREDENTIALS "
            "or GOOGLE_APPLICATION_CREDENTIALS"
        )

    def _sheets(self) -> Any:
        if self._service is None:
            http = google_auth_httplib2.AuthorizedHttp(
                self._credentials(), http=httplib2.Http(timeout=self._timeout)
            )
            self._service = build("sheets", "v4", http=http, cache_discovery=False)
        return self._service.spreadsheets()

    def _execute(self, request: Any, op: str, *, key: str) -> dict[str, Any]:
        try:
            response = request.execute(num_retries=self._retries)
        except HttpError as e:
            status = getattr(getattr(e, "resp", None), "status", None)
            raise LedgerUnavailableError(f"sheets {op} failed for {key} (status={status}): {e}") from e
        except (OSError, httplib2.HttpLib2Error) as e:
            raise LedgerUnavailableError(f"sheets {op} failed for {key}: {e}") from e
        return response or {}

    # ---- provider operations ----------------------------------------------

    def list_sheets(self, spreadsheet_id: str) -> list[str]:
        meta = self._execute(
            self._sheets().get(spreadsheetId=spreadsheet_id, fields="sheets.properties.title"),
            "get",
            key=spreadsheet_id,
        )
        titles: list[str] = []
        for sheet in meta.get("sheets", []) or []:
            title = (sheet.get("properties") or {}).get("title")
            if isinstance(title, str):
                titles.append(title)
        return titles

    def ensure(self, key: LedgerKey) -> bool:
        """Create ``key.sheet_name`` when missing; return True if it was created."""

        if key.sheet_name in self.list_sheets(key.spreadsheet_id):
            return False
        body = {"requests": [{"addSheet": {"properties": {"title": key.sheet_name}}}]}
        try:
            self._execute(
                self._sheets().batchUpdate(spreadsheetId=key.spreadsheet_id, body=body),
                "addSheet",
                key=key.sheet_name,
            )
        except LedgerUnavailableError:
            # Another writer may have created it in the meantime.
            if key.sheet_name in self.list_sheets(key.spreadsheet_id):
                return False
            raise
        _logger.info(
            "sheets:created sheet=%s spreadsheet=%s", key.sheet_name, key.spreadsheet_id
        )
        return True

    def read(self, key: LedgerKey) -> tuple[list[str], list[list[str]]]:
        response = self._execute(
            self._sheets()
            .values()
            .get(
                spreadsheetId=key.spreadsheet_id,
                range=key.a1_sheet,
                majorDimension="ROWS",
                valueRenderOption="FORMATTED_VALUE",
            ),
            "values.get",
            key=key.sheet_name,
        )
        values: list[list[Any]] = response.get("values", []) or []
        if not values:
            return [], []
        header = [str(c) for c in values[0]]
        rows = [[("" if c is None else str(c)) for c in row] for row in values[1:]]
        return header, rows

    def write(self, key: LedgerKey, matrix: Sequence[Sequence[str]]) -> None:
        values = [list(row) for row in matrix]
        self._execute(
            self._sheets()
            .values()
            .update(
                spreadsheetId=key.spreadsheet_id,
                range=f"{key.a1_sheet}!A1",
                valueInputOption="RAW",
                body={"majorDimension": "ROWS", "values": values},
            ),
            "values.update",
            key=key.sheet_name,
        )
        _logger.debug(
            "sheets:write sheet=%s rows=%d cols=%d",
            key.sheet_name,
            len(values),
            max((len(r) for r in values), default=0),
        )


__all__ = ["SCOPES", "GoogleSheetsLedger", "LedgerKey", "LedgerProvider"]
