# ruff: noqa: I001
"""CLI for the ``inventory_ledger`` package.

This module exposes a Typer-based console interface for operators: running
the HTTP gateway, submitting a day's counts from a JSON file, provisioning a
branch sheet, and inspecting or importing the catalog. Environment variables
are loaded from a local ``.env`` using ``python-dotenv`` before delegating to
command logic. Business logic lives in ``inventory_ledger.sync`` and
``inventory_ledger.catalog``.
"""

from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv

from .config import Settings, load_settings
from .errors import LedgerError
from .logging_setup import configure_logging


# ---- Small module-level helpers used by CLI commands -------------------------


def _settings_or_exit() -> Settings:
    try:
        return load_settings()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        raise typer.Exit(1) from e


def _build_catalog(settings: Settings):
    from .catalog import CatalogStore

    return CatalogStore(database_url=settings.database_url, ttl_seconds=settings.catalog_ttl_seconds)


def _build_provider(settings: Settings):
    from .sheets import GoogleSheetsLedger

    return GoogleSheetsLedger.from_settings(settings)


def _build_synchronizer(settings: Settings):
    """Wire the production synchronizer (deferred imports keep startup fast)."""

    from .sync import Synchronizer

    return Synchronizer(
        settings=settings,
        catalog=_build_catalog(settings),
        provider=_build_provider(settings),
    )


def _parse_date(raw: str | None) -> date | None:
    if raw is None:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        print(f"Error: --date must be YYYY-MM-DD, got {raw!r}", file=sys.stderr)
        raise typer.Exit(1) from e


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        print(f"Error: File not found: {path}", file=sys.stderr)
        raise typer.Exit(1) from e
    except json.JSONDecodeError as e:
        print(f"Error: Failed to parse JSON in {path}: {e}", file=sys.stderr)
        raise typer.Exit(1) from e


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Maintain per-branch rolling inventory ledgers in Google Sheets. "
        "Loads configuration from a local .env before running."
    ),
)


@app.command("serve")
def serve_cmd(
    host: str = typer.Option("127.0.0.1", help="Interface to bind."),
    port: int = typer.Option(5000, help="Port to listen on."),
) -> None:
    """Run the HTTP gateway with uvicorn."""

    import uvicorn

    from .api import create_app

    settings = _settings_or_exit()
    # log_config=None keeps the handler configure_logging() installed.
    uvicorn.run(create_app(settings=settings), host=host, port=port, log_config=None)


@app.command("sync")
def sync_cmd(
    branch: Annotated[str, typer.Option(help="Branch whose ledger to update.")],
    data_path: Annotated[
        Path,
        typer.Option(
            "--data-path",
            help='JSON file: {"<item>": {"quantity": "5", "category": "Dairy"}, ...}',
            dir_okay=False,
        ),
    ],
    on_date: Annotated[
        str | None, typer.Option("--date", help="Override today's date (YYYY-MM-DD).")
    ] = None,
) -> None:
    """Merge a day's counts into a branch ledger."""

    settings = _settings_or_exit()
    data = _read_json(data_path)
    today = _parse_date(on_date)
    try:
        outcome = _build_synchronizer(settings).synchronize(branch, data, today=today)
    except LedgerError as e:
        print(f"Error: synchronization failed: {e}", file=sys.stderr)
        raise typer.Exit(1) from e

    s = outcome.summary
    print(
        f"{outcome.branch}: {outcome.rows_written} rows written for {outcome.today.isoformat()} "
        f"(new={s.items_new} updated={s.items_updated} preserved={s.items_preserved})"
    )
    for name in s.items_unmatched:
        print(f"Warning: '{name}' is not in the catalog; ignored", file=sys.stderr)
    for name in s.items_duplicate:
        print(
            f"Warning: '{name}' repeats another entry for the same item; the later entry was used",
            file=sys.stderr,
        )


@app.command("provision")
def provision_cmd(
    branch: Annotated[str, typer.Option(help="Branch whose sheet to create/reshape.")],
) -> None:
    """Create a branch sheet if missing and rewrite it in canonical shape."""

    settings = _settings_or_exit()
    try:
        outcome = _build_synchronizer(settings).provision(branch)
    except LedgerError as e:
        print(f"Error: provisioning failed: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    state = "created" if outcome.created_sheet else "updated"
    print(f"{outcome.branch}: sheet '{outcome.sheet_name}' {state} ({outcome.rows_written} rows)")


@app.command("last-submission")
def last_submission_cmd(
    branch: Annotated[str, typer.Option(help="Branch to inspect.")],
) -> None:
    """Print the most recent date with recorded counts for a branch."""

    settings = _settings_or_exit()
    try:
        last = _build_synchronizer(settings).last_submission(branch)
    except LedgerError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    print(last.isoformat() if last else "never")


@app.command("catalog-list")
def catalog_list_cmd() -> None:
    """Print the catalog in ledger row order."""

    settings = _settings_or_exit()
    try:
        catalog = _build_catalog(settings).snapshot()
    except LedgerError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    for category in catalog:
        print(category.name)
        for item in category.items:
            print(f"  {item.name}\t{item.unit}")


@app.command("catalog-import")
def catalog_import_cmd(
    file: Annotated[Path, typer.Option("--file", help="Catalog JSON file.", dir_okay=False)],
    replace: bool = typer.Option(
        False, help="Delete the existing catalog first instead of merging into it."
    ),
) -> None:
    """Merge (or with --replace, reseed) the catalog from a JSON file."""

    from .ingest.seed_catalog import load_catalog_file, reseed_catalog

    settings = _settings_or_exit()
    try:
        if replace:
            count = reseed_catalog(database_url=settings.database_url, file=file)
        else:
            count = len(_build_catalog(settings).bulk_import(load_catalog_file(file)))
    except FileNotFoundError as e:
        print(f"Error: File not found: {file}", file=sys.stderr)
        raise typer.Exit(1) from e
    except (ValueError, RuntimeError, LedgerError) as e:
        print(f"Error: catalog import failed: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    print(f"Catalog now has {count} categories")
    # Gateways in other processes only drop their cached catalog on expiry.
    print(
        f"Running gateways pick up the change within {settings.catalog_ttl_seconds:g}s "
        "(INVENTORY_CATALOG_TTL_SECONDS)"
    )


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging once.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


def main() -> None:  # pragma: no cover - console script entry
    app()


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m inventory_ledger.cli`
    app()
