# ruff: noqa: I001
from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from inventory_ledger.api import create_app
from inventory_ledger.catalog import CatalogStore
from inventory_ledger.config import BranchConfig, Settings
from inventory_ledger.sheets import LedgerKey
from inventory_ledger.sync import Synchronizer
from tests.helpers.db import bootstrap_sqlite_db, seed_catalog
from tests.helpers.sheets_stub import InMemoryLedger

SHEET_ID = "sheet-xyz"
TODAY = date(2024, 1, 3)


@pytest.fixture()
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture()
def client(tmp_path: Path, ledger: InMemoryLedger) -> TestClient:
    url = bootstrap_sqlite_db(tmp_path / "api.db")
    seed_catalog(database_url=url)
    settings = Settings(
        database_url=url,
        branches={"Delhi": BranchConfig(name="Delhi", spreadsheet_id=SHEET_ID, sheet_name="Delhi")},
        window_days=3,
    )
    catalog = CatalogStore(database_url=url)
    synchronizer = Synchronizer(
        settings=settings, catalog=catalog, provider=ledger, clock=lambda: TODAY
    )
    app = create_app(
        settings=settings, catalog=catalog, provider=ledger, synchronizer=synchronizer
    )
    return TestClient(app)


# ---- Submissions -------------------------------------------------------------


def test_update_sheets_writes_todays_counts(client: TestClient, ledger: InMemoryLedger):
    resp = client.post(
        "/update-sheets",
        json={"branch": "Delhi", "data": {"Milk": {"quantity": "5", "category": "Dairy"}}},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Google Sheets updated for Delhi"
    assert body["details"]["itemsNew"] == 1
    grid = ledger.grid(LedgerKey(spreadsheet_id=SHEET_ID, sheet_name="Delhi"))
    assert grid[1] == ["Dairy", "Milk", "Litre", "", "", "5"]


def test_update_sheets_accepts_numeric_quantities(client: TestClient):
    resp = client.post("/update-sheets", json={"branch": "Delhi", "data": {"Eggs": {"quantity": 30}}})
    assert resp.status_code == 200


@pytest.mark.parametrize(
    "payload",
    [
        {"data": {}},
        {"branch": "", "data": {}},
        {"branch": "Delhi"},
        {"branch": "Delhi", "data": {"Milk": {"quantity": "-3"}}},
        {"branch": "Delhi", "data": ["Milk"]},
    ],
)
def test_update_sheets_rejects_bad_payloads(
    client: TestClient, ledger: InMemoryLedger, payload: dict
):
    resp = client.post("/update-sheets", json=payload)
    assert resp.status_code == 400
    assert "error" in resp.json()
    assert ledger.calls == []


def test_update_sheets_unknown_branch_is_400(client: TestClient, ledger: InMemoryLedger):
    resp = client.post("/update-sheets", json={"branch": "Mumbai", "data": {}})
    assert resp.status_code == 400
    assert "Mumbai" in resp.json()["error"]
    assert ledger.calls == []


def test_update_sheets_provider_failure_is_502(client: TestClient, ledger: InMemoryLedger):
    ledger.fail_on.add("ensure")
    resp = client.post("/update-sheets", json={"branch": "Delhi", "data": {}})
    assert resp.status_code == 502
    assert ledger.writes() == []


def test_last_submission_round_trip(client: TestClient):
    assert client.get("/last-submission/Delhi").json() == {"branch": "Delhi", "date": None}
    client.post("/update-sheets", json={"branch": "Delhi", "data": {"Milk": {"quantity": "1"}}})
    assert client.get("/last-submission/Delhi").json()["date"] == "2024-01-03"


def test_health_lists_branches(client: TestClient):
    assert client.get("/health").json() == {
        "status": "ok",
        "branches": ["Delhi"],
        "windowDays": 3,
    }


# ---- Catalog -----------------------------------------------------------------


def test_list_categories(client: TestClient):
    assert client.get("/api/categories").json() == [
        {
            "name": "Dairy",
            "items": [{"name": "Milk", "unit": "Litre"}, {"name": "Curd", "unit": "Kg"}],
        },
        {"name": "Poultry", "items": [{"name": "Eggs", "unit": "Tray"}]},
    ]


def test_add_category_then_merge(client: TestClient):
    resp = client.post("/api/categories", json={"name": "Fruit", "items": [{"name": "Apple", "unit": "Kg"}]})
    assert resp.status_code == 201
    assert resp.json()["created"] is True

    resp = client.post("/api/categories", json={"name": "fruit", "items": [{"name": "Kiwi", "unit": "Box"}]})
    assert resp.status_code == 200
    assert [i["name"] for i in resp.json()["category"]["items"]] == ["Apple", "Kiwi"]


def test_catalog_change_is_visible_to_next_sync(client: TestClient, ledger: InMemoryLedger):
    client.post("/update-sheets", json={"branch": "Delhi", "data": {}})
    client.post("/api/categories", json={"name": "Fruit", "items": [{"name": "Apple", "unit": "Kg"}]})
    client.post("/update-sheets", json={"branch": "Delhi", "data": {"Apple": {"quantity": "2"}}})

    grid = ledger.grid(LedgerKey(spreadsheet_id=SHEET_ID, sheet_name="Delhi"))
    assert grid[-1] == ["Fruit", "Apple", "Kg", "", "", "2"]


def test_add_category_invalid_name_is_400(client: TestClient):
    resp = client.post("/api/categories", json={"name": "<script>"})
    assert resp.status_code == 400


def test_bulk_import(client: TestClient):
    resp = client.post(
        "/api/categories/bulk",
        json=[{"name": "Bakery", "items": [{"name": "Brown Bread Jumbo", "unit": "pc"}]}],
    )
    assert resp.status_code == 200
    assert [c["name"] for c in resp.json()] == ["Dairy", "Poultry", "Bakery"]


def test_delete_category(client: TestClient):
    assert client.delete("/api/categories/Poultry").status_code == 200
    assert client.delete("/api/categories/Poultry").status_code == 404
    assert [c["name"] for c in client.get("/api/categories").json()] == ["Dairy"]


def test_delete_items(client: TestClient):
    resp = client.post("/api/categories/Dairy/delete-items", json={"itemsToDelete": ["Curd"]})
    assert resp.status_code == 200
    assert resp.json()["category"]["items"] == [{"name": "Milk", "unit": "Litre"}]

    missing = client.post("/api/categories/Bakery/delete-items", json={"itemsToDelete": ["Bun"]})
    assert missing.status_code == 404

    empty = client.post("/api/categories/Dairy/delete-items", json={"itemsToDelete": []})
    assert empty.status_code == 400
