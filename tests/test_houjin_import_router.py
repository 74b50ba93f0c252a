"""Tests for the HTTP trigger of the zenkoku houjin import."""

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from conftest import csv_line, lookup_payload
from db.deps import get_session_factory
from main import app
from models.company import Company
from routers.houjin_import import get_lookup_transport
from services.import_settings import get_import_settings


@pytest.fixture
def client_for(session_factory):
    """Factory building a TestClient wired to the test database and lookup stub."""

    def _client(settings, stub) -> TestClient:
        app.dependency_overrides[get_import_settings] = lambda: settings
        app.dependency_overrides[get_session_factory] = lambda: session_factory
        app.dependency_overrides[get_lookup_transport] = lambda: stub.transport
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


def test_health() -> None:
    assert TestClient(app).get("/health").json() == {"status": "ok"}


def test_trigger_answers_in_progress_and_runs_in_background(
    settings, db, write_csv, lookup_stub, client_for
) -> None:
    write_csv([csv_line("1234567890123", "Acme")])
    stub = lookup_stub({"1234567890123": lookup_payload("1234567890123")})

    response = client_for(settings, stub).get("/import/zenkoku-houjin")

    assert response.status_code == 200
    assert response.json() == {"body": "in progress", "report": None}
    # TestClient runs background tasks before returning
    assert db.query(Company).one().name == "Acme"


def test_blocking_mode_returns_report(settings, db, write_csv, lookup_stub, client_for) -> None:
    write_csv([csv_line("1234567890123", "Acme"), csv_line("9999999999999", "Gone")])
    stub = lookup_stub({"1234567890123": lookup_payload("1234567890123"), "9999999999999": 500})

    response = client_for(replace(settings, wait_for_completion=True), stub).get("/import/zenkoku-houjin")

    payload = response.json()
    assert response.status_code == 200
    assert payload["body"].startswith("completed in ")
    assert payload["report"]["created"] == 1
    assert payload["report"]["failed"] == 1
    assert payload["report"]["failures"][0]["houjin_bangou"] == "9999999999999"


def test_missing_csv_fails_before_any_lookup(settings, lookup_stub, client_for) -> None:
    stub = lookup_stub({})

    response = client_for(settings, stub).get("/import/zenkoku-houjin")

    assert response.status_code == 500
    assert "CSV source unavailable" in response.json()["detail"]
    assert stub.requests == []
