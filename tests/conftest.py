"""Shared fixtures for the company directory import tests."""

import json
import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

# main.py builds the module-level engine on import; keep it off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.base import Base
from models.company import Company, IndustryClassification  # noqa: F401
from services.houjin_csv_source import COLUMN_COUNT
from services.import_settings import ImportSettings

LOOKUP_URL = "https://lookup.example/zenkoku-houjin/"


@pytest.fixture
def session_factory(tmp_path: Path) -> Generator[Callable[[], Session], None, None]:
    """File-backed SQLite so threadpool workers each get their own connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'directory.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory: Callable[[], Session]) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


def csv_line(houjin_bangou: str, name: str, width: int = COLUMN_COUNT) -> str:
    fields = [f"x{i}" for i in range(width)]
    fields[1] = houjin_bangou
    fields[6] = name
    return ",".join(fields)


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[[list[str]], Path]:
    """Factory fixture writing raw CSV lines to a file under tmp_path."""

    def _write(lines: list[str]) -> Path:
        path = tmp_path / "houjin.csv"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def settings(tmp_path: Path) -> ImportSettings:
    return ImportSettings(
        csv_path=str(tmp_path / "houjin.csv"),
        lookup_url=LOOKUP_URL,
        secret_key="test-secret",
        concurrency=5,
    )


def lookup_payload(houjin_bangou: str, **overrides: Any) -> dict[str, Any]:
    payload = {
        "url": f"http://{houjin_bangou}.example",
        "houjin_bangou": houjin_bangou,
        "prefecture": "東京都",
        "address": "千代田区丸の内1-1-1",
        "incorporated_at": "2020-01-15",
        "listing_status": "非上場",
        "capital": "10000000",
        "revenue": "500000000",
        "employee_number": "120",
        "industry": "Tech",
        "tel": "03-0000-0000",
    }
    payload.update(overrides)
    return payload


class LookupStub:
    """Records lookup requests and answers from a per-identifier table.

    A dict answer is returned as JSON, an int as an empty response with that
    status, and an exception instance is raised as a transport failure.
    """

    def __init__(self, answers: dict[str, Any]):
        self.answers = answers
        self.requests: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        answer = self.answers.get(body["houjin_bangou"], 404)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, int):
            return httpx.Response(answer)
        return httpx.Response(200, json=answer)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def identifiers(self) -> list[str]:
        return [body["houjin_bangou"] for body in self.requests]


@pytest.fixture
def lookup_stub() -> Callable[[dict[str, Any]], LookupStub]:
    return LookupStub
