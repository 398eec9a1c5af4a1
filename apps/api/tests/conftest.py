from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tradequote.config import get_settings
from tradequote.db import Base, get_engine
from tradequote.main import app


@pytest.fixture(autouse=True)
def reset_api_caches() -> Iterator[None]:
    get_settings.cache_clear()
    get_engine.cache_clear()
    app.state.pipeline_controller = None
    yield
    app.dependency_overrides.clear()
    app.state.pipeline_controller = None
    get_settings.cache_clear()
    get_engine.cache_clear()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[TestClient]:
    sqlite_db_path = tmp_path / "api-tests.db"
    monkeypatch.setenv("API_DATABASE_URL", f"sqlite+pysqlite:///{sqlite_db_path}")
    monkeypatch.setenv("API_DB_ECHO", "false")
    monkeypatch.setenv("JOB_STORE_BACKEND", "sql")
    monkeypatch.delenv("PIPELINE_UPDATE_TIMEOUT_SECONDS", raising=False)

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    engine.dispose()
