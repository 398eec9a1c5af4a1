import pytest

from tradequote.config import get_settings


def test_defaults_use_sql_store_without_update_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JOB_STORE_BACKEND", raising=False)
    monkeypatch.delenv("PIPELINE_UPDATE_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("QUOTE_VALID_DAYS", raising=False)

    settings = get_settings()

    assert settings.job_store_backend == "sql"
    assert settings.pipeline_update_timeout_seconds is None
    assert settings.quote_valid_days == 30


def test_rest_backend_and_timeout_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JOB_STORE_BACKEND", " REST ")
    monkeypatch.setenv("BACKEND_REST_URL", "https://backend.example.com/rest/v1")
    monkeypatch.setenv("PIPELINE_UPDATE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("QUOTE_VALID_DAYS", "0")

    settings = get_settings()

    assert settings.job_store_backend == "rest"
    assert settings.backend_rest_url == "https://backend.example.com/rest/v1"
    assert settings.pipeline_update_timeout_seconds == 2.5
    assert settings.quote_valid_days == 1


def test_unknown_store_backend_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JOB_STORE_BACKEND", "firebase")

    with pytest.raises(ValueError, match="JOB_STORE_BACKEND"):
        get_settings()
