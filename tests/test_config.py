from __future__ import annotations

import json
from pathlib import Path

import pytest

from backoffice.config import AppConfig, load_config

ENV_KEYS = [
    "SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "NEXT_PUBLIC_SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "BACKOFFICE_REQUEST_TIMEOUT",
    "BACKOFFICE_CORS_ORIGINS",
    "BACKOFFICE_LOG_LEVEL",
    "BACKOFFICE_SESSION_IDLE_SECONDS",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_config_file_then_env_overrides(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    config_file = tmp_path / "config.json"
    config_file.write_text(
        json.dumps(
            {
                "supabase_url": "http://file.local/",
                "supabase_anon_key": "file-key",
                "request_timeout_seconds": 5,
            }
        )
    )
    clean_env.setenv("NEXT_PUBLIC_SUPABASE_URL", "http://env.local/")
    clean_env.setenv("BACKOFFICE_CORS_ORIGINS", "http://a.test, http://b.test")
    clean_env.setenv("BACKOFFICE_LOG_LEVEL", "debug")

    config = load_config(config_file)

    assert config.supabase_credentials() == ("http://env.local", "file-key")
    assert config.request_timeout_seconds == 5
    assert config.cors_origins == ["http://a.test", "http://b.test"]
    assert config.log_level == "DEBUG"


def test_missing_file_uses_defaults(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    config = load_config(tmp_path / "absent.json")

    assert config.request_timeout_seconds == 15.0
    assert config.log_level == "INFO"
    with pytest.raises(RuntimeError):
        config.supabase_credentials()


def test_timeout_must_be_positive() -> None:
    with pytest.raises(ValueError):
        AppConfig(request_timeout_seconds=0)


def test_session_idle_seconds_from_env(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    assert load_config(tmp_path / "absent.json").session_idle_seconds == 4 * 60 * 60

    clean_env.setenv("BACKOFFICE_SESSION_IDLE_SECONDS", "90")

    assert load_config(tmp_path / "absent.json").session_idle_seconds == 90
