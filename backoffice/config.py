"""Application configuration utilities."""
from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AppConfig(BaseModel):
    """Strongly typed configuration loaded from config.json and the environment."""

    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    request_timeout_seconds: float = Field(default=15.0, gt=0)
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )
    log_level: str = Field(default="INFO")
    session_idle_seconds: float = Field(default=4 * 60 * 60, gt=0)

    def supabase_credentials(self) -> tuple[str, str]:
        """Return the base URL and anon key, raising if either is missing."""

        if not self.supabase_url or not self.supabase_anon_key:
            raise RuntimeError("Missing SUPABASE_URL/SUPABASE_ANON_KEY for API access.")
        return self.supabase_url.rstrip("/"), self.supabase_anon_key


def _config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "config.json"


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    url = os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL")
    if url:
        overrides["supabase_url"] = url
    anon_key = os.getenv("SUPABASE_ANON_KEY") or os.getenv("NEXT_PUBLIC_SUPABASE_ANON_KEY")
    if anon_key:
        overrides["supabase_anon_key"] = anon_key
    service_role = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if service_role:
        overrides["supabase_service_role_key"] = service_role
    timeout = os.getenv("BACKOFFICE_REQUEST_TIMEOUT")
    if timeout:
        overrides["request_timeout_seconds"] = timeout
    origins = os.getenv("BACKOFFICE_CORS_ORIGINS")
    if origins:
        overrides["cors_origins"] = [origin.strip() for origin in origins.split(",") if origin.strip()]
    log_level = os.getenv("BACKOFFICE_LOG_LEVEL")
    if log_level:
        overrides["log_level"] = log_level.upper()
    idle = os.getenv("BACKOFFICE_SESSION_IDLE_SECONDS")
    if idle:
        overrides["session_idle_seconds"] = idle
    return overrides


def load_config(config_file: Optional[Path] = None) -> AppConfig:
    """Load configuration from config.json (optional), then apply env overrides."""

    config_file = config_file or _config_path()
    contents: Dict[str, Any] = {}
    if config_file.exists():
        contents = json.loads(config_file.read_text())
    contents.update(_env_overrides())
    return AppConfig(**contents)


@lru_cache
def get_config() -> AppConfig:
    return load_config()
