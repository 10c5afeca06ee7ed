# src/tasksmart/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKSMART"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    device_db_path: Path
    accounts_db_path: Path
    usage_db_path: Path

    # ---- Account store ----
    server_mode: str  # "local" (in-process repository) | "http"
    api_base_url: str
    server_timeout_seconds: float

    # ---- LLM / OpenRouter ----
    ai_enabled: bool
    openrouter_api_key: str | None
    openrouter_base_url: str
    llm_models: list[str]
    extra_headers: dict[str, str]
    ai_timeout_seconds: float
    llm_connect_timeout_seconds: float
    llm_read_timeout_seconds: float

    # ---- Ingestion ----
    title_max_length: int
    summary_max_length: int

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "tasksmart")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasksmart"))
        device_db_path = _env_path(_k("DEVICE_DB_PATH"), data_dir / "device.sqlite3")
        accounts_db_path = _env_path(_k("ACCOUNTS_DB_PATH"), data_dir / "accounts.sqlite3")
        usage_db_path = _env_path(_k("USAGE_DB_PATH"), data_dir / "ai_usage.sqlite3")

        server_mode = _env(_k("SERVER_MODE"), "local").strip().lower()
        if server_mode not in {"local", "http"}:
            server_mode = "local"
        api_base_url = _env(_k("API_BASE_URL"), "http://localhost:5000")
        server_timeout_seconds = _env_float(_k("SERVER_TIMEOUT_SECONDS"), 10.0)

        ai_enabled = _env_bool(_k("AI_ENABLED"), True)
        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        extra_headers = {
            "HTTP-Referer": _env(_k("HTTP_REFERER"), "https://example.com"),
            "X-Title": _env(_k("APP_TITLE"), app_name),
        }

        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "mistralai/mistral-7b-instruct",
                "qwen/qwen-2.5-72b-instruct:free",
            ],
        )

        # bounded wait for tier 1 before falling back to heuristics
        ai_timeout_seconds = _env_float(_k("AI_TIMEOUT_SECONDS"), 8.0)
        llm_connect_timeout_seconds = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        llm_read_timeout_seconds = max(
            _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 20.0),
            llm_connect_timeout_seconds,
        )

        title_max_length = max(8, _env_int(_k("TITLE_MAX_LENGTH"), 100))
        summary_max_length = max(8, _env_int(_k("SUMMARY_MAX_LENGTH"), 100))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            device_db_path=device_db_path,
            accounts_db_path=accounts_db_path,
            usage_db_path=usage_db_path,
            server_mode=server_mode,
            api_base_url=api_base_url,
            server_timeout_seconds=server_timeout_seconds,
            ai_enabled=ai_enabled,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
            ai_timeout_seconds=ai_timeout_seconds,
            llm_connect_timeout_seconds=llm_connect_timeout_seconds,
            llm_read_timeout_seconds=llm_read_timeout_seconds,
            title_max_length=title_max_length,
            summary_max_length=summary_max_length,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
