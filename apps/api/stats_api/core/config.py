"""
Environment configuration.

All values are read at call time so tests can override them with monkeypatch.
"""
from __future__ import annotations

import os

DEFAULT_FRONTEND_URL = "http://localhost:5173"  # Vite dev server


def get_app_version() -> str:
    return os.getenv("APP_VERSION", "1.0.0")


def get_app_env() -> str:
    return os.getenv("APP_ENV", "development")


def expose_error_details() -> bool:
    return get_app_env() == "development"


def get_frontend_url() -> str:
    return os.getenv("FRONTEND_URL", DEFAULT_FRONTEND_URL)


def get_host() -> str:
    return os.getenv("HOST", "127.0.0.1")


def get_port() -> int:
    raw = os.getenv("PORT", "3001")
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"PORT must be an integer, got {raw!r}") from e
