"""
DB utilities (sqlite default).

Defaults:
- DATABASE_URL: sqlite:///./data/wuwa_stats.db (relative to repo root)
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

DEFAULT_DATABASE_URL = "sqlite:///./data/wuwa_stats.db"


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def _repo_root() -> Path:
    # apps/api/stats_api/core/db.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


def resolve_sqlite_path(database_url: str) -> Optional[Path]:
    if not database_url.startswith("sqlite:///"):
        return None
    p = database_url[len("sqlite:///") :]

    # in-memory
    if p in ("", ":memory:"):
        return None

    # absolute unix
    if p.startswith("/"):
        return Path(p)

    # absolute windows drive, both C:/ and C:\ forms
    if len(p) >= 3 and p[1] == ":" and (p[2] == "/" or p[2] == "\\"):
        return Path(p)

    # relative -> repo root
    return (_repo_root() / p).resolve()


def build_engine(database_url: str) -> Engine:
    url = database_url
    connect_args = {}
    if url.startswith("sqlite:"):
        connect_args = {"check_same_thread": False}

    sp = resolve_sqlite_path(url)
    if sp is not None:
        sp.parent.mkdir(parents=True, exist_ok=True)
        url = "sqlite:///" + sp.as_posix()

    return create_engine(url, future=True, connect_args=connect_args)


def db_health(engine: Engine) -> Dict[str, Any]:
    url = engine.url.render_as_string(hide_password=True)
    kind = "sqlite" if url.startswith("sqlite") else "unknown"
    path = engine.url.database or url

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ok", "kind": kind, "path": path}
    except Exception as e:
        return {"status": "error", "kind": kind, "path": path, "error": str(e)}
