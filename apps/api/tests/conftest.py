"""
Shared fixtures: every test gets its own sqlite file under tmp_path.
"""
from pathlib import Path
from typing import Any, Dict, Generator

import pytest
from fastapi.testclient import TestClient

from stats_api.main import create_app
from stats_api.modules.stats.store import StatsStore


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{(tmp_path / 'wuwa_stats.db').as_posix()}"


@pytest.fixture
def store(db_url: str) -> Generator[StatsStore, None, None]:
    s = StatsStore.from_url(db_url)
    s.init_schema()
    yield s
    s.close()


# =============================================================================
# HTTP Fixtures
# =============================================================================

@pytest.fixture
def client(store: StatsStore) -> Generator[TestClient, None, None]:
    with TestClient(create_app(store=store)) as c:
        yield c


@pytest.fixture
def jinhsi_payload() -> Dict[str, Any]:
    return {
        "userId": "u1",
        "username": "Alice",
        "characterId": "c1",
        "characterName": "Jinhsi",
        "stats": {
            "hp": "12000",
            "attack": "2500",
            "defense": "800",
            "dmgBonus": "20",
            "critRate": "35",
            "critDamage": "150",
        },
    }
