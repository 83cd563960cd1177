"""
Persistence store for users and per-character stat snapshots (sqlite).

One StatsStore owns the process-wide engine. Every operation runs as a
parameterized statement inside a transaction; pass ``conn`` to join an
enclosing ``transaction()`` instead of opening a new one.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import SQLModel

from stats_api.core.db import build_engine, db_health
from stats_api.core.logs import emit, now_iso

from .models import STAT_FIELDS, CharacterStatSnapshot, User


class StoreError(Exception):
    """Underlying database failure."""


class ConflictError(StoreError):
    """A uniqueness constraint rejected the write."""


_SELECT_STATS_SQL = """
SELECT * FROM user_character_stats
WHERE user_id=:user_id AND character_id=:character_id;
"""

_UPSERT_STATS_SQL = """
INSERT INTO user_character_stats
  (user_id, username, character_id, character_name,
   hp, attack, defense, dmg_bonus, crit_rate, crit_damage,
   created_at, updated_at)
VALUES
  (:user_id, :username, :character_id, :character_name,
   :hp, :attack, :defense, :dmg_bonus, :crit_rate, :crit_damage,
   :now, :now)
ON CONFLICT(user_id, character_id) DO UPDATE SET
  username=excluded.username,
  character_name=excluded.character_name,
  hp=excluded.hp,
  attack=excluded.attack,
  defense=excluded.defense,
  dmg_bonus=excluded.dmg_bonus,
  crit_rate=excluded.crit_rate,
  crit_damage=excluded.crit_damage,
  updated_at=excluded.updated_at
RETURNING id, created_at = updated_at AS created;
"""

_DELETE_STATS_SQL = """
DELETE FROM user_character_stats
WHERE user_id=:user_id AND character_id=:character_id;
"""

_LIST_CHARACTERS_SQL = """
SELECT character_id, character_name, hp, attack, defense, dmg_bonus, crit_rate, crit_damage, updated_at
FROM user_character_stats
WHERE user_id=:user_id
ORDER BY character_name ASC;
"""

# created_at is only written on first insert
_UPSERT_USER_SQL = """
INSERT INTO users (id, username, created_at, last_active)
VALUES (:id, :username, :now, :now)
ON CONFLICT(id) DO UPDATE SET
  username=excluded.username,
  last_active=excluded.last_active;
"""


def _stat_values(stats: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    # missing keys persist as NULL; 0 is a real value
    stats = stats or {}
    return {k: stats.get(k) for k in STAT_FIELDS}


class StatsStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "StatsStore":
        return cls(build_engine(database_url))

    def close(self) -> None:
        self.engine.dispose()

    def health(self) -> Dict[str, Any]:
        return db_health(self.engine)

    def init_schema(self) -> None:
        tables = [User.__table__, CharacterStatSnapshot.__table__]
        try:
            SQLModel.metadata.create_all(self.engine, tables=tables, checkfirst=True)
        except SQLAlchemyError as e:
            emit("error", "store.schema.failed", str(e), None, __name__)
            raise StoreError(f"schema initialization failed: {e}") from e
        emit("info", "store.schema.ready", "users, user_character_stats ready", None, __name__)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except (SQLAlchemyError, OverflowError) as e:
            # OverflowError: int outside sqlite INTEGER range, raised by the driver while binding
            emit("error", "store.error", str(e), None, __name__, type=type(e).__name__)
            raise StoreError(str(getattr(e, "orig", None) or e)) from e

    @contextmanager
    def _scope(self, conn: Optional[Connection]) -> Iterator[Connection]:
        if conn is not None:
            yield conn
            return
        with self.transaction() as c:
            yield c

    # -------------------------
    # Character stats
    # -------------------------
    def get_stats(self, user_id: str, character_id: str, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        with self._scope(conn) as c:
            row = c.execute(
                text(_SELECT_STATS_SQL),
                {"user_id": user_id, "character_id": character_id},
            ).mappings().first()
            return dict(row) if row is not None else None

    def save_stats(
        self,
        user_id: str,
        username: str,
        character_id: str,
        character_name: str,
        stats: Optional[Mapping[str, Any]],
        conn: Optional[Connection] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "user_id": user_id,
            "username": username,
            "character_id": character_id,
            "character_name": character_name,
            "now": now_iso(),
        }
        params.update(_stat_values(stats))

        with self._scope(conn) as c:
            row = c.execute(text(_UPSERT_STATS_SQL), params).mappings().one()
            return {"id": int(row["id"]), "changes": 1, "created": bool(row["created"])}

    def delete_stats(self, user_id: str, character_id: str, conn: Optional[Connection] = None) -> Dict[str, int]:
        with self._scope(conn) as c:
            res = c.execute(
                text(_DELETE_STATS_SQL),
                {"user_id": user_id, "character_id": character_id},
            )
            return {"changes": int(res.rowcount)}

    def get_user_characters(self, user_id: str, conn: Optional[Connection] = None) -> List[Dict[str, Any]]:
        with self._scope(conn) as c:
            rows = c.execute(text(_LIST_CHARACTERS_SQL), {"user_id": user_id}).mappings().all()
            return [dict(r) for r in rows]

    # -------------------------
    # Users
    # -------------------------
    def save_user(self, user_id: str, username: str, conn: Optional[Connection] = None) -> Dict[str, str]:
        with self._scope(conn) as c:
            try:
                c.execute(text(_UPSERT_USER_SQL), {"id": user_id, "username": username, "now": now_iso()})
            except IntegrityError as e:
                raise ConflictError(f"username already taken: {username}") from e
            return {"id": user_id, "username": username}

    def get_user(self, user_id: str, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        with self._scope(conn) as c:
            row = c.execute(text("SELECT * FROM users WHERE id=:id;"), {"id": user_id}).mappings().first()
            return dict(row) if row is not None else None
