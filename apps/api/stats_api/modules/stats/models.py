from __future__ import annotations

from typing import Optional

from sqlalchemy import Index, UniqueConstraint
from sqlmodel import SQLModel, Field


# refreshed on every stats save; never deleted
class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    username: str = Field(unique=True)

    created_at: str
    last_active: str


# at most one row per (user_id, character_id); user_id is not an enforced FK
class CharacterStatSnapshot(SQLModel, table=True):
    __tablename__ = "user_character_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "character_id", name="uq_user_character_stats_user_character"),
        Index("ix_user_character_stats_user_id", "user_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str
    username: str
    character_id: str
    character_name: str

    hp: Optional[int] = Field(default=None)
    attack: Optional[int] = Field(default=None)
    defense: Optional[int] = Field(default=None)
    dmg_bonus: Optional[float] = Field(default=None)
    crit_rate: Optional[float] = Field(default=None)
    crit_damage: Optional[float] = Field(default=None)

    created_at: str
    updated_at: str


STAT_FIELDS = ("hp", "attack", "defense", "dmg_bonus", "crit_rate", "crit_damage")
