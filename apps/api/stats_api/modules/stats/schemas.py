from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# wire names are camelCase; columns are snake_case

SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1


class StatsIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # sqlite INTEGER is 64-bit signed; REAL must be finite
    hp: Optional[int] = Field(default=None, ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)
    attack: Optional[int] = Field(default=None, ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)
    defense: Optional[int] = Field(default=None, ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)
    dmg_bonus: Optional[float] = Field(default=None, alias="dmgBonus", allow_inf_nan=False)
    crit_rate: Optional[float] = Field(default=None, alias="critRate", allow_inf_nan=False)
    crit_damage: Optional[float] = Field(default=None, alias="critDamage", allow_inf_nan=False)

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_absent(cls, v: Any) -> Any:
        # the client sends "" for fields the user left empty
        if isinstance(v, str):
            v = v.strip()
            if v == "":
                return None
        return v


class SaveStatsIn(BaseModel):
    user_id: str = Field(alias="userId", min_length=1)
    username: str = Field(min_length=1)
    character_id: str = Field(alias="characterId", min_length=1)
    character_name: str = Field(alias="characterName", min_length=1)
    stats: StatsIn


class StatsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hp: str = ""
    attack: str = ""
    defense: str = ""
    dmg_bonus: str = Field(default="", alias="dmgBonus")
    crit_rate: str = Field(default="", alias="critRate")
    crit_damage: str = Field(default="", alias="critDamage")


class GetStatsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    stats: StatsOut
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")


class SaveStatsDataOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    character_id: str = Field(alias="characterId")
    timestamp: str


class SaveStatsOut(BaseModel):
    success: bool = True
    message: str = "Stats saved successfully"
    data: SaveStatsDataOut


class DeleteStatsOut(BaseModel):
    success: bool = True
    message: str = "Stats deleted successfully"


class CharacterSummaryOut(BaseModel):
    character_id: str
    character_name: str
    hp: Optional[int] = None
    attack: Optional[int] = None
    defense: Optional[int] = None
    dmg_bonus: Optional[float] = None
    crit_rate: Optional[float] = None
    crit_damage: Optional[float] = None
    updated_at: Optional[str] = None


class UserCharactersOut(BaseModel):
    success: bool = True
    characters: List[CharacterSummaryOut] = Field(default_factory=list)
    count: int = 0


class HealthOut(BaseModel):
    success: bool = True
    message: str = "Server is running"
    timestamp: str
    version: str
    db: Dict[str, Any] = Field(default_factory=dict)
