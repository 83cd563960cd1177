from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from stats_api.core.logs import emit

from .models import STAT_FIELDS
from .store import StatsStore


def stat_to_wire(v: Any) -> str:
    """
    Numeric stat -> string as the client expects it.

    None -> "", 20.0 -> "20", 35.5 -> "35.5", 12000 -> "12000".
    """
    if v is None:
        return ""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def stats_to_wire(row: Mapping[str, Any]) -> Dict[str, str]:
    return {k: stat_to_wire(row.get(k)) for k in STAT_FIELDS}


def save_user_stats(
    store: StatsStore,
    *,
    user_id: str,
    username: str,
    character_id: str,
    character_name: str,
    stats: Optional[Mapping[str, Any]],
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    # user row and stats row commit together or not at all
    with store.transaction() as conn:
        store.save_user(user_id, username, conn=conn)
        result = store.save_stats(user_id, username, character_id, character_name, stats, conn=conn)

    emit(
        "info",
        "stats.save",
        f"saved stats for {username} ({user_id}), character {character_name} ({character_id})",
        request_id,
        __name__,
        row_id=result["id"],
        created=result["created"],
    )
    return result
