from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Request

from stats_api.core.logs import emit, now_iso

from .schemas import (
    DeleteStatsOut,
    GetStatsOut,
    SaveStatsDataOut,
    SaveStatsIn,
    SaveStatsOut,
    StatsOut,
    UserCharactersOut,
)
from .service import save_user_stats, stats_to_wire
from .store import ConflictError, StatsStore, StoreError

router = APIRouter(prefix="/user-stats", tags=["user_stats"])


def get_store(request: Request) -> StatsStore:
    return request.app.state.store


def _rid(request: Request) -> Optional[str]:
    return getattr(getattr(request, "state", None), "request_id", None)


def _store_failure(message: str, e: StoreError) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"error": "store_error", "message": message, "details": {"reason": str(e)}},
    )


@router.get("/{user_id}/{character_id}", response_model=GetStatsOut)
def get_user_stats(
    request: Request,
    user_id: str = Path(...),
    character_id: str = Path(...),
    store: StatsStore = Depends(get_store),
) -> GetStatsOut:
    emit("info", "stats.get", f"user={user_id} character={character_id}", _rid(request), __name__)
    try:
        row = store.get_stats(user_id, character_id)
    except StoreError as e:
        raise _store_failure("Internal server error", e)

    if row is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": "No stats found for this user and character"},
        )
    return GetStatsOut(stats=StatsOut(**stats_to_wire(row)), last_updated=row.get("updated_at"))


@router.post("", response_model=SaveStatsOut)
def post_user_stats(
    body: SaveStatsIn,
    request: Request,
    store: StatsStore = Depends(get_store),
) -> SaveStatsOut:
    try:
        save_user_stats(
            store,
            user_id=body.user_id,
            username=body.username,
            character_id=body.character_id,
            character_name=body.character_name,
            stats=body.stats.model_dump(),
            request_id=_rid(request),
        )
    except ConflictError as e:
        raise HTTPException(
            status_code=409,
            detail={"error": "conflict", "message": "Username is already used by another user", "details": {"reason": str(e)}},
        )
    except StoreError as e:
        raise _store_failure("Failed to save stats", e)

    return SaveStatsOut(
        data=SaveStatsDataOut(user_id=body.user_id, character_id=body.character_id, timestamp=now_iso()),
    )


@router.delete("/{user_id}/{character_id}", response_model=DeleteStatsOut)
def delete_user_stats(
    request: Request,
    user_id: str = Path(...),
    character_id: str = Path(...),
    store: StatsStore = Depends(get_store),
) -> DeleteStatsOut:
    emit("info", "stats.delete", f"user={user_id} character={character_id}", _rid(request), __name__)
    try:
        result = store.delete_stats(user_id, character_id)
    except StoreError as e:
        raise _store_failure("Failed to delete stats", e)

    if result["changes"] < 1:
        raise HTTPException(status_code=404, detail={"error": "not_found", "message": "No stats found to delete"})
    return DeleteStatsOut()


@router.get("/{user_id}", response_model=UserCharactersOut)
def list_user_characters(
    request: Request,
    user_id: str = Path(...),
    store: StatsStore = Depends(get_store),
) -> UserCharactersOut:
    emit("info", "stats.list", f"user={user_id}", _rid(request), __name__)
    try:
        rows = store.get_user_characters(user_id)
    except StoreError as e:
        raise _store_failure("Failed to get user characters", e)
    return UserCharactersOut(characters=rows, count=len(rows))
