from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from .. import places
from ..community import browse_groups, import_local_groups
from ..db import (
    add_favorite,
    create_group,
    create_group_message,
    get_group,
    is_favorited,
    join_group,
    leave_group,
    list_favorite_groups,
    list_group_messages,
    list_user_groups,
    remove_favorite,
)
from ..schemas import (
    CreateGroupMessagePayload,
    CreateGroupPayload,
    Favorite,
    FavoritePayload,
    Group,
    GroupMembershipPayload,
    GroupMessage,
    ImportGroupsPayload,
)

router = APIRouter(prefix="/api/community", tags=["community"])


@router.get("/groups", response_model=List[Group])
async def list_groups_endpoint(
    user_id: Optional[int] = Query(None, alias="userId"),
    zip_code: Optional[str] = Query(None, alias="zipCode"),
) -> List[Group]:
    return browse_groups(user_id=user_id, zip_code=zip_code)


@router.get("/my-groups/{user_id}", response_model=List[Group])
async def my_groups_endpoint(user_id: int) -> List[Group]:
    return list_user_groups(user_id)


@router.post("/groups", response_model=Group)
async def create_group_endpoint(payload: CreateGroupPayload) -> Group:
    return create_group(payload.model_dump())


@router.post("/groups/import", response_model=List[Group])
async def import_groups_endpoint(payload: ImportGroupsPayload) -> List[Group]:
    if not places.is_configured():
        raise HTTPException(status_code=503, detail="Local resource search is not configured.")
    return await import_local_groups(payload.zip_code.strip())


@router.post("/groups/{group_id}/join")
async def join_group_endpoint(group_id: int, payload: GroupMembershipPayload) -> dict:
    joined = join_group(payload.user_id, group_id)
    return {"success": True, "joined": joined}


@router.post("/groups/{group_id}/leave")
async def leave_group_endpoint(group_id: int, payload: GroupMembershipPayload) -> dict:
    left = leave_group(payload.user_id, group_id)
    return {"success": True, "left": left}


@router.get("/messages/{group_id}", response_model=List[GroupMessage])
async def list_messages_endpoint(group_id: int) -> List[GroupMessage]:
    return list_group_messages(group_id)


@router.post("/messages", response_model=GroupMessage)
async def create_message_endpoint(payload: CreateGroupMessagePayload) -> GroupMessage:
    get_group(payload.group_id)
    return create_group_message(
        group_id=payload.group_id,
        user_id=payload.user_id,
        content=payload.content,
        reply_to=payload.reply_to,
    )


@router.post("/favorites", response_model=Favorite)
async def add_favorite_endpoint(payload: FavoritePayload) -> Favorite:
    get_group(payload.group_id)
    return add_favorite(payload.user_id, payload.group_id)


@router.delete("/favorites")
async def remove_favorite_endpoint(payload: FavoritePayload) -> dict:
    remove_favorite(payload.user_id, payload.group_id)
    return {"success": True}


@router.get("/favorites/{user_id}", response_model=List[Group])
async def list_favorites_endpoint(user_id: int) -> List[Group]:
    return list_favorite_groups(user_id)


@router.get("/is-favorited/{user_id}/{group_id}")
async def is_favorited_endpoint(user_id: int, group_id: int) -> dict:
    return {"isFavorited": is_favorited(user_id, group_id)}
