from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter

from ..db import create_chat_message, get_todays_check_in, get_user, list_chat_messages
from ..openai_client import get_companion_reply
from ..schemas import ChatExchange, ChatMessage, ChatRequest

router = APIRouter(prefix="/api", tags=["chat"])
logger = logging.getLogger(__name__)


@router.get("/chat/{user_id}", response_model=List[ChatMessage])
async def chat_history_endpoint(user_id: int) -> List[ChatMessage]:
    return list_chat_messages(user_id)


@router.post("/chat", response_model=ChatExchange)
def chat_endpoint(payload: ChatRequest) -> ChatExchange:
    user = get_user(payload.user_id)
    user_message = create_chat_message(user_id=user.id, content=payload.message, is_from_user=True)

    today = get_todays_check_in(user.id)
    context = {
        "pregnancy_week": user.pregnancy_week,
        "pregnancy_stage": user.pregnancy_stage.value if user.pregnancy_stage else None,
        "is_postpartum": user.is_postpartum,
        "today_check_in": today.model_dump() if today else None,
    }
    logger.info("companion chat request", extra={"user_id": user.id, "has_check_in": today is not None})
    reply = get_companion_reply(payload.message, context)

    ai_message = create_chat_message(user_id=user.id, content=reply, is_from_user=False)
    return ChatExchange(user_message=user_message, ai_message=ai_message)
