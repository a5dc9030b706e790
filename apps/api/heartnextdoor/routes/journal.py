from __future__ import annotations

from typing import List

from fastapi import APIRouter

from ..db import create_journal_entry, get_user, list_journal_entries
from ..openai_client import generate_journal_prompt
from ..schemas import CreateJournalEntryPayload, JournalEntry, JournalPrompt

router = APIRouter(prefix="/api", tags=["journal"])


@router.get("/journal/{user_id}", response_model=List[JournalEntry])
async def list_journal_endpoint(user_id: int) -> List[JournalEntry]:
    return list_journal_entries(user_id, newest_first=True)


@router.post("/journal", response_model=JournalEntry)
async def create_journal_endpoint(payload: CreateJournalEntryPayload) -> JournalEntry:
    user = get_user(payload.user_id)
    return create_journal_entry(
        user_id=user.id,
        content=payload.content,
        prompt=payload.prompt,
        pregnancy_week=payload.pregnancy_week if payload.pregnancy_week is not None else user.pregnancy_week,
    )


@router.get("/journal-prompt/{user_id}", response_model=JournalPrompt)
def journal_prompt_endpoint(user_id: int) -> JournalPrompt:
    user = get_user(user_id)
    prompt = generate_journal_prompt(
        pregnancy_week=user.pregnancy_week,
        pregnancy_stage=user.pregnancy_stage.value if user.pregnancy_stage else None,
        is_postpartum=user.is_postpartum,
    )
    return JournalPrompt(prompt=prompt)
