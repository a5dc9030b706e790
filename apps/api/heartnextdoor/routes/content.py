from __future__ import annotations

import random
from typing import List, Optional

from fastapi import APIRouter, Query

from ..db import list_affirmations, list_experts, list_resources
from ..schemas import Affirmation, Expert, Resource

router = APIRouter(prefix="/api", tags=["content"])


@router.get("/affirmations", response_model=List[Affirmation])
async def list_affirmations_endpoint(stage: Optional[str] = Query(None)) -> List[Affirmation]:
    return list_affirmations(stage)


@router.get("/affirmations/random", response_model=Optional[Affirmation])
async def random_affirmation_endpoint(stage: Optional[str] = Query(None)) -> Optional[Affirmation]:
    affirmations = list_affirmations(stage)
    return random.choice(affirmations) if affirmations else None


@router.get("/experts", response_model=List[Expert])
async def list_experts_endpoint(specialty: Optional[str] = Query(None)) -> List[Expert]:
    return list_experts(specialty)


@router.get("/resources", response_model=List[Resource])
async def list_resources_endpoint(
    stage: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    popular: bool = Query(False),
) -> List[Resource]:
    return list_resources(pregnancy_stage=stage, category=category, popular=popular)
