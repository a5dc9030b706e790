from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Query

from ..db import (
    create_partner_progress,
    list_partner_progress,
    list_partner_resources,
    list_partner_updates,
    mark_partner_update_read,
)
from ..schemas import (
    CreatePartnerProgressPayload,
    PartnerDashboard,
    PartnerProgress,
    PartnerResource,
    PartnerUpdate,
    ShareCategory,
)
from ..sharing import build_partner_dashboard, shared_data

router = APIRouter(prefix="/api", tags=["partner"])
logger = logging.getLogger(__name__)


@router.get("/partner/dashboard/{partner_id}", response_model=PartnerDashboard)
async def partner_dashboard_endpoint(partner_id: int) -> PartnerDashboard:
    logger.info("partner dashboard request", extra={"partner_id": partner_id})
    return build_partner_dashboard(partner_id)


@router.get("/partner/{partner_id}/shared/{category}")
async def shared_category_endpoint(partner_id: int, category: ShareCategory) -> list:
    return shared_data(partner_id, category)


@router.get("/partner-updates/{partner_id}", response_model=List[PartnerUpdate])
async def partner_updates_endpoint(partner_id: int) -> List[PartnerUpdate]:
    return list_partner_updates(partner_id)


@router.post("/partner-updates/{update_id}/read", response_model=PartnerUpdate)
async def mark_update_read_endpoint(update_id: int) -> PartnerUpdate:
    return mark_partner_update_read(update_id)


@router.get("/partner-resources", response_model=List[PartnerResource])
async def partner_resources_endpoint(category: Optional[str] = Query(None)) -> List[PartnerResource]:
    return list_partner_resources(category)


@router.post("/partner-progress", response_model=PartnerProgress)
async def create_progress_endpoint(payload: CreatePartnerProgressPayload) -> PartnerProgress:
    return create_partner_progress(partner_id=payload.partner_id, resource_id=payload.resource_id)


@router.get("/partner-progress/{partner_id}", response_model=List[PartnerProgress])
async def list_progress_endpoint(partner_id: int) -> List[PartnerProgress]:
    return list_partner_progress(partner_id)
