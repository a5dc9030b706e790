from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from .. import partnerships
from ..auth import AuthContext, get_auth_context
from ..errors import InvalidOrExpiredCode, NotFoundError
from ..schemas import (
    AcceptPartnershipPayload,
    CreatePartnershipPayload,
    GenerateInvitePayload,
    PartnerRegistration,
    Partnership,
    PermissionsPatch,
    RedeemInvitePayload,
    RegisterPartnerPayload,
)

router = APIRouter(prefix="/api", tags=["partnerships"])


@router.post("/partnerships", response_model=Partnership, status_code=201)
async def create_partnership_endpoint(
    payload: CreatePartnershipPayload,
    auth: AuthContext = Depends(get_auth_context),
) -> Partnership:
    return partnerships.create_invite(auth, payload)


@router.post("/partnerships/generate", response_model=Partnership, status_code=201)
async def generate_invite_endpoint(
    payload: GenerateInvitePayload,
    auth: AuthContext = Depends(get_auth_context),
) -> Partnership:
    return partnerships.create_invite(
        auth,
        CreatePartnershipPayload(
            mother_id=payload.mother_id,
            relationship_type=payload.relationship_type,
            nickname=payload.nickname,
        ),
    )


@router.get("/partnerships/code/{code}", response_model=Partnership)
async def partnership_by_code_endpoint(code: str) -> Partnership:
    return partnerships.get_by_code(code)


@router.post("/partnerships/redeem", response_model=Partnership)
async def redeem_invite_endpoint(payload: RedeemInvitePayload) -> Partnership:
    return partnerships.redeem_invite(payload.invite_code, payload.partner_id)


@router.post("/partners/register", response_model=PartnerRegistration, status_code=201)
async def register_partner_endpoint(payload: RegisterPartnerPayload) -> PartnerRegistration:
    return partnerships.register_partner(payload.invite_code, payload.user_data)


@router.post("/partnerships/{partnership_id}/accept", response_model=Partnership)
async def accept_partnership_endpoint(partnership_id: int, payload: AcceptPartnershipPayload) -> Partnership:
    try:
        return partnerships.accept_partnership(partnership_id, payload.partner_id)
    except InvalidOrExpiredCode as exc:
        raise NotFoundError(exc.message) from exc


@router.patch("/partnerships/{partnership_id}/permissions", response_model=Partnership)
async def update_permissions_endpoint(
    partnership_id: int,
    payload: PermissionsPatch,
    auth: AuthContext = Depends(get_auth_context),
) -> Partnership:
    return partnerships.update_permissions(auth, partnership_id, payload)


@router.get("/partnerships/mother/{mother_id}", response_model=List[Partnership])
async def mother_partnerships_endpoint(mother_id: int) -> List[Partnership]:
    return partnerships.list_for_mother(mother_id)


@router.get("/partnerships/partner/{partner_id}", response_model=List[Partnership])
async def partner_partnerships_endpoint(partner_id: int) -> List[Partnership]:
    return partnerships.list_for_partner(partner_id)


@router.post("/partnerships/{partnership_id}/revoke", response_model=Partnership)
async def revoke_partnership_endpoint(
    partnership_id: int,
    auth: AuthContext = Depends(get_auth_context),
) -> Partnership:
    return partnerships.revoke_partnership(auth, partnership_id)


@router.post("/partnerships/{partnership_id}/regenerate", response_model=Partnership)
async def regenerate_invite_endpoint(
    partnership_id: int,
    auth: AuthContext = Depends(get_auth_context),
) -> Partnership:
    return partnerships.regenerate_invite(auth, partnership_id)
