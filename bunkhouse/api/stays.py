from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.api.deps import get_current_user
from bunkhouse.database import get_db
from bunkhouse.models import User
from bunkhouse.schemas.stay import LinkStayRequest, StayCreate, StayOut, StayUpdate
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.stay_service import StayService

router = APIRouter(tags=["stays"])


@router.get("/houses/{house_id}/stays", response_model=List[StayOut])
async def list_stays(
    house_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await MembershipService.require_member(db, house_id, user.id)
    return await StayService.list_house_stays(db, house_id)


@router.post(
    "/houses/{house_id}/stays",
    response_model=StayOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_stay(
    house_id: int,
    stay_in: StayCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await StayService.create_stay(db, house_id, user.id, stay_in)


@router.patch("/stays/{stay_id}", response_model=StayOut)
async def update_stay(
    stay_id: int,
    stay_in: StayUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await StayService.update_stay(db, stay_id, user.id, stay_in)


@router.delete("/stays/{stay_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stay(
    stay_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await StayService.delete_stay(db, stay_id, user.id)


@router.put("/claims/{claim_id}/stay", response_model=StayOut)
async def link_claim_to_stay(
    claim_id: int,
    body: LinkStayRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await StayService.link_claim_to_stay(db, claim_id, body.stay_id, user.id)
