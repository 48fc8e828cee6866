from typing import List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.api.deps import get_current_user
from bunkhouse.database import get_db
from bunkhouse.models import MemberRole, User
from bunkhouse.schemas.house import HouseCreate, HouseOut, HouseSettings, MemberOut
from bunkhouse.services.membership_service import MembershipService

router = APIRouter(tags=["houses"])


class MemberAdd(BaseModel):
    user_id: int
    role: MemberRole = MemberRole.MEMBER


@router.post("/houses", response_model=HouseOut, status_code=status.HTTP_201_CREATED)
async def create_house(
    house_in: HouseCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await MembershipService.create_house(db, user.id, house_in.name, house_in.settings)


@router.put("/houses/{house_id}/settings", response_model=HouseOut)
async def update_house_settings(
    house_id: int,
    house_settings: HouseSettings,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await MembershipService.update_house_settings(db, house_id, user.id, house_settings)


@router.get("/houses/{house_id}/members", response_model=List[MemberOut])
async def list_members(
    house_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await MembershipService.require_member(db, house_id, user.id)
    return await MembershipService.list_members(db, house_id)


@router.post(
    "/houses/{house_id}/members",
    response_model=MemberOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    house_id: int,
    member_in: MemberAdd,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    member = await MembershipService.add_member(
        db, house_id, user.id, member_in.user_id, member_in.role
    )
    # MemberOut embeds the user; reload with it eagerly
    members = await MembershipService.list_members(db, house_id)
    return next(m for m in members if m.id == member.id)
