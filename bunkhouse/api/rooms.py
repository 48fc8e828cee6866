from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.api.deps import get_current_user
from bunkhouse.database import get_db
from bunkhouse.models import User
from bunkhouse.schemas.room import (
    BedCreate,
    BedOut,
    BedUpdate,
    ReorderRequest,
    RoomCreate,
    RoomOut,
    RoomUpdate,
    RoomWithBedsOut,
)
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.room_service import RoomService

router = APIRouter(tags=["rooms"])


@router.get("/houses/{house_id}/rooms", response_model=List[RoomWithBedsOut])
async def list_rooms(
    house_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await MembershipService.require_member(db, house_id, user.id)
    return await RoomService.list_rooms_with_beds(db, house_id)


@router.post(
    "/houses/{house_id}/rooms",
    response_model=RoomOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_room(
    house_id: int,
    room_in: RoomCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RoomService.create_room(db, house_id, user.id, room_in)


@router.put("/houses/{house_id}/rooms/order", response_model=List[RoomWithBedsOut])
async def reorder_rooms(
    house_id: int,
    order: ReorderRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RoomService.reorder_rooms(db, house_id, user.id, order.ids)


@router.patch("/rooms/{room_id}", response_model=RoomOut)
async def update_room(
    room_id: int,
    room_in: RoomUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RoomService.update_room(db, room_id, user.id, room_in)


@router.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await RoomService.delete_room(db, room_id, user.id)


@router.post(
    "/rooms/{room_id}/beds",
    response_model=BedOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_bed(
    room_id: int,
    bed_in: BedCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    room = await RoomService.get_room(db, room_id)
    return await RoomService.create_bed(db, room_id, room.house_id, user.id, bed_in)


@router.put("/rooms/{room_id}/beds/order", response_model=RoomWithBedsOut)
async def reorder_beds(
    room_id: int,
    order: ReorderRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RoomService.reorder_beds(db, room_id, user.id, order.ids)


@router.patch("/beds/{bed_id}", response_model=BedOut)
async def update_bed(
    bed_id: int,
    bed_in: BedUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RoomService.update_bed(db, bed_id, user.id, bed_in)


@router.delete("/beds/{bed_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bed(
    bed_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await RoomService.delete_bed(db, bed_id, user.id)
