from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.api.deps import get_current_user
from bunkhouse.core.exceptions import PreconditionError
from bunkhouse.database import get_db
from bunkhouse.models import User
from bunkhouse.schemas.window import (
    WindowAvailabilityOut,
    WindowBoardOut,
    WindowCreate,
    WindowOut,
    WindowStatusOut,
)
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.window_service import WindowService

router = APIRouter(tags=["windows"])


@router.post(
    "/houses/{house_id}/windows",
    response_model=WindowOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_window(
    house_id: int,
    window_in: WindowCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await WindowService.create_window(
        db, house_id, user.id, window_in.target_weekend_start, window_in.opens_at
    )


@router.get("/houses/{house_id}/windows/active", response_model=Optional[WindowBoardOut])
async def get_active_window(
    house_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await MembershipService.require_member(db, house_id, user.id)
    window = await WindowService.get_active_window(db, house_id)
    if window is None:
        return None
    return await WindowService.get_window_board(db, window)


@router.get("/houses/{house_id}/windows/next", response_model=Optional[WindowOut])
async def get_next_window(
    house_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await MembershipService.require_member(db, house_id, user.id)
    return await WindowService.get_next_scheduled_window(db, house_id)


@router.get("/houses/{house_id}/windows/status", response_model=WindowStatusOut)
async def get_window_status(
    house_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await MembershipService.require_admin(db, house_id, user.id)
    return await WindowService.get_window_status(db, house_id)


@router.get("/houses/{house_id}/windows/check", response_model=WindowAvailabilityOut)
async def check_window_for_dates(
    house_id: int,
    check_in: date = Query(...),
    check_out: date = Query(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Used by the stay form: is bed sign-up running for these dates?"""
    await MembershipService.require_member(db, house_id, user.id)
    if check_out < check_in:
        raise PreconditionError("Check-out must be after check-in", code="invalid_dates")
    availability = await WindowService.is_window_open_for_dates(db, house_id, check_in, check_out)
    return WindowAvailabilityOut(
        is_open=availability.is_open,
        window=WindowOut.model_validate(availability.window) if availability.window else None,
    )


@router.get("/windows/{window_id}", response_model=WindowBoardOut)
async def get_window_board(
    window_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    window = await WindowService.get_window(db, window_id)
    await MembershipService.require_member(db, window.house_id, user.id)
    return await WindowService.get_window_board(db, window)


@router.post("/windows/{window_id}/open", response_model=WindowOut)
async def open_window(
    window_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await WindowService.open_window(db, window_id, user.id)


@router.post("/windows/{window_id}/close", response_model=WindowOut)
async def close_window(
    window_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await WindowService.close_window_as_admin(db, window_id, user.id)
