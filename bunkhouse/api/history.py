from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.api.deps import get_current_user
from bunkhouse.database import get_db
from bunkhouse.models import User
from bunkhouse.schemas.history import HistoryEntryOut, UserBedStats
from bunkhouse.services.history_service import HistoryService
from bunkhouse.services.membership_service import MembershipService

router = APIRouter(tags=["history"])


@router.get("/houses/{house_id}/history", response_model=List[HistoryEntryOut])
async def get_history(
    house_id: int,
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await MembershipService.require_admin(db, house_id, user.id)
    return await HistoryService.get_signup_history(db, house_id, limit)


@router.get("/houses/{house_id}/history/stats", response_model=Dict[int, UserBedStats])
async def get_stats(
    house_id: int,
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await MembershipService.require_admin(db, house_id, user.id)
    return await HistoryService.get_claim_stats(db, house_id, limit)


@router.get("/houses/{house_id}/history/stats/me", response_model=UserBedStats)
async def get_my_stats(
    house_id: int,
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await MembershipService.require_member(db, house_id, user.id)
    return await HistoryService.get_user_bed_stats(db, house_id, user.id, limit)
