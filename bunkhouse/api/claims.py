from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.api.deps import get_current_user
from bunkhouse.core.config import settings
from bunkhouse.core.rate_limiter import limiter
from bunkhouse.database import get_db
from bunkhouse.models import User
from bunkhouse.schemas.claim import ClaimCreate, ClaimOut, CoClaimerUpdate
from bunkhouse.schemas.house import UserOut
from bunkhouse.services.claim_service import ClaimService
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.window_service import WindowService

router = APIRouter(tags=["claims"])


@router.post(
    "/windows/{window_id}/claims",
    response_model=ClaimOut,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.rate_limit_claims)
async def claim_bed(
    request: Request,
    window_id: int,
    claim_in: ClaimCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ClaimService.claim_bed(db, window_id, claim_in.bed_id, user.id)


@router.get("/windows/{window_id}/claims/me", response_model=Optional[ClaimOut])
async def get_my_claim(
    window_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    window = await WindowService.get_window(db, window_id)
    await MembershipService.require_member(db, window.house_id, user.id)
    return await ClaimService.get_user_claim(db, window_id, user.id)


@router.get("/windows/{window_id}/co-claimers", response_model=List[UserOut])
async def list_eligible_co_claimers(
    window_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    window = await WindowService.get_window(db, window_id)
    await MembershipService.require_member(db, window.house_id, user.id)
    return await ClaimService.get_eligible_co_claimers(db, window.house_id, window_id, user.id)


@router.delete("/claims/{claim_id}", status_code=status.HTTP_204_NO_CONTENT)
async def release_bed(
    claim_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ClaimService.release_bed(db, claim_id, user.id)


@router.put("/claims/{claim_id}/co-claimer", response_model=ClaimOut)
async def set_co_claimer(
    claim_id: int,
    body: CoClaimerUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if body.co_claimer_id is None:
        return await ClaimService.detach_co_claimer(db, claim_id, actor_id=user.id)
    return await ClaimService.attach_co_claimer(
        db, claim_id, body.co_claimer_id, actor_id=user.id
    )
