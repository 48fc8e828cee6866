import logging
from typing import List, Optional

from sqlalchemy import DateTime, delete, exists, insert, literal, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from bunkhouse.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PreconditionError,
)
from bunkhouse.models import (
    Bed,
    BedClaim,
    HouseMember,
    SignupWindow,
    Stay,
    User,
    WindowStatus,
)
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.window_service import WindowService
from bunkhouse.utils.dates import utcnow

logger = logging.getLogger(__name__)


def _conflict_from_integrity_error(e: IntegrityError) -> ConflictError:
    """Tell the two claim uniqueness constraints apart from the driver message."""
    text = str(e.orig)
    if "uq_bed_claims_window_bed" in text or "bed_claims.bed_id" in text:
        return ConflictError("Bed already claimed in this window", code="bed_taken")
    if "uq_bed_claims_window_user" in text or "bed_claims.user_id" in text:
        return ConflictError("User already holds a claim in this window", code="already_claimed")
    return ConflictError(text)


class ClaimService:
    """
    Захват кроватей в открытом окне записи.

    The unique constraints on bed_claims are the only concurrency control:
    nothing here checks whether a bed is free before inserting.
    """

    @staticmethod
    async def get_claim(db: AsyncSession, claim_id: int) -> BedClaim:
        claim = await db.get(BedClaim, claim_id, populate_existing=True)
        if not claim:
            raise NotFoundError(f"Claim {claim_id} not found")
        return claim

    @staticmethod
    async def claim_bed(
        db: AsyncSession, window_id: int, bed_id: int, user_id: int
    ) -> BedClaim:
        window = await WindowService.get_window(db, window_id)
        if window.status != WindowStatus.OPEN:
            raise PreconditionError(
                f"Window {window_id} is {window.status.value}", code="window_not_open"
            )

        bed = await db.get(Bed, bed_id)
        if bed is None or bed.house_id != window.house_id:
            raise PreconditionError(
                f"Bed {bed_id} is not part of house {window.house_id}", code="wrong_house"
            )

        await MembershipService.require_member(db, window.house_id, user_id)

        # Inserts only while the window is still open and the user is not
        # already riding along on someone else's claim in this window.
        window_open = exists().where(
            SignupWindow.id == window_id,
            SignupWindow.status == WindowStatus.OPEN,
        )
        already_co_claimer = exists().where(
            BedClaim.signup_window_id == window_id,
            BedClaim.co_claimer_id == user_id,
        )
        stmt = insert(BedClaim).from_select(
            ["signup_window_id", "bed_id", "user_id", "claimed_at"],
            select(
                literal(window_id),
                literal(bed_id),
                literal(user_id),
                literal(utcnow(), DateTime),
            ).where(window_open, ~already_co_claimer),
        )

        try:
            result = await db.execute(stmt)
        except IntegrityError as e:
            await db.rollback()
            logger.info("Claim rejected for user %s on bed %s: %s", user_id, bed_id, e.orig)
            raise _conflict_from_integrity_error(e)

        if result.rowcount == 0:
            await db.rollback()
            await db.refresh(window)
            if window.status != WindowStatus.OPEN:
                raise PreconditionError(
                    f"Window {window_id} closed before the claim landed",
                    code="window_not_open",
                )
            raise ConflictError(
                f"User {user_id} is already a co-claimer in window {window_id}",
                code="already_claimed",
            )

        try:
            async with db.begin_nested():
                await WindowService.close_if_full(db, window)
        except SQLAlchemyError:
            logger.error("Auto-close check failed for window %s", window_id, exc_info=True)

        await db.commit()
        logger.info("🛏 User %s claimed bed %s in window %s", user_id, bed_id, window_id)

        return await ClaimService.get_user_claim(db, window_id, user_id)

    @staticmethod
    async def _release(db: AsyncSession, claim_id: int) -> None:
        """Drops the claim without committing. Linked stays keep existing."""
        await db.execute(
            update(Stay).where(Stay.bed_claim_id == claim_id).values(bed_claim_id=None)
        )
        await db.execute(delete(BedClaim).where(BedClaim.id == claim_id))

    @staticmethod
    async def release_bed(db: AsyncSession, claim_id: int, user_id: int) -> None:
        """Release by the primary claimer. A closed window stays closed."""
        claim = await ClaimService.get_claim(db, claim_id)
        if claim.user_id != user_id:
            raise AuthorizationError(f"Claim {claim_id} belongs to another member")

        await ClaimService._release(db, claim_id)
        await db.commit()
        logger.info("User %s released claim %s", user_id, claim_id)

    @staticmethod
    async def get_user_claim(
        db: AsyncSession, window_id: int, user_id: int
    ) -> Optional[BedClaim]:
        """The claim where the user is either the primary claimer or the co-claimer."""
        result = await db.execute(
            select(BedClaim)
            .where(
                BedClaim.signup_window_id == window_id,
                or_(BedClaim.user_id == user_id, BedClaim.co_claimer_id == user_id),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_eligible_co_claimers(
        db: AsyncSession, house_id: int, window_id: int, excluding_user_id: int
    ) -> List[User]:
        primary = select(BedClaim.user_id).where(BedClaim.signup_window_id == window_id)
        co = select(BedClaim.co_claimer_id).where(
            BedClaim.signup_window_id == window_id,
            BedClaim.co_claimer_id.is_not(None),
        )
        result = await db.execute(
            select(User)
            .join(HouseMember, HouseMember.user_id == User.id)
            .where(
                HouseMember.house_id == house_id,
                User.id != excluding_user_id,
                User.id.not_in(primary),
                User.id.not_in(co),
            )
            .order_by(User.display_name, User.email)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _set_co_claimer(
        db: AsyncSession, claim: BedClaim, co_claimer_id: Optional[int]
    ) -> bool:
        """
        Guarded write of claim.co_claimer_id, no commit.

        Eligibility is re-checked inside the UPDATE itself so two owners racing
        for the same partner cannot both win. Returns False when the guard
        rejected the write. Linked stays get the same co-booker.
        """
        if co_claimer_id is None:
            await db.execute(
                update(BedClaim)
                .where(BedClaim.id == claim.id)
                .values(co_claimer_id=None)
                .execution_options(synchronize_session=False)
            )
        else:
            window = await WindowService.get_window(db, claim.signup_window_id)
            other = aliased(BedClaim)
            result = await db.execute(
                update(BedClaim)
                .where(
                    BedClaim.id == claim.id,
                    BedClaim.user_id != co_claimer_id,
                    exists().where(
                        HouseMember.house_id == window.house_id,
                        HouseMember.user_id == co_claimer_id,
                    ),
                    ~exists().where(
                        other.signup_window_id == claim.signup_window_id,
                        other.user_id == co_claimer_id,
                    ),
                    ~exists().where(
                        other.signup_window_id == claim.signup_window_id,
                        other.co_claimer_id == co_claimer_id,
                        other.id != claim.id,
                    ),
                )
                .values(co_claimer_id=co_claimer_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False

        await db.execute(
            update(Stay)
            .where(Stay.bed_claim_id == claim.id)
            .values(co_booker_id=co_claimer_id)
            .execution_options(synchronize_session=False)
        )
        return True

    @staticmethod
    async def attach_co_claimer(
        db: AsyncSession,
        claim_id: int,
        co_claimer_id: int,
        actor_id: Optional[int] = None,
    ) -> BedClaim:
        claim = await ClaimService.get_claim(db, claim_id)
        if actor_id is not None and claim.user_id != actor_id:
            raise AuthorizationError(f"Claim {claim_id} belongs to another member")
        if co_claimer_id == claim.user_id:
            raise PreconditionError("Cannot share a bed with yourself", code="self_co_claim")

        window = await WindowService.get_window(db, claim.signup_window_id)
        if await MembershipService.get_member(db, window.house_id, co_claimer_id) is None:
            raise PreconditionError(
                f"User {co_claimer_id} is not a member of house {window.house_id}",
                code="not_a_member",
            )

        window_id = claim.signup_window_id
        if not await ClaimService._set_co_claimer(db, claim, co_claimer_id):
            await db.rollback()
            raise ConflictError(
                f"User {co_claimer_id} already has a bed in window {window_id}",
                code="co_claimer_unavailable",
            )

        await db.commit()
        await db.refresh(claim)
        logger.info("User %s joined claim %s", co_claimer_id, claim_id)
        return claim

    @staticmethod
    async def detach_co_claimer(
        db: AsyncSession, claim_id: int, actor_id: Optional[int] = None
    ) -> BedClaim:
        claim = await ClaimService.get_claim(db, claim_id)
        if actor_id is not None and claim.user_id != actor_id:
            raise AuthorizationError(f"Claim {claim_id} belongs to another member")

        await ClaimService._set_co_claimer(db, claim, None)
        await db.commit()
        await db.refresh(claim)
        return claim
