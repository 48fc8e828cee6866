"""
Stays (who sleeps at the house and when) and their links to bed claims.

A stay points at most at one claim through ``bed_claim_id``. The claim is the
source of truth for who shares the bed; ``Stay.co_booker_id`` mirrors it.
Guest fees become an expense with a single split owed by the stay owner.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.core.config import settings
from bunkhouse.core.exceptions import (
    AuthorizationError,
    BunkhouseError,
    ConflictError,
    NotFoundError,
    PreconditionError,
)
from bunkhouse.models import BedClaim, Expense, ExpenseSplit, Stay
from bunkhouse.schemas.house import HouseSettings
from bunkhouse.schemas.stay import StayCreate, StayUpdate
from bunkhouse.services.claim_service import ClaimService
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.window_service import WindowService
from bunkhouse.utils.dates import nights_between, utcnow

logger = logging.getLogger(__name__)

GUEST_FEE_TITLE = "Guest Fee"
GUEST_FEE_CATEGORY = "guest_fees"


class StayService:
    """Сервис пребываний и гостевых сборов"""

    @staticmethod
    async def get_stay(db: AsyncSession, stay_id: int) -> Stay:
        stay = await db.get(Stay, stay_id, populate_existing=True)
        if not stay:
            raise NotFoundError(f"Stay {stay_id} not found")
        return stay

    @staticmethod
    async def list_house_stays(db: AsyncSession, house_id: int) -> List[Stay]:
        result = await db.execute(
            select(Stay).where(Stay.house_id == house_id).order_by(Stay.check_in, Stay.id)
        )
        return list(result.scalars().all())

    # -------------------------------------------------
    # Guest fees
    # -------------------------------------------------

    @staticmethod
    def _nightly_rate(house_settings: HouseSettings, override: Optional[Decimal]) -> Decimal:
        if override is not None:
            return override
        if house_settings.guest_nightly_rate is not None:
            return house_settings.guest_nightly_rate
        return settings.default_guest_nightly_rate

    @staticmethod
    def _guest_fee(
        guest_count: int, check_in: date, check_out: date, rate: Decimal
    ) -> Tuple[Decimal, int]:
        nights = nights_between(check_in, check_out)
        amount = (Decimal(guest_count) * nights * rate).quantize(Decimal("0.01"))
        return amount, nights

    @staticmethod
    def _fee_description(guest_count: int, nights: int) -> str:
        return f"Guest fees: {guest_count} guest(s) x {nights} night(s)"

    @staticmethod
    async def _fee_recipient(
        db: AsyncSession, house_id: int, house_settings: HouseSettings
    ) -> Optional[int]:
        if house_settings.guest_fee_recipient_id:
            return house_settings.guest_fee_recipient_id
        return await MembershipService.get_first_admin_id(db, house_id)

    @staticmethod
    async def _create_guest_fee(
        db: AsyncSession,
        house_id: int,
        user_id: int,
        house_settings: HouseSettings,
        guest_count: int,
        check_in: date,
        check_out: date,
        rate: Decimal,
    ) -> Optional[Expense]:
        """Expense + one split owed by the stay owner. Flushes, does not commit."""
        recipient_id = await StayService._fee_recipient(db, house_id, house_settings)
        if recipient_id is None:
            logger.warning("House %s has no guest fee recipient, fee skipped", house_id)
            return None

        amount, nights = StayService._guest_fee(guest_count, check_in, check_out, rate)
        expense = Expense(
            house_id=house_id,
            paid_by_id=recipient_id,
            created_by_id=user_id,
            title=GUEST_FEE_TITLE,
            amount=amount,
            description=StayService._fee_description(guest_count, nights),
            category=GUEST_FEE_CATEGORY,
            spent_on=check_in,
        )
        expense.splits.append(ExpenseSplit(user_id=user_id, amount=amount, settled=False))
        db.add(expense)
        await db.flush()
        return expense

    @staticmethod
    async def _drop_guest_fee(db: AsyncSession, expense_id: int) -> None:
        await db.execute(delete(ExpenseSplit).where(ExpenseSplit.expense_id == expense_id))
        await db.execute(delete(Expense).where(Expense.id == expense_id))

    @staticmethod
    async def get_guest_fee_split(db: AsyncSession, stay: Stay) -> Optional[ExpenseSplit]:
        if stay.linked_expense_id is None:
            return None
        result = await db.execute(
            select(ExpenseSplit)
            .where(ExpenseSplit.expense_id == stay.linked_expense_id)
            .order_by(ExpenseSplit.id)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _set_settled(db: AsyncSession, split_id: int, settled: bool) -> ExpenseSplit:
        split = await db.get(ExpenseSplit, split_id)
        if not split:
            raise NotFoundError(f"Expense split {split_id} not found")

        split.settled = settled
        split.settled_at = utcnow() if settled else None
        await db.commit()
        await db.refresh(split)
        return split

    @staticmethod
    async def settle_guest_fee(db: AsyncSession, split_id: int) -> ExpenseSplit:
        return await StayService._set_settled(db, split_id, True)

    @staticmethod
    async def unsettle_guest_fee(db: AsyncSession, split_id: int) -> ExpenseSplit:
        return await StayService._set_settled(db, split_id, False)

    # -------------------------------------------------
    # Claim links
    # -------------------------------------------------

    @staticmethod
    async def _load_own_claim(
        db: AsyncSession, claim_id: int, house_id: int, user_id: int
    ) -> BedClaim:
        claim = await ClaimService.get_claim(db, claim_id)
        if claim.user_id != user_id:
            raise AuthorizationError(f"Claim {claim_id} belongs to another member")

        window = await WindowService.get_window(db, claim.signup_window_id)
        if window.house_id != house_id:
            raise PreconditionError(
                f"Claim {claim_id} is not from house {house_id}", code="wrong_house"
            )
        return claim

    @staticmethod
    async def sync_co_party(db: AsyncSession, stay: Stay) -> bool:
        """
        Push the stay's co-booker onto its claim.

        Never raises: on failure the error is logged, the stay is realigned
        with whatever the claim says and False is returned.
        """
        if stay.bed_claim_id is None:
            return True

        stay_id, claim_id, co_booker_id = stay.id, stay.bed_claim_id, stay.co_booker_id
        try:
            claim = await ClaimService.get_claim(db, claim_id)
            if claim.co_claimer_id == co_booker_id:
                return True

            if await ClaimService._set_co_claimer(db, claim, co_booker_id):
                await db.commit()
                logger.info("Claim %s co-claimer synced from stay %s", claim_id, stay_id)
                return True

            await db.rollback()
            logger.warning(
                "User %s cannot share claim %s, stay %s keeps the claim's co-claimer",
                co_booker_id, claim_id, stay_id,
            )
            claim_co_claimer = (
                select(BedClaim.co_claimer_id)
                .where(BedClaim.id == claim_id)
                .scalar_subquery()
            )
            await db.execute(
                update(Stay)
                .where(Stay.id == stay_id)
                .values(co_booker_id=claim_co_claimer)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except (BunkhouseError, SQLAlchemyError):
            await db.rollback()
            logger.error("Failed to sync co-party for stay %s", stay_id, exc_info=True)
        return False

    # -------------------------------------------------
    # CRUD
    # -------------------------------------------------

    @staticmethod
    async def create_stay(
        db: AsyncSession, house_id: int, user_id: int, stay_in: StayCreate
    ) -> Stay:
        await MembershipService.require_member(db, house_id, user_id)
        house_settings = await MembershipService.get_house_settings(db, house_id)

        co_booker_id = stay_in.co_booker_id
        if stay_in.bed_claim_id is not None:
            claim = await StayService._load_own_claim(db, stay_in.bed_claim_id, house_id, user_id)
            if co_booker_id is None:
                co_booker_id = claim.co_claimer_id

        expense = None
        rate = StayService._nightly_rate(house_settings, stay_in.guest_nightly_rate)
        if stay_in.guest_count > 0 and rate > 0:
            expense = await StayService._create_guest_fee(
                db, house_id, user_id, house_settings,
                stay_in.guest_count, stay_in.check_in, stay_in.check_out, rate,
            )

        stay = Stay(
            house_id=house_id,
            user_id=user_id,
            co_booker_id=co_booker_id,
            check_in=stay_in.check_in,
            check_out=stay_in.check_out,
            guest_count=stay_in.guest_count,
            notes=stay_in.notes or None,
            linked_expense_id=expense.id if expense else None,
            bed_claim_id=stay_in.bed_claim_id,
        )
        db.add(stay)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                f"Claim {stay_in.bed_claim_id} is already linked to another stay",
                code="claim_already_linked",
            )

        await db.refresh(stay)
        logger.info("Stay %s created by user %s in house %s", stay.id, user_id, house_id)

        if stay.bed_claim_id is not None and stay.co_booker_id is not None:
            await StayService.sync_co_party(db, stay)
            await db.refresh(stay)
        return stay

    @staticmethod
    async def update_stay(
        db: AsyncSession, stay_id: int, user_id: int, stay_in: StayUpdate
    ) -> Stay:
        stay = await StayService.get_stay(db, stay_id)
        if stay.user_id != user_id:
            raise AuthorizationError(f"Stay {stay_id} belongs to another member")

        fields = stay_in.model_fields_set
        check_in = stay_in.check_in or stay.check_in
        check_out = stay_in.check_out or stay.check_out
        if check_out < check_in:
            raise PreconditionError("Check-out must be after check-in", code="invalid_dates")

        guest_count = stay.guest_count if stay_in.guest_count is None else stay_in.guest_count
        house_settings = await MembershipService.get_house_settings(db, stay.house_id)
        rate = StayService._nightly_rate(house_settings, stay_in.guest_nightly_rate)

        # Guest fee: create, update or drop the linked expense
        had_fee = stay.linked_expense_id is not None
        has_fee = guest_count > 0 and rate > 0
        if not had_fee and has_fee:
            expense = await StayService._create_guest_fee(
                db, stay.house_id, user_id, house_settings,
                guest_count, check_in, check_out, rate,
            )
            stay.linked_expense_id = expense.id if expense else None
        elif had_fee and not has_fee:
            expense_id = stay.linked_expense_id
            stay.linked_expense_id = None
            await db.flush()
            await StayService._drop_guest_fee(db, expense_id)
        elif had_fee and has_fee:
            amount, nights = StayService._guest_fee(guest_count, check_in, check_out, rate)
            await db.execute(
                update(Expense)
                .where(Expense.id == stay.linked_expense_id)
                .values(
                    amount=amount,
                    description=StayService._fee_description(guest_count, nights),
                    spent_on=check_in,
                )
            )
            await db.execute(
                update(ExpenseSplit)
                .where(ExpenseSplit.expense_id == stay.linked_expense_id)
                .values(amount=amount)
            )

        # Bed selection: the previous claim is released, the new one linked
        bed_changed = "bed_claim_id" in fields and stay_in.bed_claim_id != stay.bed_claim_id
        if bed_changed:
            old_claim_id = stay.bed_claim_id
            if stay_in.bed_claim_id is not None:
                claim = await StayService._load_own_claim(
                    db, stay_in.bed_claim_id, stay.house_id, user_id
                )
                if "co_booker_id" not in fields:
                    stay.co_booker_id = claim.co_claimer_id
                # the claim moves here from whichever stay held it
                await db.execute(
                    update(Stay)
                    .where(Stay.bed_claim_id == stay_in.bed_claim_id, Stay.id != stay_id)
                    .values(bed_claim_id=None)
                )
            stay.bed_claim_id = stay_in.bed_claim_id
            await db.flush()
            if old_claim_id is not None:
                await ClaimService._release(db, old_claim_id)

        if "co_booker_id" in fields:
            stay.co_booker_id = stay_in.co_booker_id

        stay.check_in = check_in
        stay.check_out = check_out
        stay.guest_count = guest_count
        if "notes" in fields:
            stay.notes = stay_in.notes or None

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                f"Claim {stay_in.bed_claim_id} is already linked to another stay",
                code="claim_already_linked",
            )
        await db.refresh(stay)

        if stay.bed_claim_id is not None and "co_booker_id" in fields:
            await StayService.sync_co_party(db, stay)
            await db.refresh(stay)
        return stay

    @staticmethod
    async def delete_stay(db: AsyncSession, stay_id: int, user_id: int) -> None:
        """Removes the stay together with its guest fee and its bed claim."""
        stay = await StayService.get_stay(db, stay_id)
        if stay.user_id != user_id:
            raise AuthorizationError(f"Stay {stay_id} belongs to another member")

        expense_id, claim_id = stay.linked_expense_id, stay.bed_claim_id
        await db.execute(delete(Stay).where(Stay.id == stay_id))
        if expense_id is not None:
            await StayService._drop_guest_fee(db, expense_id)
        if claim_id is not None:
            await ClaimService._release(db, claim_id)
        await db.commit()
        logger.info("Stay %s deleted (claim %s released)", stay_id, claim_id)

    @staticmethod
    async def link_claim_to_stay(
        db: AsyncSession, claim_id: int, stay_id: int, user_id: int
    ) -> Stay:
        claim = await ClaimService.get_claim(db, claim_id)
        if claim.user_id != user_id:
            raise AuthorizationError(f"Claim {claim_id} belongs to another member")

        stay = await StayService.get_stay(db, stay_id)
        if stay.user_id != user_id:
            raise AuthorizationError(f"Stay {stay_id} belongs to another member")

        await StayService._load_own_claim(db, claim_id, stay.house_id, user_id)

        # A claim is referenced by at most one stay
        await db.execute(
            update(Stay)
            .where(Stay.bed_claim_id == claim_id, Stay.id != stay_id)
            .values(bed_claim_id=None)
            .execution_options(synchronize_session=False)
        )
        stay.bed_claim_id = claim.id
        stay.co_booker_id = claim.co_claimer_id
        await db.commit()
        await db.refresh(stay)
        logger.info("Claim %s linked to stay %s", claim_id, stay_id)
        return stay
