"""
Sign-up windows: the period during which members may claim beds for one weekend.

Lifecycle is scheduled -> open -> closed. A window is always created
``scheduled``; whatever watches the clock calls ``open_window_if_due``.
Closing happens either by an admin or automatically once every bed in the
house carries a claim (see ``close_if_full``).
"""

import logging
import random
from datetime import date, datetime
from enum import Enum
from typing import List, NamedTuple, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.core.exceptions import ConflictError, NotFoundError, PreconditionError
from bunkhouse.models import BedClaim, House, SignupWindow, WindowStatus
from bunkhouse.schemas.claim import ClaimOut
from bunkhouse.schemas.house import HouseSettings
from bunkhouse.schemas.room import BedOut, RoomOut
from bunkhouse.schemas.window import (
    BoardBedOut,
    BoardRoomOut,
    WindowBoardOut,
    WindowOut,
    WindowStatusOut,
)
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.room_service import RoomService
from bunkhouse.utils.dates import (
    next_target_weekend,
    random_opens_at,
    ranges_overlap,
    to_naive_utc,
    utcnow,
    week_monday,
    weekend_for,
)

logger = logging.getLogger(__name__)


class CloseReason(str, Enum):
    ALL_BEDS_CLAIMED = "all_beds_claimed"
    ADMIN = "admin"


class WindowAvailability(NamedTuple):
    is_open: bool
    window: Optional[SignupWindow]


class WindowService:
    """Сервис окон записи на кровати"""

    ALLOWED_TRANSITIONS = {
        WindowStatus.SCHEDULED: {WindowStatus.OPEN},
        WindowStatus.OPEN: {WindowStatus.CLOSED},
    }

    @classmethod
    def can_transition(cls, current: WindowStatus, target: WindowStatus) -> bool:
        if current == target:
            return True
        return target in cls.ALLOWED_TRANSITIONS.get(current, set())

    @staticmethod
    async def get_window(db: AsyncSession, window_id: int) -> SignupWindow:
        window = await db.get(SignupWindow, window_id, populate_existing=True)
        if not window:
            raise NotFoundError(f"Signup window {window_id} not found")
        return window

    # -------------------------------------------------
    # Creation
    # -------------------------------------------------

    @staticmethod
    async def create_window(
        db: AsyncSession,
        house_id: int,
        actor_id: int,
        target_weekend_start: date,
        opens_at: datetime,
    ) -> SignupWindow:
        await MembershipService.require_admin(db, house_id, actor_id)
        return await WindowService._insert_window(db, house_id, target_weekend_start, opens_at)

    @staticmethod
    async def _insert_window(
        db: AsyncSession, house_id: int, target_weekend_start: date, opens_at: datetime
    ) -> SignupWindow:
        try:
            start, end = weekend_for(target_weekend_start)
        except ValueError as e:
            raise PreconditionError(str(e), code="not_a_friday")

        window = SignupWindow(
            house_id=house_id,
            target_weekend_start=start,
            target_weekend_end=end,
            opens_at=to_naive_utc(opens_at),
            status=WindowStatus.SCHEDULED,
        )
        db.add(window)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                f"House {house_id} already has a window for {start.isoformat()}",
                code="duplicate_window",
            )

        await db.refresh(window)
        logger.info(
            "Window %s scheduled for house %s (%s - %s), opens at %s",
            window.id, house_id, start, end, window.opens_at,
        )
        return window

    # -------------------------------------------------
    # Transitions
    # -------------------------------------------------

    @staticmethod
    async def open_window_if_due(
        db: AsyncSession, window: SignupWindow, now: Optional[datetime] = None
    ) -> SignupWindow:
        """No-op unless the window is scheduled and its opening time has passed."""
        now = to_naive_utc(now) if now else utcnow()
        if window.status != WindowStatus.SCHEDULED or now < window.opens_at:
            return window

        window_id, house_id = window.id, window.house_id
        window.status = WindowStatus.OPEN
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                f"House {house_id} already has an open window, window {window_id} stays scheduled",
                code="window_already_open",
            )

        logger.info("✅ Window %s opened for house %s", window_id, house_id)
        return window

    @staticmethod
    async def open_window(db: AsyncSession, window_id: int, actor_id: int) -> SignupWindow:
        """Admin override: open a scheduled window right now."""
        window = await WindowService.get_window(db, window_id)
        await MembershipService.require_admin(db, window.house_id, actor_id)

        if window.status != WindowStatus.SCHEDULED:
            raise PreconditionError(
                f"Window {window_id} is {window.status.value}, only scheduled windows can be opened",
                code="window_not_scheduled",
            )

        window.opens_at = utcnow()
        return await WindowService.open_window_if_due(db, window, now=window.opens_at)

    @staticmethod
    def _mark_closed(window: SignupWindow, reason: CloseReason) -> bool:
        if window.status == WindowStatus.CLOSED:
            return False
        if not WindowService.can_transition(window.status, WindowStatus.CLOSED):
            raise PreconditionError(
                f"Window {window.id} is {window.status.value} and cannot be closed",
                code="window_not_open",
            )

        window.status = WindowStatus.CLOSED
        window.closed_at = utcnow()
        logger.info("Window %s closed (%s)", window.id, reason.value)
        return True

    @staticmethod
    async def close_window(
        db: AsyncSession, window: SignupWindow, reason: CloseReason
    ) -> SignupWindow:
        """No-op if the window is already closed."""
        if WindowService._mark_closed(window, reason):
            await db.commit()
        return window

    @staticmethod
    async def close_window_as_admin(
        db: AsyncSession, window_id: int, actor_id: int
    ) -> SignupWindow:
        window = await WindowService.get_window(db, window_id)
        await MembershipService.require_admin(db, window.house_id, actor_id)
        return await WindowService.close_window(db, window, CloseReason.ADMIN)

    # -------------------------------------------------
    # Auto-close
    # -------------------------------------------------

    @staticmethod
    async def get_bed_counts(db: AsyncSession, window: SignupWindow) -> Tuple[int, int]:
        """(claimed_beds, total_beds) for the window's house."""
        result = await db.execute(
            select(func.count(func.distinct(BedClaim.bed_id))).where(
                BedClaim.signup_window_id == window.id
            )
        )
        claimed = result.scalar_one()
        total = await RoomService.count_beds(db, window.house_id)
        return claimed, total

    @staticmethod
    async def close_if_full(db: AsyncSession, window: SignupWindow) -> bool:
        """
        Closes the window when every bed in the house has a claim.
        Does not commit: runs inside the transaction of the claim that triggered it.
        """
        claimed, total = await WindowService.get_bed_counts(db, window)
        if total == 0 or claimed < total:
            return False

        logger.info(
            "All %s beds claimed in window %s, closing", total, window.id
        )
        return WindowService._mark_closed(window, CloseReason.ALL_BEDS_CLAIMED)

    # -------------------------------------------------
    # Queries
    # -------------------------------------------------

    @staticmethod
    async def get_active_window(db: AsyncSession, house_id: int) -> Optional[SignupWindow]:
        result = await db.execute(
            select(SignupWindow)
            .where(
                SignupWindow.house_id == house_id,
                SignupWindow.status == WindowStatus.OPEN,
            )
            .order_by(SignupWindow.target_weekend_start)
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_next_scheduled_window(
        db: AsyncSession, house_id: int
    ) -> Optional[SignupWindow]:
        result = await db.execute(
            select(SignupWindow)
            .where(
                SignupWindow.house_id == house_id,
                SignupWindow.status == WindowStatus.SCHEDULED,
            )
            .order_by(SignupWindow.opens_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def is_window_open_for_dates(
        db: AsyncSession, house_id: int, check_in: date, check_out: date
    ) -> WindowAvailability:
        """Is there an open window whose target weekend overlaps the stay dates?"""
        window = await WindowService.get_active_window(db, house_id)
        if window is None or not ranges_overlap(
            check_in, check_out, window.target_weekend_start, window.target_weekend_end
        ):
            return WindowAvailability(is_open=False, window=None)
        return WindowAvailability(is_open=True, window=window)

    @staticmethod
    async def list_due_windows(
        db: AsyncSession, now: Optional[datetime] = None
    ) -> List[SignupWindow]:
        now = to_naive_utc(now) if now else utcnow()
        result = await db.execute(
            select(SignupWindow)
            .where(
                SignupWindow.status == WindowStatus.SCHEDULED,
                SignupWindow.opens_at <= now,
            )
            .order_by(SignupWindow.opens_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_window_board(db: AsyncSession, window: SignupWindow) -> WindowBoardOut:
        rooms = await RoomService.list_rooms_with_beds(db, window.house_id)
        result = await db.execute(
            select(BedClaim).where(BedClaim.signup_window_id == window.id)
        )
        claims_by_bed = {claim.bed_id: claim for claim in result.scalars().all()}

        board_rooms = []
        total_beds = 0
        for room in rooms:
            beds = []
            for bed in room.beds:
                claim = claims_by_bed.get(bed.id)
                beds.append(
                    BoardBedOut(
                        **BedOut.model_validate(bed).model_dump(),
                        claim=ClaimOut.model_validate(claim) if claim else None,
                    )
                )
            total_beds += len(beds)
            board_rooms.append(
                BoardRoomOut(**RoomOut.model_validate(room).model_dump(), beds=beds)
            )

        return WindowBoardOut(
            **WindowOut.model_validate(window).model_dump(),
            rooms=board_rooms,
            total_beds=total_beds,
            claimed_beds=len(claims_by_bed),
        )

    @staticmethod
    async def get_window_status(db: AsyncSession, house_id: int) -> WindowStatusOut:
        """Admin overview: the open window (if any), otherwise the next scheduled one."""
        rooms = await RoomService.list_rooms_with_beds(db, house_id)
        has_rooms = any(room.beds for room in rooms)

        active = await WindowService.get_active_window(db, house_id)
        if active:
            return WindowStatusOut(
                active_window=await WindowService.get_window_board(db, active),
                has_rooms=has_rooms,
            )

        upcoming = await WindowService.get_next_scheduled_window(db, house_id)
        return WindowStatusOut(
            next_scheduled_window=WindowOut.model_validate(upcoming) if upcoming else None,
            has_rooms=has_rooms,
        )

    # -------------------------------------------------
    # Weekly scheduling
    # -------------------------------------------------

    @staticmethod
    async def schedule_weekend_windows(
        db: AsyncSession,
        today: Optional[date] = None,
        rng: Optional[random.Random] = None,
    ) -> List[SignupWindow]:
        """
        Creates a scheduled window for the weekend after next in every house that
        has bed sign-up enabled and at least one bed. Houses that already have a
        window for that weekend are skipped.
        """
        today = today or utcnow().date()
        friday, _ = next_target_weekend(today)
        monday = week_monday(today)

        # Plain rows: a rollback inside the loop must not expire what we iterate
        result = await db.execute(
            select(House.id, House.name, House.settings).order_by(House.id)
        )
        houses = result.all()

        created = []
        for house_id, name, raw_settings in houses:
            house_settings = HouseSettings.model_validate(raw_settings or {})
            if not house_settings.bed_signup_enabled:
                continue

            existing = await db.execute(
                select(SignupWindow.id).where(
                    SignupWindow.house_id == house_id,
                    SignupWindow.target_weekend_start == friday,
                )
            )
            if existing.scalar_one_or_none():
                logger.info("Window already exists for house %s (%s)", name, house_id)
                continue

            if await RoomService.count_beds(db, house_id) == 0:
                logger.info("House %s has no beds configured, skipping", name)
                continue

            try:
                window = await WindowService._insert_window(
                    db, house_id, friday, random_opens_at(monday, rng)
                )
            except ConflictError as e:
                logger.warning("Could not schedule window for house %s: %s", house_id, e)
                continue
            created.append(window)

        return created
