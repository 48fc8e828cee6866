"""
История записей на кровати: закрытые окна и статистика по участникам.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.core.config import settings
from bunkhouse.models import Bed, BedClaim, Room, SignupWindow, WindowStatus
from bunkhouse.schemas.history import HistoryClaimOut, HistoryEntryOut, UserBedStats
from bunkhouse.schemas.window import WindowOut

logger = logging.getLogger(__name__)


class HistoryService:
    @staticmethod
    async def get_signup_history(
        db: AsyncSession, house_id: int, limit: Optional[int] = None
    ) -> List[HistoryEntryOut]:
        """The most recent `limit` closed windows, newest first, with their claims."""
        limit = limit or settings.history_default_limit

        result = await db.execute(
            select(SignupWindow)
            .where(
                SignupWindow.house_id == house_id,
                SignupWindow.status == WindowStatus.CLOSED,
            )
            .order_by(SignupWindow.target_weekend_start.desc())
            .limit(limit)
        )
        windows = list(result.scalars().all())
        if not windows:
            return []

        rows = await db.execute(
            select(BedClaim, Bed, Room)
            .join(Bed, Bed.id == BedClaim.bed_id)
            .join(Room, Room.id == Bed.room_id)
            .where(BedClaim.signup_window_id.in_([w.id for w in windows]))
            .order_by(Room.display_order, Bed.display_order, BedClaim.id)
        )

        claims_by_window: Dict[int, List[HistoryClaimOut]] = defaultdict(list)
        for claim, bed, room in rows.all():
            claims_by_window[claim.signup_window_id].append(
                HistoryClaimOut(
                    claim_id=claim.id,
                    user_id=claim.user_id,
                    co_claimer_id=claim.co_claimer_id,
                    bed_id=bed.id,
                    bed_name=bed.name,
                    bed_type=bed.bed_type,
                    is_premium=bed.is_premium,
                    room_name=room.name,
                    claimed_at=claim.claimed_at,
                )
            )

        return [
            HistoryEntryOut(
                window=WindowOut.model_validate(window),
                claims=claims_by_window.get(window.id, []),
            )
            for window in windows
        ]

    @staticmethod
    def aggregate_claim_stats(entries: Iterable[HistoryEntryOut]) -> Dict[int, UserBedStats]:
        """
        Per-user rollup of the given history. Only primary claimers are counted;
        a co-claimer shares the bed but did not sign up for it.
        """
        stats: Dict[int, UserBedStats] = {}
        for entry in entries:
            for claim in entry.claims:
                user_stats = stats.setdefault(claim.user_id, UserBedStats(user_id=claim.user_id))
                user_stats.total_claims += 1
                user_stats.by_room[claim.room_name] = user_stats.by_room.get(claim.room_name, 0) + 1
                bed_type = claim.bed_type.value
                user_stats.by_bed_type[bed_type] = user_stats.by_bed_type.get(bed_type, 0) + 1
                if claim.is_premium:
                    user_stats.premium_count += 1
        return stats

    @staticmethod
    async def get_claim_stats(
        db: AsyncSession, house_id: int, limit: Optional[int] = None
    ) -> Dict[int, UserBedStats]:
        history = await HistoryService.get_signup_history(db, house_id, limit)
        return HistoryService.aggregate_claim_stats(history)

    @staticmethod
    async def get_user_bed_stats(
        db: AsyncSession, house_id: int, user_id: int, limit: Optional[int] = None
    ) -> UserBedStats:
        stats = await HistoryService.get_claim_stats(db, house_id, limit)
        return stats.get(user_id, UserBedStats(user_id=user_id))
