from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict

from bunkhouse.models import BedType
from bunkhouse.schemas.window import WindowOut


class HistoryClaimOut(BaseModel):
    claim_id: int
    user_id: int
    co_claimer_id: int | None = None
    bed_id: int
    bed_name: str
    bed_type: BedType
    is_premium: bool
    room_name: str
    claimed_at: datetime


class HistoryEntryOut(BaseModel):
    window: WindowOut
    claims: List[HistoryClaimOut] = []


class UserBedStats(BaseModel):
    user_id: int
    total_claims: int = 0
    by_room: Dict[str, int] = {}
    by_bed_type: Dict[str, int] = {}
    premium_count: int = 0

    model_config = ConfigDict(from_attributes=True)
