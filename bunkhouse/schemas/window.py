from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from bunkhouse.models import WindowStatus
from bunkhouse.schemas.claim import ClaimOut
from bunkhouse.schemas.room import BedOut, RoomOut
from bunkhouse.utils.dates import FRIDAY


class WindowCreate(BaseModel):
    target_weekend_start: date
    opens_at: datetime

    @field_validator("target_weekend_start")
    @classmethod
    def must_be_friday(cls, value: date) -> date:
        if value.weekday() != FRIDAY:
            raise ValueError("target weekend must start on a Friday")
        return value


class WindowOut(BaseModel):
    id: int
    house_id: int
    target_weekend_start: date
    target_weekend_end: date
    opens_at: datetime
    closed_at: Optional[datetime] = None
    status: WindowStatus

    model_config = ConfigDict(from_attributes=True)


class WindowAvailabilityOut(BaseModel):
    is_open: bool
    window: Optional[WindowOut] = None

    model_config = ConfigDict(from_attributes=True)


class BoardBedOut(BedOut):
    claim: Optional[ClaimOut] = None


class BoardRoomOut(RoomOut):
    beds: List[BoardBedOut] = []


class WindowBoardOut(WindowOut):
    """Window with every room and bed and the claim (if any) on each bed."""

    rooms: List[BoardRoomOut] = []
    total_beds: int = 0
    claimed_beds: int = 0


class WindowStatusOut(BaseModel):
    active_window: Optional[WindowBoardOut] = None
    next_scheduled_window: Optional[WindowOut] = None
    has_rooms: bool = False
