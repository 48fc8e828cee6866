from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bunkhouse.models import BedType, RoomType


class RoomBase(BaseModel):
    name: str = Field(min_length=1)
    room_type: RoomType = RoomType.BEDROOM


class RoomCreate(RoomBase):
    display_order: Optional[int] = None


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    room_type: Optional[RoomType] = None
    display_order: Optional[int] = None


class BedBase(BaseModel):
    name: str = Field(min_length=1)
    bed_type: BedType = BedType.TWIN
    is_premium: bool = False


class BedCreate(BedBase):
    display_order: Optional[int] = None


class BedUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    bed_type: Optional[BedType] = None
    is_premium: Optional[bool] = None
    display_order: Optional[int] = None


class ReorderRequest(BaseModel):
    ids: List[int]


class BedOut(BedBase):
    id: int
    room_id: int
    house_id: int
    display_order: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoomOut(RoomBase):
    id: int
    house_id: int
    display_order: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoomWithBedsOut(RoomOut):
    beds: List[BedOut] = []
