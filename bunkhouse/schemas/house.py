from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from bunkhouse.models import MemberRole


class HouseSettings(BaseModel):
    """Recognised per-house feature settings. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    bed_signup_enabled: bool = False
    guest_fee_recipient_id: Optional[int] = None
    guest_nightly_rate: Optional[Decimal] = None


class HouseCreate(BaseModel):
    name: str
    settings: HouseSettings = HouseSettings()


class HouseOut(BaseModel):
    id: int
    name: str
    settings: HouseSettings
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserOut(BaseModel):
    id: int
    email: str
    display_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MemberOut(BaseModel):
    user_id: int
    role: MemberRole
    joined_at: datetime
    user: UserOut

    model_config = ConfigDict(from_attributes=True)
