from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ClaimCreate(BaseModel):
    bed_id: int


class CoClaimerUpdate(BaseModel):
    # None detaches the current co-claimer
    co_claimer_id: Optional[int] = None


class ClaimOut(BaseModel):
    id: int
    signup_window_id: int
    bed_id: int
    user_id: int
    co_claimer_id: Optional[int] = None
    claimed_at: datetime

    model_config = ConfigDict(from_attributes=True)
