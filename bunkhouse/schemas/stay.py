from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StayBase(BaseModel):
    check_in: date
    check_out: date
    notes: Optional[str] = None
    guest_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_dates(self):
        if self.check_out < self.check_in:
            raise ValueError("Check-out must be after check-in")
        return self


class StayCreate(StayBase):
    # Falls back to the house setting, then to DEFAULT_GUEST_NIGHTLY_RATE
    guest_nightly_rate: Optional[Decimal] = Field(default=None, ge=0)
    bed_claim_id: Optional[int] = None
    co_booker_id: Optional[int] = None


class StayUpdate(BaseModel):
    """Partial update. For bed_claim_id / co_booker_id an explicit null clears the link,
    an omitted field leaves it untouched."""

    check_in: Optional[date] = None
    check_out: Optional[date] = None
    notes: Optional[str] = None
    guest_count: Optional[int] = Field(default=None, ge=0)
    guest_nightly_rate: Optional[Decimal] = Field(default=None, ge=0)
    bed_claim_id: Optional[int] = None
    co_booker_id: Optional[int] = None


class StayOut(StayBase):
    id: int
    house_id: int
    user_id: int
    co_booker_id: Optional[int] = None
    linked_expense_id: Optional[int] = None
    bed_claim_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LinkStayRequest(BaseModel):
    stay_id: int
