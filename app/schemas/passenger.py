from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

SeatType = Literal["lower", "middle", "upper", "side_lower", "side_upper"]


class PassengerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    pnr: str = Field(pattern=r"^\d{10}$", description="10-digit PNR")
    seat_type: Optional[SeatType] = None
    coach_index: Optional[int] = Field(None, ge=0)
    group_size: int = Field(1, ge=1)


class PassengerResponse(BaseModel):
    user_id: int = Field(validation_alias="id")
    name: str
    pnr: str
    seat_type: Optional[str]
    coach_index: Optional[int]
    group_size: int
    created_at: datetime
    is_active: bool

    model_config = {"from_attributes": True, "populate_by_name": True}


class SeatUpdate(BaseModel):
    seat_type: Optional[SeatType] = None
    coach_index: Optional[int] = Field(None, ge=0)
    group_size: Optional[int] = Field(None, ge=1)
