# app/schemas/availability.py

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from app.db.models.availability import BlackoutDate
from app.services.availability import AvailabilityResult


class TimeBlock(BaseModel):
    start: str = Field(..., examples=["09:00"])
    end: str = Field(..., examples=["12:30"])


class AvailabilityOut(BaseModel):
    date: dt.date
    timezone: str
    duration_minutes: int
    free_blocks: List[TimeBlock]
    slots: List[TimeBlock]
    reason: Optional[str] = Field(None, description="blackout, closed, past or fully_booked when nothing is free")

    @classmethod
    def from_result(cls, result: AvailabilityResult) -> "AvailabilityOut":
        return cls(
            date=result.date,
            timezone=result.timezone,
            duration_minutes=result.duration_minutes,
            free_blocks=[TimeBlock(**b) for b in result.blocks_hhmm()],
            slots=[TimeBlock(**s) for s in result.slots_hhmm()],
            reason=result.reason,
        )


class BlackoutCreate(BaseModel):
    date: dt.date
    reason: Optional[str] = Field(None, max_length=255)
    is_recurring: bool = False


class BlackoutOut(BaseModel):
    id: int
    date: dt.date
    reason: Optional[str] = None
    is_recurring: bool

    @classmethod
    def from_model(cls, row: BlackoutDate) -> "BlackoutOut":
        return cls(id=row.id, date=row.blackout_date, reason=row.reason, is_recurring=row.is_recurring)
