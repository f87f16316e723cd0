# app/core/business.py
from __future__ import annotations

from datetime import date
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.errors import InvalidTimeFormat
from app.core.intervals import Interval, merge, parse_hhmm

# 0=Sun .. 6=Sat, as stored in availability_configs.weekly_schedule
WEEKDAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")


def schedule_weekday(day: date) -> int:
    """Python's Monday=0 → schedule weekday with Sunday=0."""
    return (day.weekday() + 1) % 7


class LocalTimeRange(BaseModel):
    start: str = Field(..., examples=["09:00"])
    end: str = Field(..., examples=["17:00"])

    @field_validator("start", "end")
    @classmethod
    def _canonical(cls, v: str) -> str:
        try:
            minutes = parse_hhmm(v)
        except InvalidTimeFormat as exc:
            raise ValueError(exc.message) from exc
        return f"{minutes // 60:02d}:{minutes % 60:02d}"

    @model_validator(mode="after")
    def _ordered(self):
        if parse_hhmm(self.start) >= parse_hhmm(self.end):
            raise ValueError(f"time slot start {self.start} must be before end {self.end}")
        return self

    def to_interval(self) -> Interval:
        return Interval(parse_hhmm(self.start), parse_hhmm(self.end))


class DaySchedule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_available: bool = Field(False, alias="isAvailable")
    time_slots: List[LocalTimeRange] = Field(default_factory=list, alias="timeSlots")

    @model_validator(mode="after")
    def _closed_days_have_no_slots(self):
        if not self.is_available:
            self.time_slots = []
        else:
            self.time_slots = sorted(self.time_slots, key=lambda r: parse_hhmm(r.start))
        return self

    def ranges(self) -> List[Interval]:
        """Business-hour ranges in minutes of day; overlapping slots are merged."""
        if not self.is_available:
            return []
        return merge(slot.to_interval() for slot in self.time_slots)


class WeeklySchedule(BaseModel):
    days: Dict[int, DaySchedule] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_named_days(cls, data):
        # Dashboard payloads key days by name and carry dayOfWeek inside
        if isinstance(data, dict) and "days" not in data:
            days = {}
            for key, value in data.items():
                if isinstance(value, dict) and "dayOfWeek" in value:
                    index = int(value["dayOfWeek"])
                elif str(key).lower() in WEEKDAY_NAMES:
                    index = WEEKDAY_NAMES.index(str(key).lower())
                else:
                    index = int(key)
                days[index] = value
            return {"days": days}
        return data

    @field_validator("days")
    @classmethod
    def _weekday_range(cls, v: Dict[int, DaySchedule]) -> Dict[int, DaySchedule]:
        for key in v:
            if not 0 <= key <= 6:
                raise ValueError(f"weekday must be 0 (Sunday) to 6 (Saturday), got {key}")
        return v

    def for_weekday(self, weekday: int) -> DaySchedule:
        return self.days.get(weekday) or DaySchedule(is_available=False)

    def for_date(self, day: date) -> DaySchedule:
        return self.for_weekday(schedule_weekday(day))

    def to_storage(self) -> dict:
        return {
            str(index): day.model_dump(by_alias=False)
            for index, day in sorted(self.days.items())
        }


def _weekday_hours(start: str, end: str) -> DaySchedule:
    return DaySchedule(is_available=True, time_slots=[LocalTimeRange(start=start, end=end)])


# Self-healing default used when an account has no schedule yet: Mon–Fri 09:00–17:00
DEFAULT_WEEKLY_SCHEDULE = WeeklySchedule(days={
    0: DaySchedule(is_available=False),
    1: _weekday_hours("09:00", "17:00"),
    2: _weekday_hours("09:00", "17:00"),
    3: _weekday_hours("09:00", "17:00"),
    4: _weekday_hours("09:00", "17:00"),
    5: _weekday_hours("09:00", "17:00"),
    6: DaySchedule(is_available=False),
})
