# app/schemas/appointment.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from app.core.status import AppointmentStatus
from app.core.timezones import to_local
from app.db.models.appointment import Appointment
from app.utils.phone import normalize_phone


class AppointmentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    local_datetime: str = Field(..., alias="datetime", description="Local wall-clock start in the account timezone",
                                examples=["2025-10-20T09:00"])
    duration_minutes: Optional[int] = Field(None, gt=0, description="Defaults to the service duration or 30")
    customer_name: Optional[str] = Field(None, max_length=120, examples=["Jane Doe"])
    customer_phone: Optional[str] = Field(None, examples=["+43 660 1234567"])
    customer_email: Optional[str] = Field(None, max_length=254)
    appointment_type: Optional[str] = Field(None, max_length=120)
    service_id: Optional[int] = None
    notes: Optional[str] = None
    is_flagged: bool = Field(False, description="Content-safety flag of the conversation that produced the booking")

    @field_validator("customer_name")
    @classmethod
    def _strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = " ".join(v.split())
        return v or None

    @field_validator("customer_phone")
    @classmethod
    def _e164(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class AppointmentOut(BaseModel):
    id: int
    account_id: Optional[int]
    service_id: Optional[int] = None
    starts_at_utc: datetime
    local_datetime: str
    timezone: str
    duration_minutes: int
    status: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    appointment_type: Optional[str] = None
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, appt: Appointment, tz_name: str) -> "AppointmentOut":
        return cls(
            id=appt.id,
            account_id=appt.account_id,
            service_id=appt.service_id,
            starts_at_utc=appt.starts_at_utc,
            local_datetime=to_local(appt.starts_at_utc, tz_name),
            timezone=tz_name,
            duration_minutes=appt.duration_min,
            status=appt.status,
            customer_name=appt.customer_name,
            customer_phone=appt.customer_phone,
            customer_email=appt.customer_email,
            appointment_type=appt.appointment_type,
            notes=appt.notes,
            cancelled_at=appt.cancelled_at,
        )


class StatusUpdate(BaseModel):
    status: AppointmentStatus
    note: Optional[str] = None


class ReasonIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
