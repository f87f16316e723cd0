# app/db/models/appointment.py

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Optional
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base, IdType
from app.core.status import AppointmentStatus
from app.core.timezones import ensure_utc

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        sa.Index("ix_appointments_account_id_starts_at", "account_id", "starts_at"),
        sa.Index("ix_appointments_status", "status"),
        sa.CheckConstraint("duration_min > 0", name="positive_duration"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    # NULL = system-wide block that applies to every account
    account_id: Mapped[Optional[int]] = mapped_column(
        IdType, sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=True
    )
    service_id: Mapped[Optional[int]] = mapped_column(
        IdType, sa.ForeignKey("services.id", ondelete="SET NULL"), nullable=True
    )

    # Store as timezone-aware UTC
    starts_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    duration_min: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="30")
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default=AppointmentStatus.CONFIRMED.value)

    customer_name: Mapped[Optional[str]] = mapped_column(sa.String(120))
    customer_phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    customer_email: Mapped[Optional[str]] = mapped_column(sa.String(254))
    appointment_type: Mapped[Optional[str]] = mapped_column(sa.String(120))
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    # Appointment lifecycle management
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    account: Mapped[Optional["Account"]] = relationship(back_populates="appointments")

    @property
    def starts_at_utc(self) -> datetime:
        return ensure_utc(self.starts_at)

    @property
    def ends_at_utc(self) -> datetime:
        return self.starts_at_utc + timedelta(minutes=self.duration_min)

    def mark_as_cancelled(self):
        self.status = AppointmentStatus.CANCELLED.value
        self.cancelled_at = datetime.now(timezone.utc)

    def append_note(self, line: str):
        self.notes = line if not self.notes else f"{self.notes}\n{line}"
