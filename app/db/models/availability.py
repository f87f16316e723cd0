# app/db/models/availability.py

from __future__ import annotations
from datetime import date, datetime, timezone
from typing import Optional
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base, IdType

class AvailabilityConfig(Base):
    """Weekly business-hours template, one active row per account."""
    __tablename__ = "availability_configs"
    __table_args__ = (
        sa.Index("ix_availability_configs_account_id_active", "account_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        IdType, sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    # {"0": {"is_available": false, "time_slots": []}, "1": {...}, ...}; 0 = Sunday
    weekly_schedule: Mapped[dict] = mapped_column(sa.JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

class BlackoutDate(Base):
    """Whole days without availability (holidays, vacation)."""
    __tablename__ = "blackout_dates"
    __table_args__ = (
        sa.UniqueConstraint("account_id", "date", name="uq_blackout_dates_account_id_date"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        IdType, sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    blackout_date: Mapped[date] = mapped_column("date", sa.Date, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.String(255))
    # Repeats on the same month/day every year
    is_recurring: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    def covers(self, day: date) -> bool:
        if self.is_recurring:
            return (self.blackout_date.month, self.blackout_date.day) == (day.month, day.day)
        return self.blackout_date == day
