# app/db/models/account.py

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base, IdType

class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    # IANA zone name; NULL or unknown falls back to settings.DEFAULT_TIMEZONE
    timezone: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    # never | on_redflag | always
    review_mode: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="never")

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    appointments: Mapped[list["Appointment"]] = relationship(
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
