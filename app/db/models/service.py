# app/db/models/service.py

from __future__ import annotations
from typing import Optional
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base, IdType

class Service(Base):
    """Bookable service offered by an account (haircut, consultation, ...)."""
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        IdType, sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    duration_min: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="30")
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
