# app/db/base.py

"""
Imports every ORM model so Alembic and init_db() see the full metadata.
Whenever you add a new model, import it here.
"""
from app.db.models.account import Account
from app.db.models.appointment import Appointment
from app.db.models.availability import AvailabilityConfig, BlackoutDate
from app.db.models.service import Service
from app.db.session import engine, Base

__all__ = ["Account", "Appointment", "AvailabilityConfig", "BlackoutDate", "Service", "Base"]

async def init_db(bind=None):
    """Create all tables on ``bind`` (defaults to the application engine)."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
