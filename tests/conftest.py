#!/usr/bin/env python3
"""
Shared pytest fixtures: an in-memory SQLite database per test, a lock
registry, and factories for accounts and appointments.
"""

import os
import sys

# Must be set before app.core.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["APP_ENV"] = "testing"
os.environ["API_KEY"] = ""
os.environ["DEFAULT_TIMEZONE"] = "Europe/Vienna"
os.environ["DEFAULT_PHONE_REGION"] = "AT"

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.status import AppointmentStatus
from app.core.timezones import to_instant
from app.crud.account import create_account
from app.crud.appointment import insert_appointment
from app.db.base import init_db
from app.services.locks import SlotLockRegistry

VIENNA = "Europe/Vienna"

# Monday 2025-10-20; Vienna is on CEST (UTC+2) that day
MONDAY = "2025-10-20"
# Sunday morning before MONDAY, so MONDAY is neither "past" nor "today"
BEFORE_MONDAY = datetime(2025, 10, 19, 6, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database with every table created."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return SlotLockRegistry()


@pytest_asyncio.fixture
async def account(db):
    return await create_account(db, name="Studio Vienna", timezone=VIENNA)


@pytest.fixture
def make_appointment(db):
    """Insert an appointment at a Vienna wall-clock time, bypassing the conflict check."""

    async def _make(account_id, local, duration_min=60, status=AppointmentStatus.CONFIRMED, **fields):
        return await insert_appointment(
            db,
            account_id=account_id,
            starts_at_utc=to_instant(local, VIENNA),
            duration_min=duration_min,
            status=status,
            **fields,
        )

    return _make


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Pure unit tests with no external dependencies")
    config.addinivalue_line("markers", "integration: Tests that run against the SQLite database")
