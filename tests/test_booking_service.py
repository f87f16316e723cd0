#!/usr/bin/env python3
"""
Tests for the booking service: conflict check, status policy, lifecycle.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.errors import (
    AccountNotFound,
    AppointmentNotFound,
    InvalidBookingRequest,
    InvalidStatusTransition,
    InvalidTimeFormat,
    ServiceNotFound,
    SlotUnavailable,
)
from app.core.status import AppointmentStatus
from app.crud.account import create_account
from app.crud.appointment import list_appointments
from app.crud.service import create_service
from app.db.base import init_db
from app.core.intervals import Interval, buffer
from app.core.timezones import to_instant
from app.services.booking import (
    book_appointment,
    cancel_appointment,
    find_conflicts,
    slot_days,
    update_appointment_status,
)
from app.services.locks import SlotLockRegistry

UTC = timezone.utc


async def book(db, locks, account_id, local, duration=60, **kwargs):
    return await book_appointment(
        db,
        locks,
        account_id,
        local_datetime=local,
        duration_minutes=duration,
        customer_name=kwargs.pop("customer_name", "Jane Doe"),
        **kwargs,
    )


@pytest.mark.integration
class TestBookAppointment:
    """Happy path and input handling"""

    @pytest.mark.asyncio
    async def test_books_in_account_timezone(self, db, locks, account):
        appt = await book(db, locks, account.id, "2025-10-20T13:00", customer_phone="+43 660 1234567")

        assert appt.id is not None
        assert appt.starts_at_utc == datetime(2025, 10, 20, 11, 0, tzinfo=UTC)
        assert appt.duration_min == 60
        assert appt.status == AppointmentStatus.CONFIRMED.value
        assert appt.customer_phone == "+436601234567"

    @pytest.mark.asyncio
    async def test_unknown_account(self, db, locks):
        with pytest.raises(AccountNotFound):
            await book(db, locks, 987654, "2025-10-20T13:00")

    @pytest.mark.asyncio
    async def test_malformed_datetime(self, db, locks, account):
        with pytest.raises(InvalidTimeFormat):
            await book(db, locks, account.id, "next tuesday at 3")

    @pytest.mark.asyncio
    async def test_invalid_phone(self, db, locks, account):
        with pytest.raises(InvalidBookingRequest):
            await book(db, locks, account.id, "2025-10-20T13:00", customer_phone="not a number")

    @pytest.mark.asyncio
    async def test_rejects_excessive_duration(self, db, locks, account):
        with pytest.raises(InvalidBookingRequest):
            await book(db, locks, account.id, "2025-10-20T13:00", duration=3 * 24 * 60)

    @pytest.mark.asyncio
    async def test_service_defaults(self, db, locks, account):
        service = await create_service(db, account.id, name="Haircut", duration_min=45)

        appt = await book_appointment(
            db, locks, account.id, local_datetime="2025-10-20T10:00", service_id=service.id
        )

        assert appt.duration_min == 45
        assert appt.appointment_type == "Haircut"
        assert appt.service_id == service.id

    @pytest.mark.asyncio
    async def test_service_of_other_account(self, db, locks, account):
        other = await create_account(db, name="Other")
        service = await create_service(db, other.id, name="Massage")

        with pytest.raises(ServiceNotFound):
            await book_appointment(db, locks, account.id, local_datetime="2025-10-20T10:00", service_id=service.id)

    @pytest.mark.asyncio
    async def test_default_duration(self, db, locks, account):
        appt = await book_appointment(db, locks, account.id, local_datetime="2025-10-20T10:00")
        assert appt.duration_min == 30

    @pytest.mark.asyncio
    async def test_lock_registry_is_released(self, db, locks, account):
        await book(db, locks, account.id, "2025-10-20T13:00")
        assert len(locks) == 0


@pytest.mark.integration
class TestConflicts:
    """Overlap detection with buffers"""

    @pytest.mark.asyncio
    async def test_overlapping_booking_is_rejected(self, db, locks, account):
        first = await book(db, locks, account.id, "2025-10-20T13:00")
        first_id, account_id = first.id, account.id

        with pytest.raises(SlotUnavailable) as exc_info:
            await book(db, locks, account_id, "2025-10-20T13:30", duration=30)

        assert exc_info.value.context["conflicting_ids"] == [first_id]
        assert exc_info.value.context["requested"] == "2025-10-20T13:30:00"
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_buffer_zone_is_rejected(self, db, locks, account):
        await book(db, locks, account.id, "2025-10-20T13:00")

        # Ends at 12:45, inside the 30-minute buffer before 13:00
        with pytest.raises(SlotUnavailable):
            await book(db, locks, account.id, "2025-10-20T12:15", duration=30)

    @pytest.mark.asyncio
    async def test_edge_of_buffer_is_accepted(self, db, locks, account):
        await book(db, locks, account.id, "2025-10-20T13:00")

        before = await book(db, locks, account.id, "2025-10-20T12:00", duration=30)
        after = await book(db, locks, account.id, "2025-10-20T14:30", duration=30)

        assert before.id and after.id

    @pytest.mark.asyncio
    async def test_other_account_does_not_conflict(self, db, locks, account):
        other = await create_account(db, name="Other", timezone="Europe/Vienna")
        await book(db, locks, account.id, "2025-10-20T13:00")

        appt = await book(db, locks, other.id, "2025-10-20T13:00")

        assert appt.account_id == other.id

    @pytest.mark.asyncio
    async def test_system_wide_block_conflicts(self, db, locks, account):
        await book(db, locks, None, "2025-10-20T10:00", duration=30)

        with pytest.raises(SlotUnavailable):
            await book(db, locks, account.id, "2025-10-20T10:15", duration=30)

    @pytest.mark.asyncio
    async def test_system_wide_booking_checks_every_account(self, db, locks, account):
        await book(db, locks, account.id, "2025-10-20T10:00", duration=30)

        with pytest.raises(SlotUnavailable):
            await book(db, locks, None, "2025-10-20T10:00", duration=30)

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_rebooked(self, db, locks, account):
        first = await book(db, locks, account.id, "2025-10-20T13:00")
        await cancel_appointment(db, first.id, "customer called")

        second = await book(db, locks, account.id, "2025-10-20T13:00")

        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_conflict_across_midnight(self, db, locks, account):
        await book(db, locks, account.id, "2025-10-20T23:30", duration=60)

        with pytest.raises(SlotUnavailable):
            await book(db, locks, account.id, "2025-10-21T00:15", duration=30)

    @pytest.mark.asyncio
    async def test_find_conflicts_excludes_given_id(self, db, locks, account):
        appt = await book(db, locks, account.id, "2025-10-20T13:00")
        start = appt.starts_at_utc

        assert [c.id for c in await find_conflicts(db, account.id, start, 60)] == [appt.id]
        assert await find_conflicts(db, account.id, start, 60, exclude_id=appt.id) == []
        assert await find_conflicts(db, account.id, start + timedelta(minutes=90), 30) == []


@pytest.mark.integration
class TestReviewGating:
    """Initial status follows the account review mode"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode, flagged, expected", [
        ("never", False, "confirmed"),
        ("never", True, "confirmed"),
        ("on_redflag", False, "confirmed"),
        ("on_redflag", True, "pending"),
        ("always", False, "pending"),
        ("always", True, "pending"),
    ])
    async def test_initial_status(self, db, locks, mode, flagged, expected):
        acct = await create_account(db, name=f"Review {mode}", timezone="Europe/Vienna", review_mode=mode)

        appt = await book(db, locks, acct.id, "2025-10-20T10:00", is_flagged=flagged)

        assert appt.status == expected


@pytest.mark.integration
class TestStatusLifecycle:
    """Cancellation and status transitions"""

    @pytest.mark.asyncio
    async def test_cancel_records_reason(self, db, locks, account):
        appt = await book(db, locks, account.id, "2025-10-20T13:00")

        cancelled = await cancel_appointment(db, appt.id, "sick")

        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_at is not None
        assert "Cancelled: sick" in cancelled.notes

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, db, locks, account):
        appt = await book(db, locks, account.id, "2025-10-20T13:00")

        await cancel_appointment(db, appt.id)
        again = await cancel_appointment(db, appt.id)

        assert again.status == "cancelled"

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, db):
        with pytest.raises(AppointmentNotFound):
            await cancel_appointment(db, 55555)

    @pytest.mark.asyncio
    async def test_cancel_scoped_to_account(self, db, locks, account):
        other = await create_account(db, name="Other")
        appt = await book(db, locks, account.id, "2025-10-20T13:00")

        with pytest.raises(AppointmentNotFound):
            await cancel_appointment(db, appt.id, account_id=other.id)

    @pytest.mark.asyncio
    async def test_completed_cannot_be_cancelled(self, db, locks, account):
        appt = await book(db, locks, account.id, "2025-10-20T13:00")
        await update_appointment_status(db, appt.id, "completed")

        with pytest.raises(InvalidStatusTransition):
            await cancel_appointment(db, appt.id)

    @pytest.mark.asyncio
    async def test_confirmed_cannot_go_back_to_pending(self, db, locks, account):
        appt = await book(db, locks, account.id, "2025-10-20T13:00")

        with pytest.raises(InvalidStatusTransition):
            await update_appointment_status(db, appt.id, AppointmentStatus.PENDING)

    @pytest.mark.asyncio
    async def test_noshow_keeps_history(self, db, locks, account):
        appt = await book(db, locks, account.id, "2025-10-20T13:00")

        updated = await update_appointment_status(db, appt.id, "noshow", note="did not show up")

        assert updated.status == "noshow"
        rows = await list_appointments(db, account_id=account.id, statuses="all")
        assert [r.id for r in rows] == [appt.id]
        assert await list_appointments(db, account_id=account.id) == []


@pytest.mark.integration
class TestConcurrentBooking:
    """Check-and-insert is serialized per account and day"""

    @pytest.mark.asyncio
    async def test_double_booking_race_has_one_winner(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}")
        await init_db(engine)
        factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
        locks = SlotLockRegistry()

        async with factory() as db:
            acct = await create_account(db, name="Race", timezone="Europe/Vienna")
            account_id = acct.id

        async def attempt(name):
            async with factory() as db:
                return await book(db, locks, account_id, "2025-10-20T13:00", customer_name=name)

        try:
            results = await asyncio.gather(*(attempt(f"caller {n}") for n in range(5)), return_exceptions=True)
        finally:
            await engine.dispose()

        booked = [r for r in results if not isinstance(r, BaseException)]
        rejected = [r for r in results if isinstance(r, SlotUnavailable)]
        assert len(booked) == 1
        assert len(rejected) == 4
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_system_wide_and_other_zone_race_has_one_winner(self, tmp_path):
        """Same instant booked system-wide in Vienna and by a Tokyo account."""
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'zones.db'}")
        await init_db(engine)
        factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
        locks = SlotLockRegistry()

        async with factory() as db:
            tokyo = await create_account(db, name="Tokyo", timezone="Asia/Tokyo")
            tokyo_id = tokyo.id

        async def attempt(account_id, local):
            async with factory() as db:
                return await book(db, locks, account_id, local)

        try:
            results = await asyncio.gather(
                attempt(None, "2025-10-20T18:00"),
                attempt(tokyo_id, "2025-10-21T01:00"),
                return_exceptions=True,
            )
        finally:
            await engine.dispose()

        assert sum(not isinstance(r, BaseException) for r in results) == 1
        assert sum(isinstance(r, SlotUnavailable) for r in results) == 1


class TestSlotDays:
    """Lock keys shared by bookings from different zones"""

    @staticmethod
    def _window(instant, minutes=60):
        return buffer(Interval(instant, instant + timedelta(minutes=minutes)), 30, 30)

    def test_keys_are_utc_dates(self):
        vienna = to_instant("2025-10-20T18:00", "Europe/Vienna")
        tokyo = to_instant("2025-10-21T01:00", "Asia/Tokyo")

        assert vienna == tokyo
        assert slot_days(self._window(vienna)) == slot_days(self._window(tokyo)) == [date(2025, 10, 20)]

    def test_window_across_utc_midnight(self):
        start = datetime(2025, 10, 20, 23, 45, tzinfo=UTC)
        assert slot_days(self._window(start, 30)) == [date(2025, 10, 20), date(2025, 10, 21)]

    def test_end_at_midnight_stays_on_one_day(self):
        start = datetime(2025, 10, 20, 22, 0, tzinfo=UTC)
        window = Interval(start, start + timedelta(hours=2))
        assert slot_days(window) == [date(2025, 10, 20)]

    @pytest.mark.asyncio
    async def test_account_booking_waits_for_system_wide_hold(self, db, locks):
        tokyo = await create_account(db, name="Tokyo", timezone="Asia/Tokyo")
        vienna_start = to_instant("2025-10-20T18:00", "Europe/Vienna")

        async with locks.hold(None, *slot_days(self._window(vienna_start))):
            pending = asyncio.create_task(book(db, locks, tokyo.id, "2025-10-21T01:00"))
            await asyncio.sleep(0.05)
            assert not pending.done()

        appt = await pending
        assert appt.starts_at_utc == vienna_start
