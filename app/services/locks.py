# app/services/locks.py
"""
In-process serialization of booking check-and-insert.

Bookings for the same ``(account_id, UTC date)`` run one at a time. A
system-wide booking (``account_id=None``) conflicts with every account, so it
takes the whole date exclusively while account bookings share it.

The registry is plain application state; one instance lives on
``app.state.slot_locks`` and is handed to the booking service.
"""
from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import date
from typing import AsyncIterator, Dict, Optional, Tuple


class _DayGate:
    """Shared/exclusive gate for one date. Waiting writers block new readers."""

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    async def acquire_shared(self):
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._writers_waiting == 0)
            self._readers += 1

    async def release_shared(self):
        async with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    async def acquire_exclusive(self):
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._writers_waiting -= 1
            self._writer = True

    async def release_exclusive(self):
        async with self._cond:
            self._writer = False
            self._cond.notify_all()


class SlotLockRegistry:
    def __init__(self):
        self._gates: Dict[date, Tuple[_DayGate, int]] = {}
        self._locks: Dict[Tuple[int, date], Tuple[asyncio.Lock, int]] = {}

    def __len__(self) -> int:
        """Number of dates and account/date keys currently in use."""
        return len(self._gates) + len(self._locks)

    def _checkout(self, table: dict, key, factory):
        entry, users = table.get(key, (None, 0))
        if entry is None:
            entry = factory()
        table[key] = (entry, users + 1)
        return entry

    def _checkin(self, table: dict, key):
        entry, users = table[key]
        if users <= 1:
            del table[key]
        else:
            table[key] = (entry, users - 1)

    @asynccontextmanager
    async def _hold_day(self, account_id: Optional[int], day: date) -> AsyncIterator[None]:
        gate = self._checkout(self._gates, day, _DayGate)
        try:
            if account_id is None:
                await gate.acquire_exclusive()
                try:
                    yield
                finally:
                    await gate.release_exclusive()
                return

            await gate.acquire_shared()
            try:
                key = (account_id, day)
                lock = self._checkout(self._locks, key, asyncio.Lock)
                try:
                    async with lock:
                        yield
                finally:
                    self._checkin(self._locks, key)
            finally:
                await gate.release_shared()
        finally:
            self._checkin(self._gates, day)

    @asynccontextmanager
    async def hold(self, account_id: Optional[int], *days: date) -> AsyncIterator[None]:
        """Hold every given date for ``account_id`` (``None`` = all accounts).

        Dates are taken in ascending order so overlapping holders cannot deadlock.
        """
        async with AsyncExitStack() as stack:
            for day in sorted(set(days)):
                await stack.enter_async_context(self._hold_day(account_id, day))
            yield
