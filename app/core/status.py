# app/core/status.py
from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Union


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    BOOKED = "booked"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NOSHOW = "noshow"


# Active appointments occupy time; inactive ones are ignored by availability
ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.BOOKED, AppointmentStatus.CONFIRMED})
INACTIVE_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NOSHOW})

ALL = "all"

_FROM_ACTIVE_TO = {
    AppointmentStatus.CANCELLED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NOSHOW,
}

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: _FROM_ACTIVE_TO | {AppointmentStatus.CONFIRMED},
    AppointmentStatus.BOOKED: _FROM_ACTIVE_TO | {AppointmentStatus.CONFIRMED},
    AppointmentStatus.CONFIRMED: set(_FROM_ACTIVE_TO),
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.NOSHOW: set(),
}


def can_transition(current: Union[str, AppointmentStatus], target: Union[str, AppointmentStatus]) -> bool:
    return AppointmentStatus(target) in ALLOWED_TRANSITIONS[AppointmentStatus(current)]


def status_filter(statuses: Optional[Union[str, Iterable[Union[str, AppointmentStatus]]]]) -> Optional[list[str]]:
    """Resolve a caller's status filter to column values.

    ``None`` → active statuses, ``"all"`` → no filter (``None`` returned),
    anything else → exactly those statuses.
    """
    if statuses is None:
        return sorted(s.value for s in ACTIVE_STATUSES)
    if isinstance(statuses, str):
        if statuses == ALL:
            return None
        statuses = [part for part in statuses.split(",") if part.strip()]
    return sorted({
        s.value if isinstance(s, AppointmentStatus) else AppointmentStatus(s.strip()).value
        for s in statuses
    })
