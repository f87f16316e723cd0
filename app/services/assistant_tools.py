# app/services/assistant_tools.py
"""
Function-calling tools exposed to the chat assistant.

The assistant sends ``{"name": ..., "arguments": ...}``; ``execute_tool`` maps
that onto the booking engine and returns a JSON-serializable payload plus a
plain sentence the assistant can relay to the customer.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BookingError, InvalidBookingRequest, StorageFailure
from app.core.status import AppointmentStatus
from app.core.timezones import LocalDateTime
from app.crud.account import get_account_context
from app.services.availability import check_availability
from app.services.booking import book_appointment, cancel_appointment
from app.services.locks import SlotLockRegistry

logger = structlog.get_logger(__name__)


TOOL_DEFINITIONS: list[dict] = [
    {
        "type": "function",
        "function": {
            "name": "checkAvailability",
            "description": "Checks for available appointment slots on a given date.",
            "parameters": {
                "type": "object",
                "properties": {
                    "date": {"type": "string", "description": "The date to check, in YYYY-MM-DD format."},
                    "duration": {"type": "number", "description": "The duration of the appointment in minutes."},
                },
                "required": ["date", "duration"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "bookAppointment",
            "description": "Books a new appointment with the customer.",
            "parameters": {
                "type": "object",
                "properties": {
                    "customerName": {"type": "string", "description": "The customer's full name."},
                    "customerPhone": {"type": "string", "description": "The customer's phone number."},
                    "customerEmail": {"type": "string", "description": "The customer's email address (optional)."},
                    "datetime": {
                        "type": "string",
                        "description": "Local start time of the appointment, YYYY-MM-DDTHH:MM.",
                    },
                    "duration": {"type": "number", "description": "The duration of the appointment in minutes."},
                    "appointmentType": {"type": "string", "description": "The type/service of the appointment."},
                    "serviceId": {"type": "number", "description": "Id of the booked service (optional)."},
                    "notes": {"type": "string", "description": "Any additional notes for the appointment."},
                },
                "required": ["customerName", "customerPhone", "datetime", "duration", "appointmentType"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "cancelAppointment",
            "description": "Cancels an existing appointment.",
            "parameters": {
                "type": "object",
                "properties": {
                    "appointmentId": {"type": "number", "description": "Id of the appointment to cancel."},
                    "reason": {"type": "string", "description": "Why the customer cancels (optional)."},
                },
                "required": ["appointmentId"],
            },
        },
    },
]


class ToolResult(BaseModel):
    ok: bool = Field(..., description="Whether the tool call succeeded")
    message_for_customer: str = Field(..., description="Plain sentence the assistant can relay")
    data: dict = Field(default_factory=dict, description="Structured result for the model")


def _jsonify(obj: Any) -> Any:
    """
    Make objects JSON-serializable for the tool payload:
    - datetime -> ISO string
    - dict/list -> walk recursively
    - other -> str()
    """
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: _jsonify(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonify(v) for v in obj]
    if isinstance(obj, (str, int, float, bool)) or obj is None:
        return obj
    return str(obj)


def _as_local(value: Any) -> str:
    # Models tend to append "Z" to what is really the customer's wall-clock time
    text = str(value or "").strip()
    return text[:-1] if text.endswith(("Z", "z")) else text


def _as_int(value: Any, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidBookingRequest(f"{field} must be a number", field=field) from exc


def _compose_booked_message(name: Optional[str], start: LocalDateTime, duration_min: int, status: str) -> str:
    when = start.local.strftime("%A, %B %d at %H:%M")
    who = f" for {name}" if name else ""
    if status == AppointmentStatus.PENDING.value:
        return f"Your {duration_min}-minute appointment{who} on {when} is reserved and waiting for confirmation."
    return f"Booked {duration_min}-minute appointment{who} on {when}. See you then!"


def _compose_error_message(error: BookingError) -> str:
    if error.code == "slot_unavailable":
        return "That time is already taken. Would you like a different time on the same day or another day?"
    if error.code == "invalid_time_format":
        return "What exact date and time would you like for the appointment?"
    if error.code == "appointment_not_found":
        return "I couldn't find that appointment."
    return "I couldn't complete that request. Could you check the details and try again?"


async def _check_availability(db: AsyncSession, account_id: int, args: dict) -> ToolResult:
    result = await check_availability(db, account_id, args.get("date"), _as_int(args.get("duration"), "duration"))
    slots = result.slots_hhmm()
    if slots:
        message = f"I have {len(slots)} open times on {result.date.isoformat()}."
    elif result.reason == "past":
        message = "That date is in the past. Which upcoming day works for you?"
    else:
        message = f"There is nothing available on {result.date.isoformat()}."
    return ToolResult(
        ok=True,
        message_for_customer=message,
        data={
            "date": result.date.isoformat(),
            "timezone": result.timezone,
            "availableSlots": slots,
            "freeBlocks": result.blocks_hhmm(),
            "reason": result.reason,
        },
    )


async def _book(
    db: AsyncSession,
    locks: SlotLockRegistry,
    account_id: int,
    args: dict,
    is_flagged: bool,
) -> ToolResult:
    service_id = args.get("serviceId")
    appt = await book_appointment(
        db,
        locks,
        account_id,
        local_datetime=_as_local(args.get("datetime")),
        duration_minutes=_as_int(args["duration"], "duration") if args.get("duration") is not None else None,
        customer_name=args.get("customerName"),
        customer_phone=args.get("customerPhone"),
        customer_email=args.get("customerEmail") or None,
        service_id=_as_int(service_id, "serviceId") if service_id is not None else None,
        appointment_type=args.get("appointmentType"),
        notes=args.get("notes"),
        is_flagged=is_flagged,
    )
    ctx = await get_account_context(db, account_id)
    start = LocalDateTime(appt.starts_at_utc, ctx.timezone)
    return ToolResult(
        ok=True,
        message_for_customer=_compose_booked_message(appt.customer_name, start, appt.duration_min, appt.status),
        data={
            "appointmentId": appt.id,
            "status": appt.status,
            "datetime": start.isoformat_local(),
            "duration": appt.duration_min,
        },
    )


async def _cancel(db: AsyncSession, account_id: int, args: dict) -> ToolResult:
    appt = await cancel_appointment(
        db,
        _as_int(args.get("appointmentId"), "appointmentId"),
        args.get("reason"),
        account_id=account_id,
    )
    return ToolResult(
        ok=True,
        message_for_customer="Your appointment has been cancelled.",
        data={"appointmentId": appt.id, "status": appt.status},
    )


async def execute_tool(
    db: AsyncSession,
    locks: SlotLockRegistry,
    account_id: int,
    name: str,
    arguments: dict | str,
    *,
    is_flagged: bool = False,
) -> dict:
    """
    Run one tool call. User-facing failures (conflicts, bad input) come back
    as ``ok=False`` payloads; storage failures propagate to the caller.
    """
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments or "{}")
        except json.JSONDecodeError:
            arguments = None
    if not isinstance(arguments, dict):
        return {"ok": False, "error": "invalid_arguments", "message_for_customer": "Sorry, something went wrong."}

    logger.info("tool_call", tool=name, account_id=account_id, is_flagged=is_flagged)
    try:
        if name == "checkAvailability":
            result = await _check_availability(db, account_id, arguments)
        elif name == "bookAppointment":
            result = await _book(db, locks, account_id, arguments, is_flagged)
        elif name == "cancelAppointment":
            result = await _cancel(db, account_id, arguments)
        else:
            return {"ok": False, "error": "unknown_tool", "detail": f"Unknown tool: {name}"}
    except StorageFailure:
        raise
    except BookingError as e:
        logger.info("tool_call_rejected", tool=name, error=e.code, detail=e.message)
        payload = {"ok": False, "message_for_customer": _compose_error_message(e)}
        payload.update(e.to_dict())
        return _jsonify(payload)

    return _jsonify(result.model_dump())
