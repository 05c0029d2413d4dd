from __future__ import annotations

from typing import Any, Dict, Optional

from assistdesk.modules.bookings.schemas import BookingCreateIn, Caller, CustomWindow, PresetWindow, ScheduleIn
from assistdesk.modules.bookings.service import create_booking


def schedule(
    days: tuple[str, ...] = ("monday",),
    start: Optional[str] = "10:00",
    end: Optional[str] = "11:00",
    slots: int = 1,
    preset: Optional[str] = None,
) -> ScheduleIn:
    window = PresetWindow(preset=preset) if preset else CustomWindow(start_time=start, end_time=end)
    return ScheduleIn(selected_days=list(days), window=window, slots=slots)


def book(type_id: str, character_id: str = "1001", sched: Optional[ScheduleIn] = None, **kw: Any) -> Dict[str, Any]:
    body = BookingCreateIn(
        character_id=character_id,
        contact_info=kw.pop("contact_info", "discord: tester"),
        assistance_type_id=type_id,
        additional_info=kw.pop("additional_info", "need a hand"),
        schedule=sched,
        **kw,
    )
    return create_booking(body)


def requester(character_id: str) -> Caller:
    return Caller(is_admin=False, character_id=character_id)
