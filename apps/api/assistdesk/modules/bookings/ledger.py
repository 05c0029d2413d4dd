"""
Slot ledger: schedule resolution and admission against a type's capacity.

Windows are half-open minute ranges [start, end) within one weekday. For each
requested day the ledger sums the slots of every non-cancelled booking whose
window overlaps the requested one on that day; the request is admitted only if
that sum plus the requested slots stays within the type's capacity. Types
without a capacity, or with scheduling disabled, always admit.

Everything here is pure except `load_occupants`, which reads the store and must
be called inside the same write transaction as the insert it guards.
"""
from __future__ import annotations

import json
import re
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from assistdesk.core.errors import CapacityExceededError, ValidationError
from assistdesk.modules.bookings.schemas import CustomWindow, PresetWindow, ScheduleIn, ScheduleOut

WEEKDAYS: Tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
_DAY_ALIASES: Dict[str, str] = {d[:3]: d for d in WEEKDAYS}
_DAY_ALIASES.update({"tues": "tuesday", "thur": "thursday", "thurs": "thursday"})

PRESET_WINDOWS: Dict[str, Tuple[str, str]] = {
    "early": ("05:00", "10:00"),
    "middle": ("10:00", "14:00"),
    "late": ("14:00", "19:00"),
}

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_hhmm(value: Any, field: str) -> int:
    m = _HHMM.match(str(value or "").strip())
    if not m:
        raise ValidationError(f"{field} must be HH:MM", {"field": field, "value": value})
    hours, minutes = int(m.group(1)), int(m.group(2))
    total = hours * 60 + minutes
    if minutes >= 60 or total > 24 * 60:
        raise ValidationError(f"{field} is not a time of day", {"field": field, "value": value})
    return total


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class Window:
    start: int  # minutes since midnight, inclusive
    end: int  # exclusive

    def overlaps(self, other: "Window") -> bool:
        return self.start < other.end and other.start < self.end

    @property
    def start_time(self) -> str:
        return format_hhmm(self.start)

    @property
    def end_time(self) -> str:
        return format_hhmm(self.end)


def windows_overlap(a: Window, b: Window) -> bool:
    return a.overlaps(b)


def normalize_day(token: Any) -> str:
    t = str(token or "").strip().lower()
    if t in WEEKDAYS:
        return t
    if t in _DAY_ALIASES:
        return _DAY_ALIASES[t]
    raise ValidationError(f"unknown weekday {token!r}", {"field": "selected_days", "value": token})


def normalize_days(tokens: Iterable[Any]) -> Tuple[str, ...]:
    days = {normalize_day(t) for t in tokens}
    if not days:
        raise ValidationError("select at least one day", {"field": "selected_days"})
    return tuple(d for d in WEEKDAYS if d in days)


def resolve_window(window: Union[PresetWindow, CustomWindow]) -> Window:
    if isinstance(window, CustomWindow):
        start = parse_hhmm(window.start_time, "start_time")
        end = parse_hhmm(window.end_time, "end_time")
        if start >= end:
            raise ValidationError(
                "start_time must be before end_time",
                {"start_time": window.start_time, "end_time": window.end_time},
            )
        return Window(start, end)

    start_s, end_s = PRESET_WINDOWS[window.preset]
    return Window(parse_hhmm(start_s, "start_time"), parse_hhmm(end_s, "end_time"))


@dataclass(frozen=True)
class ResolvedSchedule:
    days: Tuple[str, ...]
    preset: Optional[str]  # None when the type does not schedule
    window: Optional[Window]
    slots: int

    def to_columns(self) -> Dict[str, Any]:
        return {
            "selected_days_json": json.dumps(list(self.days)),
            "time_range_preset": self.preset,
            "start_time": self.window.start_time if self.window else None,
            "end_time": self.window.end_time if self.window else None,
            "slots": self.slots,
        }

    def to_out(self) -> ScheduleOut:
        return ScheduleOut(
            selected_days=list(self.days),
            time_range_preset=self.preset,
            start_time=self.window.start_time if self.window else None,
            end_time=self.window.end_time if self.window else None,
            slots=self.slots,
        )


UNSCHEDULED = ResolvedSchedule(days=(), preset=None, window=None, slots=1)


def resolve_schedule(schedule: Optional[ScheduleIn], *, allow_schedule: bool) -> ResolvedSchedule:
    """Validate a requested schedule. Raises ValidationError before any store access."""
    if not allow_schedule:
        return UNSCHEDULED
    if schedule is None:
        raise ValidationError("schedule is required for this assistance type", {"field": "schedule"})
    if schedule.slots < 1:
        raise ValidationError("slots must be >= 1", {"field": "slots", "value": schedule.slots})

    days = normalize_days(schedule.selected_days)
    window = resolve_window(schedule.window)
    preset = "custom" if isinstance(schedule.window, CustomWindow) else schedule.window.preset
    return ResolvedSchedule(days=days, preset=preset, window=window, slots=schedule.slots)


def schedule_from_columns(row: sqlite3.Row) -> ResolvedSchedule:
    try:
        raw_days = json.loads(row["selected_days_json"] or "[]")
    except ValueError:
        raw_days = []
    days = tuple(d for d in WEEKDAYS if d in set(raw_days))
    window = None
    if row["start_time"] and row["end_time"]:
        window = Window(parse_hhmm(row["start_time"], "start_time"), parse_hhmm(row["end_time"], "end_time"))
    return ResolvedSchedule(days=days, preset=row["time_range_preset"], window=window, slots=int(row["slots"] or 1))


def schedule_to_in(schedule: ResolvedSchedule) -> Optional[ScheduleIn]:
    """Turn a stored schedule back into request shape (template copy-on-use)."""
    if schedule.window is None or not schedule.days:
        return None
    if schedule.preset in PRESET_WINDOWS:
        window: Union[PresetWindow, CustomWindow] = PresetWindow(preset=schedule.preset)
    else:
        window = CustomWindow(start_time=schedule.window.start_time, end_time=schedule.window.end_time)
    return ScheduleIn(selected_days=list(schedule.days), window=window, slots=schedule.slots)


@dataclass(frozen=True)
class Occupant:
    booking_id: str
    days: FrozenSet[str]
    window: Window
    slots: int


@dataclass(frozen=True)
class Admission:
    days: Tuple[str, ...]
    window: Optional[Window]
    slots: int


def booked_slots(day: str, window: Window, occupants: Iterable[Occupant]) -> int:
    return sum(o.slots for o in occupants if day in o.days and windows_overlap(o.window, window))


def check_admission(
    *,
    capacity: Optional[int],
    allow_schedule: bool,
    schedule: ResolvedSchedule,
    occupants: Sequence[Occupant],
) -> Admission:
    if not allow_schedule or schedule.window is None:
        return Admission(days=(), window=None, slots=schedule.slots)

    if capacity is not None:
        for day in schedule.days:
            booked = booked_slots(day, schedule.window, occupants)
            if booked + schedule.slots > capacity:
                raise CapacityExceededError(day=day, requested=schedule.slots, booked=booked, capacity=capacity)

    return Admission(days=schedule.days, window=schedule.window, slots=schedule.slots)


def load_occupants(
    conn: sqlite3.Connection,
    assistance_type_id: str,
    *,
    days: Optional[Iterable[str]] = None,
    exclude_booking_id: Optional[str] = None,
) -> List[Occupant]:
    """Non-cancelled scheduled bookings of one type, optionally narrowed to some days."""
    rows = conn.execute(
        "SELECT id, selected_days_json, time_range_preset, start_time, end_time, slots "
        "FROM bookings WHERE assistance_type_id=? AND status!='cancelled' AND start_time IS NOT NULL;",
        (assistance_type_id,),
    ).fetchall()

    wanted = set(days) if days is not None else None
    out: List[Occupant] = []
    for r in rows:
        if exclude_booking_id and r["id"] == exclude_booking_id:
            continue
        sched = schedule_from_columns(r)
        if sched.window is None:
            continue
        occupied = frozenset(sched.days)
        if wanted is not None and not (occupied & wanted):
            continue
        out.append(Occupant(booking_id=str(r["id"]), days=occupied, window=sched.window, slots=sched.slots))
    return out
