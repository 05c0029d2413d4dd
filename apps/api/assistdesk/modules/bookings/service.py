from __future__ import annotations

import json
import re
import sqlite3
from typing import Any, Dict, List, Optional, Tuple, Union

from assistdesk.core.config import get_settings
from assistdesk.core.db import connect, insert_row, new_ulid, next_sequence, now_iso, transaction
from assistdesk.core.errors import (
    BookingLockedError,
    CapacityExceededError,
    DeskError,
    DuplicateBookingError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from assistdesk.core.locks import KeyedLocks, StaleWriteError, run_with_retry
from assistdesk.core.logging import emit
from assistdesk.modules.bookings import lifecycle
from assistdesk.modules.bookings.ledger import (
    booked_slots,
    check_admission,
    load_occupants,
    normalize_day,
    resolve_schedule,
    resolve_window,
    schedule_from_columns,
    schedule_to_in,
)
from assistdesk.modules.bookings.schemas import (
    BookingCreateIn,
    BookingFromTemplateIn,
    BookingPatchIn,
    Caller,
    CustomWindow,
    PresetWindow,
)
from assistdesk.modules.catalog.service import get_assistance_type_row, get_template_row

REQUEST_NUMBER_SEQUENCE = "request_number"

_CHARACTER_ID = re.compile(r"^\d+$")

# admission is serialised per assistance type
_type_locks = KeyedLocks()


# -------------------------
# rows
# -------------------------
def _row_to_booking(row: sqlite3.Row) -> Dict[str, Any]:
    d = dict(row)
    try:
        d["photo_urls"] = json.loads(d.get("photo_urls_json") or "[]")
    except ValueError:
        d["photo_urls"] = []
    d["schedule"] = schedule_from_columns(row).to_out()
    d["willing_to_donate"] = bool(int(d.get("willing_to_donate") or 0))
    for k in ("photo_urls_json", "selected_days_json", "time_range_preset", "start_time", "end_time", "slots"):
        d.pop(k, None)
    return d


def _booking_row(conn: sqlite3.Connection, booking_id: str) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM bookings WHERE id=?;", (booking_id,)).fetchone()
    if not row:
        raise NotFoundError("booking not found", {"booking_id": booking_id})
    return row


def _check_owner_or_admin(caller: Caller, row: sqlite3.Row) -> None:
    if caller.is_admin:
        return
    if not caller.character_id or caller.character_id != row["character_id"]:
        raise ForbiddenError("booking belongs to another requester", {"booking_id": row["id"]})


def _clean_photo_urls(urls: List[str]) -> List[str]:
    out = [u.strip() for u in urls if u and u.strip()]
    if len(out) != len(urls):
        raise ValidationError("photo urls must be non-empty strings", {"field": "photo_urls"})
    return out


def _validate_create(body: BookingCreateIn) -> None:
    # Required-field checks, in the order a requester fills the form in.
    if not body.character_id.strip():
        raise ValidationError("character id is required", {"field": "character_id"})
    if not _CHARACTER_ID.match(body.character_id.strip()):
        raise ValidationError("character id must contain only numbers", {"field": "character_id"})
    if not body.contact_info.strip():
        raise ValidationError("contact information is required", {"field": "contact_info"})
    if not body.assistance_type_id.strip():
        raise ValidationError("select an assistance type", {"field": "assistance_type_id"})
    if not body.additional_info.strip():
        raise ValidationError("additional information is required", {"field": "additional_info"})


def _has_open_duplicate(conn: sqlite3.Connection, character_id: str, type_id: str) -> bool:
    # only open bookings block; a completed or cancelled one frees the type for a new request
    row = conn.execute(
        "SELECT id FROM bookings WHERE character_id=? AND assistance_type_id=? AND status IN (?, ?) LIMIT 1;",
        (character_id, type_id, lifecycle.PENDING, lifecycle.CONFIRMED),
    ).fetchone()
    return row is not None


# -------------------------
# create
# -------------------------
def create_booking(body: BookingCreateIn) -> Dict[str, Any]:
    """
    Admit a new request and insert it as a pending booking.

    The type lookup, duplicate check, ledger admission, request-number
    sequencing and insert run as one write transaction under the type's lock;
    any rejection rolls the whole attempt back.
    """
    _validate_create(body)
    character_id = body.character_id.strip()
    type_id = body.assistance_type_id.strip()
    photo_urls = _clean_photo_urls(body.photo_urls)
    reject_duplicates = get_settings().reject_duplicate_requests

    def attempt() -> Dict[str, Any]:
        conn = connect()
        try:
            with _type_locks.hold(type_id), transaction(conn):
                atype = get_assistance_type_row(conn, type_id)
                if not atype["is_active"]:
                    raise ValidationError("assistance type is not accepting requests", {"assistance_type_id": type_id})
                if photo_urls and not atype["allow_photo_upload"]:
                    raise ValidationError("this assistance type does not accept photos", {"field": "photo_urls"})

                schedule = resolve_schedule(body.schedule, allow_schedule=atype["allow_schedule"])

                if reject_duplicates and _has_open_duplicate(conn, character_id, type_id):
                    raise DuplicateBookingError(
                        "you already have an open request for this assistance type",
                        {"character_id": character_id, "assistance_type_id": type_id},
                    )

                admission = check_admission(
                    capacity=atype["capacity"],
                    allow_schedule=atype["allow_schedule"],
                    schedule=schedule,
                    occupants=load_occupants(conn, type_id, days=schedule.days),
                )

                seq = next_sequence(conn, REQUEST_NUMBER_SEQUENCE)
                now = now_iso()
                booking_id = new_ulid()
                row: Dict[str, Any] = {
                    "id": booking_id,
                    "request_number": f"REQ-{character_id}-{seq:06d}",
                    "character_id": character_id,
                    "contact_info": body.contact_info.strip(),
                    "assistance_type_id": type_id,
                    "assistance_type_name": atype["name"],
                    "additional_info": body.additional_info.strip(),
                    "photo_urls_json": json.dumps(photo_urls, ensure_ascii=False),
                    "willing_to_donate": int(body.willing_to_donate),
                    "status": lifecycle.PENDING,
                    "version": 1,
                    "created_at": now,
                    "updated_at": now,
                }
                row.update(schedule.to_columns())
                insert_row(conn, "bookings", row)

            emit(
                "info",
                "booking.admitted",
                f"booking {row['request_number']} admitted",
                __name__,
                booking_id=booking_id,
                assistance_type_id=type_id,
                days=list(admission.days),
                slots=admission.slots,
            )
            return _row_to_booking(_booking_row(conn, booking_id))
        finally:
            conn.close()

    try:
        return run_with_retry("create_booking", attempt)
    except CapacityExceededError as e:
        emit("info", "booking.rejected", e.message, __name__, assistance_type_id=type_id, **e.details)
        raise


def create_booking_from_template(body: BookingFromTemplateIn) -> Dict[str, Any]:
    """Copy the template's defaults into a new request; the booking keeps no link to the template."""
    conn = connect()
    try:
        tpl = get_template_row(conn, body.template_id)
    finally:
        conn.close()

    if not int(tpl["is_active"]):
        raise ValidationError("template is not active", {"template_id": body.template_id})

    schedule = body.schedule if body.schedule is not None else schedule_to_in(schedule_from_columns(tpl))
    additional_info = body.additional_info if body.additional_info else tpl["additional_info"]
    return create_booking(
        BookingCreateIn(
            character_id=body.character_id,
            contact_info=body.contact_info,
            assistance_type_id=tpl["assistance_type_id"],
            additional_info=additional_info,
            photo_urls=body.photo_urls,
            schedule=schedule,
            willing_to_donate=body.willing_to_donate,
        )
    )


# -------------------------
# read
# -------------------------
def get_booking(booking_id: str) -> Dict[str, Any]:
    conn = connect()
    try:
        return _row_to_booking(_booking_row(conn, booking_id))
    finally:
        conn.close()


def get_booking_by_request_number(request_number: str) -> Dict[str, Any]:
    conn = connect()
    try:
        row = conn.execute("SELECT * FROM bookings WHERE request_number=?;", (request_number,)).fetchone()
        if not row:
            raise NotFoundError("booking not found", {"request_number": request_number})
        return _row_to_booking(row)
    finally:
        conn.close()


def get_bookings_by_ids(booking_ids: List[str]) -> List[Dict[str, Any]]:
    if not booking_ids:
        return []
    conn = connect()
    try:
        marks = ",".join(["?"] * len(booking_ids))
        rows = conn.execute(
            f"SELECT * FROM bookings WHERE id IN ({marks}) ORDER BY created_at DESC;", list(booking_ids)
        ).fetchall()
        return [_row_to_booking(r) for r in rows]
    finally:
        conn.close()


def list_bookings(
    limit: int,
    offset: int,
    status: Optional[str] = None,
    assistance_type_id: Optional[str] = None,
    character_id: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    conn = connect()
    try:
        clauses: List[str] = []
        args: List[Any] = []
        if status:
            clauses.append("status=?")
            args.append(status)
        if assistance_type_id:
            clauses.append("assistance_type_id=?")
            args.append(assistance_type_id)
        if character_id is not None:
            clauses.append("character_id=?")
            args.append(character_id)
        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""

        total = conn.execute(f"SELECT COUNT(1) AS n FROM bookings {where};", args).fetchone()["n"]
        rows = conn.execute(
            f"SELECT * FROM bookings {where} ORDER BY created_at DESC, request_number DESC LIMIT ? OFFSET ?;",
            args + [limit, offset],
        ).fetchall()
        return ([_row_to_booking(r) for r in rows], int(total))
    finally:
        conn.close()


def remaining_capacity(type_id: str, day: str, window: Union[PresetWindow, CustomWindow]) -> Dict[str, Any]:
    """Slots still free on `day` for `window`. `remaining` is None when the type has no capacity."""
    day = normalize_day(day)
    resolved = resolve_window(window)
    conn = connect()
    try:
        atype = get_assistance_type_row(conn, type_id)
        capacity = atype["capacity"] if atype["allow_schedule"] else None
        remaining = None
        if capacity is not None:
            booked = booked_slots(day, resolved, load_occupants(conn, type_id, days=[day]))
            remaining = max(capacity - booked, 0)
        return {
            "assistance_type_id": type_id,
            "day": day,
            "start_time": resolved.start_time,
            "end_time": resolved.end_time,
            "capacity": capacity,
            "remaining": remaining,
        }
    finally:
        conn.close()


# -------------------------
# edits (pending only / photos)
# -------------------------
def update_booking(booking_id: str, patch: BookingPatchIn, caller: Caller) -> Dict[str, Any]:
    """Edit a pending booking. A new schedule is re-admitted with this booking's own slots excluded."""

    def attempt() -> Dict[str, Any]:
        conn = connect()
        try:
            type_id = str(_booking_row(conn, booking_id)["assistance_type_id"])
            with _type_locks.hold(type_id), transaction(conn):
                row = _booking_row(conn, booking_id)
                _check_owner_or_admin(caller, row)
                if row["status"] != lifecycle.PENDING:
                    raise BookingLockedError(row["status"], "edit")

                sets: Dict[str, Any] = {}
                if patch.contact_info is not None:
                    if not patch.contact_info.strip():
                        raise ValidationError("contact information is required", {"field": "contact_info"})
                    sets["contact_info"] = patch.contact_info.strip()
                if patch.additional_info is not None:
                    if not patch.additional_info.strip():
                        raise ValidationError("additional information is required", {"field": "additional_info"})
                    sets["additional_info"] = patch.additional_info.strip()
                if patch.willing_to_donate is not None:
                    sets["willing_to_donate"] = int(patch.willing_to_donate)
                if patch.schedule is not None:
                    atype = get_assistance_type_row(conn, type_id)
                    schedule = resolve_schedule(patch.schedule, allow_schedule=atype["allow_schedule"])
                    check_admission(
                        capacity=atype["capacity"],
                        allow_schedule=atype["allow_schedule"],
                        schedule=schedule,
                        occupants=load_occupants(conn, type_id, days=schedule.days, exclude_booking_id=booking_id),
                    )
                    sets.update(schedule.to_columns())

                if not sets:
                    return _row_to_booking(row)

                keys = sorted(sets.keys())
                cur = conn.execute(
                    f"UPDATE bookings SET {', '.join(k + '=?' for k in keys)}, version=version+1, updated_at=? "
                    "WHERE id=? AND version=?;",
                    [sets[k] for k in keys] + [now_iso(), booking_id, row["version"]],
                )
                if cur.rowcount == 0:
                    raise StaleWriteError(booking_id)

            return _row_to_booking(_booking_row(conn, booking_id))
        finally:
            conn.close()

    return run_with_retry("update_booking", attempt)


def add_photos(booking_id: str, photo_urls: List[str], caller: Caller) -> Dict[str, Any]:
    urls = _clean_photo_urls(photo_urls)
    if not urls:
        raise ValidationError("no photo urls given", {"field": "photo_urls"})

    def attempt() -> Dict[str, Any]:
        conn = connect()
        try:
            with transaction(conn):
                row = _booking_row(conn, booking_id)
                _check_owner_or_admin(caller, row)
                if row["status"] not in lifecycle.OPEN:
                    raise BookingLockedError(row["status"], "add photos to")
                atype = get_assistance_type_row(conn, str(row["assistance_type_id"]))
                if not atype["allow_photo_upload"]:
                    raise ValidationError("this assistance type does not accept photos", {"field": "photo_urls"})

                current = json.loads(row["photo_urls_json"] or "[]")
                merged = current + [u for u in urls if u not in current]
                conn.execute(
                    "UPDATE bookings SET photo_urls_json=?, version=version+1, updated_at=? WHERE id=?;",
                    (json.dumps(merged, ensure_ascii=False), now_iso(), booking_id),
                )
            return _row_to_booking(_booking_row(conn, booking_id))
        finally:
            conn.close()

    return run_with_retry("add_photos", attempt)


# -------------------------
# lifecycle
# -------------------------
def transition(booking_id: str, target: str, caller: Caller) -> Dict[str, Any]:
    """
    Move a booking to `target`.

    Optimistic: the UPDATE only matches the (status, version) that was read and
    validated. Losing a race means re-reading and re-validating, so two
    concurrent moves from the same prior state can never both succeed.
    """

    def attempt() -> Dict[str, Any]:
        conn = connect()
        try:
            row = _booking_row(conn, booking_id)
            lifecycle.check_actor(caller, target, row["character_id"])
            lifecycle.check_transition(row["status"], target)

            cur = conn.execute(
                "UPDATE bookings SET status=?, version=version+1, updated_at=? WHERE id=? AND status=? AND version=?;",
                (target, now_iso(), booking_id, row["status"], row["version"]),
            )
            if cur.rowcount == 0:
                raise StaleWriteError(booking_id)

            emit(
                "info",
                "booking.transition",
                f"booking {row['request_number']} {row['status']} -> {target}",
                __name__,
                booking_id=booking_id,
                from_status=row["status"],
                to_status=target,
                by_admin=caller.is_admin,
            )
            return _row_to_booking(_booking_row(conn, booking_id))
        finally:
            conn.close()

    return run_with_retry("transition", attempt)


def cancel_booking(booking_id: str, caller: Caller) -> Dict[str, Any]:
    return transition(booking_id, lifecycle.CANCELLED, caller)


def bulk_transition(booking_ids: List[str], target: str, caller: Caller) -> Dict[str, Any]:
    """Apply one move to many bookings; each id succeeds or fails on its own."""
    results: List[Dict[str, Any]] = []
    updated = 0
    for booking_id in booking_ids:
        try:
            b = transition(booking_id, target, caller)
        except DeskError as e:
            results.append({"id": booking_id, "ok": False, "error": e.code, "message": e.message})
            continue
        updated += 1
        results.append({"id": booking_id, "ok": True, "status": b["status"]})
    return {"updated": updated, "results": results}


# -------------------------
# purge (admin delete)
# -------------------------
def purge_booking(booking_id: str, caller: Caller) -> None:
    """Physically delete a booking and its comments. Its request number is not reused."""
    if not caller.is_admin:
        raise ForbiddenError("only an admin can delete bookings", {"booking_id": booking_id})

    def attempt() -> None:
        conn = connect()
        try:
            with transaction(conn):
                row = _booking_row(conn, booking_id)
                conn.execute("DELETE FROM comments WHERE booking_id=?;", (booking_id,))
                conn.execute("DELETE FROM bookings WHERE id=?;", (booking_id,))
            emit("info", "booking.purged", f"booking {row['request_number']} deleted", __name__, booking_id=booking_id)
        finally:
            conn.close()

    run_with_retry("purge_booking", attempt)


def bulk_purge(booking_ids: List[str], caller: Caller) -> int:
    deleted = 0
    for booking_id in booking_ids:
        try:
            purge_booking(booking_id, caller)
        except NotFoundError:
            continue
        deleted += 1
    return deleted
