from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, Response

from assistdesk.core.deps import clamp_limit, clamp_offset, get_caller, require_admin
from assistdesk.core.errors import ForbiddenError, ValidationError
from .ledger import PRESET_WINDOWS
from .schemas import (
    BookingCreateIn,
    BookingFromTemplateIn,
    BookingOut,
    BookingPatchIn,
    BookingsListOut,
    BulkPurgeIn,
    BulkResultOut,
    BulkStatusChangeIn,
    Caller,
    CapacityOut,
    CustomWindow,
    PageOut,
    PhotosAddIn,
    PresetWindow,
    StatusChangeIn,
)
from .service import (
    add_photos,
    bulk_purge,
    bulk_transition,
    cancel_booking,
    create_booking,
    create_booking_from_template,
    get_booking,
    get_booking_by_request_number,
    list_bookings,
    purge_booking,
    remaining_capacity,
    transition,
    update_booking,
)

router = APIRouter(tags=["bookings"])


def _check_can_view(caller: Caller, booking: dict) -> None:
    if caller.is_admin or caller.character_id == booking["character_id"]:
        return
    raise ForbiddenError("booking belongs to another requester", {"booking_id": booking["id"]})


def _check_can_book_as(caller: Caller, character_id: str) -> None:
    # admins may file on behalf of a requester; requesters only as themselves
    if caller.is_admin:
        return
    if not caller.character_id or caller.character_id != character_id.strip():
        raise ForbiddenError("cannot file a request for another character", {"character_id": character_id})


@router.post("/bookings", response_model=BookingOut)
def api_create_booking(body: BookingCreateIn, caller: Caller = Depends(get_caller)) -> BookingOut:
    _check_can_book_as(caller, body.character_id)
    return create_booking(body)


@router.post("/bookings/from-template", response_model=BookingOut)
def api_create_booking_from_template(
    body: BookingFromTemplateIn, caller: Caller = Depends(get_caller)
) -> BookingOut:
    _check_can_book_as(caller, body.character_id)
    return create_booking_from_template(body)


@router.get("/bookings", response_model=BookingsListOut)
def api_list_bookings(
    limit: int | None = Query(None),
    offset: int | None = Query(None),
    status: str | None = Query(None, description="pending|confirmed|completed|cancelled"),
    assistance_type_id: str | None = Query(None),
    caller: Caller = Depends(get_caller),
) -> BookingsListOut:
    # requesters only ever see their own bookings
    character_id = None if caller.is_admin else (caller.character_id or "")
    lim = clamp_limit(limit)
    off = clamp_offset(offset)
    items, total = list_bookings(
        limit=lim, offset=off, status=status, assistance_type_id=assistance_type_id, character_id=character_id
    )
    has_more = (off + lim) < total
    return BookingsListOut(items=items, page=PageOut(offset=off, limit=lim, total=total, has_more=has_more))


@router.get("/bookings/by-number/{request_number}", response_model=BookingOut)
def api_get_booking_by_number(request_number: str, caller: Caller = Depends(get_caller)) -> BookingOut:
    b = get_booking_by_request_number(request_number)
    _check_can_view(caller, b)
    return b


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def api_get_booking(booking_id: str = Path(...), caller: Caller = Depends(get_caller)) -> BookingOut:
    b = get_booking(booking_id)
    _check_can_view(caller, b)
    return b


@router.patch("/bookings/{booking_id}", response_model=BookingOut)
def api_update_booking(booking_id: str, body: BookingPatchIn, caller: Caller = Depends(get_caller)) -> BookingOut:
    return update_booking(booking_id, body, caller)


@router.post("/bookings/{booking_id}/photos", response_model=BookingOut)
def api_add_photos(booking_id: str, body: PhotosAddIn, caller: Caller = Depends(get_caller)) -> BookingOut:
    return add_photos(booking_id, body.photo_urls, caller)


@router.post("/bookings/bulk/status", response_model=BulkResultOut)
def api_bulk_status(body: BulkStatusChangeIn, caller: Caller = Depends(get_caller)) -> BulkResultOut:
    require_admin(caller)
    return bulk_transition(body.ids, body.status, caller)


@router.post("/bookings/{booking_id}/status", response_model=BookingOut)
def api_change_status(booking_id: str, body: StatusChangeIn, caller: Caller = Depends(get_caller)) -> BookingOut:
    return transition(booking_id, body.status, caller)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
def api_cancel_booking(booking_id: str, caller: Caller = Depends(get_caller)) -> BookingOut:
    return cancel_booking(booking_id, caller)


@router.delete("/bookings/{booking_id}", status_code=204)
def api_purge_booking(booking_id: str, caller: Caller = Depends(get_caller)) -> Response:
    purge_booking(booking_id, caller)
    return Response(status_code=204)


@router.post("/bookings/bulk/delete")
def api_bulk_purge(body: BulkPurgeIn, caller: Caller = Depends(get_caller)) -> dict:
    require_admin(caller)
    return {"deleted": bulk_purge(body.ids, caller)}


@router.get("/assistance-types/{type_id}/capacity", response_model=CapacityOut)
def api_remaining_capacity(
    type_id: str,
    day: str = Query(...),
    preset: str | None = Query(None, description="early|middle|late"),
    start_time: str | None = Query(None),
    end_time: str | None = Query(None),
) -> CapacityOut:
    if start_time is not None or end_time is not None:
        window = CustomWindow(start_time=start_time or "", end_time=end_time or "")
    else:
        preset = preset or "early"
        if preset not in PRESET_WINDOWS:
            raise ValidationError("unknown time range preset", {"field": "preset", "value": preset})
        window = PresetWindow(preset=preset)
    return remaining_capacity(type_id, day, window)
