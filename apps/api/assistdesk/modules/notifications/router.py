from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from assistdesk.core.deps import get_caller, require_admin
from assistdesk.modules.bookings.schemas import Caller
from assistdesk.modules.bookings.service import get_bookings_by_ids
from .schemas import PendingCountOut, UnreadCountOut, UnreadCountsIn, UnreadCountsOut
from .service import format_badge, pending_count, unread_count, unread_counts

router = APIRouter(tags=["notifications"])


@router.get("/notifications/unread", response_model=UnreadCountOut)
def api_unread_count(
    booking_id: str | None = Query(None),
    caller: Caller = Depends(get_caller),
) -> UnreadCountOut:
    # a requester's total is scoped to their own bookings
    character_id = None if caller.is_admin else (caller.character_id or "")
    n = unread_count(caller.is_admin, booking_id=booking_id, character_id=character_id)
    return UnreadCountOut(count=n, badge=format_badge(n))


@router.post("/notifications/unread", response_model=UnreadCountsOut)
def api_unread_counts(body: UnreadCountsIn, caller: Caller = Depends(get_caller)) -> UnreadCountsOut:
    ids = body.booking_ids
    if not caller.is_admin:
        ids = [b["id"] for b in get_bookings_by_ids(ids) if b["character_id"] == caller.character_id]
    return UnreadCountsOut(counts=unread_counts(ids, caller.is_admin))


@router.get("/notifications/pending", response_model=PendingCountOut)
def api_pending_count(caller: Caller = Depends(get_caller)) -> PendingCountOut:
    require_admin(caller)
    n = pending_count()
    return PendingCountOut(count=n, badge=format_badge(n))
