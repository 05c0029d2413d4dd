from __future__ import annotations

from fastapi import APIRouter, Depends

from assistdesk.core.deps import get_caller
from assistdesk.core.errors import ForbiddenError
from assistdesk.modules.bookings.schemas import Caller
from assistdesk.modules.bookings.service import get_booking
from .schemas import CommentCreateIn, CommentOut, CommentsListOut, MarkReadOut
from .service import add_comment, list_comments, mark_read

router = APIRouter(tags=["comments"])


def _check_participant(caller: Caller, booking_id: str) -> None:
    if caller.is_admin:
        return
    b = get_booking(booking_id)
    if caller.character_id != b["character_id"]:
        raise ForbiddenError("booking belongs to another requester", {"booking_id": booking_id})


@router.get("/bookings/{booking_id}/comments", response_model=CommentsListOut)
def api_list_comments(booking_id: str, caller: Caller = Depends(get_caller)) -> CommentsListOut:
    _check_participant(caller, booking_id)
    return CommentsListOut(items=list_comments(booking_id))


@router.post("/bookings/{booking_id}/comments", response_model=CommentOut)
def api_add_comment(booking_id: str, body: CommentCreateIn, caller: Caller = Depends(get_caller)) -> CommentOut:
    _check_participant(caller, booking_id)
    return add_comment(booking_id, body.content, caller.is_admin, body.author_name)


@router.post("/bookings/{booking_id}/comments/read", response_model=MarkReadOut)
def api_mark_read(booking_id: str, caller: Caller = Depends(get_caller)) -> MarkReadOut:
    _check_participant(caller, booking_id)
    return MarkReadOut(marked=mark_read(booking_id, caller.is_admin))
