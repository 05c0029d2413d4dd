"""
Request-scoped collaborators for the routers.

Authentication lives in front of this service; it forwards the caller as
headers, which are trusted as-is:
- X-Admin: 1|0
- X-Character-Id: requester identity
"""
from __future__ import annotations

from typing import Optional

from fastapi import Header

from assistdesk.core.errors import ForbiddenError
from assistdesk.modules.bookings.schemas import Caller


def get_caller(
    x_admin: Optional[str] = Header(None),
    x_character_id: Optional[str] = Header(None),
) -> Caller:
    is_admin = (x_admin or "").strip().lower() in {"1", "true", "yes"}
    character_id = (x_character_id or "").strip() or None
    return Caller(is_admin=is_admin, character_id=character_id)


def require_admin(caller: Caller) -> None:
    if not caller.is_admin:
        raise ForbiddenError("admin only")


def clamp_limit(raw: Optional[int]) -> int:
    if raw is None:
        return 50
    try:
        v = int(raw)
    except Exception:
        return 50
    if v < 1:
        v = 1
    if v > 200:
        v = 200
    return v


def clamp_offset(raw: Optional[int]) -> int:
    if raw is None:
        return 0
    try:
        v = int(raw)
    except Exception:
        return 0
    return max(v, 0)
