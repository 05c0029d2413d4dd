from __future__ import annotations

from typing import Dict, FrozenSet, Optional

from assistdesk.core.errors import ForbiddenError, InvalidTransitionError, ValidationError
from assistdesk.modules.bookings.schemas import Caller

PENDING = "pending"
CONFIRMED = "confirmed"
COMPLETED = "completed"
CANCELLED = "cancelled"

STATUSES: FrozenSet[str] = frozenset({PENDING, CONFIRMED, COMPLETED, CANCELLED})
TERMINAL: FrozenSet[str] = frozenset({COMPLETED, CANCELLED})
OPEN: FrozenSet[str] = frozenset({PENDING, CONFIRMED})

# completed is reachable only from confirmed; terminal states have no exits
TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PENDING: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL


def check_transition(current: str, target: str) -> None:
    if target not in STATUSES:
        raise ValidationError(f"unknown status {target!r}", {"field": "status", "value": target})
    if target not in TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current, target)


def check_actor(caller: Caller, target: str, owner_character_id: Optional[str]) -> None:
    """Admins drive every move; a requester may only cancel their own booking."""
    if caller.is_admin:
        return
    if target != CANCELLED:
        raise ForbiddenError("only an admin can change a booking to " + target, {"to": target})
    if not caller.character_id or caller.character_id != owner_character_id:
        raise ForbiddenError("a requester can only cancel their own booking", {"to": target})
