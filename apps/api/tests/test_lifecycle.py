from __future__ import annotations

import pytest

from assistdesk.core.errors import ForbiddenError, InvalidTransitionError, ValidationError
from assistdesk.modules.bookings import lifecycle
from assistdesk.modules.bookings.service import bulk_transition, cancel_booking, get_booking, purge_booking, transition
from helpers import book, requester, schedule


def test_pending_cannot_jump_to_completed(make_type, admin) -> None:
    t = make_type("Escort")
    b = book(t["id"], "1001", schedule())

    with pytest.raises(InvalidTransitionError):
        transition(b["id"], "completed", admin)
    assert get_booking(b["id"])["status"] == "pending"

    assert transition(b["id"], "confirmed", admin)["status"] == "confirmed"
    done = transition(b["id"], "completed", admin)
    assert done["status"] == "completed"
    assert done["version"] == 3


@pytest.mark.parametrize("terminal", ["completed", "cancelled"])
def test_terminal_states_have_no_exits(terminal: str) -> None:
    assert lifecycle.is_terminal(terminal)
    for target in lifecycle.STATUSES:
        with pytest.raises(InvalidTransitionError):
            lifecycle.check_transition(terminal, target)


def test_unknown_target_status_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        lifecycle.check_transition("pending", "archived")


def test_requester_may_only_cancel_their_own(make_type, admin) -> None:
    t = make_type("Escort")
    b = book(t["id"], "1001", schedule())

    with pytest.raises(ForbiddenError):
        transition(b["id"], "confirmed", requester("1001"))
    with pytest.raises(ForbiddenError):
        cancel_booking(b["id"], requester("2002"))
    with pytest.raises(ForbiddenError):
        purge_booking(b["id"], requester("1001"))

    assert cancel_booking(b["id"], requester("1001"))["status"] == "cancelled"
    with pytest.raises(InvalidTransitionError):
        cancel_booking(b["id"], admin)


def test_bulk_transition_reports_each_id(make_type, admin) -> None:
    t = make_type("Escort")
    a = book(t["id"], "1001", schedule())
    b = book(t["id"], "1002", schedule())
    cancel_booking(b["id"], admin)

    out = bulk_transition([a["id"], b["id"], "missing"], "confirmed", admin)
    assert out["updated"] == 1
    by_id = {r["id"]: r for r in out["results"]}
    assert by_id[a["id"]]["ok"] and by_id[a["id"]]["status"] == "confirmed"
    assert by_id[b["id"]]["error"] == "invalid_transition"
    assert by_id["missing"]["error"] == "not_found"


def test_each_move_stamps_updated_at_and_version(make_type, admin) -> None:
    t = make_type("Escort")
    b = book(t["id"], "1001", schedule())

    confirmed = transition(b["id"], "confirmed", admin)
    assert confirmed["version"] == b["version"] + 1
    assert confirmed["updated_at"] > b["updated_at"]
    assert confirmed["created_at"] == b["created_at"]

    with pytest.raises(InvalidTransitionError):
        transition(b["id"], "pending", admin)
    unchanged = get_booking(b["id"])
    assert unchanged["version"] == confirmed["version"]
    assert unchanged["updated_at"] == confirmed["updated_at"]

    done = transition(b["id"], "completed", admin)
    assert done["version"] == confirmed["version"] + 1
    assert done["updated_at"] > confirmed["updated_at"]
