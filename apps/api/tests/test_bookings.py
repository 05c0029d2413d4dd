from __future__ import annotations

import pytest

from assistdesk.core.errors import (
    BookingLockedError,
    CapacityExceededError,
    DuplicateBookingError,
    NotFoundError,
    ValidationError,
)
from assistdesk.modules.bookings.schemas import BookingPatchIn, CustomWindow
from assistdesk.modules.bookings.service import (
    add_photos,
    bulk_purge,
    cancel_booking,
    get_booking,
    get_booking_by_request_number,
    list_bookings,
    purge_booking,
    remaining_capacity,
    transition,
    update_booking,
)
from helpers import book, requester, schedule

MON_10_11 = CustomWindow(start_time="10:00", end_time="11:00")


def test_capacity_two_admits_until_full(make_type) -> None:
    escort = make_type("Escort", capacity=2)

    x = book(escort["id"], "1001", schedule(slots=1))
    assert x["status"] == "pending"
    assert remaining_capacity(escort["id"], "monday", MON_10_11)["remaining"] == 1

    with pytest.raises(CapacityExceededError) as exc:
        book(escort["id"], "1002", schedule(slots=2))
    assert exc.value.day == "monday"

    book(escort["id"], "1003", schedule(slots=1))
    assert remaining_capacity(escort["id"], "monday", MON_10_11)["remaining"] == 0


def test_cancelling_releases_slots(make_type, admin) -> None:
    escort = make_type("Escort", capacity=2)
    full = book(escort["id"], "1001", schedule(slots=2))
    transition(full["id"], "confirmed", admin)

    with pytest.raises(CapacityExceededError):
        book(escort["id"], "1002", schedule(slots=2))

    cancel_booking(full["id"], admin)
    again = book(escort["id"], "1002", schedule(slots=2))
    assert again["schedule"].slots == 2


def test_non_overlapping_windows_do_not_compete(make_type) -> None:
    escort = make_type("Escort", capacity=1)
    book(escort["id"], "1001", schedule(start="10:00", end="11:00"))
    book(escort["id"], "1002", schedule(start="11:00", end="12:00"))
    book(escort["id"], "1003", schedule(days=("tuesday",), start="10:00", end="11:00"))
    with pytest.raises(CapacityExceededError):
        book(escort["id"], "1004", schedule(start="10:30", end="10:45"))


def test_rejected_request_leaves_the_store_unchanged(make_type) -> None:
    escort = make_type("Escort", capacity=1)
    first = book(escort["id"], "1001", schedule())
    with pytest.raises(CapacityExceededError):
        book(escort["id"], "1002", schedule())

    items, total = list_bookings(limit=50, offset=0)
    assert total == 1
    assert items[0]["id"] == first["id"]

    # the rejected attempt did not consume a request number
    nxt = book(escort["id"], "1003", schedule(days=("friday",)))
    assert nxt["request_number"] == "REQ-1003-000002"


def test_request_numbers_follow_the_store_sequence_and_survive_purge(make_type, admin) -> None:
    t = make_type("Boss Hunting")
    a = book(t["id"], "42", schedule())
    assert a["request_number"] == "REQ-42-000001"

    purge_booking(a["id"], admin)
    with pytest.raises(NotFoundError):
        get_booking(a["id"])

    b = book(t["id"], "42", schedule())
    assert b["request_number"] == "REQ-42-000002"
    assert get_booking_by_request_number("REQ-42-000002")["id"] == b["id"]


def test_unscheduled_type_stores_no_schedule_and_never_fills(make_type) -> None:
    consult = make_type("Build Consultation", allow_schedule=False, capacity=1)
    a = book(consult["id"], "1001", schedule(slots=4))
    b = book(consult["id"], "1002")
    for bk in (a, b):
        assert bk["schedule"].selected_days == []
        assert bk["schedule"].time_range_preset is None
        assert bk["schedule"].slots == 1
    assert remaining_capacity(consult["id"], "monday", MON_10_11)["remaining"] is None


def test_preset_schedule_is_stored_with_its_window(make_type) -> None:
    t = make_type("Leveling")
    b = book(t["id"], "1001", schedule(days=("sat", "sun"), preset="late"))
    assert b["schedule"].selected_days == ["saturday", "sunday"]
    assert b["schedule"].time_range_preset == "late"
    assert (b["schedule"].start_time, b["schedule"].end_time) == ("14:00", "19:00")


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"character_id": "abc"}, "character_id"),
        ({"character_id": "  "}, "character_id"),
        ({"contact_info": ""}, "contact_info"),
        ({"additional_info": "   "}, "additional_info"),
    ],
)
def test_required_fields_are_validated(make_type, overrides, field) -> None:
    t = make_type("Quest")
    character_id = overrides.pop("character_id", "1001")
    with pytest.raises(ValidationError) as exc:
        book(t["id"], character_id, schedule(), **overrides)
    assert exc.value.details["field"] == field


def test_inactive_type_and_photo_rules(make_type) -> None:
    closed = make_type("Closed", is_active=False)
    with pytest.raises(ValidationError):
        book(closed["id"], "1001", schedule())

    no_photos = make_type("Farming", allow_photo_upload=False)
    with pytest.raises(ValidationError):
        book(no_photos["id"], "1001", schedule(), photo_urls=["https://cdn/x.png"])

    with pytest.raises(NotFoundError):
        book("missing", "1001", schedule())


def test_one_open_request_per_type(make_type, admin) -> None:
    t = make_type("Quest")
    first = book(t["id"], "1001", schedule())
    with pytest.raises(DuplicateBookingError):
        book(t["id"], "1001", schedule(days=("friday",)))

    cancel_booking(first["id"], admin)
    book(t["id"], "1001", schedule(days=("friday",)))


def test_duplicate_guard_can_be_switched_off(make_type, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REJECT_DUPLICATE_REQUESTS", "0")
    t = make_type("Quest")
    book(t["id"], "1001", schedule())
    book(t["id"], "1001", schedule(days=("friday",)))
    assert list_bookings(limit=50, offset=0, character_id="1001")[1] == 2


def test_edit_readmits_excluding_its_own_slots(make_type, admin) -> None:
    escort = make_type("Escort", capacity=2)
    mine = book(escort["id"], "1001", schedule(slots=2))
    owner = requester("1001")

    moved = update_booking(mine["id"], BookingPatchIn(schedule=schedule(start="10:30", end="11:30", slots=2)), owner)
    assert moved["schedule"].start_time == "10:30"
    assert moved["version"] == 2

    book(escort["id"], "1002", schedule(start="12:00", end="13:00", slots=1))
    with pytest.raises(CapacityExceededError):
        update_booking(mine["id"], BookingPatchIn(schedule=schedule(start="12:00", end="13:00", slots=2)), owner)
    assert get_booking(mine["id"])["schedule"].start_time == "10:30"

    transition(mine["id"], "confirmed", admin)
    with pytest.raises(BookingLockedError):
        update_booking(mine["id"], BookingPatchIn(contact_info="new"), owner)


def test_photos_are_merged_while_open(make_type, admin) -> None:
    t = make_type("Boss Hunting", allow_photo_upload=True)
    b = book(t["id"], "1001", schedule(), photo_urls=["https://cdn/a.png"])
    owner = requester("1001")

    b = add_photos(b["id"], ["https://cdn/a.png", "https://cdn/b.png"], owner)
    assert b["photo_urls"] == ["https://cdn/a.png", "https://cdn/b.png"]

    transition(b["id"], "confirmed", admin)
    transition(b["id"], "completed", admin)
    with pytest.raises(BookingLockedError):
        add_photos(b["id"], ["https://cdn/c.png"], owner)


def test_bulk_purge_skips_missing_and_removes_comments(make_type, admin) -> None:
    from assistdesk.modules.comments.service import add_comment, list_comments

    t = make_type("Quest")
    a = book(t["id"], "1001", schedule())
    b = book(t["id"], "1002", schedule())
    add_comment(a["id"], "hello", is_admin=True)

    assert bulk_purge([a["id"], "nope", b["id"]], admin) == 2
    assert list_comments(a["id"]) == []
    assert list_bookings(limit=50, offset=0) == ([], 0)


def test_list_is_scoped_and_paged(make_type) -> None:
    t = make_type("Quest")
    u = make_type("Farming")
    for i in range(3):
        book(t["id"], str(2000 + i), schedule())
    book(u["id"], "2000", schedule())

    items, total = list_bookings(limit=2, offset=0)
    assert total == 4 and len(items) == 2

    mine, n = list_bookings(limit=50, offset=0, character_id="2000")
    assert n == 2 and {b["character_id"] for b in mine} == {"2000"}

    assert list_bookings(limit=50, offset=0, character_id="") == ([], 0)
    assert list_bookings(limit=50, offset=0, assistance_type_id=u["id"])[1] == 1


def test_completed_request_does_not_block_a_new_one(make_type, admin) -> None:
    t = make_type("Quest")
    first = book(t["id"], "1001", schedule())
    transition(first["id"], "confirmed", admin)
    with pytest.raises(DuplicateBookingError):
        book(t["id"], "1001", schedule(days=("friday",)))

    transition(first["id"], "completed", admin)
    again = book(t["id"], "1001", schedule(days=("friday",)))
    assert again["status"] == "pending"
