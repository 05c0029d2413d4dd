from __future__ import annotations

import pytest

from assistdesk.core.errors import NotFoundError, ValidationError
from assistdesk.modules.bookings.schemas import BookingFromTemplateIn
from assistdesk.modules.bookings.service import create_booking_from_template, get_booking
from assistdesk.modules.catalog.schemas import FeaturedToonSaveIn, TemplateSaveIn
from assistdesk.modules.catalog.service import (
    DEFAULT_ASSISTANCE_TYPES,
    delete_assistance_type,
    delete_featured_toon,
    delete_template,
    get_assistance_type,
    get_featured_toon_by_class,
    list_assistance_types,
    list_featured_toons,
    list_templates,
    patch_assistance_type,
    save_featured_toon,
    save_template,
    seed_default_assistance_types,
    set_assistance_type_active,
    set_template_active,
    set_template_order,
)
from helpers import book, schedule


def test_seeding_only_fills_an_empty_catalog() -> None:
    assert seed_default_assistance_types() == len(DEFAULT_ASSISTANCE_TYPES)
    assert seed_default_assistance_types() == 0

    names = [t["name"] for t in list_assistance_types()]
    assert names == [d["name"] for d in DEFAULT_ASSISTANCE_TYPES]


def test_list_orders_and_filters_active(make_type) -> None:
    make_type("B", list_order=2)
    make_type("A", list_order=1)
    hidden = make_type("C", list_order=3, is_active=False)

    assert [t["name"] for t in list_assistance_types()] == ["A", "B", "C"]
    assert hidden["id"] not in {t["id"] for t in list_assistance_types(active_only=True)}


def test_referenced_type_only_accepts_visibility_changes(make_type) -> None:
    t = make_type("Escort", capacity=2)
    assert patch_assistance_type(t["id"], {"capacity": 3})["capacity"] == 3

    book(t["id"], "1001", schedule())
    with pytest.raises(ValidationError):
        patch_assistance_type(t["id"], {"capacity": 5})
    with pytest.raises(ValidationError):
        patch_assistance_type(t["id"], {"allow_schedule": False})
    with pytest.raises(ValidationError):
        delete_assistance_type(t["id"])

    off = set_assistance_type_active(t["id"], False)
    assert off["is_active"] is False
    assert patch_assistance_type(t["id"], {"list_order": 9})["list_order"] == 9


def test_patch_rejects_unknown_fields(make_type) -> None:
    t = make_type("Escort")
    with pytest.raises(ValidationError):
        patch_assistance_type(t["id"], {"id": "hijack"})


def test_unreferenced_type_delete_takes_its_templates(make_type) -> None:
    t = make_type("Escort")
    tpl = save_template(TemplateSaveIn(title="Weekly run", assistance_type_id=t["id"], additional_info="bring pots"))
    delete_assistance_type(t["id"])

    with pytest.raises(NotFoundError):
        get_assistance_type(t["id"])
    assert tpl["id"] not in {x["id"] for x in list_templates()}


def test_template_is_copied_on_use(make_type) -> None:
    t = make_type("Escort", capacity=4)
    tpl = save_template(
        TemplateSaveIn(
            title="Morning escort",
            assistance_type_id=t["id"],
            additional_info="meet at the gate",
            schedule=schedule(days=("tue", "thu"), preset="early", slots=2),
        )
    )
    b = create_booking_from_template(
        BookingFromTemplateIn(template_id=tpl["id"], character_id="1001", contact_info="discord: x")
    )
    assert b["assistance_type_id"] == t["id"]
    assert b["additional_info"] == "meet at the gate"
    assert b["schedule"].selected_days == ["tuesday", "thursday"]
    assert b["schedule"].time_range_preset == "early"
    assert b["schedule"].slots == 2

    save_template(
        TemplateSaveIn(
            id=tpl["id"],
            title="Evening escort",
            assistance_type_id=t["id"],
            additional_info="changed",
            schedule=schedule(days=("friday",), preset="late"),
        )
    )
    after = get_booking(b["id"])
    assert after["additional_info"] == "meet at the gate"
    assert after["schedule"].selected_days == ["tuesday", "thursday"]
    assert after["schedule"].time_range_preset == "early"


def test_inactive_template_cannot_be_used(make_type) -> None:
    t = make_type("Escort")
    tpl = save_template(TemplateSaveIn(title="Run", assistance_type_id=t["id"], additional_info="x"))
    set_template_active(tpl["id"], False)
    with pytest.raises(ValidationError):
        create_booking_from_template(
            BookingFromTemplateIn(template_id=tpl["id"], character_id="1001", contact_info="c")
        )


def test_templates_append_in_order_and_can_be_reordered(make_type) -> None:
    t = make_type("Escort")
    first = save_template(TemplateSaveIn(title="One", assistance_type_id=t["id"], additional_info="x"))
    second = save_template(TemplateSaveIn(title="Two", assistance_type_id=t["id"], additional_info="x"))
    assert second["list_order"] == first["list_order"] + 1

    set_template_order(first["id"], 10)
    assert [x["title"] for x in list_templates()] == ["Two", "One"]

    delete_template(second["id"])
    assert [x["title"] for x in list_templates(active_only=True)] == ["One"]


def test_template_schedule_is_validated() -> None:
    with pytest.raises(ValidationError):
        save_template(
            TemplateSaveIn(
                title="Bad",
                assistance_type_id="whatever",
                additional_info="x",
                schedule=schedule(start="12:00", end="09:00"),
            )
        )


def test_featured_toons_by_class() -> None:
    assert get_featured_toon_by_class("Assassin") is None
    toon = save_featured_toon(
        FeaturedToonSaveIn(character_class="Assassin", display_name="Shade", image_url="https://cdn/shade.png")
    )
    save_featured_toon(FeaturedToonSaveIn(character_class="Acolyte", display_name="Halo"))

    assert [x["character_class"] for x in list_featured_toons()] == ["Acolyte", "Assassin"]
    assert get_featured_toon_by_class("Assassin")["display_name"] == "Shade"

    renamed = save_featured_toon(
        FeaturedToonSaveIn(id=toon["id"], character_class="Assassin", display_name="Umbra", image_url=toon["image_url"])
    )
    assert renamed["display_name"] == "Umbra"

    delete_featured_toon(toon["id"])
    assert get_featured_toon_by_class("Assassin") is None


def test_patch_can_clear_nullable_fields(make_type) -> None:
    t = make_type("Escort", capacity=2, description="bring pots", icon="sword")
    cleared = patch_assistance_type(t["id"], {"capacity": None, "description": None, "icon": None})
    assert cleared["capacity"] is None
    assert cleared["description"] is None
    assert cleared["icon"] is None

    # None on a required column means "leave as is"
    assert patch_assistance_type(t["id"], {"name": None})["name"] == "Escort"


def test_referenced_type_cannot_be_made_unlimited(make_type) -> None:
    t = make_type("Escort", capacity=2)
    book(t["id"], "1001", schedule())
    with pytest.raises(ValidationError):
        patch_assistance_type(t["id"], {"capacity": None})
    assert get_assistance_type(t["id"])["capacity"] == 2
