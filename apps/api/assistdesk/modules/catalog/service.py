from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from assistdesk.core.db import connect, insert_row, new_ulid, now_iso, transaction
from assistdesk.core.errors import NotFoundError, ValidationError
from assistdesk.core.logging import emit
from assistdesk.modules.bookings.ledger import UNSCHEDULED, resolve_schedule, schedule_from_columns
from assistdesk.modules.catalog.schemas import AssistanceTypeCreateIn, FeaturedToonSaveIn, TemplateSaveIn

_TYPE_COLUMNS = {
    "name",
    "description",
    "icon",
    "is_active",
    "list_order",
    "allow_photo_upload",
    "allow_schedule",
    "capacity",
}
# only these may change once a booking references the type
_ALWAYS_MUTABLE = {"is_active", "list_order"}
# an explicit None clears these (capacity None = unlimited)
_NULLABLE = {"description", "icon", "capacity"}

DEFAULT_ASSISTANCE_TYPES: List[Dict[str, Any]] = [
    {"name": "Leveling Assistance", "description": "Help with power leveling your character",
     "allow_photo_upload": False, "allow_schedule": True},
    {"name": "Boss Hunting", "description": "Assistance with defeating MVP or mini-boss monsters",
     "allow_photo_upload": True, "allow_schedule": True},
    {"name": "Quest Completion", "description": "Help completing difficult quests or missions",
     "allow_photo_upload": True, "allow_schedule": True},
    {"name": "Item Farming", "description": "Assistance with farming specific items or materials",
     "allow_photo_upload": False, "allow_schedule": True},
    {"name": "Build Consultation", "description": "Expert advice on character builds and skill allocation",
     "allow_photo_upload": False, "allow_schedule": False},
    {"name": "Equipment Enhancement", "description": "Help with upgrading and enhancing equipment",
     "allow_photo_upload": True, "allow_schedule": False},
]


# -------------------------
# Assistance types
# -------------------------
def _row_to_type(row: sqlite3.Row) -> Dict[str, Any]:
    d = dict(row)
    for k in ("is_active", "allow_photo_upload", "allow_schedule"):
        d[k] = bool(int(d.get(k) or 0))
    return d


def _type_row(conn: sqlite3.Connection, type_id: str) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM assistance_types WHERE id=?;", (type_id,)).fetchone()
    if not row:
        raise NotFoundError("assistance type not found", {"assistance_type_id": type_id})
    return row


def get_assistance_type_row(conn: sqlite3.Connection, type_id: str) -> Dict[str, Any]:
    return _row_to_type(_type_row(conn, type_id))


def _next_order(conn: sqlite3.Connection, table: str) -> int:
    row = conn.execute(f"SELECT COALESCE(MAX(list_order), 0) AS v FROM {table};").fetchone()
    return int(row["v"]) + 1


def _is_referenced(conn: sqlite3.Connection, type_id: str) -> bool:
    row = conn.execute("SELECT 1 FROM bookings WHERE assistance_type_id=? LIMIT 1;", (type_id,)).fetchone()
    return row is not None


def list_assistance_types(active_only: bool = False) -> List[Dict[str, Any]]:
    conn = connect()
    try:
        where = "WHERE is_active=1" if active_only else ""
        rows = conn.execute(f"SELECT * FROM assistance_types {where} ORDER BY list_order ASC, name ASC;").fetchall()
        return [_row_to_type(r) for r in rows]
    finally:
        conn.close()


def get_assistance_type(type_id: str) -> Dict[str, Any]:
    conn = connect()
    try:
        return _row_to_type(_type_row(conn, type_id))
    finally:
        conn.close()


def create_assistance_type(body: AssistanceTypeCreateIn) -> Dict[str, Any]:
    conn = connect()
    try:
        with transaction(conn):
            now = now_iso()
            type_id = new_ulid()
            insert_row(
                conn,
                "assistance_types",
                {
                    "id": type_id,
                    "name": body.name.strip(),
                    "description": body.description,
                    "icon": body.icon,
                    "is_active": int(body.is_active),
                    "list_order": body.list_order if body.list_order is not None else _next_order(conn, "assistance_types"),
                    "allow_photo_upload": int(body.allow_photo_upload),
                    "allow_schedule": int(body.allow_schedule),
                    "capacity": body.capacity,
                    "created_at": now,
                    "updated_at": now,
                },
            )
        return _row_to_type(_type_row(conn, type_id))
    finally:
        conn.close()


def patch_assistance_type(type_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in patch.items() if v is not None or k in _NULLABLE}
    conn = connect()
    try:
        with transaction(conn):
            row = _type_row(conn, type_id)
            if not fields:
                return _row_to_type(row)

            unknown = sorted(set(fields) - _TYPE_COLUMNS)
            if unknown:
                raise ValidationError("unknown assistance type fields", {"fields": unknown})

            locked = sorted(set(fields) - _ALWAYS_MUTABLE)
            if locked and _is_referenced(conn, type_id):
                raise ValidationError(
                    "assistance type is referenced by bookings; only is_active and list_order can change",
                    {"fields": locked},
                )
            if "name" in fields and not str(fields["name"]).strip():
                raise ValidationError("name must not be empty", {"field": "name"})

            sets: List[str] = []
            args: List[Any] = []
            for k, v in fields.items():
                sets.append(f"{k}=?")
                args.append(int(v) if isinstance(v, bool) else v)
            sets.append("updated_at=?")
            args.append(now_iso())
            args.append(type_id)
            conn.execute(f"UPDATE assistance_types SET {', '.join(sets)} WHERE id=?;", args)

        return _row_to_type(_type_row(conn, type_id))
    finally:
        conn.close()


def set_assistance_type_active(type_id: str, is_active: bool) -> Dict[str, Any]:
    return patch_assistance_type(type_id, {"is_active": is_active})


def set_assistance_type_order(type_id: str, list_order: int) -> Dict[str, Any]:
    return patch_assistance_type(type_id, {"list_order": list_order})


def delete_assistance_type(type_id: str) -> None:
    conn = connect()
    try:
        with transaction(conn):
            _type_row(conn, type_id)
            if _is_referenced(conn, type_id):
                raise ValidationError(
                    "assistance type is referenced by bookings; deactivate it instead",
                    {"assistance_type_id": type_id},
                )
            conn.execute("DELETE FROM assistance_templates WHERE assistance_type_id=?;", (type_id,))
            conn.execute("DELETE FROM assistance_types WHERE id=?;", (type_id,))
    finally:
        conn.close()


def seed_default_assistance_types() -> int:
    """Insert the default catalog when it is empty. Returns rows inserted."""
    conn = connect()
    try:
        with transaction(conn):
            n = conn.execute("SELECT COUNT(1) AS n FROM assistance_types;").fetchone()["n"]
            if int(n) > 0:
                return 0
            now = now_iso()
            for order, default in enumerate(DEFAULT_ASSISTANCE_TYPES, start=1):
                insert_row(
                    conn,
                    "assistance_types",
                    {
                        "id": new_ulid(),
                        "name": default["name"],
                        "description": default["description"],
                        "icon": None,
                        "is_active": 1,
                        "list_order": order,
                        "allow_photo_upload": int(default["allow_photo_upload"]),
                        "allow_schedule": int(default["allow_schedule"]),
                        "capacity": None,
                        "created_at": now,
                        "updated_at": now,
                    },
                )
        emit("info", "catalog.seeded", "default assistance types inserted", __name__, count=len(DEFAULT_ASSISTANCE_TYPES))
        return len(DEFAULT_ASSISTANCE_TYPES)
    finally:
        conn.close()


# -------------------------
# Templates
# -------------------------
def _row_to_template(row: sqlite3.Row) -> Dict[str, Any]:
    d = dict(row)
    d["schedule"] = schedule_from_columns(row).to_out()
    d["is_active"] = bool(int(d.get("is_active") or 0))
    for k in ("selected_days_json", "time_range_preset", "start_time", "end_time", "slots"):
        d.pop(k, None)
    return d


def _template_row(conn: sqlite3.Connection, template_id: str) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM assistance_templates WHERE id=?;", (template_id,)).fetchone()
    if not row:
        raise NotFoundError("assistance template not found", {"template_id": template_id})
    return row


def list_templates(active_only: bool = False) -> List[Dict[str, Any]]:
    conn = connect()
    try:
        where = "WHERE is_active=1" if active_only else ""
        rows = conn.execute(f"SELECT * FROM assistance_templates {where} ORDER BY list_order ASC;").fetchall()
        return [_row_to_template(r) for r in rows]
    finally:
        conn.close()


def get_template(template_id: str) -> Dict[str, Any]:
    conn = connect()
    try:
        return _row_to_template(_template_row(conn, template_id))
    finally:
        conn.close()


def get_template_row(conn: sqlite3.Connection, template_id: str) -> sqlite3.Row:
    return _template_row(conn, template_id)


def save_template(body: TemplateSaveIn) -> Dict[str, Any]:
    """Create (no id) or update (id set) a template."""
    if not body.title.strip() or not body.additional_info.strip():
        raise ValidationError("title, assistance type and additional info are required")

    # template defaults must form a valid request schedule
    schedule = resolve_schedule(body.schedule, allow_schedule=True) if body.schedule else UNSCHEDULED

    conn = connect()
    try:
        with transaction(conn):
            _type_row(conn, body.assistance_type_id)
            now = now_iso()
            data = {
                "title": body.title.strip(),
                "description": body.description,
                "assistance_type_id": body.assistance_type_id,
                "additional_info": body.additional_info,
                "image_url": body.image_url,
                "is_active": int(body.is_active),
                "updated_at": now,
            }
            data.update(schedule.to_columns())

            if body.id:
                _template_row(conn, body.id)
                keys = sorted(data.keys())
                conn.execute(
                    f"UPDATE assistance_templates SET {', '.join(k + '=?' for k in keys)} WHERE id=?;",
                    [data[k] for k in keys] + [body.id],
                )
                template_id = body.id
            else:
                template_id = new_ulid()
                data.update({"id": template_id, "list_order": _next_order(conn, "assistance_templates"), "created_at": now})
                insert_row(conn, "assistance_templates", data)

        return _row_to_template(_template_row(conn, template_id))
    finally:
        conn.close()


def _update_template_field(template_id: str, column: str, value: Any) -> Dict[str, Any]:
    conn = connect()
    try:
        with transaction(conn):
            _template_row(conn, template_id)
            conn.execute(
                f"UPDATE assistance_templates SET {column}=?, updated_at=? WHERE id=?;",
                (value, now_iso(), template_id),
            )
        return _row_to_template(_template_row(conn, template_id))
    finally:
        conn.close()


def set_template_active(template_id: str, is_active: bool) -> Dict[str, Any]:
    return _update_template_field(template_id, "is_active", int(is_active))


def set_template_order(template_id: str, list_order: int) -> Dict[str, Any]:
    return _update_template_field(template_id, "list_order", int(list_order))


def delete_template(template_id: str) -> None:
    conn = connect()
    try:
        with transaction(conn):
            _template_row(conn, template_id)
            conn.execute("DELETE FROM assistance_templates WHERE id=?;", (template_id,))
    finally:
        conn.close()


# -------------------------
# Featured toons
# -------------------------
def _toon_row(conn: sqlite3.Connection, toon_id: str) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM featured_toons WHERE id=?;", (toon_id,)).fetchone()
    if not row:
        raise NotFoundError("featured toon not found", {"featured_toon_id": toon_id})
    return row


def list_featured_toons() -> List[Dict[str, Any]]:
    conn = connect()
    try:
        rows = conn.execute("SELECT * FROM featured_toons ORDER BY character_class ASC;").fetchall()
        return [dict(r) for r in rows]
    finally:
        conn.close()


def get_featured_toon(toon_id: str) -> Dict[str, Any]:
    conn = connect()
    try:
        return dict(_toon_row(conn, toon_id))
    finally:
        conn.close()


def get_featured_toon_by_class(character_class: str) -> Optional[Dict[str, Any]]:
    conn = connect()
    try:
        row = conn.execute(
            "SELECT * FROM featured_toons WHERE character_class=? ORDER BY updated_at DESC LIMIT 1;",
            (character_class,),
        ).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def save_featured_toon(body: FeaturedToonSaveIn) -> Dict[str, Any]:
    conn = connect()
    try:
        with transaction(conn):
            now = now_iso()
            if body.id:
                _toon_row(conn, body.id)
                conn.execute(
                    "UPDATE featured_toons SET character_class=?, display_name=?, image_url=?, description=?, updated_at=? "
                    "WHERE id=?;",
                    (body.character_class, body.display_name, body.image_url, body.description, now, body.id),
                )
                toon_id = body.id
            else:
                toon_id = new_ulid()
                insert_row(
                    conn,
                    "featured_toons",
                    {
                        "id": toon_id,
                        "character_class": body.character_class,
                        "display_name": body.display_name,
                        "image_url": body.image_url,
                        "description": body.description,
                        "created_at": now,
                        "updated_at": now,
                    },
                )
        return dict(_toon_row(conn, toon_id))
    finally:
        conn.close()


def delete_featured_toon(toon_id: str) -> None:
    conn = connect()
    try:
        with transaction(conn):
            _toon_row(conn, toon_id)
            conn.execute("DELETE FROM featured_toons WHERE id=?;", (toon_id,))
    finally:
        conn.close()
