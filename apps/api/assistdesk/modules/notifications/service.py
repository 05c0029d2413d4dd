"""
Read-side counts for the presentation layer.

Nothing is cached: every count is recomputed from the comment and booking
tables, so it cannot drift from the thread it summarises. Counts are exact;
badge capping is done by `format_badge` for whoever renders them.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from assistdesk.core.db import connect
from assistdesk.modules.bookings.lifecycle import PENDING


def unread_count(
    viewer_is_admin: bool,
    booking_id: Optional[str] = None,
    character_id: Optional[str] = None,
) -> int:
    """Unread comments written by the other party, for one booking, one requester or everything."""
    where = ["c.is_read=0", "c.is_admin=?"]
    args: List[Any] = [0 if viewer_is_admin else 1]
    if booking_id is not None:
        where.append("c.booking_id=?")
        args.append(booking_id)
    if character_id is not None:
        where.append("b.character_id=?")
        args.append(character_id)

    conn = connect()
    try:
        row = conn.execute(
            "SELECT COUNT(1) AS n FROM comments c JOIN bookings b ON b.id=c.booking_id "
            f"WHERE {' AND '.join(where)};",
            args,
        ).fetchone()
        return int(row["n"])
    finally:
        conn.close()


def unread_counts(booking_ids: List[str], viewer_is_admin: bool) -> Dict[str, int]:
    """Per-booking unread counts; bookings with nothing unread are omitted."""
    if not booking_ids:
        return {}
    conn = connect()
    try:
        marks = ",".join(["?"] * len(booking_ids))
        rows = conn.execute(
            f"SELECT booking_id, COUNT(1) AS n FROM comments "
            f"WHERE booking_id IN ({marks}) AND is_admin=? AND is_read=0 GROUP BY booking_id;",
            list(booking_ids) + [0 if viewer_is_admin else 1],
        ).fetchall()
        return {str(r["booking_id"]): int(r["n"]) for r in rows}
    finally:
        conn.close()


def pending_count(assistance_type_id: Optional[str] = None) -> int:
    """Bookings still waiting for an admin to acknowledge them."""
    sql = "SELECT COUNT(1) AS n FROM bookings WHERE status=?"
    args: List[Any] = [PENDING]
    if assistance_type_id:
        sql += " AND assistance_type_id=?"
        args.append(assistance_type_id)

    conn = connect()
    try:
        return int(conn.execute(sql + ";", args).fetchone()["n"])
    finally:
        conn.close()


def format_badge(count: int) -> str:
    if count <= 0:
        return ""
    return "9+" if count > 9 else str(count)
