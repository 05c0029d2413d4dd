from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from assistdesk.core.db import connect, insert_row, new_ulid, now_iso, transaction
from assistdesk.core.errors import NotFoundError, ValidationError
from assistdesk.core.locks import KeyedLocks, run_with_retry
from assistdesk.core.logging import emit

# appends to one booking are ordered; different bookings never wait on each other
_booking_locks = KeyedLocks()


def _row_to_comment(row: sqlite3.Row) -> Dict[str, Any]:
    d = dict(row)
    d["is_admin"] = bool(int(d.get("is_admin") or 0))
    d["is_read"] = bool(int(d.get("is_read") or 0))
    return d


def _require_booking(conn: sqlite3.Connection, booking_id: str) -> None:
    row = conn.execute("SELECT id FROM bookings WHERE id=?;", (booking_id,)).fetchone()
    if not row:
        raise NotFoundError("booking not found", {"booking_id": booking_id})


def add_comment(booking_id: str, content: str, is_admin: bool, author_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Append a comment to a booking's thread.

    `seq` is assigned by the store inside the write transaction, so it follows
    the order in which appends reach the database. Comments are accepted on
    bookings in any status, terminal ones included.
    """
    text = (content or "").strip()
    if not booking_id or not text:
        raise ValidationError("booking id and comment content are required", {"field": "content"})
    name = author_name.strip() if author_name and author_name.strip() else None

    def attempt() -> Dict[str, Any]:
        conn = connect()
        try:
            with _booking_locks.hold(booking_id), transaction(conn):
                _require_booking(conn, booking_id)
                row = conn.execute(
                    "SELECT COALESCE(MAX(seq), 0) AS v FROM comments WHERE booking_id=?;", (booking_id,)
                ).fetchone()
                comment_id = new_ulid()
                insert_row(
                    conn,
                    "comments",
                    {
                        "id": comment_id,
                        "booking_id": booking_id,
                        "seq": int(row["v"]) + 1,
                        "content": text,
                        "is_admin": int(bool(is_admin)),
                        "author_name": name,
                        "is_read": 0,
                        "created_at": now_iso(),
                    },
                )
            emit("info", "comment.added", "comment appended", __name__, booking_id=booking_id, is_admin=bool(is_admin))
            out = conn.execute("SELECT * FROM comments WHERE id=?;", (comment_id,)).fetchone()
            return _row_to_comment(out)
        finally:
            conn.close()

    return run_with_retry("add_comment", attempt)


def list_comments(booking_id: str) -> List[Dict[str, Any]]:
    conn = connect()
    try:
        rows = conn.execute(
            "SELECT * FROM comments WHERE booking_id=? ORDER BY seq ASC;", (booking_id,)
        ).fetchall()
        return [_row_to_comment(r) for r in rows]
    finally:
        conn.close()


def mark_read(booking_id: str, viewer_is_admin: bool) -> int:
    """
    Mark the other party's comments on a booking as read by this viewer.
    Idempotent; returns how many comments flipped from unread to read.
    """

    def attempt() -> int:
        conn = connect()
        try:
            _require_booking(conn, booking_id)
            cur = conn.execute(
                "UPDATE comments SET is_read=1 WHERE booking_id=? AND is_admin=? AND is_read=0;",
                (booking_id, 0 if viewer_is_admin else 1),
            )
            return int(cur.rowcount)
        finally:
            conn.close()

    marked = run_with_retry("mark_read", attempt)
    if marked:
        emit("info", "comment.read", f"{marked} comment(s) marked read", __name__,
             booking_id=booking_id, viewer_is_admin=viewer_is_admin)
    return marked
