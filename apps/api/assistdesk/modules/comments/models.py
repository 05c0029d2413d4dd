from __future__ import annotations

from typing import Optional
from sqlalchemy import Index
from sqlmodel import SQLModel, Field


# append-only (enforced by the SQLite trigger below and in migration 0001):
# no edit path, delete only by cascade when a booking is purged.
# is_read belongs to the recipient, i.e. the party that did not author the comment.
class Comment(SQLModel, table=True):
    __tablename__ = "comments"
    __table_args__ = (Index("uq_comments_booking_id_seq", "booking_id", "seq", unique=True),)

    id: str = Field(primary_key=True)
    booking_id: str = Field(foreign_key="bookings.id", index=True)
    seq: int
    content: str
    is_admin: int = Field(default=0)  # 0|1
    author_name: Optional[str] = Field(default=None)
    is_read: int = Field(default=0, index=True)  # 0|1
    created_at: str


APPEND_ONLY_TRIGGER = """
CREATE TRIGGER IF NOT EXISTS trg_comments_append_only
BEFORE UPDATE ON comments
WHEN NEW.content IS NOT OLD.content
  OR NEW.is_admin IS NOT OLD.is_admin
  OR NEW.author_name IS NOT OLD.author_name
  OR NEW.seq IS NOT OLD.seq
  OR NEW.booking_id IS NOT OLD.booking_id
  OR (OLD.is_read = 1 AND NEW.is_read = 0)
BEGIN
  SELECT RAISE(ABORT, 'append-only: comments cannot be edited');
END;
"""
