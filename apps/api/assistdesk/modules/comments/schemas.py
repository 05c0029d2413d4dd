from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class CommentCreateIn(BaseModel):
    content: str = Field(min_length=1)
    author_name: Optional[str] = None


class CommentOut(BaseModel):
    id: str
    booking_id: str
    seq: int
    content: str
    is_admin: bool
    author_name: Optional[str] = None
    is_read: bool
    created_at: str


class CommentsListOut(BaseModel):
    items: List[CommentOut] = Field(default_factory=list)


class MarkReadOut(BaseModel):
    marked: int
