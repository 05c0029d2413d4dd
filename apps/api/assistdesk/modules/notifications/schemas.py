from __future__ import annotations

from typing import Dict, List
from pydantic import BaseModel, Field


class UnreadCountOut(BaseModel):
    count: int
    badge: str = ""


class UnreadCountsIn(BaseModel):
    booking_ids: List[str] = Field(default_factory=list)


class UnreadCountsOut(BaseModel):
    counts: Dict[str, int] = Field(default_factory=dict)


class PendingCountOut(BaseModel):
    count: int
    badge: str = ""
