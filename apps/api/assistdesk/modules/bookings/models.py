from __future__ import annotations

from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


# status: pending|confirmed|completed|cancelled
# version: bumped on every write; status changes compare-and-set on it
class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (CheckConstraint("slots >= 1", name="ck_bookings_slots_positive"),)

    id: str = Field(primary_key=True)
    request_number: str = Field(unique=True, index=True)
    character_id: str = Field(index=True)
    contact_info: str
    assistance_type_id: str = Field(foreign_key="assistance_types.id", index=True)
    assistance_type_name: Optional[str] = Field(default=None)
    additional_info: str
    photo_urls_json: str = Field(default="[]")

    selected_days_json: str = Field(default="[]")
    time_range_preset: Optional[str] = Field(default=None)  # early|middle|late|custom; NULL = unscheduled
    start_time: Optional[str] = Field(default=None)  # HH:MM
    end_time: Optional[str] = Field(default=None)
    slots: int = Field(default=1)
    willing_to_donate: int = Field(default=0)  # 0|1

    status: str = Field(default="pending", index=True)
    version: int = Field(default=1)

    created_at: str
    updated_at: str


# store-backed monotonic counters (request numbers); never reset on purge
class Sequence(SQLModel, table=True):
    __tablename__ = "sequences"

    name: str = Field(primary_key=True)
    value: int = Field(default=0)
