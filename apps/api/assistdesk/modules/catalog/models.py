from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


# soft-deactivated only while referenced by bookings
class AssistanceType(SQLModel, table=True):
    __tablename__ = "assistance_types"

    id: str = Field(primary_key=True)
    name: str
    description: Optional[str] = Field(default=None)
    icon: Optional[str] = Field(default=None)
    is_active: int = Field(default=1, index=True)  # 0|1
    list_order: int = Field(default=0, index=True)
    allow_photo_upload: int = Field(default=0)  # 0|1
    allow_schedule: int = Field(default=1)  # 0|1
    capacity: Optional[int] = Field(default=None)  # NULL = unlimited

    created_at: str
    updated_at: str


class AssistanceTemplate(SQLModel, table=True):
    __tablename__ = "assistance_templates"

    id: str = Field(primary_key=True)
    title: str
    description: str = Field(default="")
    assistance_type_id: str = Field(foreign_key="assistance_types.id", index=True)
    additional_info: str = Field(default="")
    image_url: Optional[str] = Field(default=None)

    selected_days_json: str = Field(default="[]")
    time_range_preset: Optional[str] = Field(default=None)  # early|middle|late|custom
    start_time: Optional[str] = Field(default=None)  # HH:MM, custom only
    end_time: Optional[str] = Field(default=None)
    slots: int = Field(default=1)

    is_active: int = Field(default=1, index=True)
    list_order: int = Field(default=0)

    created_at: str
    updated_at: str


class FeaturedToon(SQLModel, table=True):
    __tablename__ = "featured_toons"

    id: str = Field(primary_key=True)
    character_class: str = Field(index=True)
    display_name: str
    image_url: str
    description: Optional[str] = Field(default=None)

    created_at: str
    updated_at: str
