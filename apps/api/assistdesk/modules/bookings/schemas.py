from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field

BookingStatus = Literal["pending", "confirmed", "completed", "cancelled"]
TimeRangePreset = Literal["early", "middle", "late", "custom"]


# ScheduleMode: tagged variant, payload validated per tag in the slot ledger
class PresetWindow(BaseModel):
    mode: Literal["preset"] = "preset"
    preset: Literal["early", "middle", "late"] = "early"


class CustomWindow(BaseModel):
    mode: Literal["custom"] = "custom"
    start_time: str  # HH:MM
    end_time: str  # HH:MM


ScheduleMode = Annotated[Union[PresetWindow, CustomWindow], Field(discriminator="mode")]


class ScheduleIn(BaseModel):
    selected_days: List[str] = Field(default_factory=list)
    window: ScheduleMode = Field(default_factory=PresetWindow)
    slots: int = 1


class ScheduleOut(BaseModel):
    selected_days: List[str] = Field(default_factory=list)
    time_range_preset: Optional[TimeRangePreset] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    slots: int = 1


class Caller(BaseModel):
    """Identity supplied by the auth collaborator; trusted as-is."""

    is_admin: bool = False
    character_id: Optional[str] = None


class BookingCreateIn(BaseModel):
    character_id: str
    contact_info: str
    assistance_type_id: str
    additional_info: str
    photo_urls: List[str] = Field(default_factory=list)
    schedule: Optional[ScheduleIn] = None
    willing_to_donate: bool = False


class BookingFromTemplateIn(BaseModel):
    template_id: str
    character_id: str
    contact_info: str
    additional_info: Optional[str] = None
    photo_urls: List[str] = Field(default_factory=list)
    schedule: Optional[ScheduleIn] = None
    willing_to_donate: bool = False


class BookingPatchIn(BaseModel):
    contact_info: Optional[str] = None
    additional_info: Optional[str] = None
    schedule: Optional[ScheduleIn] = None
    willing_to_donate: Optional[bool] = None


class BookingOut(BaseModel):
    id: str
    request_number: str
    character_id: str
    contact_info: str
    assistance_type_id: str
    assistance_type_name: Optional[str] = None
    additional_info: str
    photo_urls: List[str] = Field(default_factory=list)
    schedule: ScheduleOut
    willing_to_donate: bool = False
    status: BookingStatus
    version: int = 1
    created_at: str
    updated_at: str


class PageOut(BaseModel):
    offset: int
    limit: int
    total: int
    has_more: bool


class BookingsListOut(BaseModel):
    items: List[BookingOut]
    page: PageOut


class StatusChangeIn(BaseModel):
    status: BookingStatus


class BulkStatusChangeIn(BaseModel):
    ids: List[str] = Field(min_length=1, max_length=100)
    status: BookingStatus


class BulkResultItem(BaseModel):
    id: str
    ok: bool
    status: Optional[BookingStatus] = None
    error: Optional[str] = None
    message: Optional[str] = None


class BulkResultOut(BaseModel):
    updated: int
    results: List[BulkResultItem]


class BulkPurgeIn(BaseModel):
    ids: List[str] = Field(min_length=1, max_length=100)


class PhotosAddIn(BaseModel):
    photo_urls: List[str] = Field(min_length=1)


class CapacityOut(BaseModel):
    assistance_type_id: str
    day: str
    start_time: str
    end_time: str
    capacity: Optional[int] = None
    remaining: Optional[int] = None  # None = unlimited
