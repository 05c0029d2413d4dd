from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field

from assistdesk.modules.bookings.schemas import ScheduleIn, ScheduleOut


class AssistanceTypeCreateIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    is_active: bool = True
    list_order: Optional[int] = None  # None -> appended after the current max
    allow_photo_upload: bool = False
    allow_schedule: bool = True
    capacity: Optional[int] = Field(default=None, ge=1)


class AssistanceTypePatchIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    is_active: Optional[bool] = None
    list_order: Optional[int] = None
    allow_photo_upload: Optional[bool] = None
    allow_schedule: Optional[bool] = None
    capacity: Optional[int] = Field(default=None, ge=1)


class AssistanceTypeOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    is_active: bool
    list_order: int
    allow_photo_upload: bool
    allow_schedule: bool
    capacity: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TemplateSaveIn(BaseModel):
    id: Optional[str] = None  # set -> update
    title: str = Field(min_length=1)
    description: str = ""
    assistance_type_id: str = Field(min_length=1)
    additional_info: str = Field(min_length=1)
    image_url: Optional[str] = None
    schedule: Optional[ScheduleIn] = None
    is_active: bool = True


class TemplateOut(BaseModel):
    id: str
    title: str
    description: str = ""
    assistance_type_id: str
    additional_info: str = ""
    image_url: Optional[str] = None
    schedule: ScheduleOut
    is_active: bool
    list_order: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ToggleIn(BaseModel):
    is_active: bool


class OrderIn(BaseModel):
    list_order: int


class FeaturedToonSaveIn(BaseModel):
    id: Optional[str] = None
    character_class: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    image_url: str = ""  # durable URL from the blob collaborator
    description: Optional[str] = None


class FeaturedToonOut(BaseModel):
    id: str
    character_class: str
    display_name: str
    image_url: str
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AssistanceTypesListOut(BaseModel):
    items: List[AssistanceTypeOut]
