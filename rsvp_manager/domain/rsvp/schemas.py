"""Public RSVP and RSVP page settings schemas"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_choice

RESPONSE_STATUSES = ("ACCEPTED", "DECLINED", "MAYBE")
MAX_PARTY_SIZE = 50
HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


class RsvpSubmit(BaseModel):
    status: str
    guest_count: Optional[int] = None
    message: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, RESPONSE_STATUSES, "status")

    @field_validator("guest_count")
    @classmethod
    def validate_guest_count(cls, v):
        if v is not None and not 0 <= v <= MAX_PARTY_SIZE:
            raise ValueError(f"Guest count must be between 0 and {MAX_PARTY_SIZE}")
        return v

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        if v and len(v) > 1000:
            raise ValueError("Message is too long (max 1000 characters)")
        return v


class RsvpPageSettingsUpdate(BaseModel):
    welcome_title: Optional[str] = None
    welcome_message: Optional[str] = None
    theme_color: Optional[str] = None
    background_image_url: Optional[str] = None
    show_map: Optional[bool] = None
    show_calendar_button: Optional[bool] = None
    accepting_responses: Optional[bool] = None
    deadline: Optional[datetime] = None

    @field_validator("theme_color")
    @classmethod
    def validate_color(cls, v):
        if v is not None and not HEX_COLOR.match(v):
            raise ValueError("Theme color must be a hex color like #d4a373")
        return v


class RsvpPageSettingsResponse(BaseModel):
    welcome_title: Optional[str]
    welcome_message: Optional[str]
    theme_color: str
    background_image_url: Optional[str]
    show_map: bool
    show_calendar_button: bool
    accepting_responses: bool
    deadline: Optional[datetime]

    class Config:
        from_attributes = True


class PublicEventResponse(BaseModel):
    title: str
    description: Optional[str]
    date_time: datetime
    location: Optional[str]
    venue: Optional[str]
    image_url: Optional[str]
    locale: str

    class Config:
        from_attributes = True


class PublicRsvpResponse(BaseModel):
    status: str
    guest_count: int
    message: Optional[str]
    responded_at: Optional[datetime]

    class Config:
        from_attributes = True


class PublicGuestResponse(BaseModel):
    name: str
    slug: str
    expected_guests: int
    event: PublicEventResponse
    rsvp: Optional[PublicRsvpResponse] = None
    settings: Optional[RsvpPageSettingsResponse] = None
