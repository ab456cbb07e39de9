"""Guest domain schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from ...models import RSVP_STATUSES
from ...shared.validators import validate_choice, validate_email, validate_phone

GUEST_SIDES = ("bride", "groom", "both")

MAX_IMPORT_SIZE = 1000


class GuestBase(BaseModel):
    name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    side: Optional[str] = None
    group_name: Optional[str] = None
    expected_guests: int = 1
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Guest name is required")
        return v

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v):
        return validate_phone(v)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v) or None

    @field_validator("side")
    @classmethod
    def validate_side(cls, v):
        return validate_choice(v or None, GUEST_SIDES, "side")

    @field_validator("expected_guests")
    @classmethod
    def validate_expected(cls, v):
        if v < 1:
            raise ValueError("Expected guests must be at least 1")
        return v


class GuestCreate(GuestBase):
    allow_duplicate_phone: bool = False


class GuestUpdate(BaseModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    side: Optional[str] = None
    group_name: Optional[str] = None
    expected_guests: Optional[int] = None
    notes: Optional[str] = None
    rsvp_status: Optional[str] = None
    rsvp_guest_count: Optional[int] = None
    allow_duplicate_phone: bool = False

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v):
        return validate_phone(v)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v) or None

    @field_validator("side")
    @classmethod
    def validate_side(cls, v):
        return validate_choice(v or None, GUEST_SIDES, "side")

    @field_validator("rsvp_status")
    @classmethod
    def validate_rsvp_status(cls, v):
        return validate_choice(v, RSVP_STATUSES, "RSVP status")


class GuestImport(BaseModel):
    guests: List[GuestBase]

    @field_validator("guests")
    @classmethod
    def validate_size(cls, v):
        if not v:
            raise ValueError("No guests to import")
        if len(v) > MAX_IMPORT_SIZE:
            raise ValueError(f"Cannot import more than {MAX_IMPORT_SIZE} guests at once")
        return v


class GuestIdsRequest(BaseModel):
    guest_ids: List[int]


class BulkRsvpUpdate(BaseModel):
    guest_ids: List[int]
    status: str
    guest_count: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, RSVP_STATUSES, "RSVP status")


class RsvpResponse(BaseModel):
    status: str
    guest_count: int
    message: Optional[str]
    responded_at: Optional[datetime]

    class Config:
        from_attributes = True


class GuestResponse(BaseModel):
    id: int
    event_id: int
    name: str
    phone_number: Optional[str]
    email: Optional[str]
    side: Optional[str]
    group_name: Optional[str]
    expected_guests: int
    notes: Optional[str]
    slug: str
    rsvp: Optional[RsvpResponse] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
