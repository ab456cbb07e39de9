"""Event and collaborator schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator

from ...models import COLLABORATOR_ROLES
from ...shared.validators import validate_choice

EVENT_LOCALES = ("he", "en")


class EventCreate(BaseModel):
    title: str
    date_time: datetime
    location: Optional[str] = None
    venue: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    locale: Optional[str] = "he"
    total_budget: Optional[float] = None
    workspace_id: Optional[int] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Event title is required")
        return v

    @field_validator("locale")
    @classmethod
    def validate_locale(cls, v):
        return validate_choice(v, EVENT_LOCALES, "locale")

    @field_validator("total_budget")
    @classmethod
    def validate_budget(cls, v):
        if v is not None and v < 0:
            raise ValueError("Budget cannot be negative")
        return v


class EventUpdate(BaseModel):
    title: Optional[str] = None
    date_time: Optional[datetime] = None
    location: Optional[str] = None
    venue: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    locale: Optional[str] = None
    total_budget: Optional[float] = None
    is_active: Optional[bool] = None

    @field_validator("locale")
    @classmethod
    def validate_locale(cls, v):
        return validate_choice(v, EVENT_LOCALES, "locale")


class EventResponse(BaseModel):
    id: int
    owner_id: int
    workspace_id: Optional[int]
    title: str
    description: Optional[str]
    date_time: datetime
    location: Optional[str]
    venue: Optional[str]
    notes: Optional[str]
    image_url: Optional[str]
    locale: str
    total_budget: Optional[float]
    sms_sender_id: Optional[str]
    is_active: bool
    is_archived: bool
    created_at: Optional[datetime] = None
    role: Optional[str] = None
    guest_count: int = 0
    rsvp_counts: dict = {}

    class Config:
        from_attributes = True


class CollaboratorInvite(BaseModel):
    email: EmailStr
    role: str = "EDITOR"

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        return validate_choice(v, COLLABORATOR_ROLES, "role")


class CollaboratorRoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        return validate_choice(v, COLLABORATOR_ROLES, "role")


class AcceptInvitationRequest(BaseModel):
    token: str


class CollaboratorResponse(BaseModel):
    id: int
    event_id: int
    user_id: Optional[int]
    email: str
    name: Optional[str] = None
    role: str
    accepted_at: Optional[datetime]
    created_at: Optional[datetime] = None
    invite_token: Optional[str] = None
