"""Transportation sign-up schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_phone


def _required(v: Optional[str], message: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError(message)
    return v


class TransportationRegister(BaseModel):
    full_name: str
    phone_number: str
    location: str
    notes: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v):
        return _required(v, "Full name is required")

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v):
        return validate_phone(_required(v, "Phone number is required"))

    @field_validator("location")
    @classmethod
    def validate_location(cls, v):
        return _required(v, "Pickup location is required")


class TransportationRegistrationResponse(BaseModel):
    id: int
    event_id: int
    guest_id: Optional[int]
    full_name: str
    phone_number: str
    location: str
    notes: Optional[str]
    registered_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicTransportationEvent(BaseModel):
    title: str
    date_time: datetime
    location: Optional[str]
    venue: Optional[str]
    locale: Optional[str]


class PublicTransportationPage(BaseModel):
    event: PublicTransportationEvent
    guest_name: Optional[str] = None
    registration: Optional[TransportationRegistrationResponse] = None
