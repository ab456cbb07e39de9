"""Seating chart schemas"""

from typing import List, Optional

from pydantic import BaseModel, field_validator

from ...models import RSVP_STATUSES
from ...models_seating import SEAT_ARRANGEMENTS, TABLE_SHAPES, VENUE_BLOCK_TYPES
from ...shared.validators import validate_choice

GROUPING_STRATEGIES = ("group", "group-side")


class TableCreate(BaseModel):
    name: str
    capacity: int = 10
    shape: str = "circle"
    seat_arrangement: str = "even"
    position_x: float = 0
    position_y: float = 0
    width: float = 120
    height: float = 120
    rotation: float = 0
    color: Optional[str] = None

    @field_validator("capacity")
    @classmethod
    def validate_capacity(cls, v):
        if not 1 <= v <= 50:
            raise ValueError("Capacity must be between 1 and 50")
        return v

    @field_validator("shape")
    @classmethod
    def validate_shape(cls, v):
        return validate_choice(v, TABLE_SHAPES, "shape")

    @field_validator("seat_arrangement")
    @classmethod
    def validate_arrangement(cls, v):
        return validate_choice(v, SEAT_ARRANGEMENTS, "seat arrangement")


class TableUpdate(BaseModel):
    name: Optional[str] = None
    capacity: Optional[int] = None
    shape: Optional[str] = None
    seat_arrangement: Optional[str] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    rotation: Optional[float] = None
    color: Optional[str] = None

    @field_validator("capacity")
    @classmethod
    def validate_capacity(cls, v):
        if v is not None and not 1 <= v <= 50:
            raise ValueError("Capacity must be between 1 and 50")
        return v

    @field_validator("shape")
    @classmethod
    def validate_shape(cls, v):
        return validate_choice(v, TABLE_SHAPES, "shape")

    @field_validator("seat_arrangement")
    @classmethod
    def validate_arrangement(cls, v):
        return validate_choice(v, SEAT_ARRANGEMENTS, "seat arrangement")


class AssignGuestsRequest(BaseModel):
    guest_ids: List[int]


class MoveGuestRequest(BaseModel):
    to_table_id: int


class AutoArrangeRequest(BaseModel):
    table_size: int = 10
    group_by: str = "group"
    side_filter: Optional[str] = None
    group_filter: Optional[str] = None
    include_rsvp_statuses: List[str] = ["ACCEPTED", "PENDING"]
    table_shape: str = "circle"

    @field_validator("table_size")
    @classmethod
    def validate_table_size(cls, v):
        if not 2 <= v <= 30:
            raise ValueError("Table size must be between 2 and 30")
        return v

    @field_validator("group_by")
    @classmethod
    def validate_group_by(cls, v):
        return validate_choice(v, GROUPING_STRATEGIES, "grouping")

    @field_validator("include_rsvp_statuses")
    @classmethod
    def validate_statuses(cls, v):
        for status in v:
            validate_choice(status, RSVP_STATUSES, "RSVP status")
        return v

    @field_validator("table_shape")
    @classmethod
    def validate_shape(cls, v):
        return validate_choice(v, TABLE_SHAPES, "shape")


class VenueBlockCreate(BaseModel):
    name: str
    type: str = "OTHER"
    position_x: float = 0
    position_y: float = 0
    width: float = 200
    height: float = 100
    rotation: float = 0
    color: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, VENUE_BLOCK_TYPES, "block type")


class VenueBlockUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    rotation: Optional[float] = None
    color: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, VENUE_BLOCK_TYPES, "block type")


class VenueBlockResponse(BaseModel):
    id: int
    event_id: int
    name: str
    type: str
    position_x: float
    position_y: float
    width: float
    height: float
    rotation: float
    color: Optional[str]

    class Config:
        from_attributes = True
