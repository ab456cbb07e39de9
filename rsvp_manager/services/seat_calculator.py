"""
Seat geometry for seating-chart tables.

Seat coordinates are relative to the table centre and scaled by the table's
width and height: x and y lie in [-0.5, 0.5]. `angle` is the chair rotation
in degrees (0 = facing down into a table below it).
"""

import math
from dataclasses import asdict, dataclass
from typing import Optional

ARRANGEMENTS_BY_SHAPE = {
    "circle": ["even"],
    "oval": ["even"],
    "square": ["even"],
    "rectangle": ["even", "bride-side", "sides-only"],
}


@dataclass
class SeatPosition:
    seat_number: int
    x: float
    y: float
    angle: float
    side: Optional[str] = None  # bride / groom for the bride-side arrangement

    def to_dict(self) -> dict:
        return asdict(self)


def get_available_arrangements(shape: str) -> list[str]:
    return list(ARRANGEMENTS_BY_SHAPE.get(shape, ["even"]))


def _around(capacity: int, radius_x: float, radius_y: float) -> list[SeatPosition]:
    seats = []
    for i in range(capacity):
        angle = (i / capacity) * 360
        radians = math.radians(angle - 90)  # Start at top
        seats.append(
            SeatPosition(
                seat_number=i + 1,
                x=math.cos(radians) * radius_x,
                y=math.sin(radians) * radius_y,
                angle=angle,
            )
        )
    return seats


def _two_rows(capacity: int, top_side: Optional[str] = None, bottom_side: Optional[str] = None) -> list[SeatPosition]:
    """Chairs on the two long sides only, top row left to right, bottom row right to left"""
    top_count = math.ceil(capacity / 2)
    bottom_count = capacity - top_count
    seats = []
    seat_number = 1

    for i in range(top_count):
        spacing = i / (top_count - 1) if top_count > 1 else 0.5
        seats.append(SeatPosition(seat_number, -0.4 + spacing * 0.8, -0.5, 0, top_side))
        seat_number += 1

    for i in range(bottom_count):
        spacing = i / (bottom_count - 1) if bottom_count > 1 else 0.5
        seats.append(SeatPosition(seat_number, 0.4 - spacing * 0.8, 0.5, 180, bottom_side))
        seat_number += 1

    return seats


def _even(capacity: int, shape: str) -> list[SeatPosition]:
    if shape == "circle":
        return _around(capacity, 0.5, 0.5)
    if shape == "oval":
        return _around(capacity, 0.5, 0.45)
    if shape in ("square", "rectangle"):
        return _two_rows(capacity)
    return []


def calculate_seat_positions(shape: str, capacity: int, arrangement: str = "even") -> list[SeatPosition]:
    """
    Seat layout for a table.

    `bride-side` only changes rectangles (top row bride, bottom row groom);
    `sides-only` and `custom` start from the even layout.
    """
    if capacity <= 0:
        return []
    if arrangement == "bride-side" and shape == "rectangle":
        return _two_rows(capacity, top_side="bride", bottom_side="groom")
    return _even(capacity, shape)


def seat_relative_to_absolute(
    relative_x: float,
    relative_y: float,
    table_x: float,
    table_y: float,
    table_width: float,
    table_height: float,
    table_rotation: float = 0,
) -> tuple[float, float]:
    """Canvas position of a seat; table_x/table_y is the table's top-left corner"""
    rot = math.radians(table_rotation)
    cos, sin = math.cos(rot), math.sin(rot)

    local_x = relative_x * table_width
    local_y = relative_y * table_height

    rotated_x = local_x * cos - local_y * sin
    rotated_y = local_x * sin + local_y * cos

    return table_x + table_width / 2 + rotated_x, table_y + table_height / 2 + rotated_y


def get_seats_used(rsvp_status: Optional[str], guest_count: Optional[int], expected_guests: Optional[int]) -> int:
    """Seats a guest entry occupies at a table"""
    if rsvp_status == "DECLINED":
        return 0
    if rsvp_status == "ACCEPTED":
        return guest_count or 1
    return expected_guests or 1


def seats_used_by_guest(guest) -> int:
    rsvp = guest.rsvp
    return get_seats_used(
        rsvp.status if rsvp else None,
        rsvp.guest_count if rsvp else None,
        guest.expected_guests,
    )
