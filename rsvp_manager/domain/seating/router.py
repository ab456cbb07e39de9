"""Seating chart router"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services.seat_calculator import calculate_seat_positions, get_available_arrangements
from .schemas import (
    AssignGuestsRequest,
    AutoArrangeRequest,
    MoveGuestRequest,
    TableCreate,
    TableUpdate,
    VenueBlockCreate,
    VenueBlockResponse,
    VenueBlockUpdate,
)
from .service import SeatingService

router = APIRouter(tags=["Seating"])


def get_seating_service(db: Session = Depends(get_db)) -> SeatingService:
    """Dependency injection for SeatingService"""
    return SeatingService(db)


# ============================================================================
# TABLES
# ============================================================================


@router.get("/events/{event_id}/tables")
async def list_tables(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return [service.table_to_dict(t) for t in service.list_tables(event_id, current_user)]


@router.post("/events/{event_id}/tables", status_code=201)
async def create_table(
    event_id: int,
    data: TableCreate,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.table_to_dict(service.create_table(event_id, data, current_user))


@router.put("/tables/{table_id}")
async def update_table(
    table_id: int,
    data: TableUpdate,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.table_to_dict(service.update_table(table_id, data, current_user))


@router.delete("/tables/{table_id}")
async def delete_table(
    table_id: int,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    service.delete_table(table_id, current_user)
    return {"success": True}


@router.get("/seating/arrangements")
async def seat_arrangements(shape: str = Query("circle"), capacity: int = Query(10, ge=1, le=50)):
    """Arrangements a table shape supports, with the default seat layout"""
    return {
        "shape": shape,
        "arrangements": get_available_arrangements(shape),
        "seats": [s.to_dict() for s in calculate_seat_positions(shape, capacity)],
    }


# ============================================================================
# GUEST ASSIGNMENTS
# ============================================================================


@router.post("/tables/{table_id}/guests")
async def assign_guests(
    table_id: int,
    data: AssignGuestsRequest,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.assign_guests_to_table(table_id, data.guest_ids, current_user)


@router.post("/seating/guests/{guest_id}/move")
async def move_guest(
    guest_id: int,
    data: MoveGuestRequest,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.move_guest(guest_id, data.to_table_id, current_user)


@router.delete("/seating/guests/{guest_id}")
async def remove_guest_from_table(
    guest_id: int,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    service.remove_guest_from_table(guest_id, current_user)
    return {"success": True}


@router.get("/events/{event_id}/seating/unseated")
async def unseated_guests(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.get_unseated_guests(event_id, current_user)


@router.get("/events/{event_id}/seating/stats")
async def seating_stats(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.get_seating_stats(event_id, current_user)


@router.post("/events/{event_id}/seating/auto-arrange")
async def auto_arrange(
    event_id: int,
    data: AutoArrangeRequest,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.auto_arrange(event_id, data, current_user)


# ============================================================================
# VENUE BLOCKS
# ============================================================================


@router.get("/events/{event_id}/venue-blocks", response_model=list[VenueBlockResponse])
async def list_venue_blocks(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.list_venue_blocks(event_id, current_user)


@router.post("/events/{event_id}/venue-blocks", response_model=VenueBlockResponse, status_code=201)
async def create_venue_block(
    event_id: int,
    data: VenueBlockCreate,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.create_venue_block(event_id, data, current_user)


@router.put("/venue-blocks/{block_id}", response_model=VenueBlockResponse)
async def update_venue_block(
    block_id: int,
    data: VenueBlockUpdate,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    return service.update_venue_block(block_id, data, current_user)


@router.delete("/venue-blocks/{block_id}")
async def delete_venue_block(
    block_id: int,
    current_user: User = Depends(get_current_user),
    service: SeatingService = Depends(get_seating_service),
):
    service.delete_venue_block(block_id, current_user)
    return {"success": True}
