"""Guest router"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...permissions import ROLE_EDITOR
from ...rate_limiter import preset_rate_limiter
from .schemas import BulkRsvpUpdate, GuestCreate, GuestIdsRequest, GuestImport, GuestResponse, GuestUpdate
from .service import GuestService

router = APIRouter(tags=["Guests"])

bulk_rate_limit = preset_rate_limiter("bulk")


def get_guest_service(db: Session = Depends(get_db)) -> GuestService:
    """Dependency injection for GuestService"""
    return GuestService(db)


@router.get("/events/{event_id}/guests", response_model=list[GuestResponse])
async def list_guests(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: GuestService = Depends(get_guest_service),
):
    return service.list_guests(event_id, current_user)


@router.get("/events/{event_id}/guests/stats")
async def guest_stats(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: GuestService = Depends(get_guest_service),
):
    return service.get_guest_stats(event_id, current_user)


@router.post("/events/{event_id}/guests", response_model=GuestResponse, status_code=201)
async def create_guest(
    event_id: int,
    data: GuestCreate,
    current_user: User = Depends(get_current_user),
    service: GuestService = Depends(get_guest_service),
):
    return service.create_guest(event_id, data, current_user)


@router.post("/events/{event_id}/guests/import", status_code=201)
async def import_guests(
    event_id: int,
    data: GuestImport,
    current_user: User = Depends(get_current_user),
    service: GuestService = Depends(get_guest_service),
    _: None = Depends(bulk_rate_limit),
):
    guests = service.import_guests(event_id, data, current_user)
    return {
        "success": True,
        "imported": len(guests),
        "guests": [GuestResponse.model_validate(g) for g in guests],
    }


@router.post("/guests/rsvp-status")
async def bulk_update_rsvp_status(
    data: BulkRsvpUpdate,
    current_user: User = Depends(get_current_user),
    service: GuestService = Depends(get_guest_service),
):
    updated = service.bulk_update_rsvp_status(data, current_user)
    return {"success": True, "updated": updated}


@router.post("/guests/delete")
async def delete_guests(
    data: GuestIdsRequest,
    current_user: User = Depends(get_current_user),
    service: GuestService = Depends(get_guest_service),
):
    deleted = service.delete_guests(data.guest_ids, current_user)
    return {"success": True, "deleted": deleted}


@router.get("/guests/{guest_id}", response_model=GuestResponse)
async def get_guest(
    guest_id: int,
    current_user: User = Depends(get_current_user),
    service: GuestService = Depends(get_guest_service),
):
    return service.get_guest(guest_id, current_user)


@router.put("/guests/{guest_id}", response_model=GuestResponse)
async def update_guest(
    guest_id: int,
    data: GuestUpdate,
    current_user: User = Depends(get_current_user),
    service: GuestService = Depends(get_guest_service),
):
    return service.update_guest(guest_id, data, current_user)


@router.delete("/guests/{guest_id}")
async def delete_guest(
    guest_id: int,
    current_user: User = Depends(get_current_user),
    service: GuestService = Depends(get_guest_service),
):
    guest = service.get_guest(guest_id, current_user, ROLE_EDITOR)
    service.delete_guests([guest.id], current_user)
    return {"success": True}
