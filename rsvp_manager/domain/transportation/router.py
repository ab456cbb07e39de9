"""Transportation router - public shuttle sign-up and the owner's list"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import preset_rate_limiter
from .schemas import PublicTransportationPage, TransportationRegister, TransportationRegistrationResponse
from .service import TransportationService

router = APIRouter(tags=["Transportation"])

guest_rate_limit = preset_rate_limiter("rsvp", key_func=lambda request: request.path_params.get("slug", ""))
event_rate_limit = preset_rate_limiter(
    "rsvp", key_func=lambda request: f"event:{request.path_params.get('event_id', '')}"
)


def get_transportation_service(db: Session = Depends(get_db)) -> TransportationService:
    return TransportationService(db)


@router.get("/transportation/events/{event_id}", response_model=PublicTransportationPage)
async def get_event_transportation_page(
    event_id: int, service: TransportationService = Depends(get_transportation_service)
):
    """Public: event-wide sign-up link"""
    return service.get_event_page(event_id)


@router.post("/transportation/events/{event_id}", response_model=TransportationRegistrationResponse, status_code=201)
async def register_for_event(
    event_id: int,
    data: TransportationRegister,
    service: TransportationService = Depends(get_transportation_service),
    _: None = Depends(event_rate_limit),
):
    return service.register_generic(event_id, data)


@router.get("/transportation/{slug}", response_model=PublicTransportationPage)
async def get_guest_transportation_page(
    slug: str, service: TransportationService = Depends(get_transportation_service)
):
    """Public: the guest's personal link"""
    return service.get_guest_page(slug)


@router.post("/transportation/{slug}", response_model=TransportationRegistrationResponse)
async def register_guest(
    slug: str,
    data: TransportationRegister,
    service: TransportationService = Depends(get_transportation_service),
    _: None = Depends(guest_rate_limit),
):
    return service.register_guest(slug, data)


@router.get("/events/{event_id}/transportation", response_model=list[TransportationRegistrationResponse])
async def list_registrations(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: TransportationService = Depends(get_transportation_service),
):
    return service.list_registrations(event_id, current_user)
