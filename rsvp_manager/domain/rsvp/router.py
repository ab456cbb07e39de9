"""RSVP router - public guest page and its settings"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import preset_rate_limiter
from .schemas import PublicGuestResponse, PublicRsvpResponse, RsvpPageSettingsResponse, RsvpPageSettingsUpdate, RsvpSubmit
from .service import RsvpService

router = APIRouter(tags=["RSVP"])

# Keyed by guest slug
rsvp_rate_limit = preset_rate_limiter("rsvp", key_func=lambda request: request.path_params.get("slug", ""))


def get_rsvp_service(db: Session = Depends(get_db)) -> RsvpService:
    return RsvpService(db)


@router.get("/rsvp/{slug}", response_model=PublicGuestResponse)
async def get_rsvp_page(slug: str, service: RsvpService = Depends(get_rsvp_service)):
    """Public: no authentication"""
    return service.get_guest_by_slug(slug)


@router.post("/rsvp/{slug}")
async def submit_rsvp(
    slug: str,
    data: RsvpSubmit,
    service: RsvpService = Depends(get_rsvp_service),
    _: None = Depends(rsvp_rate_limit),
):
    rsvp = await service.submit_rsvp(slug, data)
    return {"success": True, "rsvp": PublicRsvpResponse.model_validate(rsvp)}


@router.get("/events/{event_id}/rsvp-settings", response_model=RsvpPageSettingsResponse)
async def get_rsvp_settings(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: RsvpService = Depends(get_rsvp_service),
):
    return service.get_page_settings(event_id, current_user)


@router.put("/events/{event_id}/rsvp-settings", response_model=RsvpPageSettingsResponse)
async def update_rsvp_settings(
    event_id: int,
    data: RsvpPageSettingsUpdate,
    current_user: User = Depends(get_current_user),
    service: RsvpService = Depends(get_rsvp_service),
):
    return service.update_page_settings(event_id, data, current_user)
