"""RSVP service - public guest responses and RSVP page settings"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Guest, RsvpPageSettings, User
from ...permissions import ROLE_EDITOR, ROLE_VIEWER, get_event_with_access
from ...security_utils import sanitize_html, sanitize_text
from ...services import automation_engine
from ...services.notification_service import get_notification_service
from ..guests.repository import GuestRepository
from ..guests.service import apply_rsvp
from .schemas import (
    PublicEventResponse,
    PublicGuestResponse,
    PublicRsvpResponse,
    RsvpPageSettingsResponse,
    RsvpPageSettingsUpdate,
    RsvpSubmit,
)

logger = logging.getLogger(__name__)

CLOSED_MESSAGE = "Event is no longer accepting responses"


class RsvpService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = GuestRepository()

    def _get_open_guest(self, slug: str) -> Guest:
        guest = self.repo.get_guest_by_slug(self.db, slug)
        if not guest:
            raise HTTPException(status_code=404, detail="Guest not found")
        event = guest.event
        if not event.is_active or event.is_archived:
            raise HTTPException(status_code=410, detail=CLOSED_MESSAGE)
        return guest

    def get_guest_by_slug(self, slug: str) -> PublicGuestResponse:
        guest = self._get_open_guest(slug)
        settings = guest.event.rsvp_settings
        return PublicGuestResponse(
            name=guest.name,
            slug=guest.slug,
            expected_guests=guest.expected_guests,
            event=PublicEventResponse.model_validate(guest.event),
            rsvp=PublicRsvpResponse.model_validate(guest.rsvp) if guest.rsvp else None,
            settings=RsvpPageSettingsResponse.model_validate(settings) if settings else None,
        )

    async def submit_rsvp(self, slug: str, data: RsvpSubmit):
        guest = self._get_open_guest(slug)
        event = guest.event

        settings = event.rsvp_settings
        if settings and not settings.accepting_responses:
            raise HTTPException(status_code=410, detail=CLOSED_MESSAGE)
        if settings and settings.deadline and settings.deadline < datetime.utcnow():
            raise HTTPException(status_code=410, detail="The RSVP deadline has passed")

        previous_status = guest.rsvp.status if guest.rsvp else None
        rsvp = apply_rsvp(guest, data.status, data.guest_count, sanitize_text(data.message) or None)
        self.db.commit()
        self.db.refresh(rsvp)
        logger.info(f"💌 Guest {guest.id} responded {rsvp.status} ({rsvp.guest_count})")

        # Confirmation failures never fail the RSVP
        try:
            service = get_notification_service(self.db)
            await service.send_confirmation(guest, event, rsvp.status)
        except Exception as e:
            logger.error(f"❌ Failed to send RSVP confirmation to guest {guest.id}: {str(e)}")

        try:
            await automation_engine.on_rsvp_status_changed(self.db, guest, previous_status, rsvp.status)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Automation flows failed for guest {guest.id}: {str(e)}")

        return rsvp

    def _get_or_create_settings(self, event) -> RsvpPageSettings:
        if event.rsvp_settings is None:
            event.rsvp_settings = RsvpPageSettings(welcome_title=event.title)
            self.db.commit()
            self.db.refresh(event)
        return event.rsvp_settings

    def get_page_settings(self, event_id: int, user: User) -> RsvpPageSettings:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return self._get_or_create_settings(event)

    def update_page_settings(self, event_id: int, data: RsvpPageSettingsUpdate, user: User) -> RsvpPageSettings:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        settings = self._get_or_create_settings(event)

        updates = data.model_dump(exclude_unset=True)
        if "welcome_message" in updates:
            updates["welcome_message"] = sanitize_html(updates["welcome_message"])
        if "welcome_title" in updates:
            updates["welcome_title"] = sanitize_text(updates["welcome_title"])

        for field, value in updates.items():
            if value is None and field in ("theme_color", "show_map", "show_calendar_button", "accepting_responses"):
                continue
            setattr(settings, field, value)

        self.db.commit()
        self.db.refresh(settings)
        return settings
