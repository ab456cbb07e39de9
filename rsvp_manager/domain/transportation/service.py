"""
Transportation service

Guests sign up for the shuttle through their personal link (the RSVP
slug) or through the event-wide link; owners see the list.
"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Guest, User, WeddingEvent
from ...models_transportation import TransportationRegistration
from ...permissions import ROLE_VIEWER, get_event_with_access
from ...security_utils import sanitize_text
from ..guests.repository import GuestRepository
from .schemas import (
    PublicTransportationEvent,
    PublicTransportationPage,
    TransportationRegister,
    TransportationRegistrationResponse,
)

logger = logging.getLogger(__name__)

CLOSED_MESSAGE = "Event is no longer accepting registrations"


def _check_open(event: WeddingEvent) -> None:
    if not event.is_active or event.is_archived:
        raise HTTPException(status_code=410, detail=CLOSED_MESSAGE)


def _public_event(event: WeddingEvent) -> PublicTransportationEvent:
    return PublicTransportationEvent(
        title=event.title,
        date_time=event.date_time,
        location=event.location,
        venue=event.venue,
        locale=event.locale,
    )


class TransportationService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = GuestRepository()

    def _get_open_guest(self, slug: str) -> Guest:
        guest = self.repo.get_guest_by_slug(self.db, slug)
        if not guest:
            raise HTTPException(status_code=404, detail="Guest not found")
        _check_open(guest.event)
        return guest

    def _get_open_event(self, event_id: int) -> WeddingEvent:
        event = self.db.query(WeddingEvent).filter(WeddingEvent.id == event_id).first()
        if not event:
            raise HTTPException(status_code=404, detail="Event not found")
        _check_open(event)
        return event

    def get_guest_page(self, slug: str) -> PublicTransportationPage:
        guest = self._get_open_guest(slug)
        return PublicTransportationPage(
            event=_public_event(guest.event),
            guest_name=guest.name,
            registration=(
                TransportationRegistrationResponse.model_validate(guest.transportation_registration)
                if guest.transportation_registration
                else None
            ),
        )

    def get_event_page(self, event_id: int) -> PublicTransportationPage:
        return PublicTransportationPage(event=_public_event(self._get_open_event(event_id)))

    def _fill(self, registration: TransportationRegistration, data: TransportationRegister) -> None:
        registration.full_name = sanitize_text(data.full_name)
        registration.phone_number = data.phone_number
        registration.location = sanitize_text(data.location)
        registration.notes = sanitize_text(data.notes) or None

    def register_guest(self, slug: str, data: TransportationRegister) -> TransportationRegistration:
        """A guest has at most one registration; registering again updates it"""
        guest = self._get_open_guest(slug)
        registration = guest.transportation_registration
        created = registration is None
        if created:
            registration = TransportationRegistration(event_id=guest.event_id, guest_id=guest.id)
            self.db.add(registration)
        self._fill(registration, data)
        self.db.commit()
        self.db.refresh(registration)
        logger.info(f"🚌 Guest {guest.id} {'registered for' if created else 'updated'} transportation")
        return registration

    def register_generic(self, event_id: int, data: TransportationRegister) -> TransportationRegistration:
        event = self._get_open_event(event_id)
        registration = TransportationRegistration(event_id=event.id, guest_id=None)
        self._fill(registration, data)
        self.db.add(registration)
        self.db.commit()
        self.db.refresh(registration)
        logger.info(f"🚌 New transportation registration {registration.id} for event {event.id}")
        return registration

    def list_registrations(self, event_id: int, user: User) -> list[TransportationRegistration]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return (
            self.db.query(TransportationRegistration)
            .filter(TransportationRegistration.event_id == event.id)
            .order_by(TransportationRegistration.registered_at.desc(), TransportationRegistration.id.desc())
            .all()
        )
