"""Guest service - guest list management"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Guest, GuestRsvp, User
from ...permissions import ROLE_EDITOR, ROLE_VIEWER, can_access_event, get_event_with_access
from ...plan_limits import can_add_guests
from ...services.seat_calculator import seats_used_by_guest
from ...shared.validators import normalize_phone
from .repository import GuestRepository
from .schemas import BulkRsvpUpdate, GuestBase, GuestCreate, GuestImport, GuestUpdate

logger = logging.getLogger(__name__)

GUEST_FIELDS = ("name", "phone_number", "email", "side", "group_name", "expected_guests", "notes")


def apply_rsvp(guest: Guest, status: str, guest_count=None, message=None) -> GuestRsvp:
    """
    Upsert the RSVP of a guest.
    Only an accepted RSVP carries a head count (default 1).
    """
    rsvp = guest.rsvp
    if rsvp is None:
        rsvp = GuestRsvp(status="PENDING", guest_count=0)
        guest.rsvp = rsvp

    rsvp.status = status
    rsvp.guest_count = (guest_count or 1) if status == "ACCEPTED" else 0
    if message is not None:
        rsvp.message = message
    rsvp.responded_at = datetime.utcnow()
    return rsvp


class GuestService:
    """Service layer for guest business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = GuestRepository()

    def _new_guest(self, event_id: int, data: GuestBase) -> Guest:
        guest = Guest(
            event_id=event_id,
            slug=self.repo.unique_slug(self.db),
            **{field: getattr(data, field) for field in GUEST_FIELDS},
        )
        guest.rsvp = GuestRsvp(status="PENDING", guest_count=0)
        return guest

    def _check_limit(self, event, adding: int) -> None:
        can_add, error_message = can_add_guests(event, self.db, adding)
        if not can_add:
            logger.warning(f"⚠️ Event {event.id} reached guest limit: {error_message}")
            raise HTTPException(status_code=403, detail=error_message)

    def _check_duplicate_phone(self, event_id: int, phone: str, exclude_guest_id: int = None) -> None:
        duplicates = self.repo.find_phone_duplicates(self.db, event_id, phone, exclude_guest_id)
        if duplicates:
            raise HTTPException(
                status_code=409,
                detail={
                    "code": "DUPLICATE_PHONE",
                    "message": "Another guest already uses this phone number",
                    "duplicate_names": [g.name for g in duplicates],
                    "duplicate_guest_ids": [g.id for g in duplicates],
                },
            )

    def get_guest(self, guest_id: int, user: User, required_role: str = ROLE_VIEWER) -> Guest:
        guest = self.repo.get_guest_by_id(self.db, guest_id)
        if not guest or not can_access_event(self.db, user, guest.event_id, required_role):
            raise HTTPException(status_code=404, detail="Guest not found")
        return guest

    def list_guests(self, event_id: int, user: User) -> list[Guest]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return self.repo.get_guests(self.db, event.id)

    def create_guest(self, event_id: int, data: GuestCreate, user: User) -> Guest:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        self._check_limit(event, 1)

        if data.phone_number and not data.allow_duplicate_phone:
            self._check_duplicate_phone(event.id, data.phone_number)

        guest = self._new_guest(event.id, data)
        self.db.add(guest)
        self.db.commit()
        self.db.refresh(guest)

        logger.info(f"✅ Guest {guest.id} added to event {event.id}")
        return guest

    def import_guests(self, event_id: int, data: GuestImport, user: User) -> list[Guest]:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        self._check_limit(event, len(data.guests))

        existing = {
            normalize_phone(g.phone_number): g
            for g in self.db.query(Guest).filter(Guest.event_id == event.id, Guest.phone_number.isnot(None))
        }
        duplicates_with_existing = []
        duplicates_within_batch = []
        seen = set()
        for item in data.guests:
            phone = normalize_phone(item.phone_number)
            if not phone:
                continue
            if phone in existing:
                duplicates_with_existing.append(
                    {
                        "name": item.name,
                        "phone": item.phone_number,
                        "existing_name": existing[phone].name,
                        "existing_guest_id": existing[phone].id,
                    }
                )
            if phone in seen:
                duplicates_within_batch.append({"name": item.name, "phone": item.phone_number})
            seen.add(phone)

        if duplicates_with_existing or duplicates_within_batch:
            raise HTTPException(
                status_code=409,
                detail={
                    "code": "DUPLICATE_PHONES_IN_IMPORT",
                    "message": "The import contains duplicate phone numbers",
                    "duplicates_with_existing": duplicates_with_existing,
                    "duplicates_within_batch": duplicates_within_batch,
                },
            )

        guests = [self._new_guest(event.id, item) for item in data.guests]
        self.db.add_all(guests)
        self.db.commit()
        for guest in guests:
            self.db.refresh(guest)

        logger.info(f"📥 Imported {len(guests)} guests into event {event.id}")
        return guests

    def update_guest(self, guest_id: int, data: GuestUpdate, user: User) -> Guest:
        guest = self.get_guest(guest_id, user, ROLE_EDITOR)
        updates = data.model_dump(exclude_unset=True)

        if updates.get("phone_number") and not data.allow_duplicate_phone:
            self._check_duplicate_phone(guest.event_id, updates["phone_number"], exclude_guest_id=guest.id)

        if "name" in updates and not (updates["name"] or "").strip():
            raise HTTPException(status_code=400, detail="Guest name is required")
        if "expected_guests" in updates and (updates["expected_guests"] or 0) < 1:
            raise HTTPException(status_code=400, detail="Expected guests must be at least 1")

        for field in GUEST_FIELDS:
            if field in updates:
                setattr(guest, field, updates[field])

        if data.rsvp_status is not None:
            apply_rsvp(guest, data.rsvp_status, data.rsvp_guest_count)

        self.db.commit()
        self.db.refresh(guest)
        return guest

    def delete_guests(self, guest_ids: list[int], user: User) -> int:
        if not guest_ids:
            raise HTTPException(status_code=400, detail="No guests selected")

        guests = self.db.query(Guest).filter(Guest.id.in_(guest_ids)).all()
        for event_id in {g.event_id for g in guests}:
            if not can_access_event(self.db, user, event_id, ROLE_EDITOR):
                raise HTTPException(status_code=403, detail="Unauthorized to delete some guests")

        for guest in guests:
            self.db.delete(guest)
        self.db.commit()

        logger.info(f"🗑️ Deleted {len(guests)} guest(s)")
        return len(guests)

    def bulk_update_rsvp_status(self, data: BulkRsvpUpdate, user: User) -> int:
        guests = self.db.query(Guest).filter(Guest.id.in_(data.guest_ids)).all()
        if not guests:
            raise HTTPException(status_code=404, detail="No guests found")
        for event_id in {g.event_id for g in guests}:
            if not can_access_event(self.db, user, event_id, ROLE_EDITOR):
                raise HTTPException(status_code=403, detail="Unauthorized to update some guests")

        for guest in guests:
            apply_rsvp(guest, data.status, data.guest_count)
        self.db.commit()
        return len(guests)

    def get_guest_stats(self, event_id: int, user: User) -> dict:
        guests = self.list_guests(event_id, user)

        by_status = {"PENDING": 0, "ACCEPTED": 0, "DECLINED": 0, "MAYBE": 0}
        confirmed_heads = 0
        for guest in guests:
            status = guest.rsvp.status if guest.rsvp else "PENDING"
            by_status[status] = by_status.get(status, 0) + 1
            if status == "ACCEPTED":
                confirmed_heads += seats_used_by_guest(guest)

        return {
            "total_guests": len(guests),
            "by_status": by_status,
            "expected_heads": sum(g.expected_guests or 1 for g in guests),
            "confirmed_heads": confirmed_heads,
            "with_phone": sum(1 for g in guests if g.phone_number),
        }
