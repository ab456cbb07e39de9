"""
Event Archive Service

Archiving writes a complete JSON snapshot of an event to R2, keeps a
small EventArchive index row and deletes the live event.
"""

import json
import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import storage
from ...models import User, WeddingEvent
from ...models_archive import EventArchive
from ...services.seat_calculator import seats_used_by_guest

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "2.0"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def get_archive_key(owner_id: int, event_id: int) -> str:
    return f"archives/events/{owner_id}/{event_id}.json"


def _guest_snapshot(guest) -> dict:
    assignment = guest.table_assignment
    return {
        "id": guest.id,
        "name": guest.name,
        "phone_number": guest.phone_number,
        "email": guest.email,
        "side": guest.side,
        "group_name": guest.group_name,
        "expected_guests": guest.expected_guests,
        "notes": guest.notes,
        "slug": guest.slug,
        "created_at": _iso(guest.created_at),
        "rsvp": (
            {
                "status": guest.rsvp.status,
                "guest_count": guest.rsvp.guest_count,
                "message": guest.rsvp.message,
                "responded_at": _iso(guest.rsvp.responded_at),
            }
            if guest.rsvp
            else None
        ),
        "notification_logs": [
            {
                "type": log.type,
                "channel": log.channel,
                "status": log.status,
                "provider_message_id": log.provider_message_id,
                "error_code": log.error_code,
                "error_message": log.error_message,
                "sent_at": _iso(log.sent_at),
                "delivered_at": _iso(log.delivered_at),
            }
            for log in guest.notification_logs
        ],
        "table_assignment": (
            {"table_id": assignment.table_id, "table_name": assignment.table.name, "seat_number": assignment.seat_number}
            if assignment
            else None
        ),
    }


def create_event_snapshot(event: WeddingEvent) -> dict:
    """Everything needed to read back an event after its rows are gone"""
    settings = event.rsvp_settings
    guests = list(event.guests)

    status_counts = {"ACCEPTED": 0, "DECLINED": 0, "MAYBE": 0, "PENDING": 0}
    for guest in guests:
        status = guest.rsvp.status if guest.rsvp else "PENDING"
        status_counts[status] = status_counts.get(status, 0) + 1

    total_agreed = sum(s.agreed_price or 0 for s in event.suppliers)
    total_paid = sum(p.amount for s in event.suppliers for p in s.payments)

    return {
        "event": {
            "id": event.id,
            "title": event.title,
            "description": event.description,
            "date_time": _iso(event.date_time),
            "location": event.location,
            "venue": event.venue,
            "notes": event.notes,
            "image_url": event.image_url,
            "locale": event.locale,
            "total_budget": event.total_budget,
            "sms_sender_id": event.sms_sender_id,
            "is_active": event.is_active,
            "is_archived": event.is_archived,
            "created_at": _iso(event.created_at),
            "owner": {"id": event.owner.id, "email": event.owner.email, "name": event.owner.name},
            "rsvp_settings": (
                {
                    "welcome_title": settings.welcome_title,
                    "welcome_message": settings.welcome_message,
                    "theme_color": settings.theme_color,
                    "background_image_url": settings.background_image_url,
                    "show_map": settings.show_map,
                    "show_calendar_button": settings.show_calendar_button,
                    "accepting_responses": settings.accepting_responses,
                    "deadline": _iso(settings.deadline),
                }
                if settings
                else None
            ),
        },
        "guests": [_guest_snapshot(g) for g in guests],
        "tables": [
            {
                "id": t.id,
                "name": t.name,
                "capacity": t.capacity,
                "shape": t.shape,
                "seat_arrangement": t.seat_arrangement,
                "position_x": t.position_x,
                "position_y": t.position_y,
                "width": t.width,
                "height": t.height,
                "rotation": t.rotation,
                "color": t.color,
                "guest_ids": [a.guest_id for a in t.assignments],
            }
            for t in event.tables
        ],
        "venue_blocks": [
            {
                "id": b.id,
                "name": b.name,
                "type": b.type,
                "position_x": b.position_x,
                "position_y": b.position_y,
                "width": b.width,
                "height": b.height,
                "rotation": b.rotation,
                "color": b.color,
            }
            for b in event.venue_blocks
        ],
        "suppliers": [
            {
                "id": s.id,
                "name": s.name,
                "category": s.category,
                "status": s.status,
                "contact_name": s.contact_name,
                "phone": s.phone,
                "email": s.email,
                "website": s.website,
                "estimated_price": s.estimated_price,
                "agreed_price": s.agreed_price,
                "currency": s.currency,
                "deposit_amount": s.deposit_amount,
                "deposit_paid": s.deposit_paid,
                "due_date": _iso(s.due_date),
                "notes": s.notes,
                "payments": [
                    {
                        "amount": p.amount,
                        "method": p.method,
                        "paid_at": _iso(p.paid_at),
                        "description": p.description,
                    }
                    for p in s.payments
                ],
            }
            for s in event.suppliers
        ],
        "message_templates": [
            {"type": t.type, "locale": t.locale, "title": t.title, "message": t.message, "is_active": t.is_active}
            for t in event.message_templates
        ],
        "tasks": [
            {
                "title": t.title,
                "description": t.description,
                "status": t.status,
                "position": t.position,
                "due_date": _iso(t.due_date),
                "notes": [{"content": n.content, "created_at": _iso(n.created_at)} for n in t.notes],
            }
            for t in event.tasks
        ],
        "collaborators": [
            {"email": c.email, "role": c.role, "accepted_at": _iso(c.accepted_at)} for c in event.collaborators
        ],
        "transportation_registrations": [
            {
                "guest_id": r.guest_id,
                "full_name": r.full_name,
                "phone_number": r.phone_number,
                "location": r.location,
                "notes": r.notes,
                "registered_at": _iso(r.registered_at),
            }
            for r in event.transportation_registrations
        ],
        "statistics": {
            "total_guests": len(guests),
            "accepted_count": status_counts["ACCEPTED"],
            "declined_count": status_counts["DECLINED"],
            "maybe_count": status_counts["MAYBE"],
            "pending_count": status_counts["PENDING"],
            "total_expected_attendees": sum(
                seats_used_by_guest(g) for g in guests if g.rsvp and g.rsvp.status == "ACCEPTED"
            ),
            "total_tables": len(event.tables),
            "total_suppliers": len(event.suppliers),
            "total_supplier_cost": total_agreed,
            "total_paid_amount": total_paid,
            "total_tasks": len(event.tasks),
            "completed_tasks": sum(1 for t in event.tasks if t.status == "DONE"),
            "transportation_registrations": len(event.transportation_registrations),
        },
        "archive_metadata": {
            "version": SNAPSHOT_VERSION,
            "archived_at": datetime.utcnow().isoformat(),
            "original_event_id": event.id,
        },
    }


def archive_event(db: Session, event: WeddingEvent) -> EventArchive:
    """
    Upload the snapshot, record the archive and delete the event.
    The event is left untouched when the upload fails.
    """
    if not storage.is_r2_configured():
        raise HTTPException(status_code=503, detail="Archive storage is not configured")

    snapshot = create_event_snapshot(event)
    body = json.dumps(snapshot, indent=2, ensure_ascii=False).encode("utf-8")
    key = get_archive_key(event.owner_id, event.id)

    try:
        storage.upload_bytes(key, body, content_type="application/json")
    except Exception as e:
        logger.error(f"❌ Failed to upload archive for event {event.id}: {str(e)}")
        raise HTTPException(status_code=502, detail="Failed to upload event archive")

    existing = db.query(EventArchive).filter(EventArchive.r2_key == key).first()
    archive = existing or EventArchive(r2_key=key)
    archive.user_id = event.owner_id
    archive.original_event_id = event.id
    archive.event_title = event.title
    archive.event_date = event.date_time
    archive.guest_count = len(snapshot["guests"])
    archive.archive_size = len(body)
    archive.archived_at = datetime.utcnow()
    if existing is None:
        db.add(archive)

    event_id = event.id
    db.delete(event)
    db.commit()
    db.refresh(archive)

    logger.info(f"📦 Event {event_id} archived to {key} ({len(body)} bytes)")
    return archive


class ArchiveService:
    def __init__(self, db: Session):
        self.db = db

    def _get_archive(self, archive_id: int, user: User) -> EventArchive:
        archive = (
            self.db.query(EventArchive)
            .filter(EventArchive.id == archive_id, EventArchive.user_id == user.id)
            .first()
        )
        if not archive:
            raise HTTPException(status_code=404, detail="Archive not found")
        return archive

    def archive_event(self, event_id: int, user: User) -> EventArchive:
        # Closed events are no longer reachable through the usual access check
        event = self.db.query(WeddingEvent).filter(WeddingEvent.id == event_id).first()
        if not event or not (event.owner_id == user.id or user.is_platform_owner):
            raise HTTPException(status_code=404, detail="Event not found")
        return archive_event(self.db, event)

    def list_my_archives(self, user: User) -> list[EventArchive]:
        return (
            self.db.query(EventArchive)
            .filter(EventArchive.user_id == user.id)
            .order_by(EventArchive.archived_at.desc(), EventArchive.id.desc())
            .all()
        )

    def get_archive_details(self, archive_id: int, user: User) -> dict:
        archive = self._get_archive(archive_id, user)
        if not storage.is_r2_configured():
            raise HTTPException(status_code=503, detail="Archive storage is not configured")
        try:
            snapshot = json.loads(storage.download_bytes(archive.r2_key))
        except Exception as e:
            logger.error(f"❌ Failed to load archive {archive.id}: {str(e)}")
            raise HTTPException(status_code=502, detail="Failed to load archive")
        return {"archive": archive, "snapshot": snapshot}

    def get_archive_download_url(self, archive_id: int, user: User) -> dict:
        archive = self._get_archive(archive_id, user)
        if not storage.is_r2_configured():
            raise HTTPException(status_code=503, detail="Archive storage is not configured")
        url = storage.generate_presigned_url(
            archive.r2_key, download_name=f"event-{archive.original_event_id}.json"
        )
        return {"url": url, "expires_in": storage.PRESIGNED_URL_EXPIRATION}

    def delete_archive(self, archive_id: int, user: User) -> None:
        archive = self._get_archive(archive_id, user)
        if storage.is_r2_configured():
            storage.delete_object(archive.r2_key)
        self.db.delete(archive)
        self.db.commit()
        logger.info(f"🗑️ Archive {archive_id} deleted")

    def storage_status(self, user: User) -> dict:
        archives = self.list_my_archives(user)
        return {
            "configured": storage.is_r2_configured(),
            "archive_count": len(archives),
            "total_size": sum(a.archive_size or 0 for a in archives),
        }
