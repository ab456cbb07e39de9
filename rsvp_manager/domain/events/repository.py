"""Event repository - Database operations for events"""

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import EventCollaborator, Guest, GuestRsvp, WeddingEvent


class EventRepository:
    """Repository for event database operations"""

    @staticmethod
    def get_accessible_events(db: Session, user_id: int, include_archived: bool = False) -> list[WeddingEvent]:
        """Events the user owns or collaborates on (accepted invitations only)"""
        collaborating = (
            db.query(EventCollaborator.event_id)
            .filter(EventCollaborator.user_id == user_id, EventCollaborator.accepted_at.isnot(None))
        )
        query = db.query(WeddingEvent).filter(
            or_(WeddingEvent.owner_id == user_id, WeddingEvent.id.in_(collaborating))
        )
        if not include_archived:
            query = query.filter(WeddingEvent.is_archived.is_(False))
        return query.order_by(WeddingEvent.date_time.asc()).all()

    @staticmethod
    def get_guest_counts(db: Session, event_ids: list[int]) -> dict[int, int]:
        if not event_ids:
            return {}
        rows = (
            db.query(Guest.event_id, func.count(Guest.id))
            .filter(Guest.event_id.in_(event_ids))
            .group_by(Guest.event_id)
            .all()
        )
        return dict(rows)

    @staticmethod
    def get_rsvp_counts(db: Session, event_ids: list[int]) -> dict[int, dict[str, int]]:
        """{event_id: {status: count}}; guests without an RSVP row count as PENDING"""
        counts: dict[int, dict[str, int]] = {}
        if not event_ids:
            return counts
        rows = (
            db.query(Guest.event_id, GuestRsvp.status, func.count(Guest.id))
            .outerjoin(GuestRsvp, GuestRsvp.guest_id == Guest.id)
            .filter(Guest.event_id.in_(event_ids))
            .group_by(Guest.event_id, GuestRsvp.status)
            .all()
        )
        for event_id, status, count in rows:
            bucket = counts.setdefault(event_id, {})
            key = status or "PENDING"
            bucket[key] = bucket.get(key, 0) + count
        return counts

    @staticmethod
    def get_collaborator(db: Session, collaborator_id: int, event_id: int):
        return (
            db.query(EventCollaborator)
            .filter(EventCollaborator.id == collaborator_id, EventCollaborator.event_id == event_id)
            .first()
        )
