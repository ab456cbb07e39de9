"""Guest repository - Database operations for guests"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Guest
from ...shared.validators import generate_guest_slug, normalize_phone


class GuestRepository:
    """Repository for guest database operations"""

    @staticmethod
    def get_guests(db: Session, event_id: int) -> list[Guest]:
        return (
            db.query(Guest)
            .options(joinedload(Guest.rsvp))
            .filter(Guest.event_id == event_id)
            .order_by(Guest.created_at.asc(), Guest.id.asc())
            .all()
        )

    @staticmethod
    def get_guest_by_id(db: Session, guest_id: int) -> Optional[Guest]:
        return db.query(Guest).filter(Guest.id == guest_id).first()

    @staticmethod
    def get_guest_by_slug(db: Session, slug: str) -> Optional[Guest]:
        return db.query(Guest).filter(Guest.slug == slug).first()

    @staticmethod
    def count_guests(db: Session, event_id: int) -> int:
        return db.query(Guest).filter(Guest.event_id == event_id).count()

    @staticmethod
    def find_phone_duplicates(
        db: Session, event_id: int, phone: str, exclude_guest_id: Optional[int] = None
    ) -> list[Guest]:
        """Guests of the event whose phone matches after stripping formatting"""
        target = normalize_phone(phone)
        if not target:
            return []
        query = db.query(Guest).filter(Guest.event_id == event_id, Guest.phone_number.isnot(None))
        if exclude_guest_id:
            query = query.filter(Guest.id != exclude_guest_id)
        return [g for g in query.all() if normalize_phone(g.phone_number) == target]

    @staticmethod
    def unique_slug(db: Session) -> str:
        while True:
            slug = generate_guest_slug()
            if not db.query(Guest.id).filter(Guest.slug == slug).first():
                return slug
