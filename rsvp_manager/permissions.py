"""
Event access control

Roles, from strongest to weakest: OWNER, EDITOR, VIEWER.
Platform owners are treated as OWNER of every event, archived or not.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from .models import EventCollaborator, User, WeddingEvent

logger = logging.getLogger(__name__)

ROLE_OWNER = "OWNER"
ROLE_EDITOR = "EDITOR"
ROLE_VIEWER = "VIEWER"

_ROLE_RANK = {ROLE_VIEWER: 1, ROLE_EDITOR: 2, ROLE_OWNER: 3}


def _accepted_collaboration(db: Session, event_id: int, user_id: int) -> Optional[EventCollaborator]:
    return (
        db.query(EventCollaborator)
        .filter(
            EventCollaborator.event_id == event_id,
            EventCollaborator.user_id == user_id,
            EventCollaborator.accepted_at.isnot(None),
        )
        .first()
    )


def get_user_event_role(db: Session, user: User, event_id: int) -> Optional[str]:
    """OWNER, EDITOR, VIEWER, or None when the user has no access"""
    if user.is_platform_owner:
        return ROLE_OWNER

    event = db.query(WeddingEvent).filter(WeddingEvent.id == event_id).first()
    if not event:
        return None
    if event.owner_id == user.id:
        return ROLE_OWNER

    collab = _accepted_collaboration(db, event_id, user.id)
    if not collab:
        return None
    return ROLE_EDITOR if collab.role == ROLE_EDITOR else ROLE_VIEWER


def can_access_event(db: Session, user: User, event_id: int, required_role: str = ROLE_VIEWER) -> bool:
    if user.is_platform_owner:
        return True

    event = db.query(WeddingEvent).filter(WeddingEvent.id == event_id).first()
    if not event or event.is_archived:
        return False

    role = get_user_event_role(db, user, event_id)
    if role is None:
        return False
    return _ROLE_RANK[role] >= _ROLE_RANK[required_role]


def is_event_owner(db: Session, user: User, event_id: int) -> bool:
    return get_user_event_role(db, user, event_id) == ROLE_OWNER


def get_event_with_access(
    db: Session, user: User, event_id: int, required_role: str = ROLE_VIEWER
) -> WeddingEvent:
    """
    Load an event the user may act on.

    Raises:
        HTTPException 404 when the event does not exist or the user lacks the role
    """
    if not can_access_event(db, user, event_id, required_role):
        logger.warning(f"🔒 User {user.id} denied {required_role} access to event {event_id}")
        raise HTTPException(status_code=404, detail="Event not found")
    return db.query(WeddingEvent).filter(WeddingEvent.id == event_id).first()
