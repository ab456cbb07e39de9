"""Event service - events, RSVP page defaults and collaborators"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import EventCollaborator, RsvpPageSettings, User, WeddingEvent, Workspace
from ...permissions import (
    ROLE_EDITOR,
    ROLE_OWNER,
    ROLE_VIEWER,
    get_event_with_access,
    get_user_event_role,
)
from ...plan_limits import can_create_event
from ...security_utils import generate_invite_token, verify_invite_token
from ..workspaces.service import WorkspaceService
from .repository import EventRepository
from .schemas import CollaboratorInvite, CollaboratorResponse, EventCreate, EventResponse, EventUpdate

logger = logging.getLogger(__name__)


class EventService:
    """Service layer for event business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = EventRepository()

    def to_response(self, event: WeddingEvent, user: User, guest_count=None, rsvp_counts=None) -> EventResponse:
        if guest_count is None:
            guest_count = self.repo.get_guest_counts(self.db, [event.id]).get(event.id, 0)
        if rsvp_counts is None:
            rsvp_counts = self.repo.get_rsvp_counts(self.db, [event.id]).get(event.id, {})
        response = EventResponse.model_validate(event)
        response.role = get_user_event_role(self.db, user, event.id)
        response.guest_count = guest_count
        response.rsvp_counts = rsvp_counts
        return response

    def list_events(self, user: User, include_archived: bool = False) -> list[EventResponse]:
        events = self.repo.get_accessible_events(self.db, user.id, include_archived)
        ids = [e.id for e in events]
        guest_counts = self.repo.get_guest_counts(self.db, ids)
        rsvp_counts = self.repo.get_rsvp_counts(self.db, ids)
        return [
            self.to_response(e, user, guest_counts.get(e.id, 0), rsvp_counts.get(e.id, {}))
            for e in events
        ]

    def get_event(self, event_id: int, user: User, required_role: str = ROLE_VIEWER) -> WeddingEvent:
        return get_event_with_access(self.db, user, event_id, required_role)

    def create_event(self, data: EventCreate, user: User) -> WeddingEvent:
        logger.info(f"📥 Creating event for user_id: {user.id}")

        can_create, error_message = can_create_event(user, self.db)
        if not can_create:
            logger.warning(f"⚠️ User {user.id} reached event limit: {error_message}")
            raise HTTPException(
                status_code=403, detail={"message": error_message, "limit_reached": True}
            )

        if data.workspace_id is not None:
            workspace = (
                self.db.query(Workspace)
                .filter(Workspace.id == data.workspace_id, Workspace.owner_id == user.id)
                .first()
            )
            if not workspace:
                raise HTTPException(status_code=404, detail="Workspace not found")
        else:
            workspace = WorkspaceService(self.db).get_or_create_default_workspace(user)

        event = WeddingEvent(
            owner_id=user.id,
            workspace_id=workspace.id,
            title=data.title,
            date_time=data.date_time,
            location=data.location,
            venue=data.venue,
            description=data.description,
            notes=data.notes,
            locale=data.locale or "he",
            total_budget=data.total_budget,
        )
        event.rsvp_settings = RsvpPageSettings(welcome_title=data.title)
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)

        logger.info(f"✅ Event {event.id} created in workspace {workspace.id}")
        return event

    def update_event(self, event_id: int, data: EventUpdate, user: User) -> WeddingEvent:
        event = self.get_event(event_id, user, ROLE_EDITOR)

        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "title" and not (value or "").strip():
                raise HTTPException(status_code=400, detail="Event title is required")
            if value is not None or field in ("location", "venue", "description", "notes", "image_url"):
                setattr(event, field, value)

        self.db.commit()
        self.db.refresh(event)
        return event

    def delete_event(self, event_id: int, user: User) -> None:
        event = self.get_event(event_id, user, ROLE_OWNER)
        self.db.delete(event)
        self.db.commit()
        logger.info(f"🗑️ Event {event_id} deleted by user {user.id}")


class CollaboratorService:
    """Invitations and roles of event collaborators"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = EventRepository()

    @staticmethod
    def to_response(collab: EventCollaborator, include_token: bool = False) -> CollaboratorResponse:
        return CollaboratorResponse(
            id=collab.id,
            event_id=collab.event_id,
            user_id=collab.user_id,
            email=collab.email,
            name=collab.user.name if collab.user else None,
            role=collab.role,
            accepted_at=collab.accepted_at,
            created_at=collab.created_at,
            invite_token=collab.invite_token if include_token else None,
        )

    def _get_collaborator(self, event_id: int, collaborator_id: int) -> EventCollaborator:
        collab = self.repo.get_collaborator(self.db, collaborator_id, event_id)
        if not collab:
            raise HTTPException(status_code=404, detail="Collaborator not found")
        return collab

    def invite_collaborator(self, event_id: int, data: CollaboratorInvite, user: User) -> EventCollaborator:
        event = get_event_with_access(self.db, user, event_id, ROLE_OWNER)
        email = data.email.lower()

        if event.owner and event.owner.email == email:
            raise HTTPException(status_code=400, detail="The event owner cannot be invited")

        existing = (
            self.db.query(EventCollaborator)
            .filter(EventCollaborator.event_id == event.id, EventCollaborator.email == email)
            .first()
        )
        if existing:
            raise HTTPException(status_code=409, detail="This email was already invited to the event")

        collab = EventCollaborator(
            event_id=event.id,
            email=email,
            role=data.role,
            invite_token=generate_invite_token(event.id, email),
            invited_by_id=user.id,
        )
        self.db.add(collab)
        self.db.commit()
        self.db.refresh(collab)

        logger.info(f"✉️ Collaborator {email} invited to event {event.id} as {data.role}")
        return collab

    def accept_invitation(self, token: str, user: User) -> EventCollaborator:
        payload = verify_invite_token(token)
        if not payload:
            raise HTTPException(status_code=400, detail="Invalid or expired invitation")

        collab = self.db.query(EventCollaborator).filter(EventCollaborator.invite_token == token).first()
        if not collab:
            raise HTTPException(status_code=404, detail="Invitation not found")
        if collab.email != user.email.lower():
            raise HTTPException(status_code=403, detail="This invitation was sent to a different email")

        collab.user_id = user.id
        collab.accepted_at = datetime.utcnow()
        collab.invite_token = None
        self.db.commit()
        self.db.refresh(collab)

        logger.info(f"✅ User {user.id} joined event {collab.event_id} as {collab.role}")
        return collab

    def list_collaborators(self, event_id: int, user: User) -> list[EventCollaborator]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return (
            self.db.query(EventCollaborator)
            .filter(EventCollaborator.event_id == event.id)
            .order_by(EventCollaborator.created_at.asc(), EventCollaborator.id.asc())
            .all()
        )

    def update_collaborator_role(
        self, event_id: int, collaborator_id: int, role: str, user: User
    ) -> EventCollaborator:
        get_event_with_access(self.db, user, event_id, ROLE_OWNER)
        collab = self._get_collaborator(event_id, collaborator_id)
        collab.role = role
        self.db.commit()
        self.db.refresh(collab)
        return collab

    def remove_collaborator(self, event_id: int, collaborator_id: int, user: User) -> None:
        get_event_with_access(self.db, user, event_id, ROLE_OWNER)
        collab = self._get_collaborator(event_id, collaborator_id)
        self.db.delete(collab)
        self.db.commit()
        logger.info(f"🗑️ Collaborator {collaborator_id} removed from event {event_id}")

    def leave_event(self, event_id: int, user: User) -> None:
        collab = (
            self.db.query(EventCollaborator)
            .filter(EventCollaborator.event_id == event_id, EventCollaborator.user_id == user.id)
            .first()
        )
        if not collab:
            raise HTTPException(status_code=404, detail="You are not a collaborator of this event")
        self.db.delete(collab)
        self.db.commit()
        logger.info(f"👋 User {user.id} left event {event_id}")
