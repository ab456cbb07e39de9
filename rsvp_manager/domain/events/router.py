"""Event router - events and their collaborators"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_wedding_owner
from ...database import get_db
from ...models import User
from .schemas import (
    AcceptInvitationRequest,
    CollaboratorInvite,
    CollaboratorResponse,
    CollaboratorRoleUpdate,
    EventCreate,
    EventResponse,
    EventUpdate,
)
from .service import CollaboratorService, EventService

router = APIRouter(prefix="/events", tags=["Events"])


def get_event_service(db: Session = Depends(get_db)) -> EventService:
    """Dependency injection for EventService"""
    return EventService(db)


def get_collaborator_service(db: Session = Depends(get_db)) -> CollaboratorService:
    return CollaboratorService(db)


# ============================================================================
# EVENTS
# ============================================================================


@router.get("", response_model=list[EventResponse])
async def list_events(
    include_archived: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    """Owned events plus events shared with the current user"""
    return service.list_events(current_user, include_archived)


@router.post("", response_model=EventResponse, status_code=201)
async def create_event(
    data: EventCreate,
    current_user: User = Depends(require_wedding_owner),
    service: EventService = Depends(get_event_service),
):
    event = service.create_event(data, current_user)
    return service.to_response(event, current_user, 0, {})


@router.post("/invitations/accept", response_model=CollaboratorResponse)
async def accept_invitation(
    data: AcceptInvitationRequest,
    current_user: User = Depends(get_current_user),
    service: CollaboratorService = Depends(get_collaborator_service),
):
    return service.to_response(service.accept_invitation(data.token, current_user))


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    return service.to_response(service.get_event(event_id, current_user), current_user)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    data: EventUpdate,
    current_user: User = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    return service.to_response(service.update_event(event_id, data, current_user), current_user)


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    service.delete_event(event_id, current_user)
    return {"success": True}


# ============================================================================
# COLLABORATORS
# ============================================================================


@router.get("/{event_id}/collaborators", response_model=list[CollaboratorResponse])
async def list_collaborators(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: CollaboratorService = Depends(get_collaborator_service),
):
    return [service.to_response(c) for c in service.list_collaborators(event_id, current_user)]


@router.post("/{event_id}/collaborators", response_model=CollaboratorResponse, status_code=201)
async def invite_collaborator(
    event_id: int,
    data: CollaboratorInvite,
    current_user: User = Depends(get_current_user),
    service: CollaboratorService = Depends(get_collaborator_service),
):
    """Returns the invite token so the owner can share the invitation link"""
    collab = service.invite_collaborator(event_id, data, current_user)
    return service.to_response(collab, include_token=True)


@router.put("/{event_id}/collaborators/{collaborator_id}", response_model=CollaboratorResponse)
async def update_collaborator_role(
    event_id: int,
    collaborator_id: int,
    data: CollaboratorRoleUpdate,
    current_user: User = Depends(get_current_user),
    service: CollaboratorService = Depends(get_collaborator_service),
):
    collab = service.update_collaborator_role(event_id, collaborator_id, data.role, current_user)
    return service.to_response(collab)


@router.delete("/{event_id}/collaborators/{collaborator_id}")
async def remove_collaborator(
    event_id: int,
    collaborator_id: int,
    current_user: User = Depends(get_current_user),
    service: CollaboratorService = Depends(get_collaborator_service),
):
    service.remove_collaborator(event_id, collaborator_id, current_user)
    return {"success": True}


@router.post("/{event_id}/leave")
async def leave_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: CollaboratorService = Depends(get_collaborator_service),
):
    service.leave_event(event_id, current_user)
    return {"success": True}
