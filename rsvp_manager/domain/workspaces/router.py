"""Workspace router"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_wedding_owner
from ...database import get_db
from ...models import User
from .schemas import MoveEventsRequest, WorkspaceCreate, WorkspaceResponse, WorkspaceUpdate
from .service import WorkspaceService

router = APIRouter(prefix="/workspaces", tags=["Workspaces"])


def get_workspace_service(db: Session = Depends(get_db)) -> WorkspaceService:
    """Dependency injection for WorkspaceService"""
    return WorkspaceService(db)


@router.get("", response_model=list[WorkspaceResponse])
async def list_workspaces(
    current_user: User = Depends(require_wedding_owner),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.list_workspaces(current_user)


@router.post("", response_model=WorkspaceResponse, status_code=201)
async def create_workspace(
    data: WorkspaceCreate,
    current_user: User = Depends(require_wedding_owner),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.to_response(service.create_workspace(data, current_user), 0)


@router.get("/default", response_model=WorkspaceResponse)
async def get_default_workspace(
    current_user: User = Depends(require_wedding_owner),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.to_response(service.get_or_create_default_workspace(current_user))


@router.post("/move-events")
async def move_events(
    data: MoveEventsRequest,
    current_user: User = Depends(require_wedding_owner),
    service: WorkspaceService = Depends(get_workspace_service),
):
    moved = service.move_events_to_workspace(data.event_ids, data.workspace_id, current_user)
    return {"success": True, "moved": moved}


@router.put("/{workspace_id}", response_model=WorkspaceResponse)
async def update_workspace(
    workspace_id: int,
    data: WorkspaceUpdate,
    current_user: User = Depends(require_wedding_owner),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.to_response(service.update_workspace(workspace_id, data, current_user))


@router.post("/{workspace_id}/default", response_model=WorkspaceResponse)
async def set_default_workspace(
    workspace_id: int,
    current_user: User = Depends(require_wedding_owner),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.to_response(service.set_default_workspace(workspace_id, current_user))


@router.delete("/{workspace_id}")
async def delete_workspace(
    workspace_id: int,
    current_user: User = Depends(require_wedding_owner),
    service: WorkspaceService = Depends(get_workspace_service),
):
    service.delete_workspace(workspace_id, current_user)
    return {"success": True}
