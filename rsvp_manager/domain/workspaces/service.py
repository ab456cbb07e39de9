"""Workspace service - grouping of events under one owner"""

import logging
import time

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import User, WeddingEvent, Workspace
from ...plan_limits import can_manage_workspaces
from ...shared.validators import slugify
from .schemas import WorkspaceCreate, WorkspaceResponse, WorkspaceUpdate

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE_NAME = "My Events"
DEFAULT_WORKSPACE_SLUG = "my-events"

BUSINESS_ONLY_MESSAGE = "Workspace management is only available on the Business plan."


def _base36(number: int) -> str:
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"
    result = ""
    while number:
        number, remainder = divmod(number, 36)
        result = alphabet[remainder] + result
    return result or "0"


class WorkspaceService:
    def __init__(self, db: Session):
        self.db = db

    def _require_business(self, user: User) -> None:
        if not can_manage_workspaces(user):
            raise HTTPException(status_code=403, detail=BUSINESS_ONLY_MESSAGE)

    def _slug_taken(self, owner_id: int, slug: str, exclude_id: int = None) -> bool:
        query = self.db.query(Workspace).filter(Workspace.owner_id == owner_id, Workspace.slug == slug)
        if exclude_id:
            query = query.filter(Workspace.id != exclude_id)
        return query.first() is not None

    def _unique_slug(self, owner_id: int, base: str) -> str:
        slug = slugify(base)
        if self._slug_taken(owner_id, slug):
            slug = f"{slug}-{_base36(int(time.time() * 1000))}"
        return slug

    def get_workspace(self, workspace_id: int, user: User) -> Workspace:
        workspace = (
            self.db.query(Workspace)
            .filter(Workspace.id == workspace_id, Workspace.owner_id == user.id)
            .first()
        )
        if not workspace:
            raise HTTPException(status_code=404, detail="Workspace not found")
        return workspace

    def to_response(self, workspace: Workspace, event_count: int = None) -> WorkspaceResponse:
        if event_count is None:
            event_count = (
                self.db.query(WeddingEvent).filter(WeddingEvent.workspace_id == workspace.id).count()
            )
        return WorkspaceResponse(
            id=workspace.id,
            name=workspace.name,
            slug=workspace.slug,
            description=workspace.description,
            is_default=workspace.is_default,
            event_count=event_count,
            created_at=workspace.created_at,
        )

    def list_workspaces(self, user: User) -> list[WorkspaceResponse]:
        counts = dict(
            self.db.query(WeddingEvent.workspace_id, func.count(WeddingEvent.id))
            .filter(WeddingEvent.owner_id == user.id)
            .group_by(WeddingEvent.workspace_id)
            .all()
        )
        workspaces = (
            self.db.query(Workspace)
            .filter(Workspace.owner_id == user.id)
            .order_by(Workspace.is_default.desc(), Workspace.created_at.asc(), Workspace.id.asc())
            .all()
        )
        return [self.to_response(w, counts.get(w.id, 0)) for w in workspaces]

    def create_workspace(self, data: WorkspaceCreate, user: User) -> Workspace:
        self._require_business(user)

        is_first = self.db.query(Workspace).filter(Workspace.owner_id == user.id).count() == 0
        workspace = Workspace(
            owner_id=user.id,
            name=data.name,
            slug=self._unique_slug(user.id, data.slug or data.name),
            description=data.description,
            is_default=is_first,
        )
        self.db.add(workspace)
        self.db.commit()
        self.db.refresh(workspace)

        logger.info(f"📁 Workspace {workspace.id} ({workspace.slug}) created for user {user.id}")
        return workspace

    def update_workspace(self, workspace_id: int, data: WorkspaceUpdate, user: User) -> Workspace:
        self._require_business(user)
        workspace = self.get_workspace(workspace_id, user)

        if data.slug and data.slug != workspace.slug:
            slug = slugify(data.slug)
            if self._slug_taken(user.id, slug, exclude_id=workspace.id):
                raise HTTPException(status_code=409, detail="This slug is already in use")
            workspace.slug = slug
        if data.name is not None:
            workspace.name = data.name.strip() or workspace.name
        if data.description is not None:
            workspace.description = data.description

        self.db.commit()
        self.db.refresh(workspace)
        return workspace

    def delete_workspace(self, workspace_id: int, user: User) -> None:
        self._require_business(user)
        workspace = self.get_workspace(workspace_id, user)

        if workspace.is_default:
            raise HTTPException(
                status_code=400,
                detail="Cannot delete the default workspace. Set another workspace as default first.",
            )

        event_count = self.db.query(WeddingEvent).filter(WeddingEvent.workspace_id == workspace.id).count()
        if event_count:
            raise HTTPException(
                status_code=400,
                detail="Cannot delete workspace with events. Move or delete all events first.",
            )

        self.db.delete(workspace)
        self.db.commit()
        logger.info(f"🗑️ Workspace {workspace_id} deleted by user {user.id}")

    def set_default_workspace(self, workspace_id: int, user: User) -> Workspace:
        self._require_business(user)
        workspace = self.get_workspace(workspace_id, user)

        self.db.query(Workspace).filter(
            Workspace.owner_id == user.id, Workspace.id != workspace.id
        ).update({Workspace.is_default: False}, synchronize_session=False)
        workspace.is_default = True
        self.db.commit()
        self.db.refresh(workspace)
        return workspace

    def get_or_create_default_workspace(self, user: User) -> Workspace:
        """Every owner has one default workspace; created lazily"""
        workspace = (
            self.db.query(Workspace)
            .filter(Workspace.owner_id == user.id, Workspace.is_default.is_(True))
            .first()
        )
        if workspace:
            return workspace

        # Promote an existing workspace before creating a new one
        workspace = (
            self.db.query(Workspace)
            .filter(Workspace.owner_id == user.id)
            .order_by(Workspace.created_at.asc(), Workspace.id.asc())
            .first()
        )
        if workspace:
            workspace.is_default = True
        else:
            workspace = Workspace(
                owner_id=user.id,
                name=DEFAULT_WORKSPACE_NAME,
                slug=self._unique_slug(user.id, DEFAULT_WORKSPACE_SLUG),
                is_default=True,
            )
            self.db.add(workspace)

        self.db.commit()
        self.db.refresh(workspace)
        return workspace

    def move_events_to_workspace(self, event_ids: list[int], workspace_id: int, user: User) -> int:
        workspace = self.get_workspace(workspace_id, user)
        if not event_ids:
            return 0

        events = (
            self.db.query(WeddingEvent)
            .filter(WeddingEvent.id.in_(event_ids), WeddingEvent.owner_id == user.id)
            .all()
        )
        if len(events) != len(set(event_ids)):
            raise HTTPException(status_code=404, detail="One or more events not found")

        for event in events:
            event.workspace_id = workspace.id
        self.db.commit()

        logger.info(f"📦 Moved {len(events)} event(s) to workspace {workspace.id}")
        return len(events)
