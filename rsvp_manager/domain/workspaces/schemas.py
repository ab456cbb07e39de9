"""Workspace domain schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator


class WorkspaceCreate(BaseModel):
    name: str
    description: Optional[str] = None
    slug: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Workspace name is required")
        return v


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    slug: Optional[str] = None


class WorkspaceResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str]
    is_default: bool
    event_count: int = 0
    created_at: Optional[datetime] = None


class MoveEventsRequest(BaseModel):
    event_ids: List[int]
    workspace_id: int
