"""Planning board schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models_tasks import TASK_STATUSES
from ...shared.validators import validate_choice


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    status: str = "BACKLOG"
    due_date: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Task title is required")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, TASK_STATUSES, "status")


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None


class TaskStatusUpdate(BaseModel):
    status: str
    position: int = 0

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, TASK_STATUSES, "status")


class NoteContent(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Note cannot be empty")
        return v


class NoteResponse(BaseModel):
    id: int
    task_id: int
    content: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaskResponse(BaseModel):
    id: int
    event_id: int
    title: str
    description: Optional[str]
    status: str
    position: int
    due_date: Optional[datetime]
    notes: list[NoteResponse] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
