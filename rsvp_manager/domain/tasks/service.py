"""Task service - planning board cards and their notes"""

import logging

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import User
from ...models_tasks import TaskNote, WeddingTask
from ...permissions import ROLE_EDITOR, ROLE_VIEWER, can_access_event, get_event_with_access
from .schemas import TaskCreate, TaskStatusUpdate, TaskUpdate

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(self, db: Session):
        self.db = db

    def _get_task(self, task_id: int, user: User, required_role: str = ROLE_EDITOR) -> WeddingTask:
        task = self.db.query(WeddingTask).filter(WeddingTask.id == task_id).first()
        if not task or not can_access_event(self.db, user, task.event_id, required_role):
            raise HTTPException(status_code=404, detail="Task not found")
        return task

    def _get_note(self, note_id: int, user: User) -> TaskNote:
        note = self.db.query(TaskNote).filter(TaskNote.id == note_id).first()
        if not note or not can_access_event(self.db, user, note.task.event_id, ROLE_EDITOR):
            raise HTTPException(status_code=404, detail="Note not found")
        return note

    def _next_position(self, event_id: int, status: str) -> int:
        max_position = (
            self.db.query(func.max(WeddingTask.position))
            .filter(WeddingTask.event_id == event_id, WeddingTask.status == status)
            .scalar()
        )
        return 0 if max_position is None else max_position + 1

    def list_tasks(self, event_id: int, user: User) -> list[WeddingTask]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return (
            self.db.query(WeddingTask)
            .filter(WeddingTask.event_id == event.id)
            .order_by(WeddingTask.status.asc(), WeddingTask.position.asc(), WeddingTask.id.asc())
            .all()
        )

    def create_task(self, event_id: int, data: TaskCreate, user: User) -> WeddingTask:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        task = WeddingTask(
            event_id=event.id,
            title=data.title,
            description=data.description,
            status=data.status,
            due_date=data.due_date,
            position=self._next_position(event.id, data.status),
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task

    def update_task(self, task_id: int, data: TaskUpdate, user: User) -> WeddingTask:
        task = self._get_task(task_id, user)
        updates = data.model_dump(exclude_unset=True)
        if "title" in updates:
            if not (updates["title"] or "").strip():
                raise HTTPException(status_code=400, detail="Task title is required")
            updates["title"] = updates["title"].strip()
        for field, value in updates.items():
            setattr(task, field, value)
        self.db.commit()
        self.db.refresh(task)
        return task

    def update_task_status(self, task_id: int, data: TaskStatusUpdate, user: User) -> WeddingTask:
        """Move a card to a column and position; the other cards of that column shift down"""
        task = self._get_task(task_id, user)

        column = (
            self.db.query(WeddingTask)
            .filter(
                WeddingTask.event_id == task.event_id,
                WeddingTask.status == data.status,
                WeddingTask.id != task.id,
            )
            .order_by(WeddingTask.position.asc(), WeddingTask.id.asc())
            .all()
        )
        position = max(0, min(data.position, len(column)))
        column.insert(position, task)

        task.status = data.status
        for index, card in enumerate(column):
            card.position = index

        self.db.commit()
        self.db.refresh(task)
        return task

    def delete_task(self, task_id: int, user: User) -> None:
        task = self._get_task(task_id, user)
        self.db.delete(task)
        self.db.commit()

    def add_note(self, task_id: int, content: str, user: User) -> TaskNote:
        task = self._get_task(task_id, user)
        note = TaskNote(task_id=task.id, content=content)
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        return note

    def update_note(self, note_id: int, content: str, user: User) -> TaskNote:
        note = self._get_note(note_id, user)
        note.content = content
        self.db.commit()
        self.db.refresh(note)
        return note

    def delete_note(self, note_id: int, user: User) -> None:
        note = self._get_note(note_id, user)
        self.db.delete(note)
        self.db.commit()
