"""Planning board router"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import NoteContent, NoteResponse, TaskCreate, TaskResponse, TaskStatusUpdate, TaskUpdate
from .service import TaskService

router = APIRouter(tags=["Tasks"])


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    return TaskService(db)


@router.get("/events/{event_id}/tasks", response_model=list[TaskResponse])
async def list_tasks(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.list_tasks(event_id, current_user)


@router.post("/events/{event_id}/tasks", response_model=TaskResponse, status_code=201)
async def create_task(
    event_id: int,
    data: TaskCreate,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.create_task(event_id, data, current_user)


@router.put("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    data: TaskUpdate,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.update_task(task_id, data, current_user)


@router.put("/tasks/{task_id}/status", response_model=TaskResponse)
async def update_task_status(
    task_id: int,
    data: TaskStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.update_task_status(task_id, data, current_user)


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    service.delete_task(task_id, current_user)
    return {"success": True}


@router.post("/tasks/{task_id}/notes", response_model=NoteResponse, status_code=201)
async def add_note(
    task_id: int,
    data: NoteContent,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.add_note(task_id, data.content, current_user)


@router.put("/task-notes/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: int,
    data: NoteContent,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.update_note(note_id, data.content, current_user)


@router.delete("/task-notes/{note_id}")
async def delete_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    service.delete_note(note_id, current_user)
    return {"success": True}
