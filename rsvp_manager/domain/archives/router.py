"""Event archive router"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .service import ArchiveService

router = APIRouter(tags=["Archives"])


class ArchiveResponse(BaseModel):
    id: int
    original_event_id: int
    event_title: str
    event_date: Optional[datetime]
    r2_key: str
    guest_count: int
    archive_size: int
    archived_at: Optional[datetime]

    class Config:
        from_attributes = True


def get_archive_service(db: Session = Depends(get_db)) -> ArchiveService:
    return ArchiveService(db)


@router.post("/events/{event_id}/archive", response_model=ArchiveResponse)
async def archive_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: ArchiveService = Depends(get_archive_service),
):
    """Snapshot the event to storage and delete it (owner only)"""
    return service.archive_event(event_id, current_user)


@router.get("/archives", response_model=list[ArchiveResponse])
async def list_archives(
    current_user: User = Depends(get_current_user),
    service: ArchiveService = Depends(get_archive_service),
):
    return service.list_my_archives(current_user)


@router.get("/archives/storage-status")
async def archive_storage_status(
    current_user: User = Depends(get_current_user),
    service: ArchiveService = Depends(get_archive_service),
):
    return service.storage_status(current_user)


@router.get("/archives/{archive_id}")
async def get_archive(
    archive_id: int,
    current_user: User = Depends(get_current_user),
    service: ArchiveService = Depends(get_archive_service),
):
    details = service.get_archive_details(archive_id, current_user)
    return {
        "archive": ArchiveResponse.model_validate(details["archive"]),
        "snapshot": details["snapshot"],
    }


@router.get("/archives/{archive_id}/download")
async def get_archive_download_url(
    archive_id: int,
    current_user: User = Depends(get_current_user),
    service: ArchiveService = Depends(get_archive_service),
):
    return service.get_archive_download_url(archive_id, current_user)


@router.delete("/archives/{archive_id}")
async def delete_archive(
    archive_id: int,
    current_user: User = Depends(get_current_user),
    service: ArchiveService = Depends(get_archive_service),
):
    service.delete_archive(archive_id, current_user)
    return {"success": True}
