"""Messaging router - bulk sends, templates and provider settings"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_platform_owner
from ...database import get_db
from ...models import User
from ...rate_limiter import preset_rate_limiter
from .schemas import (
    BulkJobResponse,
    BulkSendRequest,
    ProviderSettingsResponse,
    ProviderSettingsUpdate,
    ProviderTestRequest,
    SmsSenderIdUpdate,
    TemplateResponse,
    TemplateUpsert,
)
from .service import BulkMessagingService, ProviderSettingsService, TemplateService

router = APIRouter(tags=["Messaging"])

bulk_limit = preset_rate_limiter("bulk")


def get_bulk_service(db: Session = Depends(get_db)) -> BulkMessagingService:
    return BulkMessagingService(db)


def get_template_service(db: Session = Depends(get_db)) -> TemplateService:
    return TemplateService(db)


def get_provider_service(db: Session = Depends(get_db)) -> ProviderSettingsService:
    return ProviderSettingsService(db)


# ============================================================================
# BULK SENDS
# ============================================================================


@router.post("/events/{event_id}/messages/bulk", status_code=202)
async def start_bulk_send(
    event_id: int,
    data: BulkSendRequest,
    background_tasks: BackgroundTasks,
    _: None = Depends(bulk_limit),
    current_user: User = Depends(get_current_user),
    service: BulkMessagingService = Depends(get_bulk_service),
):
    """Create a bulk invite/reminder job and queue its first chunk"""
    return await service.start_bulk_job(event_id, data, current_user, background_tasks)


@router.get("/events/{event_id}/messages/bulk", response_model=list[BulkJobResponse])
async def list_bulk_jobs(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: BulkMessagingService = Depends(get_bulk_service),
):
    return service.list_jobs(event_id, current_user)


@router.get("/events/{event_id}/messages/bulk/stats")
async def bulk_send_stats(
    event_id: int,
    type: str = Query("INVITE"),
    current_user: User = Depends(get_current_user),
    service: BulkMessagingService = Depends(get_bulk_service),
):
    return service.get_send_stats(event_id, type, current_user)


@router.get("/bulk-jobs/{job_id}")
async def get_bulk_job(
    job_id: int,
    current_user: User = Depends(get_current_user),
    service: BulkMessagingService = Depends(get_bulk_service),
):
    return service.get_job_status(job_id, current_user)


@router.post("/bulk-jobs/{job_id}/cancel", response_model=BulkJobResponse)
async def cancel_bulk_job(
    job_id: int,
    current_user: User = Depends(get_current_user),
    service: BulkMessagingService = Depends(get_bulk_service),
):
    return service.cancel_job(job_id, current_user)


# ============================================================================
# MESSAGE TEMPLATES
# ============================================================================


@router.get("/messages/placeholders")
async def list_placeholders(current_user: User = Depends(get_current_user)):
    return TemplateService.get_placeholders()


@router.get("/events/{event_id}/templates", response_model=list[TemplateResponse])
async def list_templates(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service),
):
    return service.list_templates(event_id, current_user)


@router.put("/events/{event_id}/templates", response_model=TemplateResponse)
async def upsert_template(
    event_id: int,
    data: TemplateUpsert,
    current_user: User = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service),
):
    return service.upsert_template(event_id, data, current_user)


@router.post("/events/{event_id}/templates/reset")
async def reset_templates(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service),
):
    deleted = service.reset_templates(event_id, current_user)
    return {"success": True, "deleted": deleted}


@router.put("/events/{event_id}/sms-sender-id")
async def update_sms_sender_id(
    event_id: int,
    data: SmsSenderIdUpdate,
    current_user: User = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service),
):
    sender_id = service.update_sms_sender_id(event_id, data, current_user)
    return {"success": True, "sms_sender_id": sender_id}


@router.post("/templates/{template_id}/toggle", response_model=TemplateResponse)
async def toggle_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service),
):
    return service.toggle_template(template_id, current_user)


@router.delete("/templates/{template_id}")
async def delete_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service),
):
    service.delete_template(template_id, current_user)
    return {"success": True}


# ============================================================================
# PROVIDER SETTINGS
# ============================================================================


@router.get("/admin/messaging/settings", response_model=ProviderSettingsResponse)
async def get_provider_settings(
    _: User = Depends(require_platform_owner),
    service: ProviderSettingsService = Depends(get_provider_service),
):
    return service.get_settings()


@router.put("/admin/messaging/settings", response_model=ProviderSettingsResponse)
async def update_provider_settings(
    data: ProviderSettingsUpdate,
    _: User = Depends(require_platform_owner),
    service: ProviderSettingsService = Depends(get_provider_service),
):
    return service.update_settings(data)


@router.post("/admin/messaging/test")
async def test_provider_credentials(
    data: ProviderTestRequest,
    _: User = Depends(require_platform_owner),
    service: ProviderSettingsService = Depends(get_provider_service),
):
    return await service.test_credentials(data.account_sid, data.auth_token)


@router.get("/messaging/channels")
async def available_channels(
    current_user: User = Depends(get_current_user),
    service: ProviderSettingsService = Depends(get_provider_service),
):
    return service.available_channels()
