"""
Messaging services - bulk sends, message templates and the platform
messaging provider (Twilio) settings
"""

import logging
from typing import Optional

from arq import create_pool
from fastapi import BackgroundTasks, HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...database import SessionLocal
from ...models import MessageTemplate, User
from ...models_messaging import BulkMessageJob, MessagingProviderSettings
from ...permissions import ROLE_EDITOR, ROLE_VIEWER, can_access_event, get_event_with_access
from ...security_utils import decrypt_credential, encrypt_credential, mask_sensitive_data
from ...services import twilio_service
from ...services.notification_service import CHANNEL_SMS, CHANNEL_WHATSAPP, get_messaging_settings
from ...services.template_renderer import (
    DEFAULT_TEMPLATES,
    PLACEHOLDERS,
    SUPPORTED_LOCALES,
    TEMPLATE_KEYS,
)
from . import job_processor
from .schemas import BulkSendRequest, ProviderSettingsUpdate, SmsSenderIdUpdate, TemplateUpsert

logger = logging.getLogger(__name__)


# ============================================================================
# BULK SENDS
# ============================================================================


async def run_job_chunk(job_id: int) -> None:
    """Background task used when no Redis queue is configured"""
    db = SessionLocal()
    try:
        result = await job_processor.process_job_chunk(db, job_id)
        logger.info(f"📦 Background chunk for job {job_id}: {result}")
    except Exception as e:
        logger.error(f"❌ Background chunk for job {job_id} failed: {str(e)}")
    finally:
        db.close()


async def enqueue_job_chunk(job_id: int, background_tasks: BackgroundTasks) -> str:
    """
    Queue the first chunk of a bulk job.

    Returns:
        "arq" when handed to the worker, "background" otherwise
    """
    if config.REDIS_URL:
        try:
            from ...worker import get_redis_settings

            pool = await create_pool(get_redis_settings())
            try:
                job = await pool.enqueue_job("process_bulk_job_chunk_task", job_id)
            finally:
                await pool.close()
            logger.info(f"📋 Bulk job {job_id} chunk queued: {job.job_id if job else 'duplicate'}")
            return "arq"
        except Exception as queue_err:
            logger.error(f"❌ Failed to queue bulk job {job_id}: {queue_err}")

    background_tasks.add_task(run_job_chunk, job_id)
    return "background"


class BulkMessagingService:
    def __init__(self, db: Session):
        self.db = db

    def get_job(self, job_id: int, user: User, required_role: str = ROLE_VIEWER) -> BulkMessageJob:
        job = self.db.query(BulkMessageJob).filter(BulkMessageJob.id == job_id).first()
        if not job or not can_access_event(self.db, user, job.event_id, required_role):
            raise HTTPException(status_code=404, detail="Bulk job not found")
        return job

    async def start_bulk_job(
        self, event_id: int, data: BulkSendRequest, user: User, background_tasks: BackgroundTasks
    ) -> dict:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        job = job_processor.create_bulk_job(self.db, event, user, data.type, data.guest_ids, data.channel)
        queued_via = await enqueue_job_chunk(job.id, background_tasks)
        response = job_processor.job_to_dict(job)
        response["queued_via"] = queued_via
        return response

    def get_job_status(self, job_id: int, user: User) -> dict:
        return job_processor.get_job_status(self.db, self.get_job(job_id, user))

    def cancel_job(self, job_id: int, user: User) -> dict:
        job = job_processor.cancel_bulk_job(self.db, self.get_job(job_id, user, ROLE_EDITOR))
        return job_processor.job_to_dict(job)

    def list_jobs(self, event_id: int, user: User) -> list[dict]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return [job_processor.job_to_dict(job) for job in job_processor.list_jobs(self.db, event.id)]

    def get_send_stats(self, event_id: int, message_type: str, user: User) -> dict:
        if message_type not in ("INVITE", "REMINDER"):
            raise HTTPException(status_code=400, detail="type must be INVITE or REMINDER")
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return job_processor.get_bulk_send_stats(self.db, event.id, message_type)


# ============================================================================
# MESSAGE TEMPLATES
# ============================================================================


class TemplateService:
    def __init__(self, db: Session):
        self.db = db

    def _get_template(self, template_id: int, user: User) -> MessageTemplate:
        template = self.db.query(MessageTemplate).filter(MessageTemplate.id == template_id).first()
        if not template or not can_access_event(self.db, user, template.event_id, ROLE_EDITOR):
            raise HTTPException(status_code=404, detail="Template not found")
        return template

    @staticmethod
    def to_response(template: MessageTemplate) -> dict:
        return {
            "id": template.id,
            "type": template.type,
            "locale": template.locale,
            "title": template.title,
            "message": template.message,
            "is_active": template.is_active,
            "is_default": False,
        }

    def list_templates(self, event_id: int, user: User) -> list[dict]:
        """Custom templates, plus the built-in default for every type/locale without one"""
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        custom = (
            self.db.query(MessageTemplate)
            .filter(MessageTemplate.event_id == event.id)
            .order_by(MessageTemplate.locale.asc(), MessageTemplate.type.asc())
            .all()
        )
        result = [self.to_response(t) for t in custom]
        overridden = {(t.type, t.locale) for t in custom}

        for locale in SUPPORTED_LOCALES:
            for message_type in TEMPLATE_KEYS:
                if (message_type, locale) in overridden:
                    continue
                default = DEFAULT_TEMPLATES[locale][message_type]
                result.append(
                    {
                        "id": None,
                        "type": message_type,
                        "locale": locale,
                        "title": default["title"],
                        "message": default["message"],
                        "is_active": True,
                        "is_default": True,
                    }
                )
        return result

    def upsert_template(self, event_id: int, data: TemplateUpsert, user: User) -> dict:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        template = (
            self.db.query(MessageTemplate)
            .filter(
                MessageTemplate.event_id == event.id,
                MessageTemplate.type == data.type,
                MessageTemplate.locale == data.locale,
            )
            .first()
        )
        if template is None:
            template = MessageTemplate(event_id=event.id, type=data.type, locale=data.locale)
            self.db.add(template)

        template.title = data.title
        template.message = data.message
        template.is_active = data.is_active
        self.db.commit()
        self.db.refresh(template)

        logger.info(f"✅ {data.type}/{data.locale} template saved for event {event.id}")
        return self.to_response(template)

    def delete_template(self, template_id: int, user: User) -> None:
        template = self._get_template(template_id, user)
        self.db.delete(template)
        self.db.commit()

    def toggle_template(self, template_id: int, user: User) -> dict:
        template = self._get_template(template_id, user)
        template.is_active = not template.is_active
        self.db.commit()
        self.db.refresh(template)
        return self.to_response(template)

    def reset_templates(self, event_id: int, user: User) -> int:
        """Drop every custom template of the event; returns how many were removed"""
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        deleted = (
            self.db.query(MessageTemplate)
            .filter(MessageTemplate.event_id == event.id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"🔄 Reset {deleted} template(s) for event {event.id}")
        return deleted

    @staticmethod
    def get_placeholders() -> list[dict]:
        return [{"key": key, "token": f"{{{{{key}}}}}", "description": desc} for key, desc in PLACEHOLDERS.items()]

    def update_sms_sender_id(self, event_id: int, data: SmsSenderIdUpdate, user: User) -> Optional[str]:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        event.sms_sender_id = data.sms_sender_id
        self.db.commit()
        return event.sms_sender_id


# ============================================================================
# PROVIDER SETTINGS (platform owner)
# ============================================================================

_PLAIN_FIELDS = (
    "whatsapp_enabled",
    "whatsapp_phone_number",
    "whatsapp_invite_content_sid",
    "whatsapp_reminder_content_sid",
    "sms_enabled",
    "sms_phone_number",
    "messaging_service_sid",
    "default_channel",
)


class ProviderSettingsService:
    def __init__(self, db: Session):
        self.db = db

    def to_response(self, settings: Optional[MessagingProviderSettings]) -> dict:
        if settings is None:
            return {"configured": False}

        account_sid = None
        if settings.account_sid:
            try:
                account_sid = mask_sensitive_data(decrypt_credential(settings.account_sid))
            except Exception:
                account_sid = None

        response = {field: getattr(settings, field) for field in _PLAIN_FIELDS}
        response.update(
            {
                "configured": settings.is_configured,
                "account_sid": account_sid,
                "has_auth_token": bool(settings.auth_token),
            }
        )
        return response

    def get_settings(self) -> dict:
        return self.to_response(get_messaging_settings(self.db))

    def update_settings(self, data: ProviderSettingsUpdate) -> dict:
        settings = get_messaging_settings(self.db)
        if settings is None:
            settings = MessagingProviderSettings()
            self.db.add(settings)

        updates = data.model_dump(exclude_unset=True)
        for field in ("account_sid", "auth_token"):
            if field in updates:
                value = (updates.pop(field) or "").strip()
                setattr(settings, field, encrypt_credential(value) if value else None)
        for field, value in updates.items():
            if value is not None:
                setattr(settings, field, value)

        self.db.commit()
        self.db.refresh(settings)
        logger.info(f"✅ Messaging provider settings updated (configured={settings.is_configured})")
        return self.to_response(settings)

    async def test_credentials(self, account_sid: Optional[str], auth_token: Optional[str]) -> dict:
        """Check the given credentials, or the stored ones when none are passed"""
        if not (account_sid and auth_token):
            settings = get_messaging_settings(self.db)
            if not settings or not settings.account_sid or not settings.auth_token:
                raise HTTPException(status_code=400, detail="Twilio credentials are not configured")
            account_sid = decrypt_credential(settings.account_sid)
            auth_token = decrypt_credential(settings.auth_token)

        ok, error = await twilio_service.verify_credentials(account_sid, auth_token)
        return {"success": ok, "error": error}

    def available_channels(self) -> dict:
        settings = get_messaging_settings(self.db)
        if not settings or not settings.is_configured:
            return {"provider": "mock", "channels": [CHANNEL_WHATSAPP, CHANNEL_SMS], "default_channel": CHANNEL_WHATSAPP}

        channels = []
        if settings.whatsapp_enabled and settings.whatsapp_phone_number:
            channels.append(CHANNEL_WHATSAPP)
        if settings.sms_enabled and (settings.sms_phone_number or settings.messaging_service_sid):
            channels.append(CHANNEL_SMS)
        return {"provider": "twilio", "channels": channels, "default_channel": settings.default_channel}
