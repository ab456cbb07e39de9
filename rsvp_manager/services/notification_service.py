"""
Guest Notification Service
Renders guest messages, delivers them over WhatsApp/SMS and records
a NotificationLog (plus a CostLog per delivered message).
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..config import SMS_MESSAGE_COST, WHATSAPP_MESSAGE_COST
from ..models import CostLog, Guest, NotificationLog, WeddingEvent
from ..models_messaging import MessagingProviderSettings
from ..security_utils import decrypt_credential
from ..shared.validators import format_to_e164, is_valid_e164
from . import twilio_service
from .template_renderer import build_template_context, get_rsvp_link, render_message, render_template_string

logger = logging.getLogger(__name__)

CHANNEL_WHATSAPP = "WHATSAPP"
CHANNEL_SMS = "SMS"

MESSAGE_COSTS = {CHANNEL_WHATSAPP: WHATSAPP_MESSAGE_COST, CHANNEL_SMS: SMS_MESSAGE_COST}


@dataclass
class NotificationResult:
    success: bool
    channel: Optional[str] = None
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    log_id: Optional[int] = None


def channel_order(preferred: Optional[str]) -> list[str]:
    """Preferred channel first, then WhatsApp, then SMS"""
    order = [CHANNEL_WHATSAPP, CHANNEL_SMS]
    if preferred in order:
        order.remove(preferred)
        order.insert(0, preferred)
    return order


class NotificationService:
    """Base class: subclasses implement deliver()"""

    name = "base"

    def __init__(self, db: Session):
        self.db = db

    async def deliver(
        self,
        to_phone: str,
        body: str,
        channels: list[str],
        sms_sender_id: Optional[str] = None,
        content_sid: Optional[str] = None,
        content_variables: Optional[dict] = None,
    ) -> NotificationResult:
        raise NotImplementedError

    def whatsapp_content_sid(self, message_type: str) -> Optional[str]:
        return None

    async def send_invite(
        self, guest: Guest, event: WeddingEvent, channel: Optional[str] = None
    ) -> NotificationResult:
        return await self._send(guest, event, "INVITE", channel)

    async def send_reminder(
        self, guest: Guest, event: WeddingEvent, channel: Optional[str] = None
    ) -> NotificationResult:
        return await self._send(guest, event, "REMINDER", channel)

    async def send_confirmation(
        self, guest: Guest, event: WeddingEvent, rsvp_status: str, channel: Optional[str] = None
    ) -> NotificationResult:
        return await self._send(guest, event, "CONFIRMATION", channel, rsvp_status=rsvp_status)

    async def send_text(
        self,
        guest: Guest,
        event: WeddingEvent,
        template: str,
        channel: Optional[str] = None,
        extra_context: Optional[dict[str, str]] = None,
    ) -> NotificationResult:
        """Automation message; a channel restricts delivery to that channel only"""
        body = render_template_string(template, build_template_context(guest, event, extra_context))
        channels = [channel] if channel else None
        return await self._send(guest, event, "AUTOMATION", None, body=body, channels=channels)

    async def _send(
        self,
        guest: Guest,
        event: WeddingEvent,
        message_type: str,
        preferred_channel: Optional[str],
        rsvp_status: Optional[str] = None,
        body: Optional[str] = None,
        channels: Optional[list[str]] = None,
    ) -> NotificationResult:
        if body is None:
            body = render_message(self.db, guest, event, message_type, rsvp_status)

        if not guest.phone_number:
            result = NotificationResult(success=False, error="Guest does not have a phone number")
            self._record(guest, event, message_type, body, result)
            return result

        to_phone = format_to_e164(guest.phone_number)
        if not is_valid_e164(to_phone):
            result = NotificationResult(success=False, error=f"Invalid phone number: {guest.phone_number}")
            self._record(guest, event, message_type, body, result)
            return result

        content_sid = self.whatsapp_content_sid(message_type)
        content_variables = None
        if content_sid:
            context = build_template_context(guest, event)
            content_variables = {
                "1": context["guestName"],
                "2": context["eventTitle"],
                "3": get_rsvp_link(guest.slug),
            }

        try:
            result = await self.deliver(
                to_phone,
                body,
                channels or channel_order(preferred_channel),
                sms_sender_id=event.sms_sender_id,
                content_sid=content_sid,
                content_variables=content_variables,
            )
        except Exception as e:
            logger.error(f"❌ {self.name} delivery raised for guest {guest.id}: {str(e)}")
            result = NotificationResult(success=False, error=str(e))

        self._record(guest, event, message_type, body, result)
        return result

    def _record(
        self, guest: Guest, event: WeddingEvent, message_type: str, body: str, result: NotificationResult
    ) -> None:
        now = datetime.utcnow()
        log = NotificationLog(
            event_id=event.id,
            guest_id=guest.id,
            type=message_type,
            channel=result.channel,
            status="SENT" if result.success else "FAILED",
            message_body=body,
            provider_message_id=result.message_id,
            error_code=result.error_code,
            error_message=result.error,
            sent_at=now if result.success else None,
        )
        self.db.add(log)

        if result.success and result.channel in MESSAGE_COSTS:
            unit_cost = MESSAGE_COSTS[result.channel]
            self.db.add(
                CostLog(
                    user_id=event.owner_id,
                    event_id=event.id,
                    service=result.channel,
                    quantity=1,
                    unit_cost=unit_cost,
                    total_cost=unit_cost,
                )
            )

        self.db.commit()
        result.log_id = log.id

        if result.success:
            logger.info(f"📱 {message_type} sent to guest {guest.id} via {result.channel}")
        else:
            logger.warning(f"⚠️ {message_type} to guest {guest.id} failed: {result.error}")


class MockNotificationService(NotificationService):
    """Used when no messaging provider is configured - logs instead of sending"""

    name = "mock"

    async def deliver(
        self,
        to_phone: str,
        body: str,
        channels: list[str],
        sms_sender_id: Optional[str] = None,
        content_sid: Optional[str] = None,
        content_variables: Optional[dict] = None,
    ) -> NotificationResult:
        channel = channels[0] if channels else CHANNEL_WHATSAPP
        message_id = f"mock-{uuid.uuid4().hex[:16]}"
        logger.info(f"📨 [MOCK] {channel} to {to_phone}: {body[:60]!r}...")
        return NotificationResult(success=True, channel=channel, message_id=message_id)


class TwilioNotificationService(NotificationService):
    name = "twilio"

    def __init__(self, db: Session, settings: MessagingProviderSettings):
        super().__init__(db)
        self.settings = settings
        self.account_sid = decrypt_credential(settings.account_sid)
        self.auth_token = decrypt_credential(settings.auth_token)

    def whatsapp_content_sid(self, message_type: str) -> Optional[str]:
        if message_type == "INVITE":
            return self.settings.whatsapp_invite_content_sid
        if message_type == "REMINDER":
            return self.settings.whatsapp_reminder_content_sid
        return None

    def _channel_available(self, channel: str) -> bool:
        if channel == CHANNEL_WHATSAPP:
            return bool(self.settings.whatsapp_enabled and self.settings.whatsapp_phone_number)
        if channel == CHANNEL_SMS:
            return bool(
                self.settings.sms_enabled
                and (self.settings.sms_phone_number or self.settings.messaging_service_sid)
            )
        return False

    async def deliver(
        self,
        to_phone: str,
        body: str,
        channels: list[str],
        sms_sender_id: Optional[str] = None,
        content_sid: Optional[str] = None,
        content_variables: Optional[dict] = None,
    ) -> NotificationResult:
        available = [c for c in channels if self._channel_available(c)]
        if not available:
            return NotificationResult(success=False, error="No messaging channels enabled")

        result = None
        for channel in available:
            if channel == CHANNEL_WHATSAPP:
                send = await twilio_service.send_message(
                    self.account_sid,
                    self.auth_token,
                    to=f"whatsapp:{to_phone}",
                    body=body,
                    from_number=f"whatsapp:{self.settings.whatsapp_phone_number}",
                    content_sid=content_sid,
                    content_variables=content_variables,
                )
            else:
                send = await twilio_service.send_message(
                    self.account_sid,
                    self.auth_token,
                    to=to_phone,
                    body=body,
                    from_number=sms_sender_id or self.settings.sms_phone_number,
                    messaging_service_sid=None if sms_sender_id else self.settings.messaging_service_sid,
                )

            error = send.error
            if send.is_trial_error:
                error = f"{error} (Trial account limitation)"
            result = NotificationResult(
                success=send.success,
                channel=channel,
                message_id=send.sid,
                error=error,
                error_code=str(send.error_code) if send.error_code is not None else None,
            )
            if send.success:
                return result
            logger.warning(f"⚠️ {channel} delivery to {to_phone} failed, trying next channel")

        return result


def get_messaging_settings(db: Session) -> Optional[MessagingProviderSettings]:
    return db.query(MessagingProviderSettings).order_by(MessagingProviderSettings.id).first()


def get_notification_service(db: Session) -> NotificationService:
    """Twilio when a provider is configured, otherwise the logging mock"""
    settings = get_messaging_settings(db)
    if settings and settings.is_configured:
        return TwilioNotificationService(db, settings)
    logger.debug("Messaging provider not configured - using mock notification service")
    return MockNotificationService(db)
