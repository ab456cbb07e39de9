"""
Twilio Webhooks
Delivery status callbacks and interactive WhatsApp replies (RSVP buttons)
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..domain.guests.service import apply_rsvp
from ..domain.messaging import job_processor
from ..models import Guest, NotificationLog
from ..models_messaging import BulkMessageJobItem
from ..rate_limiter import preset_rate_limiter
from ..security_utils import decrypt_credential
from ..services import automation_engine
from ..services.notification_service import get_messaging_settings
from ..services.twilio_service import get_error_message
from ..shared.validators import build_phone_variations
from ..webhook_security import WebhookSignatureError, verify_twilio_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/twilio", tags=["Twilio Webhooks"])

webhook_limit = preset_rate_limiter("webhook")

# Twilio MessageStatus -> NotificationLog status; missing keys leave the status as is
STATUS_MAP = {
    "delivered": "DELIVERED",
    "read": "DELIVERED",
    "undelivered": "UNDELIVERED",
    "failed": "FAILED",
}

BUTTON_ACTIONS = {"accept": "ACCEPTED", "decline": "DECLINED", "maybe": "MAYBE"}
MAX_LIST_GUEST_COUNT = 10


def _auth_token(db: Session) -> Optional[str]:
    settings = get_messaging_settings(db)
    if not settings or not settings.auth_token:
        return None
    return decrypt_credential(settings.auth_token)


async def _verified_form(request: Request, db: Session) -> dict[str, str]:
    """Parse the form body and check the Twilio signature (enforced only in strict mode)"""
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}

    try:
        verify_twilio_signature(request, params, _auth_token(db), raise_on_failure=True)
    except WebhookSignatureError as e:
        logger.warning(f"⚠️ Twilio webhook signature check failed: {e}")
        if config.TWILIO_WEBHOOK_STRICT:
            raise HTTPException(status_code=403, detail="Invalid signature")
    return params


@router.post("/status")
async def message_status_callback(
    request: Request,
    _: None = Depends(webhook_limit),
    db: Session = Depends(get_db),
):
    """Record a delivery status update for a message we sent"""
    params = await _verified_form(request, db)

    message_sid = params.get("MessageSid") or params.get("SmsSid")
    if not message_sid:
        raise HTTPException(status_code=400, detail="Missing MessageSid")

    message_status = (params.get("MessageStatus") or params.get("SmsStatus") or "").lower()
    error_code = params.get("ErrorCode") or None

    log = db.query(NotificationLog).filter(NotificationLog.provider_message_id == message_sid).first()
    if not log:
        logger.info(f"📭 Status callback for unknown message {message_sid} ({message_status})")
        return {"received": True, "found": False}

    log.twilio_status = message_status
    new_status = STATUS_MAP.get(message_status)
    if new_status:
        log.status = new_status
        if new_status == "DELIVERED" and not log.delivered_at:
            log.delivered_at = datetime.utcnow()

    if error_code:
        log.error_code = error_code
        log.error_message = get_error_message(error_code, params.get("ErrorMessage"))

    if new_status in ("FAILED", "UNDELIVERED"):
        failed_items = (
            db.query(BulkMessageJobItem)
            .filter(BulkMessageJobItem.provider_message_id == message_sid)
            .all()
        )
        now = datetime.utcnow()
        for item in failed_items:
            item.status = "FAILED"
            item.error = log.error_message or f"Message {message_status}"
            item.processed_at = now
        db.commit()
        for job in {item.job for item in failed_items}:
            job_processor.update_job_progress(db, job)

    db.commit()
    logger.info(f"📱 Message {message_sid} status: {message_status}")
    return {"received": True, "found": True, "status": log.status}


def _find_guest_for_reply(db: Session, from_phone: str, original_sid: Optional[str]) -> Optional[Guest]:
    """Replied-to message first, then the latest invite/reminder to that phone, then the phone alone"""
    if original_sid:
        log = (
            db.query(NotificationLog)
            .filter(NotificationLog.provider_message_id == original_sid)
            .first()
        )
        if log and log.guest:
            return log.guest

    variations = build_phone_variations(from_phone)
    if not variations:
        return None

    log = (
        db.query(NotificationLog)
        .join(Guest, Guest.id == NotificationLog.guest_id)
        .filter(
            NotificationLog.type.in_(("INVITE", "REMINDER")),
            NotificationLog.status.in_(("SENT", "DELIVERED")),
            Guest.phone_number.in_(variations),
        )
        .order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc())
        .first()
    )
    if log:
        return log.guest

    return (
        db.query(Guest)
        .filter(or_(*[Guest.phone_number == phone for phone in variations]))
        .order_by(Guest.id.desc())
        .first()
    )


@router.post("/whatsapp")
async def whatsapp_reply(
    request: Request,
    _: None = Depends(webhook_limit),
    db: Session = Depends(get_db),
):
    """Interactive replies: RSVP buttons and the guest-count list"""
    params = await _verified_form(request, db)

    button = (params.get("ButtonPayload") or "").strip().lower()
    list_id = (params.get("ListId") or "").strip()
    if not button and not list_id:
        logger.info("💬 Non-interactive WhatsApp message received")
        return {"received": True}

    from_phone = (params.get("From") or "").replace("whatsapp:", "")
    guest = _find_guest_for_reply(db, from_phone, params.get("OriginalRepliedMessageSid"))
    if not guest:
        logger.warning(f"⚠️ No guest found for WhatsApp reply from {from_phone}")
        return {"received": True}

    if button:
        status = BUTTON_ACTIONS.get(button)
        if not status:
            logger.warning(f"⚠️ Unknown WhatsApp button payload: {button}")
            return {"received": True}
        previous_status = guest.rsvp.status if guest.rsvp else None
        current_count = guest.rsvp.guest_count if guest.rsvp else None
        apply_rsvp(guest, status, current_count)
        db.commit()
        logger.info(f"✅ Guest {guest.id} replied {status} via WhatsApp")
        try:
            await automation_engine.on_rsvp_status_changed(db, guest, previous_status, status)
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Automation flows failed for guest {guest.id}: {str(e)}")
        return {"received": True}

    try:
        count = int(list_id)
    except ValueError:
        logger.warning(f"⚠️ Invalid WhatsApp list id: {list_id}")
        return {"received": True}

    if not 1 <= count <= MAX_LIST_GUEST_COUNT:
        logger.warning(f"⚠️ WhatsApp guest count out of range: {count}")
        return {"received": True}

    if guest.rsvp and guest.rsvp.status == "ACCEPTED":
        guest.rsvp.guest_count = count
        guest.rsvp.responded_at = datetime.utcnow()
        db.commit()
        logger.info(f"✅ Guest {guest.id} confirmed {count} attendee(s) via WhatsApp")
    else:
        logger.warning(f"⚠️ Guest count reply from guest {guest.id} without an accepted RSVP")

    return {"received": True}
