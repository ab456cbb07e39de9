"""
Twilio Messaging Service
Thin async wrapper over the Twilio Messages REST API (SMS and WhatsApp)
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import APP_URL, TWILIO_WEBHOOK_BASE_URL

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
REQUEST_TIMEOUT = 10.0

# Twilio error codes -> readable message stored on the notification log
TWILIO_ERROR_MESSAGES = {
    # WhatsApp
    63001: "WhatsApp sender not registered",
    63003: "Recipient not opted in to WhatsApp",
    63007: "Outside 24-hour session window",
    63016: "Rate limited by WhatsApp",
    63018: "Template not approved by WhatsApp",
    63024: "Invalid message recipient",
    63049: "Marketing message rejected by Meta",
    63050: "Marketing message rejected - engagement issue",
    # SMS
    21211: "Invalid phone number format",
    21217: "Invalid phone number",
    21608: "Unverified recipient (trial account)",
    21610: "Recipient opted out",
    21614: "Not a valid mobile number",
    # General
    30001: "Queue overflow",
    30002: "Account suspended",
    30003: "Unreachable destination",
    30004: "Message blocked",
    30005: "Unknown destination",
    30006: "Landline or unreachable carrier",
    30007: "Message filtered as spam",
    30008: "Unknown error",
}

# Errors only returned for trial accounts
TRIAL_ERROR_CODES = {21608, 21219}


def get_error_message(error_code, error_message: Optional[str] = None) -> str:
    """Readable message for a Twilio error code, falling back to Twilio's own text"""
    try:
        code = int(error_code) if error_code not in (None, "") else None
    except (TypeError, ValueError):
        code = None

    if code is None:
        return error_message or "Unknown error"
    if code in TWILIO_ERROR_MESSAGES:
        return TWILIO_ERROR_MESSAGES[code]
    return error_message or f"Error code: {code}"


def get_status_callback_url() -> str:
    base = (TWILIO_WEBHOOK_BASE_URL or APP_URL).rstrip("/")
    return f"{base}/api/twilio/status"


@dataclass
class TwilioSendResult:
    success: bool
    sid: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[int] = None
    is_trial_error: bool = False


async def send_message(
    account_sid: str,
    auth_token: str,
    to: str,
    body: Optional[str] = None,
    from_number: Optional[str] = None,
    messaging_service_sid: Optional[str] = None,
    content_sid: Optional[str] = None,
    content_variables: Optional[dict] = None,
    status_callback: Optional[str] = None,
) -> TwilioSendResult:
    """
    Send one message via Twilio

    Args:
        to: Recipient, E.164 or "whatsapp:+E164"
        body: Text body (ignored by Twilio when content_sid is set)
        from_number: Sender number, alpha sender id, or "whatsapp:+E164"
        messaging_service_sid: Used instead of from_number when set
        content_sid: Approved WhatsApp content template
        content_variables: Values for the {{1}}, {{2}}... slots of the template

    Returns:
        TwilioSendResult, never raises for API errors
    """
    data = {"To": to, "StatusCallback": status_callback or get_status_callback_url()}
    if content_sid:
        data["ContentSid"] = content_sid
        if content_variables:
            data["ContentVariables"] = json.dumps(content_variables, ensure_ascii=False)
    else:
        data["Body"] = body or ""

    if messaging_service_sid:
        data["MessagingServiceSid"] = messaging_service_sid
    elif from_number:
        data["From"] = from_number

    logger.info(f"🚀 Sending message to Twilio API for {to}")
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{TWILIO_API_BASE}/Accounts/{account_sid}/Messages.json",
                auth=(account_sid, auth_token),
                data=data,
                timeout=REQUEST_TIMEOUT,
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Twilio request failed: {str(e)}")
        return TwilioSendResult(success=False, error=f"Network error: {str(e)}")

    logger.info(f"📡 Twilio API response status: {response.status_code}")

    try:
        result = response.json()
    except ValueError:
        result = {}

    if response.status_code in (200, 201):
        return TwilioSendResult(success=True, sid=result.get("sid"), status=result.get("status"))

    error_code = result.get("code")
    error = get_error_message(error_code, result.get("message") or f"HTTP {response.status_code}")
    logger.error(f"❌ Twilio error {error_code}: {error}")
    return TwilioSendResult(
        success=False,
        error=error,
        error_code=error_code,
        is_trial_error=error_code in TRIAL_ERROR_CODES,
    )


async def verify_credentials(account_sid: str, auth_token: str) -> tuple[bool, Optional[str]]:
    """
    Check Twilio credentials by fetching the account resource.
    Returns (ok, error_message).
    """
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{TWILIO_API_BASE}/Accounts/{account_sid}.json",
                auth=(account_sid, auth_token),
                timeout=REQUEST_TIMEOUT,
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Twilio credential check failed: {str(e)}")
        return False, "Could not reach Twilio"

    if response.status_code == 200:
        return True, None
    if response.status_code == 401:
        return False, "Invalid Twilio credentials"
    return False, f"Twilio returned HTTP {response.status_code}"
