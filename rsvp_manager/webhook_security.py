"""
Webhook Security Module

Signature verification for inbound Twilio callbacks and the shared-secret
check guarding the cron trigger routes.
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, Request

from . import config

logger = logging.getLogger(__name__)


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""

    pass


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time.
    Empty values never match.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def compute_twilio_signature(url: str, params: dict[str, str], auth_token: str) -> str:
    """
    Twilio request signature: HMAC-SHA1 of the full URL followed by every
    POST parameter as name+value, sorted by name, base64 encoded.
    """
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")


def get_public_url(request: Request) -> str:
    """URL Twilio signed. Behind a proxy the configured public base replaces scheme and host."""
    if config.TWILIO_WEBHOOK_BASE_URL:
        url = config.TWILIO_WEBHOOK_BASE_URL.rstrip("/") + request.url.path
        if request.url.query:
            url += "?" + request.url.query
        return url
    return str(request.url)


def verify_twilio_signature(
    request: Request, params: dict[str, str], auth_token: Optional[str], raise_on_failure: bool = False
) -> bool:
    """
    Validate X-Twilio-Signature for a form-encoded callback.

    Args:
        request: FastAPI request object
        params: Parsed form fields
        auth_token: Twilio auth token (plain text)
        raise_on_failure: Raise WebhookSignatureError instead of returning False

    Returns:
        True when the signature matches
    """
    received = request.headers.get("X-Twilio-Signature")
    if not auth_token:
        logger.warning("⚠️ Twilio auth token not configured - cannot verify callback signature")
        if raise_on_failure:
            raise WebhookSignatureError("Twilio auth token not configured")
        return False

    if not received:
        logger.warning("⚠️ Twilio callback without X-Twilio-Signature header")
        if raise_on_failure:
            raise WebhookSignatureError("Missing signature")
        return False

    expected = compute_twilio_signature(get_public_url(request), params, auth_token)
    if constant_time_compare(expected, received):
        logger.debug("✅ Twilio signature verified")
        return True

    logger.warning(f"⚠️ Invalid Twilio signature for {request.url.path}")
    if raise_on_failure:
        raise WebhookSignatureError("Invalid signature")
    return False


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """FastAPI dependency: require Authorization: Bearer <CRON_SECRET>"""
    if not config.CRON_SECRET:
        logger.error("❌ CRON_SECRET not configured - refusing cron request")
        raise HTTPException(status_code=503, detail="Cron is not configured")

    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer ") :]

    if not constant_time_compare(token, config.CRON_SECRET):
        logger.warning("🚫 Cron request with invalid secret")
        raise HTTPException(status_code=401, detail="Unauthorized")
