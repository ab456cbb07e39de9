"""Messaging schemas - bulk jobs, templates and provider settings"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models_messaging import BULK_JOB_TYPES
from ...services.template_renderer import SUPPORTED_LOCALES, TEMPLATE_KEYS
from ...shared.validators import validate_choice

CHANNELS = ("WHATSAPP", "SMS")

_SENDER_ID_RE = re.compile(r"^[A-Za-z0-9]{1,11}$")


class BulkSendRequest(BaseModel):
    type: str
    guest_ids: Optional[list[int]] = None
    channel: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, BULK_JOB_TYPES, "type")

    @field_validator("channel")
    @classmethod
    def validate_channel(cls, v):
        return validate_choice(v, CHANNELS, "channel")


class BulkJobResponse(BaseModel):
    id: int
    event_id: int
    type: str
    channel: Optional[str]
    status: str
    total_count: int
    processed_count: int
    sent_count: int
    failed_count: int
    skipped_count: int
    progress: float
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TemplateUpsert(BaseModel):
    type: str
    locale: str = "he"
    title: Optional[str] = None
    message: str
    is_active: bool = True

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, TEMPLATE_KEYS, "type")

    @field_validator("locale")
    @classmethod
    def validate_locale(cls, v):
        return validate_choice(v, SUPPORTED_LOCALES, "locale")

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        if not v or not v.strip():
            raise ValueError("Template message is required")
        return v


class TemplateResponse(BaseModel):
    id: Optional[int] = None
    type: str
    locale: str
    title: Optional[str]
    message: str
    is_active: bool
    is_default: bool


class SmsSenderIdUpdate(BaseModel):
    sms_sender_id: Optional[str] = None

    @field_validator("sms_sender_id")
    @classmethod
    def validate_sender_id(cls, v):
        if v is None or v.strip() == "":
            return None
        v = v.strip()
        if not _SENDER_ID_RE.match(v):
            raise ValueError("Sender ID must be 1-11 letters or digits")
        if v.isdigit():
            raise ValueError("Sender ID must contain at least one letter")
        return v


class ProviderSettingsUpdate(BaseModel):
    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    whatsapp_enabled: Optional[bool] = None
    whatsapp_phone_number: Optional[str] = None
    whatsapp_invite_content_sid: Optional[str] = None
    whatsapp_reminder_content_sid: Optional[str] = None
    sms_enabled: Optional[bool] = None
    sms_phone_number: Optional[str] = None
    messaging_service_sid: Optional[str] = None
    default_channel: Optional[str] = None

    @field_validator("default_channel")
    @classmethod
    def validate_default_channel(cls, v):
        return validate_choice(v, CHANNELS, "default_channel")


class ProviderSettingsResponse(BaseModel):
    configured: bool
    account_sid: Optional[str] = None
    has_auth_token: bool = False
    whatsapp_enabled: bool = False
    whatsapp_phone_number: Optional[str] = None
    whatsapp_invite_content_sid: Optional[str] = None
    whatsapp_reminder_content_sid: Optional[str] = None
    sms_enabled: bool = False
    sms_phone_number: Optional[str] = None
    messaging_service_sid: Optional[str] = None
    default_channel: str = "WHATSAPP"


class ProviderTestRequest(BaseModel):
    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
