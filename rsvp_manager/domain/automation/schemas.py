"""Automation flow schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models_automation import AUTOMATION_ACTIONS, AUTOMATION_TRIGGERS, FLOW_STATUSES
from ...shared.validators import validate_choice


def _clean_message(v):
    if v is None:
        return v
    v = v.strip()
    return v or None


def _check_delay(v):
    if v is not None and not 1 <= v <= 24 * 30:
        raise ValueError("Delay must be between 1 and 720 hours")
    return v


class FlowCreate(BaseModel):
    name: str
    trigger: str
    action: str
    custom_message: Optional[str] = None
    delay_hours: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Flow name is required")
        return v

    @field_validator("trigger")
    @classmethod
    def validate_trigger(cls, v):
        return validate_choice(v, AUTOMATION_TRIGGERS, "trigger")

    @field_validator("action")
    @classmethod
    def validate_action(cls, v):
        return validate_choice(v, AUTOMATION_ACTIONS, "action")

    @field_validator("custom_message")
    @classmethod
    def validate_custom_message(cls, v):
        return _clean_message(v)

    @field_validator("delay_hours")
    @classmethod
    def validate_delay_hours(cls, v):
        return _check_delay(v)


class FlowUpdate(BaseModel):
    name: Optional[str] = None
    custom_message: Optional[str] = None
    delay_hours: Optional[int] = None

    @field_validator("custom_message")
    @classmethod
    def validate_custom_message(cls, v):
        return _clean_message(v)

    @field_validator("delay_hours")
    @classmethod
    def validate_delay_hours(cls, v):
        return _check_delay(v)


class FlowFromTemplate(BaseModel):
    template_key: str
    custom_message: Optional[str] = None

    @field_validator("custom_message")
    @classmethod
    def validate_custom_message(cls, v):
        return _clean_message(v)


class FlowStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, FLOW_STATUSES, "status")


class ManualTrigger(BaseModel):
    guest_ids: list[int]

    @field_validator("guest_ids")
    @classmethod
    def validate_guest_ids(cls, v):
        if not v:
            raise ValueError("Select at least one guest")
        return list(dict.fromkeys(v))


class FlowTemplateResponse(BaseModel):
    key: str
    name: str
    description: str
    trigger: str
    action: str
    delay_hours: Optional[int] = None


class FlowResponse(BaseModel):
    id: int
    event_id: int
    name: str
    trigger: str
    action: str
    status: str
    custom_message: Optional[str]
    delay_hours: Optional[int]
    template_key: Optional[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FlowStatsResponse(BaseModel):
    flow_id: int
    name: str
    status: str
    pending: int
    processing: int
    completed: int
    failed: int
    skipped: int
    total: int


class ExecutionResponse(BaseModel):
    id: int
    flow_id: int
    guest_id: int
    guest_name: Optional[str] = None
    status: str
    scheduled_for: Optional[datetime]
    executed_at: Optional[datetime]
    retry_count: int
    error_message: Optional[str]

    class Config:
        from_attributes = True
