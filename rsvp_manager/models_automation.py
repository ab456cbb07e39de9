"""
Automation Models
Per-event message flows and their per-guest executions
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Fired by an RSVP answer
RSVP_TRIGGERS = ("RSVP_CONFIRMED", "RSVP_DECLINED")
# Scheduled from the last invite/reminder sent to a guest who has not answered
NO_RESPONSE_TRIGGERS = ("NO_RESPONSE", "NO_RESPONSE_WHATSAPP", "NO_RESPONSE_SMS")
# Scheduled relative to the event date, confirmed guests only
EVENT_TIME_TRIGGERS = ("BEFORE_EVENT", "AFTER_EVENT", "EVENT_DAY_MORNING", "DAY_AFTER_MORNING")
AUTOMATION_TRIGGERS = RSVP_TRIGGERS + NO_RESPONSE_TRIGGERS + EVENT_TIME_TRIGGERS

AUTOMATION_ACTIONS = (
    "SEND_REMINDER",
    "SEND_CONFIRMATION",
    "SEND_TABLE_ASSIGNMENT",
    "SEND_EVENT_DETAILS",
    "SEND_CUSTOM_WHATSAPP",
    "SEND_CUSTOM_SMS",
)
CUSTOM_MESSAGE_ACTIONS = ("SEND_CUSTOM_WHATSAPP", "SEND_CUSTOM_SMS")

FLOW_STATUSES = ("DRAFT", "ACTIVE", "PAUSED", "ARCHIVED")
EXECUTION_STATUSES = ("PENDING", "PROCESSING", "COMPLETED", "FAILED", "SKIPPED")


class AutomationFlow(Base):
    """Send an action to every guest that meets a trigger"""

    __tablename__ = "automation_flows"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    trigger = Column(String(30), nullable=False)
    action = Column(String(30), nullable=False)
    status = Column(String(20), default="DRAFT", nullable=False, index=True)
    custom_message = Column(Text, nullable=True)  # {{placeholders}} allowed
    delay_hours = Column(Integer, nullable=True)  # No-response and before/after event triggers
    template_key = Column(String(50), nullable=True)  # Preset the flow was created from
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("WeddingEvent", back_populates="automation_flows")
    executions = relationship(
        "AutomationFlowExecution",
        back_populates="flow",
        cascade="all, delete-orphan",
        order_by="AutomationFlowExecution.id",
    )


class AutomationFlowExecution(Base):
    """One flow run for one guest"""

    __tablename__ = "automation_flow_executions"
    __table_args__ = (UniqueConstraint("flow_id", "guest_id", name="uq_automation_execution_flow_guest"),)

    id = Column(Integer, primary_key=True, index=True)
    flow_id = Column(
        Integer, ForeignKey("automation_flows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_id = Column(Integer, ForeignKey("guests.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), default="PENDING", nullable=False, index=True)
    scheduled_for = Column(DateTime, nullable=True)  # None runs on the next pass
    executed_at = Column(DateTime, nullable=True)
    retry_count = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    flow = relationship("AutomationFlow", back_populates="executions")
    guest = relationship("Guest", back_populates="automation_executions")
