"""
Messaging Models
Provider credentials and bulk message jobs
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

BULK_JOB_TYPES = ("INVITE", "REMINDER")
BULK_JOB_STATUSES = ("PENDING", "PROCESSING", "COMPLETED", "FAILED", "CANCELLED")
BULK_ITEM_STATUSES = ("PENDING", "PROCESSING", "SENT", "FAILED", "SKIPPED")


class MessagingProviderSettings(Base):
    """Platform-wide Twilio configuration (single row)"""

    __tablename__ = "messaging_provider_settings"

    id = Column(Integer, primary_key=True, index=True)

    # Twilio credentials (encrypted)
    account_sid = Column(Text, nullable=True)
    auth_token = Column(Text, nullable=True)

    # WhatsApp
    whatsapp_enabled = Column(Boolean, default=False, nullable=False)
    whatsapp_phone_number = Column(String(20), nullable=True)
    whatsapp_invite_content_sid = Column(String(64), nullable=True)
    whatsapp_reminder_content_sid = Column(String(64), nullable=True)

    # SMS
    sms_enabled = Column(Boolean, default=False, nullable=False)
    sms_phone_number = Column(String(20), nullable=True)
    messaging_service_sid = Column(String(64), nullable=True)

    default_channel = Column(String(20), default="WHATSAPP", nullable=False)  # WHATSAPP, SMS

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and (self.whatsapp_enabled or self.sms_enabled))


class BulkMessageJob(Base):
    """Batch of invites or reminders sent to a guest list in chunks"""

    __tablename__ = "bulk_message_jobs"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(20), nullable=False)  # INVITE, REMINDER
    channel = Column(String(20), nullable=True)  # Preferred channel, falls back to the others
    status = Column(String(20), default="PENDING", nullable=False, index=True)

    total_count = Column(Integer, default=0, nullable=False)
    processed_count = Column(Integer, default=0, nullable=False)
    sent_count = Column(Integer, default=0, nullable=False)
    failed_count = Column(Integer, default=0, nullable=False)
    skipped_count = Column(Integer, default=0, nullable=False)

    error = Column(Text, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("WeddingEvent", back_populates="bulk_jobs")
    items = relationship(
        "BulkMessageJobItem",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="BulkMessageJobItem.id",
    )


class BulkMessageJobItem(Base):
    __tablename__ = "bulk_message_job_items"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(
        Integer, ForeignKey("bulk_message_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_id = Column(Integer, ForeignKey("guests.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), default="PENDING", nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    next_attempt_at = Column(DateTime, nullable=True)  # Backoff: not picked up before this time
    claimed_at = Column(DateTime, nullable=True)  # Set when a worker takes the item
    error = Column(Text, nullable=True)
    provider_message_id = Column(String(64), nullable=True, index=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    job = relationship("BulkMessageJob", back_populates="items")
    guest = relationship("Guest", back_populates="bulk_items")
