from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# User roles
ROLE_WEDDING_OWNER = "ROLE_WEDDING_OWNER"
ROLE_PLATFORM_OWNER = "ROLE_PLATFORM_OWNER"

USER_STATUSES = ("PENDING_APPROVAL", "ACTIVE", "SUSPENDED")
PLAN_TIERS = ("FREE", "BASIC", "ADVANCED", "PREMIUM", "BUSINESS")

RSVP_STATUSES = ("PENDING", "ACCEPTED", "DECLINED", "MAYBE")

COLLABORATOR_ROLES = ("EDITOR", "VIEWER")

NOTIFICATION_TYPES = ("INVITE", "REMINDER", "CONFIRMATION", "AUTOMATION")
NOTIFICATION_CHANNELS = ("WHATSAPP", "SMS")
NOTIFICATION_STATUSES = ("PENDING", "SENT", "DELIVERED", "UNDELIVERED", "FAILED")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    roles = Column(JSON, default=lambda: [ROLE_WEDDING_OWNER], nullable=False)
    status = Column(String(50), default="ACTIVE", nullable=False)  # PENDING_APPROVAL, ACTIVE, SUSPENDED
    plan = Column(String(50), default="FREE", nullable=False)  # FREE, BASIC, ADVANCED, PREMIUM, BUSINESS
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    events = relationship("WeddingEvent", back_populates="owner")
    workspaces = relationship("Workspace", back_populates="owner", cascade="all, delete-orphan")

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])

    @property
    def is_platform_owner(self) -> bool:
        return self.has_role(ROLE_PLATFORM_OWNER)


class Workspace(Base):
    """Tenant grouping of events under one owner account"""

    __tablename__ = "workspaces"
    __table_args__ = (UniqueConstraint("owner_id", "slug", name="uq_workspace_owner_slug"),)

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="workspaces")
    events = relationship("WeddingEvent", back_populates="workspace")


class WeddingEvent(Base):
    __tablename__ = "wedding_events"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    workspace_id = Column(
        Integer, ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    date_time = Column(DateTime, nullable=False)
    location = Column(String(500), nullable=True)
    venue = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    image_url = Column(String(1000), nullable=True)
    locale = Column(String(10), default="he", nullable=False)  # he, en - language of guest messages
    total_budget = Column(Float, nullable=True)
    sms_sender_id = Column(String(11), nullable=True)  # Alphanumeric sender id for SMS
    is_active = Column(Boolean, default=True, nullable=False)
    is_archived = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="events")
    workspace = relationship("Workspace", back_populates="events")
    guests = relationship("Guest", back_populates="event", cascade="all, delete-orphan")
    collaborators = relationship(
        "EventCollaborator", back_populates="event", cascade="all, delete-orphan"
    )
    rsvp_settings = relationship(
        "RsvpPageSettings", back_populates="event", uselist=False, cascade="all, delete-orphan"
    )
    message_templates = relationship(
        "MessageTemplate", back_populates="event", cascade="all, delete-orphan"
    )
    bulk_jobs = relationship("BulkMessageJob", back_populates="event", cascade="all, delete-orphan")
    tables = relationship("WeddingTable", back_populates="event", cascade="all, delete-orphan")
    venue_blocks = relationship("VenueBlock", back_populates="event", cascade="all, delete-orphan")
    suppliers = relationship("Supplier", back_populates="event", cascade="all, delete-orphan")
    tasks = relationship("WeddingTask", back_populates="event", cascade="all, delete-orphan")
    automation_flows = relationship("AutomationFlow", back_populates="event", cascade="all, delete-orphan")
    transportation_registrations = relationship(
        "TransportationRegistration", back_populates="event", cascade="all, delete-orphan"
    )


class EventCollaborator(Base):
    """User invited to help manage an event"""

    __tablename__ = "event_collaborators"
    __table_args__ = (UniqueConstraint("event_id", "email", name="uq_collaborator_event_email"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    email = Column(String(255), nullable=False)
    role = Column(String(20), default="EDITOR", nullable=False)  # EDITOR, VIEWER
    invite_token = Column(String(500), unique=True, nullable=True)
    invited_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    event = relationship("WeddingEvent", back_populates="collaborators")
    user = relationship("User", foreign_keys=[user_id])


class Guest(Base):
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True, index=True)
    email = Column(String(255), nullable=True)
    side = Column(String(50), nullable=True)  # bride, groom, both
    group_name = Column(String(100), nullable=True)  # family, friends, work...
    expected_guests = Column(Integer, default=1, nullable=False)
    notes = Column(Text, nullable=True)
    slug = Column(String(32), unique=True, index=True, nullable=False)  # Public RSVP link id
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("WeddingEvent", back_populates="guests")
    rsvp = relationship(
        "GuestRsvp", back_populates="guest", uselist=False, cascade="all, delete-orphan"
    )
    notification_logs = relationship(
        "NotificationLog", back_populates="guest", cascade="all, delete-orphan"
    )
    table_assignment = relationship(
        "TableAssignment", back_populates="guest", uselist=False, cascade="all, delete-orphan"
    )
    bulk_items = relationship(
        "BulkMessageJobItem", back_populates="guest", cascade="all, delete-orphan"
    )
    automation_executions = relationship(
        "AutomationFlowExecution", back_populates="guest", cascade="all, delete-orphan"
    )
    transportation_registration = relationship(
        "TransportationRegistration", back_populates="guest", uselist=False, cascade="all, delete-orphan"
    )


class GuestRsvp(Base):
    __tablename__ = "guest_rsvps"

    id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(
        Integer, ForeignKey("guests.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    status = Column(String(20), default="PENDING", nullable=False)  # PENDING, ACCEPTED, DECLINED, MAYBE
    guest_count = Column(Integer, default=0, nullable=False)
    message = Column(Text, nullable=True)
    responded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    guest = relationship("Guest", back_populates="rsvp")


class RsvpPageSettings(Base):
    """Appearance of the public RSVP page of an event"""

    __tablename__ = "rsvp_page_settings"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    welcome_title = Column(String(255), nullable=True)
    welcome_message = Column(Text, nullable=True)
    theme_color = Column(String(7), default="#d4a373", nullable=False)
    background_image_url = Column(String(1000), nullable=True)
    show_map = Column(Boolean, default=True, nullable=False)
    show_calendar_button = Column(Boolean, default=True, nullable=False)
    accepting_responses = Column(Boolean, default=True, nullable=False)
    deadline = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("WeddingEvent", back_populates="rsvp_settings")


class MessageTemplate(Base):
    """Per-event override of a default guest message"""

    __tablename__ = "message_templates"
    __table_args__ = (
        UniqueConstraint("event_id", "type", "locale", name="uq_message_template_event_type_locale"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(32), nullable=False)  # INVITE, REMINDER, CONFIRMATION_<STATUS>
    locale = Column(String(10), default="he", nullable=False)
    title = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("WeddingEvent", back_populates="message_templates")


class NotificationLog(Base):
    """One outbound guest message and its delivery state"""

    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_id = Column(Integer, ForeignKey("guests.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # INVITE, REMINDER, CONFIRMATION, AUTOMATION
    channel = Column(String(20), nullable=True)  # WHATSAPP, SMS
    status = Column(String(20), default="PENDING", nullable=False)
    message_body = Column(Text, nullable=True)
    provider_message_id = Column(String(64), nullable=True, index=True)  # Twilio MessageSid
    twilio_status = Column(String(30), nullable=True)  # Raw MessageStatus from the last callback
    error_code = Column(String(20), nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    guest = relationship("Guest", back_populates="notification_logs")
    event = relationship("WeddingEvent")


class CostLog(Base):
    """Messaging cost attributed to an event owner"""

    __tablename__ = "cost_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="SET NULL"), nullable=True, index=True
    )
    service = Column(String(30), nullable=False)  # WHATSAPP, SMS
    quantity = Column(Integer, default=1, nullable=False)
    unit_cost = Column(Float, nullable=False)
    total_cost = Column(Float, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class CronJobLog(Base):
    __tablename__ = "cron_job_logs"

    id = Column(Integer, primary_key=True, index=True)
    job_name = Column(String(100), nullable=False, index=True)
    status = Column(String(20), nullable=False)  # SUCCESS, FAILED
    details = Column(JSON, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
