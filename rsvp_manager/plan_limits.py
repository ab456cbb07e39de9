"""
Plan limits and utilities for subscription-based restrictions.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import CostLog, Guest, User, WeddingEvent

# None means unlimited
PLAN_LIMITS = {
    "FREE": {"max_events": 1, "max_guests_per_event": 50, "max_whatsapp_messages": 0, "max_sms_messages": 0},
    "BASIC": {"max_events": 1, "max_guests_per_event": None, "max_whatsapp_messages": 650, "max_sms_messages": 0},
    "ADVANCED": {"max_events": 1, "max_guests_per_event": None, "max_whatsapp_messages": 750, "max_sms_messages": 30},
    "PREMIUM": {"max_events": 2, "max_guests_per_event": None, "max_whatsapp_messages": 1000, "max_sms_messages": 50},
    "BUSINESS": {"max_events": None, "max_guests_per_event": None, "max_whatsapp_messages": None, "max_sms_messages": None},
}

# Plans allowed to organise events into several workspaces
WORKSPACE_PLANS = ("BUSINESS",)


def get_plan_limits(plan: Optional[str]) -> dict:
    return PLAN_LIMITS.get((plan or "FREE").upper(), PLAN_LIMITS["FREE"])


def can_create_event(user: User, db: Session) -> tuple:
    """
    Check if user can create another event.
    Returns (can_create, error_message).
    """
    if user.is_platform_owner:
        return (True, None)

    limit = get_plan_limits(user.plan)["max_events"]
    if limit is None:
        return (True, None)

    count = db.query(WeddingEvent).filter(WeddingEvent.owner_id == user.id).count()
    if count < limit:
        return (True, None)

    return (
        False,
        f"You have reached the limit of {limit} event(s) for your plan. Please upgrade to create more events.",
    )


def can_add_guests(event: WeddingEvent, db: Session, adding: int = 1) -> tuple:
    """
    Guest limit follows the plan of the event OWNER, not the collaborator adding guests.
    Returns (can_add, error_message).
    """
    owner = event.owner
    if owner is not None and owner.is_platform_owner:
        return (True, None)

    limit = get_plan_limits(owner.plan if owner else None)["max_guests_per_event"]
    if limit is None:
        return (True, None)

    current = db.query(Guest).filter(Guest.event_id == event.id).count()
    if current + adding <= limit:
        return (True, None)

    return (
        False,
        f"Your plan allows up to {limit} guests per event ({current} already added). "
        "Please upgrade to add more guests.",
    )


def can_manage_workspaces(user: User) -> bool:
    return user.is_platform_owner or (user.plan or "").upper() in WORKSPACE_PLANS


def get_usage_stats(user: User, db: Session) -> dict:
    """
    Current usage against the plan for the dashboard.
    Message counts cover the current calendar month.
    """
    limits = get_plan_limits(user.plan)
    now = datetime.utcnow()
    month_start = datetime(now.year, now.month, 1)

    rows = (
        db.query(CostLog.service, func.coalesce(func.sum(CostLog.quantity), 0))
        .filter(CostLog.user_id == user.id, CostLog.created_at >= month_start)
        .group_by(CostLog.service)
        .all()
    )
    sent = {service: int(total) for service, total in rows}

    events = db.query(WeddingEvent).filter(WeddingEvent.owner_id == user.id).count()

    def _usage(current: int, limit: Optional[int]) -> dict:
        return {
            "current": current,
            "limit": limit,
            "remaining": None if limit is None else max(0, limit - current),
        }

    return {
        "plan": user.plan,
        "events": _usage(events, limits["max_events"]),
        "whatsapp_messages": _usage(sent.get("WHATSAPP", 0), limits["max_whatsapp_messages"]),
        "sms_messages": _usage(sent.get("SMS", 0), limits["max_sms_messages"]),
        "max_guests_per_event": limits["max_guests_per_event"],
    }
