"""
Automation engine

Decides when a flow fires for a guest and runs the due executions.
RSVP triggers run right away; every other trigger becomes a PENDING
execution with a scheduled_for time that the cron pass picks up.

Event times are compared as stored (naive UTC, like the rest of the app).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..models import Guest, NotificationLog, WeddingEvent
from ..models_automation import (
    EVENT_TIME_TRIGGERS,
    NO_RESPONSE_TRIGGERS,
    RSVP_TRIGGERS,
    AutomationFlow,
    AutomationFlowExecution,
)
from .notification_service import (
    CHANNEL_SMS,
    CHANNEL_WHATSAPP,
    NotificationResult,
    NotificationService,
    get_notification_service,
)
from .template_renderer import AUTOMATION_MESSAGES, normalize_locale

logger = logging.getLogger(__name__)

DEFAULT_DELAY_HOURS = {
    "NO_RESPONSE": 24,
    "NO_RESPONSE_WHATSAPP": 24,
    "NO_RESPONSE_SMS": 24,
    "BEFORE_EVENT": 2,
    "AFTER_EVENT": 12,
}
EVENT_DAY_MORNING_HOUR = 9
DAY_AFTER_MORNING_HOUR = 11
# A time-based trigger still fires this long after its target time
TRIGGER_WINDOW = timedelta(hours=2)

MAX_EXECUTION_RETRIES = 3
RETRY_DELAY = timedelta(hours=1)
EXECUTION_BATCH_SIZE = 100

SKIP_ALREADY_RESPONDED = "Guest already responded"
SKIP_NOT_CONFIRMED = "Guest not confirmed"
SKIP_PAST_WINDOW = "Past trigger window"
SKIP_NO_NOTIFICATION = "No invite or reminder sent yet"

UNASSIGNED_TABLE = {"he": "טרם שובץ", "en": "Not assigned yet"}

CHASED_NOTIFICATION_TYPES = ("INVITE", "REMINDER")
DELIVERED_STATUSES = ("SENT", "DELIVERED")


@dataclass
class TriggerCheck:
    should_trigger: bool
    reason: str
    scheduled_for: Optional[datetime] = None


# ============================================================================
# TRIGGERS
# ============================================================================


def effective_delay_hours(trigger: str, delay_hours: Optional[int]) -> Optional[int]:
    return delay_hours or DEFAULT_DELAY_HOURS.get(trigger)


def _event_time_target(trigger: str, event_time: datetime, delay_hours: Optional[int]) -> datetime:
    if trigger == "BEFORE_EVENT":
        return event_time - timedelta(hours=effective_delay_hours(trigger, delay_hours))
    if trigger == "AFTER_EVENT":
        return event_time + timedelta(hours=effective_delay_hours(trigger, delay_hours))
    if trigger == "EVENT_DAY_MORNING":
        return event_time.replace(hour=EVENT_DAY_MORNING_HOUR, minute=0, second=0, microsecond=0)
    # DAY_AFTER_MORNING
    day_after = event_time + timedelta(days=1)
    return day_after.replace(hour=DAY_AFTER_MORNING_HOUR, minute=0, second=0, microsecond=0)


def check_trigger(
    trigger: str,
    rsvp_status: str,
    event_time: datetime,
    last_sent_at: Optional[datetime] = None,
    delay_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> TriggerCheck:
    """
    Whether a flow should fire for a guest right now.

    A negative answer may carry scheduled_for, the time to check again.
    """
    now = now or datetime.utcnow()

    if trigger in RSVP_TRIGGERS:
        return TriggerCheck(True, "RSVP answer received")

    if trigger in NO_RESPONSE_TRIGGERS:
        if rsvp_status != "PENDING":
            return TriggerCheck(False, SKIP_ALREADY_RESPONDED)
        if last_sent_at is None:
            return TriggerCheck(False, SKIP_NO_NOTIFICATION)
        hours = effective_delay_hours(trigger, delay_hours)
        due = last_sent_at + timedelta(hours=hours)
        if now >= due:
            return TriggerCheck(True, f"{hours} hours passed since the last message")
        return TriggerCheck(False, "Waiting for a response", scheduled_for=due)

    if trigger in EVENT_TIME_TRIGGERS:
        if rsvp_status != "ACCEPTED":
            return TriggerCheck(False, SKIP_NOT_CONFIRMED)
        target = _event_time_target(trigger, event_time, delay_hours)
        if now < target:
            return TriggerCheck(False, "Not due yet", scheduled_for=target)
        if now <= target + TRIGGER_WINDOW:
            return TriggerCheck(True, f"{trigger} window")
        return TriggerCheck(False, SKIP_PAST_WINDOW)

    return TriggerCheck(False, f"Unknown trigger {trigger}")


def calculate_scheduled_time(
    trigger: str,
    event_time: datetime,
    last_sent_at: Optional[datetime] = None,
    delay_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """When a time-based flow should run; None when it cannot be scheduled"""
    now = now or datetime.utcnow()
    if trigger in NO_RESPONSE_TRIGGERS:
        if last_sent_at is None:
            return None
        return last_sent_at + timedelta(hours=effective_delay_hours(trigger, delay_hours))
    if trigger in EVENT_TIME_TRIGGERS:
        target = _event_time_target(trigger, event_time, delay_hours)
        return target if target > now else None
    return None


def rsvp_status_of(guest: Guest) -> str:
    return guest.rsvp.status if guest.rsvp else "PENDING"


def last_notification_at(db: Session, guest_id: int, trigger: str) -> Optional[datetime]:
    """Last delivered invite/reminder; channel-specific triggers only look at their channel"""
    query = db.query(NotificationLog.sent_at).filter(
        NotificationLog.guest_id == guest_id,
        NotificationLog.type.in_(CHASED_NOTIFICATION_TYPES),
        NotificationLog.status.in_(DELIVERED_STATUSES),
        NotificationLog.sent_at.isnot(None),
    )
    if trigger == "NO_RESPONSE_WHATSAPP":
        query = query.filter(NotificationLog.channel == CHANNEL_WHATSAPP)
    elif trigger == "NO_RESPONSE_SMS":
        query = query.filter(NotificationLog.channel == CHANNEL_SMS)
    row = query.order_by(NotificationLog.sent_at.desc()).first()
    return row[0] if row else None


# ============================================================================
# ACTIONS
# ============================================================================


def _table_name(guest: Guest, locale: str) -> str:
    assignment = guest.table_assignment
    if assignment and assignment.table:
        return assignment.table.name
    return UNASSIGNED_TABLE[locale]


async def execute_action(
    flow: AutomationFlow, guest: Guest, service: NotificationService
) -> NotificationResult:
    event = flow.event
    locale = normalize_locale(event.locale)
    extra = {"tableName": _table_name(guest, locale)}
    action = flow.action

    if action in ("SEND_CUSTOM_WHATSAPP", "SEND_CUSTOM_SMS"):
        channel = CHANNEL_WHATSAPP if action == "SEND_CUSTOM_WHATSAPP" else CHANNEL_SMS
        return await service.send_text(guest, event, flow.custom_message or "", channel, extra)

    if flow.custom_message:
        return await service.send_text(guest, event, flow.custom_message, None, extra)

    if action == "SEND_REMINDER":
        return await service.send_reminder(guest, event)
    if action == "SEND_CONFIRMATION":
        return await service.send_confirmation(guest, event, rsvp_status_of(guest))
    if action == "SEND_TABLE_ASSIGNMENT":
        return await service.send_text(guest, event, AUTOMATION_MESSAGES[locale]["TABLE_ASSIGNMENT"], None, extra)
    if action == "SEND_EVENT_DETAILS":
        return await service.send_text(guest, event, AUTOMATION_MESSAGES[locale]["EVENT_DETAILS"], None, extra)

    return NotificationResult(success=False, error=f"Unknown action {action}")


# ============================================================================
# EXECUTIONS
# ============================================================================


def claim_execution(db: Session, execution: AutomationFlowExecution) -> bool:
    """PENDING -> PROCESSING; False when another run got there first"""
    claimed = (
        db.query(AutomationFlowExecution)
        .filter(AutomationFlowExecution.id == execution.id, AutomationFlowExecution.status == "PENDING")
        .update({AutomationFlowExecution.status: "PROCESSING"}, synchronize_session=False)
    )
    db.commit()
    if claimed:
        db.refresh(execution)
    return bool(claimed)


def skip_execution(db: Session, execution: AutomationFlowExecution, reason: str) -> None:
    execution.status = "SKIPPED"
    execution.error_message = reason
    execution.executed_at = datetime.utcnow()
    db.commit()


async def run_execution(
    db: Session, execution: AutomationFlowExecution, service: NotificationService
) -> str:
    """Run a claimed execution; failures retry an hour later up to MAX_EXECUTION_RETRIES"""
    try:
        result = await execute_action(execution.flow, execution.guest, service)
        success, error = result.success, result.error
    except Exception as e:
        logger.error(f"❌ Automation execution {execution.id} raised: {str(e)}")
        success, error = False, str(e)

    now = datetime.utcnow()
    if success:
        execution.status = "COMPLETED"
        execution.error_message = None
        execution.executed_at = now
    else:
        execution.retry_count = (execution.retry_count or 0) + 1
        if execution.retry_count < MAX_EXECUTION_RETRIES:
            execution.status = "PENDING"
            execution.error_message = error
            execution.scheduled_for = now + RETRY_DELAY
            logger.warning(f"⚠️ Automation execution {execution.id} failed, retry in 1h: {error}")
        else:
            execution.status = "FAILED"
            execution.error_message = f"{error} (after {MAX_EXECUTION_RETRIES} attempts)"
            execution.executed_at = now
            logger.error(f"❌ Automation execution {execution.id} failed permanently: {error}")
    db.commit()
    return execution.status


def _get_or_create_execution(
    db: Session, flow: AutomationFlow, guest_id: int, scheduled_for: Optional[datetime] = None
) -> tuple[AutomationFlowExecution, bool]:
    execution = (
        db.query(AutomationFlowExecution)
        .filter(AutomationFlowExecution.flow_id == flow.id, AutomationFlowExecution.guest_id == guest_id)
        .first()
    )
    if execution:
        return execution, False
    execution = AutomationFlowExecution(
        flow_id=flow.id, guest_id=guest_id, status="PENDING", scheduled_for=scheduled_for
    )
    db.add(execution)
    return execution, True


async def process_automation_flows(
    db: Session, service: Optional[NotificationService] = None, now: Optional[datetime] = None
) -> dict:
    """
    Cron pass over due executions of active flows.

    Each one is re-checked first: not due yet means rescheduled, a guest
    who no longer qualifies means SKIPPED.
    """
    now = now or datetime.utcnow()
    executions = (
        db.query(AutomationFlowExecution)
        .join(AutomationFlow, AutomationFlow.id == AutomationFlowExecution.flow_id)
        .filter(
            AutomationFlowExecution.status == "PENDING",
            or_(AutomationFlowExecution.scheduled_for.is_(None), AutomationFlowExecution.scheduled_for <= now),
            AutomationFlow.status == "ACTIVE",
        )
        .order_by(AutomationFlowExecution.id.asc())
        .limit(EXECUTION_BATCH_SIZE)
        .all()
    )

    summary = {"processed": 0, "succeeded": 0, "failed": 0, "skipped": 0, "rescheduled": 0}
    for execution in executions:
        flow, guest = execution.flow, execution.guest
        event = flow.event
        if not event.is_active or event.is_archived:
            skip_execution(db, execution, "Event is closed")
            summary["skipped"] += 1
            continue

        check = check_trigger(
            flow.trigger,
            rsvp_status_of(guest),
            event.date_time,
            last_notification_at(db, guest.id, flow.trigger),
            flow.delay_hours,
            now,
        )
        if not check.should_trigger:
            if check.scheduled_for and check.scheduled_for > now:
                execution.scheduled_for = check.scheduled_for
                db.commit()
                summary["rescheduled"] += 1
            else:
                skip_execution(db, execution, check.reason)
                summary["skipped"] += 1
            continue

        if not claim_execution(db, execution):
            continue
        if service is None:
            service = get_notification_service(db)

        status = await run_execution(db, execution, service)
        summary["processed"] += 1
        if status == "COMPLETED":
            summary["succeeded"] += 1
        else:
            summary["failed"] += 1

    if executions:
        logger.info(f"🤖 Automation pass: {summary}")
    return summary


def schedule_flow(db: Session, flow: AutomationFlow, now: Optional[datetime] = None) -> int:
    """
    Create executions for the guests a newly active time-based flow applies to.
    Guests whose no-response delay already ran out are picked up on the next pass.
    """
    if flow.status != "ACTIVE" or flow.trigger in RSVP_TRIGGERS:
        return 0

    now = now or datetime.utcnow()
    event = flow.event
    existing = {
        guest_id
        for (guest_id,) in db.query(AutomationFlowExecution.guest_id).filter(
            AutomationFlowExecution.flow_id == flow.id
        )
    }

    created = 0
    for guest in event.guests:
        if guest.id in existing:
            continue
        status = rsvp_status_of(guest)
        if flow.trigger in NO_RESPONSE_TRIGGERS:
            last_sent = last_notification_at(db, guest.id, flow.trigger)
            if status != "PENDING" or last_sent is None:
                continue
            scheduled_for = max(
                calculate_scheduled_time(flow.trigger, event.date_time, last_sent, flow.delay_hours, now), now
            )
        else:
            if status != "ACCEPTED":
                continue
            scheduled_for = calculate_scheduled_time(flow.trigger, event.date_time, None, flow.delay_hours, now)
            if scheduled_for is None:
                continue

        db.add(AutomationFlowExecution(flow_id=flow.id, guest_id=guest.id, status="PENDING", scheduled_for=scheduled_for))
        created += 1

    db.commit()
    if created:
        logger.info(f"🤖 Flow {flow.id} scheduled for {created} guest(s)")
    return created


def schedule_upcoming_event_triggers(db: Session, now: Optional[datetime] = None) -> int:
    """Catch guests who confirmed after an event-time flow was activated"""
    now = now or datetime.utcnow()
    flows = (
        db.query(AutomationFlow)
        .join(WeddingEvent, WeddingEvent.id == AutomationFlow.event_id)
        .filter(
            AutomationFlow.status == "ACTIVE",
            AutomationFlow.trigger.in_(EVENT_TIME_TRIGGERS),
            WeddingEvent.is_active.is_(True),
            WeddingEvent.is_archived.is_(False),
            WeddingEvent.date_time >= now - timedelta(days=2),
            WeddingEvent.date_time <= now + timedelta(days=1),
        )
        .all()
    )
    return sum(schedule_flow(db, flow, now) for flow in flows)


def skip_pending_no_response(db: Session, guest_id: int) -> int:
    flow_ids = db.query(AutomationFlow.id).filter(AutomationFlow.trigger.in_(NO_RESPONSE_TRIGGERS))
    skipped = (
        db.query(AutomationFlowExecution)
        .filter(
            AutomationFlowExecution.guest_id == guest_id,
            AutomationFlowExecution.status == "PENDING",
            AutomationFlowExecution.flow_id.in_(flow_ids),
        )
        .update(
            {
                AutomationFlowExecution.status: "SKIPPED",
                AutomationFlowExecution.error_message: SKIP_ALREADY_RESPONDED,
                AutomationFlowExecution.executed_at: datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return skipped


# ============================================================================
# HOOKS
# ============================================================================


async def on_rsvp_status_changed(
    db: Session,
    guest: Guest,
    previous_status: Optional[str],
    new_status: str,
    service: Optional[NotificationService] = None,
) -> int:
    """Run RSVP flows right away and drop pending chasers; returns the number of flows run"""
    if new_status in ("ACCEPTED", "DECLINED"):
        skip_pending_no_response(db, guest.id)

    trigger = None
    if new_status == "ACCEPTED" and previous_status != "ACCEPTED":
        trigger = "RSVP_CONFIRMED"
    elif new_status == "DECLINED" and previous_status != "DECLINED":
        trigger = "RSVP_DECLINED"
    if trigger is None:
        return 0

    flows = (
        db.query(AutomationFlow)
        .filter(
            AutomationFlow.event_id == guest.event_id,
            AutomationFlow.trigger == trigger,
            AutomationFlow.status == "ACTIVE",
        )
        .all()
    )

    ran = 0
    for flow in flows:
        execution, _ = _get_or_create_execution(db, flow, guest.id)
        if execution.status in ("COMPLETED", "PROCESSING"):
            continue
        execution.status = "PENDING"
        execution.scheduled_for = None
        execution.retry_count = 0
        db.commit()
        if not claim_execution(db, execution):
            continue
        if service is None:
            service = get_notification_service(db)
        await run_execution(db, execution, service)
        ran += 1

    if ran:
        logger.info(f"🤖 {trigger} ran {ran} flow(s) for guest {guest.id}")
    return ran


def on_notification_sent(
    db: Session, guest: Guest, sent_at: datetime, channel: Optional[str] = None
) -> int:
    """Schedule no-response flows after an invite or reminder went out"""
    if rsvp_status_of(guest) != "PENDING":
        return 0

    flows = (
        db.query(AutomationFlow)
        .filter(
            AutomationFlow.event_id == guest.event_id,
            AutomationFlow.trigger.in_(NO_RESPONSE_TRIGGERS),
            AutomationFlow.status == "ACTIVE",
        )
        .all()
    )

    scheduled = 0
    for flow in flows:
        if flow.trigger == "NO_RESPONSE_WHATSAPP" and channel != CHANNEL_WHATSAPP:
            continue
        if flow.trigger == "NO_RESPONSE_SMS" and channel != CHANNEL_SMS:
            continue
        scheduled_for = calculate_scheduled_time(flow.trigger, flow.event.date_time, sent_at, flow.delay_hours)
        execution, created = _get_or_create_execution(db, flow, guest.id, scheduled_for)
        if not created and execution.status != "PENDING":
            continue
        execution.scheduled_for = scheduled_for
        scheduled += 1

    db.commit()
    return scheduled


def cleanup_old_executions(db: Session, days_to_keep: int = 30) -> int:
    cutoff = datetime.utcnow() - timedelta(days=days_to_keep)
    removed = (
        db.query(AutomationFlowExecution)
        .filter(
            AutomationFlowExecution.status.in_(("COMPLETED", "FAILED", "SKIPPED")),
            AutomationFlowExecution.executed_at < cutoff,
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    if removed:
        logger.info(f"🧹 Removed {removed} old automation execution(s)")
    return removed


def get_flow_stats(db: Session, flow_id: int) -> dict:
    counts = dict(
        db.query(AutomationFlowExecution.status, func.count(AutomationFlowExecution.id))
        .filter(AutomationFlowExecution.flow_id == flow_id)
        .group_by(AutomationFlowExecution.status)
        .all()
    )
    stats = {status.lower(): counts.get(status, 0) for status in ("PENDING", "PROCESSING", "COMPLETED", "FAILED", "SKIPPED")}
    stats["total"] = sum(counts.values())
    return stats
