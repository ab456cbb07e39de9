"""
Bulk Message Job Processor

A bulk job holds one item per guest. Items are sent sequentially in
chunks; a failed item goes back to PENDING with a backoff until it
runs out of attempts. Chunks are driven by the arq worker (or a FastAPI
background task when Redis is not configured) and by the cron loop.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ... import config
from ...models import Guest, GuestRsvp, NotificationLog, User, WeddingEvent
from ...models_messaging import BulkMessageJob, BulkMessageJobItem
from ...services import automation_engine
from ...services.notification_service import NotificationService, get_notification_service

logger = logging.getLogger(__name__)

RETRY_CONFIG = {
    "max_attempts": 3,
    "backoff_seconds": [5, 15, 60],
}

FINISHED_JOB_STATUSES = ("CANCELLED", "COMPLETED", "FAILED")
DELIVERED_LOG_STATUSES = ("SENT", "DELIVERED")


# ============================================================================
# JOB CREATION
# ============================================================================


def get_eligible_guests(
    db: Session, event_id: int, message_type: str, guest_ids: Optional[list[int]] = None
) -> list[Guest]:
    """
    Guests a bulk job would message.

    INVITE skips guests already invited successfully; REMINDER only
    targets guests who have not answered yet.
    """
    query = db.query(Guest).filter(
        Guest.event_id == event_id,
        Guest.phone_number.isnot(None),
        Guest.phone_number != "",
    )
    if guest_ids:
        query = query.filter(Guest.id.in_(guest_ids))

    if message_type == "INVITE":
        invited = select(NotificationLog.guest_id).where(
            NotificationLog.event_id == event_id,
            NotificationLog.type == "INVITE",
            NotificationLog.status.in_(DELIVERED_LOG_STATUSES),
        )
        query = query.filter(Guest.id.notin_(invited))
    elif message_type == "REMINDER":
        query = query.outerjoin(GuestRsvp, GuestRsvp.guest_id == Guest.id).filter(
            or_(GuestRsvp.id.is_(None), GuestRsvp.status == "PENDING")
        )

    return query.order_by(Guest.id.asc()).all()


def create_bulk_job(
    db: Session,
    event: WeddingEvent,
    user: User,
    message_type: str,
    guest_ids: Optional[list[int]] = None,
    channel: Optional[str] = None,
) -> BulkMessageJob:
    guests = get_eligible_guests(db, event.id, message_type, guest_ids)
    if not guests:
        raise HTTPException(status_code=400, detail="No eligible guests found")

    job = BulkMessageJob(
        event_id=event.id,
        created_by_id=user.id,
        type=message_type,
        channel=channel,
        status="PENDING",
        total_count=len(guests),
    )
    job.items = [BulkMessageJobItem(guest_id=g.id, status="PENDING") for g in guests]
    db.add(job)
    db.commit()
    db.refresh(job)

    logger.info(f"📦 Bulk {message_type} job {job.id} created for event {event.id} ({len(guests)} guests)")
    return job


# ============================================================================
# PROCESSING
# ============================================================================


async def process_item(
    db: Session, item: BulkMessageJobItem, job: BulkMessageJob, service: NotificationService
) -> Optional[bool]:
    """
    Send one item; returns True when the message went out.

    The item is claimed with a conditional update first. None means
    another run took it in the meantime and nothing was sent.
    """
    claimed = (
        db.query(BulkMessageJobItem)
        .filter(BulkMessageJobItem.id == item.id, BulkMessageJobItem.status == "PENDING")
        .update(
            {
                BulkMessageJobItem.status: "PROCESSING",
                BulkMessageJobItem.attempts: BulkMessageJobItem.attempts + 1,
                BulkMessageJobItem.claimed_at: datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if not claimed:
        logger.info(f"⏭️ Item {item.id} of bulk job {job.id} already taken by another run")
        return None
    db.refresh(item)

    guest = item.guest
    if guest is None or not guest.phone_number:
        item.status = "SKIPPED"
        item.error = "Guest does not have a phone number"
        item.processed_at = datetime.utcnow()
        db.commit()
        return False

    try:
        if job.type == "INVITE":
            result = await service.send_invite(guest, job.event, job.channel)
        else:
            result = await service.send_reminder(guest, job.event, job.channel)
        success, error, message_id = result.success, result.error, result.message_id
        channel = result.channel
    except Exception as e:
        logger.error(f"❌ Bulk job {job.id} item {item.id} raised: {str(e)}")
        success, error, message_id, channel = False, str(e), None, None

    now = datetime.utcnow()
    if success:
        item.status = "SENT"
        item.error = None
        item.provider_message_id = message_id
        item.next_attempt_at = None
        item.processed_at = now
    elif item.attempts < RETRY_CONFIG["max_attempts"]:
        backoff = RETRY_CONFIG["backoff_seconds"][item.attempts - 1]
        item.status = "PENDING"
        item.error = error
        item.next_attempt_at = now + timedelta(seconds=backoff)
        logger.warning(f"⚠️ Item {item.id} failed (attempt {item.attempts}), retry in {backoff}s: {error}")
    else:
        item.status = "FAILED"
        item.error = error
        item.processed_at = now
        logger.error(f"❌ Item {item.id} failed permanently after {item.attempts} attempts: {error}")

    db.commit()

    if success:
        try:
            automation_engine.on_notification_sent(db, guest, now, channel)
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Failed to schedule no-response flows for guest {guest.id}: {str(e)}")
    return success


def update_job_progress(db: Session, job: BulkMessageJob) -> None:
    counts = dict(
        db.query(BulkMessageJobItem.status, func.count(BulkMessageJobItem.id))
        .filter(BulkMessageJobItem.job_id == job.id)
        .group_by(BulkMessageJobItem.status)
        .all()
    )
    job.sent_count = counts.get("SENT", 0)
    job.failed_count = counts.get("FAILED", 0)
    job.skipped_count = counts.get("SKIPPED", 0)
    job.processed_count = job.sent_count + job.failed_count + job.skipped_count
    db.commit()


def check_job_completion(db: Session, job: BulkMessageJob) -> bool:
    """Close the job once no item is waiting; FAILED only if nothing was sent"""
    if job.status in FINISHED_JOB_STATUSES:
        return True

    open_items = (
        db.query(BulkMessageJobItem)
        .filter(
            BulkMessageJobItem.job_id == job.id,
            BulkMessageJobItem.status.in_(("PENDING", "PROCESSING")),
        )
        .count()
    )
    if open_items:
        return False

    update_job_progress(db, job)
    all_failed = job.total_count > 0 and job.failed_count == job.total_count
    job.status = "FAILED" if all_failed else "COMPLETED"
    if all_failed:
        job.error = "All messages failed"
    job.completed_at = datetime.utcnow()
    db.commit()

    logger.info(
        f"✅ Bulk job {job.id} {job.status}: {job.sent_count} sent, "
        f"{job.failed_count} failed, {job.skipped_count} skipped"
    )
    return True


async def process_job_chunk(
    db: Session,
    job_id: int,
    chunk_size: Optional[int] = None,
    service: Optional[NotificationService] = None,
) -> dict:
    """
    Send up to chunk_size due items of a job.

    Returns:
        {"processed": int, "remaining": int, "completed": bool}
    """
    chunk_size = chunk_size or config.BULK_CHUNK_SIZE
    job = db.query(BulkMessageJob).filter(BulkMessageJob.id == job_id).first()
    if not job:
        raise ValueError(f"Bulk job {job_id} not found")

    if job.status in FINISHED_JOB_STATUSES:
        return {"processed": 0, "remaining": 0, "completed": True}

    if job.status == "PENDING":
        job.status = "PROCESSING"
        job.started_at = datetime.utcnow()
        db.commit()

    now = datetime.utcnow()
    items = (
        db.query(BulkMessageJobItem)
        .filter(
            BulkMessageJobItem.job_id == job.id,
            BulkMessageJobItem.status == "PENDING",
            or_(BulkMessageJobItem.next_attempt_at.is_(None), BulkMessageJobItem.next_attempt_at <= now),
        )
        .order_by(BulkMessageJobItem.id.asc())
        .limit(chunk_size)
        .all()
    )

    if items and service is None:
        service = get_notification_service(db)

    processed = 0
    for item in items:
        if processed and config.BULK_MESSAGE_DELAY_SECONDS > 0:
            await asyncio.sleep(config.BULK_MESSAGE_DELAY_SECONDS)
        db.refresh(job)
        if job.status in FINISHED_JOB_STATUSES:
            logger.info(f"🛑 Bulk job {job.id} {job.status.lower()} mid-chunk")
            break
        if await process_item(db, item, job, service) is None:
            continue
        processed += 1

    update_job_progress(db, job)
    completed = check_job_completion(db, job)

    remaining = (
        db.query(BulkMessageJobItem)
        .filter(BulkMessageJobItem.job_id == job.id, BulkMessageJobItem.status == "PENDING")
        .count()
    )
    return {"processed": processed, "remaining": remaining, "completed": completed}


def get_pending_jobs(db: Session, limit: int = 10) -> list[BulkMessageJob]:
    return (
        db.query(BulkMessageJob)
        .filter(BulkMessageJob.status.in_(("PENDING", "PROCESSING")))
        .order_by(BulkMessageJob.created_at.asc(), BulkMessageJob.id.asc())
        .limit(limit)
        .all()
    )


def release_stale_items(db: Session, older_than_seconds: Optional[int] = None) -> int:
    """
    Hand back items a crashed or timed-out worker left in PROCESSING.

    Items with attempts left go back to PENDING, the rest are FAILED.
    """
    older_than_seconds = older_than_seconds or config.BULK_ITEM_STALE_SECONDS
    cutoff = datetime.utcnow() - timedelta(seconds=older_than_seconds)
    stale = (
        db.query(BulkMessageJobItem)
        .filter(
            BulkMessageJobItem.status == "PROCESSING",
            or_(BulkMessageJobItem.claimed_at.is_(None), BulkMessageJobItem.claimed_at < cutoff),
        )
        .all()
    )
    if not stale:
        return 0

    now = datetime.utcnow()
    for item in stale:
        item.error = "Worker stopped before the send finished"
        item.claimed_at = None
        if item.attempts >= RETRY_CONFIG["max_attempts"]:
            item.status = "FAILED"
            item.processed_at = now
        else:
            item.status = "PENDING"
            item.next_attempt_at = None
    db.commit()

    logger.warning(f"⚠️ Released {len(stale)} stale bulk item(s) stuck in PROCESSING")
    return len(stale)


async def process_pending_jobs(db: Session, service: Optional[NotificationService] = None) -> dict:
    """
    Cron loop: one chunk per open job, oldest first.
    Stops after the first job that sent messages and still has work left.
    """
    release_stale_items(db)
    jobs_processed = 0
    messages_processed = 0

    for job in get_pending_jobs(db):
        result = await process_job_chunk(db, job.id, service=service)
        jobs_processed += 1
        messages_processed += result["processed"]
        if result["processed"] > 0 and not result["completed"]:
            break

    if jobs_processed:
        logger.info(f"📦 Processed {messages_processed} messages across {jobs_processed} bulk job(s)")
    return {"jobs_processed": jobs_processed, "messages_processed": messages_processed}


# ============================================================================
# STATUS
# ============================================================================


def cancel_bulk_job(db: Session, job: BulkMessageJob) -> BulkMessageJob:
    if job.status not in ("PENDING", "PROCESSING"):
        raise HTTPException(status_code=400, detail=f"Cannot cancel a job that is {job.status.lower()}")

    db.query(BulkMessageJobItem).filter(
        BulkMessageJobItem.job_id == job.id, BulkMessageJobItem.status == "PENDING"
    ).update({BulkMessageJobItem.status: "SKIPPED", BulkMessageJobItem.error: "Job cancelled"}, synchronize_session=False)

    job.status = "CANCELLED"
    job.completed_at = datetime.utcnow()
    db.commit()
    update_job_progress(db, job)

    logger.info(f"🛑 Bulk job {job.id} cancelled")
    return job


def job_to_dict(job: BulkMessageJob) -> dict:
    progress = round(job.processed_count / job.total_count * 100, 1) if job.total_count else 0
    return {
        "id": job.id,
        "event_id": job.event_id,
        "type": job.type,
        "channel": job.channel,
        "status": job.status,
        "total_count": job.total_count,
        "processed_count": job.processed_count,
        "sent_count": job.sent_count,
        "failed_count": job.failed_count,
        "skipped_count": job.skipped_count,
        "progress": progress,
        "error": job.error,
        "started_at": job.started_at,
        "completed_at": job.completed_at,
        "created_at": job.created_at,
    }


def get_job_status(db: Session, job: BulkMessageJob, failure_limit: int = 20) -> dict:
    failures = (
        db.query(BulkMessageJobItem)
        .filter(BulkMessageJobItem.job_id == job.id, BulkMessageJobItem.status == "FAILED")
        .order_by(BulkMessageJobItem.processed_at.desc(), BulkMessageJobItem.id.desc())
        .limit(failure_limit)
        .all()
    )
    status = job_to_dict(job)
    status["recent_failures"] = [
        {
            "item_id": item.id,
            "guest_id": item.guest_id,
            "guest_name": item.guest.name if item.guest else None,
            "error": item.error,
            "attempts": item.attempts,
        }
        for item in failures
    ]
    return status


def list_jobs(db: Session, event_id: int) -> list[BulkMessageJob]:
    return (
        db.query(BulkMessageJob)
        .filter(BulkMessageJob.event_id == event_id)
        .order_by(BulkMessageJob.created_at.desc(), BulkMessageJob.id.desc())
        .all()
    )


def get_bulk_send_stats(db: Session, event_id: int, message_type: str) -> dict:
    total = db.query(Guest).filter(Guest.event_id == event_id).count()
    with_phone = (
        db.query(Guest)
        .filter(Guest.event_id == event_id, Guest.phone_number.isnot(None), Guest.phone_number != "")
        .count()
    )
    return {
        "type": message_type,
        "total_guests": total,
        "guests_with_phone": with_phone,
        "eligible": len(get_eligible_guests(db, event_id, message_type)),
    }
