"""
Scheduled jobs

Shared by the arq cron schedule (worker.py) and the HTTP cron trigger
(routes/cron.py). Every run is recorded as a CronJobLog.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from sqlalchemy.orm import Session

from . import config, storage
from .domain.archives.service import archive_event
from .domain.messaging.job_processor import process_pending_jobs
from .services import automation_engine
from .models import CronJobLog, WeddingEvent

logger = logging.getLogger(__name__)

ARCHIVE_BATCH_SIZE = 20


async def run_logged(db: Session, job_name: str, job: Callable[[Session], Awaitable[dict]]) -> dict:
    """Run a job and write its CronJobLog; errors are logged and re-raised"""
    started = time.monotonic()
    try:
        details = await job(db)
    except Exception as e:
        db.rollback()
        duration_ms = int((time.monotonic() - started) * 1000)
        db.add(CronJobLog(job_name=job_name, status="FAILED", details={"error": str(e)}, duration_ms=duration_ms))
        db.commit()
        logger.error(f"❌ Cron job {job_name} failed after {duration_ms}ms: {str(e)}")
        raise

    duration_ms = int((time.monotonic() - started) * 1000)
    db.add(CronJobLog(job_name=job_name, status="SUCCESS", details=details, duration_ms=duration_ms))
    db.commit()
    logger.info(f"⏰ Cron job {job_name} finished in {duration_ms}ms: {details}")
    return details


async def process_bulk_jobs(db: Session) -> dict:
    return await process_pending_jobs(db)


async def auto_close_events(db: Session) -> dict:
    """Close events that took place more than AUTO_CLOSE_AFTER_DAYS ago"""
    cutoff = datetime.utcnow() - timedelta(days=config.AUTO_CLOSE_AFTER_DAYS)
    events = (
        db.query(WeddingEvent)
        .filter(
            WeddingEvent.date_time < cutoff,
            WeddingEvent.is_active.is_(True),
            WeddingEvent.is_archived.is_(False),
        )
        .all()
    )
    for event in events:
        event.is_active = False
        event.is_archived = True
    db.commit()

    if events:
        logger.info(f"🔒 Closed {len(events)} past event(s)")
    return {"closed": len(events), "event_ids": [e.id for e in events]}


async def archive_closed_events(db: Session) -> dict:
    """Move closed events to R2; one failed event does not stop the batch"""
    if not storage.is_r2_configured():
        logger.info("⏭️ Archive storage not configured - skipping archive run")
        return {"skipped": True, "reason": "storage not configured", "archived": 0, "failed": 0}

    events = (
        db.query(WeddingEvent)
        .filter(WeddingEvent.is_archived.is_(True))
        .order_by(WeddingEvent.date_time.asc())
        .limit(ARCHIVE_BATCH_SIZE)
        .all()
    )

    archived, failed = 0, []
    for event in events:
        event_id = event.id
        try:
            archive_event(db, event)
            archived += 1
        except Exception as e:
            db.rollback()
            failed.append(event_id)
            logger.error(f"❌ Failed to archive event {event_id}: {str(e)}")

    return {"skipped": False, "archived": archived, "failed": len(failed), "failed_event_ids": failed}


async def process_automations(db: Session) -> dict:
    """Schedule event-time flows for late confirmations, run what is due, prune old executions"""
    scheduled = automation_engine.schedule_upcoming_event_triggers(db)
    summary = await automation_engine.process_automation_flows(db)
    removed = automation_engine.cleanup_old_executions(db)
    return {"scheduled": scheduled, **summary, "cleaned_up": removed}
