"""
ARQ Background Worker
Bulk message chunks plus the scheduled maintenance jobs
"""

import logging
import os
from urllib.parse import urlparse

from arq.connections import RedisSettings
from arq.cron import cron

# Register every model module so relationships resolve
from . import models  # noqa: F401
from . import models_archive  # noqa: F401
from . import models_automation  # noqa: F401
from . import models_messaging  # noqa: F401
from . import models_seating  # noqa: F401
from . import models_suppliers  # noqa: F401
from . import models_tasks  # noqa: F401
from . import models_transportation  # noqa: F401
from . import cron_jobs
from .config import REDIS_URL
from .database import SessionLocal
from .domain.messaging.job_processor import process_job_chunk

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    """Redis settings for arq, parsed from REDIS_URL (rediss:// means TLS)"""
    if REDIS_URL:
        parsed = urlparse(REDIS_URL)
        return RedisSettings(
            host=parsed.hostname or "localhost",
            port=parsed.port or 6379,
            password=parsed.password,
            ssl=parsed.scheme == "rediss",
            conn_timeout=15,
            conn_retry_delay=1,
        )
    return RedisSettings(
        host=os.getenv("REDIS_HOST", "localhost"),
        port=int(os.getenv("REDIS_PORT", "6379")),
        password=os.getenv("REDIS_PASSWORD"),
        conn_timeout=15,
        conn_retry_delay=1,
    )


async def process_bulk_job_chunk_task(ctx, job_id: int):
    """Send one chunk; re-enqueue while the job still has due items"""
    db = SessionLocal()
    try:
        result = await process_job_chunk(db, job_id)
        logger.info(f"📦 Job {job_id} chunk: {result}")
        if not result["completed"] and result["processed"] > 0 and ctx.get("redis"):
            await ctx["redis"].enqueue_job("process_bulk_job_chunk_task", job_id)
        return result
    except Exception as e:
        logger.error(f"❌ Bulk job {job_id} chunk failed: {str(e)}")
        raise
    finally:
        db.close()


async def _run_cron(job_name: str, job) -> dict:
    db = SessionLocal()
    try:
        return await cron_jobs.run_logged(db, job_name, job)
    finally:
        db.close()


async def process_bulk_jobs_task(ctx):
    return await _run_cron("process-bulk-jobs", cron_jobs.process_bulk_jobs)


async def auto_close_events_task(ctx):
    return await _run_cron("auto-close-events", cron_jobs.auto_close_events)


async def archive_closed_events_task(ctx):
    return await _run_cron("archive-closed-events", cron_jobs.archive_closed_events)


async def process_automations_task(ctx):
    return await _run_cron("process-automations", cron_jobs.process_automations)


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [process_bulk_job_chunk_task]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "10"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))
    max_tries = 3

    cron_jobs = [
        cron(process_bulk_jobs_task, second=0),  # Every minute
        cron(auto_close_events_task, hour=2, minute=0),  # 2 AM UTC
        cron(archive_closed_events_task, hour=3, minute=0),  # 3 AM UTC
        cron(process_automations_task, minute={0, 15, 30, 45}),  # Every 15 minutes
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
