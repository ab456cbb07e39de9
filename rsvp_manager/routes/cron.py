"""External cron trigger (Authorization: Bearer <CRON_SECRET>)"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import cron_jobs
from ..database import get_db
from ..webhook_security import verify_cron_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


async def _run(db: Session, job_name: str, job) -> dict:
    try:
        details = await cron_jobs.run_logged(db, job_name, job)
    except Exception:
        raise HTTPException(status_code=500, detail=f"Cron job {job_name} failed")
    return {"success": True, "job": job_name, "details": details}


@router.post("/process-bulk-jobs")
async def process_bulk_jobs(db: Session = Depends(get_db)):
    return await _run(db, "process-bulk-jobs", cron_jobs.process_bulk_jobs)


@router.post("/auto-close-events")
async def auto_close_events(db: Session = Depends(get_db)):
    return await _run(db, "auto-close-events", cron_jobs.auto_close_events)


@router.post("/archive-closed-events")
async def archive_closed_events(db: Session = Depends(get_db)):
    return await _run(db, "archive-closed-events", cron_jobs.archive_closed_events)


@router.post("/process-automations")
async def process_automations(db: Session = Depends(get_db)):
    return await _run(db, "process-automations", cron_jobs.process_automations)
