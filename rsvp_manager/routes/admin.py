"""Platform-owner administration: user approval, plans and cron history"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import require_platform_owner
from ..database import get_db
from ..models import CronJobLog, User
from ..schemas import PlanUpdate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    status: Optional[str] = Query(None),
    _admin: User = Depends(require_platform_owner),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if status:
        query = query.filter(User.status == status.upper())
    return query.order_by(User.id.desc()).all()


@router.post("/users/{user_id}/approve", response_model=UserResponse)
async def approve_user(
    user_id: int, admin: User = Depends(require_platform_owner), db: Session = Depends(get_db)
):
    user = _get_user(db, user_id)
    user.status = "ACTIVE"
    db.commit()
    db.refresh(user)
    logger.info(f"✅ User {user_id} approved by {admin.id}")
    return user


@router.post("/users/{user_id}/suspend", response_model=UserResponse)
async def suspend_user(
    user_id: int, admin: User = Depends(require_platform_owner), db: Session = Depends(get_db)
):
    user = _get_user(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot suspend your own account")
    user.status = "SUSPENDED"
    db.commit()
    db.refresh(user)
    logger.warning(f"⚠️ User {user_id} suspended by {admin.id}")
    return user


@router.put("/users/{user_id}/plan", response_model=UserResponse)
async def set_user_plan(
    user_id: int,
    data: PlanUpdate,
    admin: User = Depends(require_platform_owner),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    user.plan = data.plan
    db.commit()
    db.refresh(user)
    logger.info(f"💳 User {user_id} moved to plan {data.plan} by {admin.id}")
    return user


@router.get("/cron-logs")
async def list_cron_logs(
    job_name: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    _admin: User = Depends(require_platform_owner),
    db: Session = Depends(get_db),
):
    query = db.query(CronJobLog)
    if job_name:
        query = query.filter(CronJobLog.job_name == job_name)
    logs = query.order_by(CronJobLog.id.desc()).limit(limit).all()
    return [
        {
            "id": log.id,
            "job_name": log.job_name,
            "status": log.status,
            "details": log.details,
            "duration_ms": log.duration_ms,
            "created_at": log.created_at,
        }
        for log in logs
    ]
