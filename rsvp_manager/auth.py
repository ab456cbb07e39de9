import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import ROLE_PLATFORM_OWNER, ROLE_WEDDING_OWNER, User
from .security_utils import verify_access_token

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    payload = verify_access_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        logger.warning("❌ Token without a valid subject")
        raise HTTPException(status_code=401, detail="Invalid token") from None

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        logger.warning(f"❌ Token for unknown user_id: {user_id}")
        raise HTTPException(status_code=401, detail="User not found")

    if user.status == "SUSPENDED":
        raise HTTPException(status_code=403, detail="Account suspended")
    if user.status == "PENDING_APPROVAL" and not user.is_platform_owner:
        raise HTTPException(status_code=403, detail="Account pending approval")

    return user


def require_wedding_owner(current_user: User = Depends(get_current_user)) -> User:
    """Only accounts that plan events (or platform owners) may manage them"""
    if not (current_user.has_role(ROLE_WEDDING_OWNER) or current_user.is_platform_owner):
        raise HTTPException(status_code=403, detail="Unauthorized")
    return current_user


def require_platform_owner(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.has_role(ROLE_PLATFORM_OWNER):
        logger.warning(f"⚠️ User {current_user.id} attempted admin access")
        raise HTTPException(status_code=403, detail="Platform owner access required")
    return current_user
