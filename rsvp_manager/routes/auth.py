import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import REQUIRE_USER_APPROVAL
from ..database import get_db
from ..models import ROLE_WEDDING_OWNER, User
from ..plan_limits import get_usage_stats
from ..rate_limiter import preset_rate_limiter
from ..schemas import TokenResponse, UserLogin, UserRegister, UserResponse
from ..security_utils import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

auth_rate_limit = preset_rate_limiter("auth")


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    data: UserRegister,
    db: Session = Depends(get_db),
    _: None = Depends(auth_rate_limit),
):
    """Create a wedding-owner account"""
    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    user = User(
        email=data.email,
        name=data.name,
        hashed_password=hash_password(data.password),
        roles=[ROLE_WEDDING_OWNER],
        status="PENDING_APPROVAL" if REQUIRE_USER_APPROVAL else "ACTIVE",
        plan="FREE",
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"✅ Registered user {user.id} (status={user.status})")
    return user


@router.post("/login", response_model=TokenResponse)
async def login(
    data: UserLogin,
    db: Session = Depends(get_db),
    _: None = Depends(auth_rate_limit),
):
    user = db.query(User).filter(User.email == data.email.strip().lower()).first()
    if not user or not verify_password(data.password, user.hashed_password):
        logger.warning(f"🚫 Failed login for {data.email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if user.status == "SUSPENDED":
        raise HTTPException(status_code=403, detail="Account suspended")
    if user.status == "PENDING_APPROVAL":
        raise HTTPException(status_code=403, detail="Account pending approval")

    user.last_login_at = datetime.utcnow()
    db.commit()

    return TokenResponse(access_token=create_access_token(user.id), user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/me/usage")
async def my_usage(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Plan usage for the dashboard"""
    return get_usage_stats(current_user, db)
