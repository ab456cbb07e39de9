from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from .models import PLAN_TIERS
from .shared.validators import validate_choice, validate_email


class UserRegister(BaseModel):
    email: str
    password: str
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v):
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long")
        return v


class UserLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    name: Optional[str]
    roles: List[str]
    status: str
    plan: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class PlanUpdate(BaseModel):
    plan: str

    @field_validator("plan")
    @classmethod
    def check_plan(cls, v):
        return validate_choice(v.upper(), PLAN_TIERS, "plan")


class MessageResponse(BaseModel):
    message: str
