"""Supplier and budget schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models_suppliers import PAYMENT_METHODS, SUPPLIER_CATEGORIES, SUPPLIER_STATUSES
from ...shared.validators import validate_choice, validate_email


def _non_negative(v, field_name: str):
    if v is not None and v < 0:
        raise ValueError(f"{field_name} cannot be negative")
    return v


class SupplierBase(BaseModel):
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    estimated_price: Optional[float] = None
    agreed_price: Optional[float] = None
    currency: Optional[str] = None
    deposit_amount: Optional[float] = None
    deposit_paid: Optional[bool] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v) or None

    @field_validator("estimated_price", "agreed_price", "deposit_amount")
    @classmethod
    def validate_amounts(cls, v, info):
        return _non_negative(v, info.field_name)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        if v is not None and len(v) != 3:
            raise ValueError("Currency must be a 3-letter code")
        return v.upper() if v else v


class SupplierCreate(SupplierBase):
    name: str
    category: str = "OTHER"
    status: str = "INQUIRY"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Supplier name is required")
        return v

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        return validate_choice(v, SUPPLIER_CATEGORIES, "category")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, SUPPLIER_STATUSES, "status")


class SupplierUpdate(SupplierBase):
    name: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        return validate_choice(v, SUPPLIER_CATEGORIES, "category")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, SUPPLIER_STATUSES, "status")


class PaymentCreate(BaseModel):
    amount: float
    method: str = "OTHER"
    paid_at: Optional[datetime] = None
    description: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError("Payment amount must be positive")
        return v

    @field_validator("method")
    @classmethod
    def validate_method(cls, v):
        return validate_choice(v, PAYMENT_METHODS, "payment method")


class PaymentUpdate(BaseModel):
    amount: Optional[float] = None
    method: Optional[str] = None
    paid_at: Optional[datetime] = None
    description: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Payment amount must be positive")
        return v

    @field_validator("method")
    @classmethod
    def validate_method(cls, v):
        return validate_choice(v, PAYMENT_METHODS, "payment method")


class PaymentResponse(BaseModel):
    id: int
    supplier_id: int
    amount: float
    method: str
    paid_at: Optional[datetime]
    description: Optional[str]

    class Config:
        from_attributes = True


class SupplierResponse(BaseModel):
    id: int
    event_id: int
    name: str
    category: str
    status: str
    contact_name: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    website: Optional[str]
    estimated_price: Optional[float]
    agreed_price: Optional[float]
    currency: str
    deposit_amount: Optional[float]
    deposit_paid: bool
    due_date: Optional[datetime]
    notes: Optional[str]
    total_paid: float = 0
    payments: list[PaymentResponse] = []

    class Config:
        from_attributes = True


class BudgetUpdate(BaseModel):
    total_budget: Optional[float] = None

    @field_validator("total_budget")
    @classmethod
    def validate_budget(cls, v):
        return _non_negative(v, "Budget")
