"""Supplier & budget router"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    BudgetUpdate,
    PaymentCreate,
    PaymentResponse,
    PaymentUpdate,
    SupplierCreate,
    SupplierResponse,
    SupplierUpdate,
)
from .service import SupplierService

router = APIRouter(tags=["Suppliers"])


def get_supplier_service(db: Session = Depends(get_db)) -> SupplierService:
    """Dependency injection for SupplierService"""
    return SupplierService(db)


@router.get("/events/{event_id}/suppliers", response_model=list[SupplierResponse])
async def list_suppliers(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.list_suppliers(event_id, current_user)


@router.get("/events/{event_id}/suppliers/stats")
async def supplier_stats(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.get_supplier_stats(event_id, current_user)


@router.post("/events/{event_id}/suppliers", response_model=SupplierResponse, status_code=201)
async def create_supplier(
    event_id: int,
    data: SupplierCreate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.create_supplier(event_id, data, current_user)


@router.put("/events/{event_id}/budget")
async def update_budget(
    event_id: int,
    data: BudgetUpdate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    event = service.update_event_budget(event_id, data, current_user)
    return {"success": True, "total_budget": event.total_budget}


@router.get("/suppliers/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(
    supplier_id: int,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.get_supplier(supplier_id, current_user)


@router.put("/suppliers/{supplier_id}", response_model=SupplierResponse)
async def update_supplier(
    supplier_id: int,
    data: SupplierUpdate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.update_supplier(supplier_id, data, current_user)


@router.delete("/suppliers/{supplier_id}")
async def delete_supplier(
    supplier_id: int,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    service.delete_supplier(supplier_id, current_user)
    return {"success": True}


# ============================================================================
# PAYMENTS
# ============================================================================


@router.get("/suppliers/{supplier_id}/payments", response_model=list[PaymentResponse])
async def list_payments(
    supplier_id: int,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.list_payments(supplier_id, current_user)


@router.post("/suppliers/{supplier_id}/payments", response_model=PaymentResponse, status_code=201)
async def add_payment(
    supplier_id: int,
    data: PaymentCreate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.add_payment(supplier_id, data, current_user)


@router.put("/payments/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: int,
    data: PaymentUpdate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.update_payment(payment_id, data, current_user)


@router.delete("/payments/{payment_id}")
async def delete_payment(
    payment_id: int,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    service.delete_payment(payment_id, current_user)
    return {"success": True}
