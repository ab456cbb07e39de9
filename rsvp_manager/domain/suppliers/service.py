"""Supplier service - suppliers, payments and the event budget"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...models_suppliers import Supplier, SupplierPayment
from ...permissions import ROLE_EDITOR, ROLE_VIEWER, can_access_event, get_event_with_access
from .schemas import BudgetUpdate, PaymentCreate, PaymentUpdate, SupplierCreate, SupplierUpdate

logger = logging.getLogger(__name__)

SUPPLIER_FIELDS = (
    "name",
    "category",
    "status",
    "contact_name",
    "phone",
    "email",
    "website",
    "estimated_price",
    "agreed_price",
    "currency",
    "deposit_amount",
    "deposit_paid",
    "due_date",
    "notes",
)

# Columns that cannot be cleared with an explicit null
REQUIRED_FIELDS = ("name", "category", "status", "currency", "deposit_paid")


class SupplierService:
    def __init__(self, db: Session):
        self.db = db

    def get_supplier(self, supplier_id: int, user: User, required_role: str = ROLE_VIEWER) -> Supplier:
        supplier = self.db.query(Supplier).filter(Supplier.id == supplier_id).first()
        if not supplier or not can_access_event(self.db, user, supplier.event_id, required_role):
            raise HTTPException(status_code=404, detail="Supplier not found")
        return supplier

    def _record_completion_payment(self, supplier: Supplier) -> None:
        """Settle the remaining balance when a supplier is marked COMPLETED"""
        agreed = supplier.agreed_price or 0
        remaining = agreed - supplier.total_paid
        if agreed <= 0 or remaining <= 0:
            return
        description = (
            "Full payment (auto-created on completion)"
            if remaining == agreed
            else "Final payment (auto-created on completion)"
        )
        supplier.payments.append(
            SupplierPayment(amount=remaining, method="OTHER", paid_at=datetime.utcnow(), description=description)
        )
        logger.info(f"💰 Auto-recorded payment of {remaining} for supplier {supplier.id}")

    def list_suppliers(self, event_id: int, user: User) -> list[Supplier]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return (
            self.db.query(Supplier)
            .filter(Supplier.event_id == event.id)
            .order_by(Supplier.category.asc(), Supplier.name.asc())
            .all()
        )

    def create_supplier(self, event_id: int, data: SupplierCreate, user: User) -> Supplier:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        values = {f: getattr(data, f) for f in SUPPLIER_FIELDS if getattr(data, f) is not None}
        supplier = Supplier(event_id=event.id, **values)
        self.db.add(supplier)

        if supplier.status == "COMPLETED":
            self._record_completion_payment(supplier)

        self.db.commit()
        self.db.refresh(supplier)
        logger.info(f"✅ Supplier {supplier.id} ({supplier.category}) added to event {event.id}")
        return supplier

    def update_supplier(self, supplier_id: int, data: SupplierUpdate, user: User) -> Supplier:
        supplier = self.get_supplier(supplier_id, user, ROLE_EDITOR)
        previous_status = supplier.status

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field in REQUIRED_FIELDS:
                continue
            setattr(supplier, field, value)

        if supplier.status == "COMPLETED" and previous_status != "COMPLETED":
            self._record_completion_payment(supplier)

        self.db.commit()
        self.db.refresh(supplier)
        return supplier

    def delete_supplier(self, supplier_id: int, user: User) -> None:
        supplier = self.get_supplier(supplier_id, user, ROLE_EDITOR)
        self.db.delete(supplier)
        self.db.commit()

    # Payments

    def _get_payment(self, payment_id: int, user: User) -> SupplierPayment:
        payment = self.db.query(SupplierPayment).filter(SupplierPayment.id == payment_id).first()
        if not payment or not can_access_event(self.db, user, payment.supplier.event_id, ROLE_EDITOR):
            raise HTTPException(status_code=404, detail="Payment not found")
        return payment

    def list_payments(self, supplier_id: int, user: User) -> list[SupplierPayment]:
        return list(self.get_supplier(supplier_id, user).payments)

    def add_payment(self, supplier_id: int, data: PaymentCreate, user: User) -> SupplierPayment:
        supplier = self.get_supplier(supplier_id, user, ROLE_EDITOR)
        payment = SupplierPayment(
            amount=data.amount,
            method=data.method,
            paid_at=data.paid_at or datetime.utcnow(),
            description=data.description,
        )
        supplier.payments.append(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def update_payment(self, payment_id: int, data: PaymentUpdate, user: User) -> SupplierPayment:
        payment = self._get_payment(payment_id, user)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "description":
                continue
            setattr(payment, field, value)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def delete_payment(self, payment_id: int, user: User) -> None:
        payment = self._get_payment(payment_id, user)
        self.db.delete(payment)
        self.db.commit()

    # Budget

    def update_event_budget(self, event_id: int, data: BudgetUpdate, user: User):
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        event.total_budget = data.total_budget
        self.db.commit()
        self.db.refresh(event)
        logger.info(f"💰 Budget of event {event.id} set to {event.total_budget}")
        return event

    def get_supplier_stats(self, event_id: int, user: User) -> dict:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        suppliers = self.list_suppliers(event.id, user)
        now = datetime.utcnow()

        guests = event.guests
        accepted = [g for g in guests if g.rsvp and g.rsvp.status == "ACCEPTED"]
        confirmed_heads = sum(g.rsvp.guest_count or 1 for g in accepted)
        expected_heads = sum(g.expected_guests or 1 for g in guests)

        total_agreed = 0.0
        total_paid = 0.0
        overdue = []
        by_category: dict[str, dict] = {}
        by_status: dict[str, int] = {}

        for supplier in suppliers:
            agreed = supplier.agreed_price or 0
            paid = supplier.total_paid
            total_agreed += agreed
            total_paid += paid

            if supplier.due_date and supplier.due_date < now and paid < agreed:
                overdue.append(
                    {"id": supplier.id, "name": supplier.name, "due_date": supplier.due_date, "balance": agreed - paid}
                )

            category = by_category.setdefault(
                supplier.category, {"count": 0, "total_agreed": 0.0, "total_paid": 0.0}
            )
            category["count"] += 1
            category["total_agreed"] += agreed
            category["total_paid"] += paid
            by_status[supplier.status] = by_status.get(supplier.status, 0) + 1

        total_budget = event.total_budget or 0

        return {
            "total_budget": total_budget,
            "total_agreed": total_agreed,
            "total_paid": total_paid,
            "remaining": total_agreed - total_paid,
            "budget_remaining": total_budget - total_agreed,
            "supplier_count": len(suppliers),
            "overdue_count": len(overdue),
            "overdue": overdue,
            "total_invited": len(guests),
            "expected_heads": expected_heads,
            "confirmed_heads": confirmed_heads,
            "cost_per_expected_guest": total_agreed / expected_heads if expected_heads else 0,
            "cost_per_confirmed_guest": total_agreed / confirmed_heads if confirmed_heads else 0,
            "by_category": [{"category": k, **v} for k, v in by_category.items()],
            "by_status": [{"status": k, "count": v} for k, v in by_status.items()],
        }
