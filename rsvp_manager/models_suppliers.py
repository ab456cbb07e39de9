"""
Supplier & Budget Models
"""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

SUPPLIER_CATEGORIES = (
    "VENUE",
    "CATERING",
    "PHOTOGRAPHY",
    "VIDEOGRAPHY",
    "DJ_MUSIC",
    "FLOWERS",
    "DECORATIONS",
    "CAKE",
    "DRESS",
    "SUIT",
    "MAKEUP_HAIR",
    "INVITATIONS",
    "TRANSPORTATION",
    "OFFICIANT",
    "OTHER",
)

SUPPLIER_STATUSES = (
    "INQUIRY",
    "QUOTE_RECEIVED",
    "NEGOTIATING",
    "BOOKED",
    "DEPOSIT_PAID",
    "CONFIRMED",
    "COMPLETED",
    "CANCELLED",
)

PAYMENT_METHODS = ("CASH", "CREDIT_CARD", "BANK_TRANSFER", "CHECK", "OTHER")


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    category = Column(String(30), default="OTHER", nullable=False)
    status = Column(String(30), default="INQUIRY", nullable=False)

    contact_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)

    estimated_price = Column(Float, nullable=True)
    agreed_price = Column(Float, nullable=True)
    currency = Column(String(3), default="ILS", nullable=False)
    deposit_amount = Column(Float, nullable=True)
    deposit_paid = Column(Boolean, default=False, nullable=False)
    due_date = Column(DateTime, nullable=True)  # Final payment due

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("WeddingEvent", back_populates="suppliers")
    payments = relationship(
        "SupplierPayment",
        back_populates="supplier",
        cascade="all, delete-orphan",
        order_by="SupplierPayment.paid_at",
    )

    @property
    def total_paid(self) -> float:
        return sum(p.amount or 0 for p in self.payments)


class SupplierPayment(Base):
    __tablename__ = "supplier_payments"

    id = Column(Integer, primary_key=True, index=True)
    supplier_id = Column(
        Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = Column(Float, nullable=False)
    method = Column(String(30), default="OTHER", nullable=False)
    paid_at = Column(DateTime, server_default=func.now(), nullable=False)
    description = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    supplier = relationship("Supplier", back_populates="payments")
