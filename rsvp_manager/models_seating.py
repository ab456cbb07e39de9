"""
Seating Chart Models
Tables, guest-to-table assignments and non-seating venue blocks
"""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

TABLE_SHAPES = ("circle", "square", "rectangle", "oval")
SEAT_ARRANGEMENTS = ("even", "bride-side", "sides-only", "custom")
VENUE_BLOCK_TYPES = ("DANCE_FLOOR", "STAGE", "BAR", "BUFFET", "DJ", "ENTRANCE", "OTHER")


class WeddingTable(Base):
    __tablename__ = "wedding_tables"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    capacity = Column(Integer, default=10, nullable=False)
    shape = Column(String(20), default="circle", nullable=False)
    seat_arrangement = Column(String(20), default="even", nullable=False)

    # Canvas placement
    position_x = Column(Float, default=0, nullable=False)
    position_y = Column(Float, default=0, nullable=False)
    width = Column(Float, default=120, nullable=False)
    height = Column(Float, default=120, nullable=False)
    rotation = Column(Float, default=0, nullable=False)  # Degrees
    color = Column(String(7), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("WeddingEvent", back_populates="tables")
    assignments = relationship(
        "TableAssignment", back_populates="table", cascade="all, delete-orphan"
    )


class TableAssignment(Base):
    __tablename__ = "table_assignments"

    id = Column(Integer, primary_key=True, index=True)
    table_id = Column(
        Integer, ForeignKey("wedding_tables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_id = Column(
        Integer, ForeignKey("guests.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    seat_number = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    table = relationship("WeddingTable", back_populates="assignments")
    guest = relationship("Guest", back_populates="table_assignment")


class VenueBlock(Base):
    """Non-seating area drawn on the seating canvas (dance floor, stage, bar...)"""

    __tablename__ = "venue_blocks"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    type = Column(String(30), default="OTHER", nullable=False)
    position_x = Column(Float, default=0, nullable=False)
    position_y = Column(Float, default=0, nullable=False)
    width = Column(Float, default=200, nullable=False)
    height = Column(Float, default=100, nullable=False)
    rotation = Column(Float, default=0, nullable=False)
    color = Column(String(7), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    event = relationship("WeddingEvent", back_populates="venue_blocks")
