from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class TransportationRegistration(Base):
    """
    Shuttle sign-up for an event. Registrations made through a guest's
    personal link carry guest_id; the event-wide link leaves it empty.
    """

    __tablename__ = "transportation_registrations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_id = Column(Integer, ForeignKey("guests.id", ondelete="CASCADE"), unique=True, nullable=True)
    full_name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=False)
    location = Column(String(500), nullable=False)  # Pickup point
    notes = Column(Text, nullable=True)
    registered_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("WeddingEvent", back_populates="transportation_registrations")
    guest = relationship("Guest", back_populates="transportation_registration")
