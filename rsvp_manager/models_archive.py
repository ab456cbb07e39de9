"""
Event Archive Model
Index row for an event snapshot stored in R2
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class EventArchive(Base):
    __tablename__ = "event_archives"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    original_event_id = Column(Integer, nullable=False, index=True)  # Event row no longer exists
    event_title = Column(String(255), nullable=False)
    event_date = Column(DateTime, nullable=True)
    r2_key = Column(String(500), nullable=False, unique=True)
    guest_count = Column(Integer, default=0, nullable=False)
    archive_size = Column(Integer, default=0, nullable=False)  # Bytes
    archived_at = Column(DateTime, server_default=func.now())

    user = relationship("User")
