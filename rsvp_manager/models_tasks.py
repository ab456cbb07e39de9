from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

TASK_STATUSES = ("BACKLOG", "TODO", "IN_PROGRESS", "DONE")


class WeddingTask(Base):
    """Planning board card"""

    __tablename__ = "wedding_tasks"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("wedding_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="BACKLOG", nullable=False)
    position = Column(Integer, default=0, nullable=False)  # Order within the status column
    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("WeddingEvent", back_populates="tasks")
    notes = relationship(
        "TaskNote", back_populates="task", cascade="all, delete-orphan", order_by="TaskNote.id"
    )


class TaskNote(Base):
    __tablename__ = "task_notes"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(
        Integer, ForeignKey("wedding_tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    task = relationship("WeddingTask", back_populates="notes")
