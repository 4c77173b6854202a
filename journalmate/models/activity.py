"""
Activity Model for JournalMate.

An Activity is the persisted form of a confirmed plan. It is written exactly
once per planning session: ``source_session_id`` is unique and serves as the
idempotency key for materialization.

Money columns are stored in cents.
"""

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from journalmate.models.base import Base, new_id, utcnow


class Activity(Base):
    """
    Activity created from a confirmed planning session.

    Attributes:
        id: Primary key (uuid string)
        user_id: Owner (the demo user for unauthenticated sessions)
        source_session_id: Planning session that produced it (unique)
        title: Plan title
        category: Planning domain (travel, fitness, ...)
        status: planning | in_progress | completed
        budget: Stated budget in cents, when a positive amount was stated
        budget_breakdown: Line items and buffer (JSON), only with a budget
        budget_buffer: Buffer in cents
        created_at: Creation timestamp
    """

    __tablename__ = "activities"

    tasks = relationship(
        "Task",
        back_populates="activity",
        order_by="Task.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    source_session_id = Column(String(64), nullable=False, unique=True)

    title = Column(Text, nullable=False)
    category = Column(String(32), nullable=False, default="generic")
    status = Column(String(20), nullable=False, default="planning")  # planning | in_progress | completed

    budget = Column(Integer, nullable=True)  # cents
    budget_breakdown = Column(JSON, nullable=True)
    budget_buffer = Column(Integer, nullable=True)  # cents

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_activity_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, user_id={self.user_id}, session={self.source_session_id})>"


__all__ = ["Activity"]
