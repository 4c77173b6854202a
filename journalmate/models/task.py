"""
Task Model for JournalMate.

Tasks are the ordered, actionable steps of an Activity.

Priority:
- high: first steps of the plan
- medium: the rest
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from journalmate.models.base import Base, new_id, utcnow


class Task(Base):
    """
    Task belonging to an Activity.

    Attributes:
        id: Primary key (uuid string)
        activity_id: Foreign key to activities.id
        user_id: Owner (same as the activity)
        title: Task title
        position: Order within the activity, starting at 0
        category: Budget category the task belongs to, if any
        priority: high | medium | low
        cost: Allocated cost in cents, only when a budget was stated
        cost_notes: How the cost was derived
        completed: Whether the user finished the task
        created_at: Creation timestamp
    """

    __tablename__ = "tasks"

    activity = relationship("Activity", back_populates="tasks", lazy="selectin")

    id = Column(String(36), primary_key=True, default=new_id)
    activity_id = Column(
        String(36),
        ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(64), nullable=False, index=True)

    title = Column(Text, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    category = Column(String(64), nullable=True)
    priority = Column(String(10), nullable=False, default="medium")  # high | medium | low

    cost = Column(Integer, nullable=True)  # cents
    cost_notes = Column(Text, nullable=True)

    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_task_activity_position", "activity_id", "position"),
    )

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, activity_id={self.activity_id}, position={self.position})>"


__all__ = ["Task"]
