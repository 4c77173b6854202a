"""
Planner Session Model for JournalMate.

Persists PlanningSession state between requests. The transcript, field
bookkeeping and pending plan are JSON columns; state, mode and user are
plain indexed columns so the live session of a (user, mode) pair can be
found with one query.
"""

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from journalmate.models.base import Base, utcnow


class PlannerSessionRecord(Base):
    """Row form of a PlanningSession (see journalmate.modules.planning_state)."""

    __tablename__ = "planner_sessions"

    session_id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False)
    mode = Column(String(10), nullable=False)
    state = Column(String(24), nullable=False, default="collecting")
    domain = Column(String(32), nullable=True)

    transcript = Column(JSON, nullable=False, default=list)
    question_count = Column(Integer, nullable=False, default=0)
    asked_fields = Column(JSON, nullable=False, default=list)
    field_attempts = Column(JSON, nullable=False, default=dict)
    stated_fields = Column(JSON, nullable=False, default=dict)
    pending_plan = Column(JSON, nullable=True)
    activity_id = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_activity_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_planner_session_user_mode_state", "user_id", "mode", "state"),
    )

    def __repr__(self) -> str:
        return f"<PlannerSessionRecord(id={self.session_id}, user_id={self.user_id}, state={self.state})>"


__all__ = ["PlannerSessionRecord"]
