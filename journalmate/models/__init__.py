"""
Database models for JournalMate.

All models use SQLAlchemy ORM with a shared declarative Base.
"""

from journalmate.models.activity import Activity
from journalmate.models.base import Base
from journalmate.models.planner_session import PlannerSessionRecord
from journalmate.models.task import Task

__all__ = [
    "Activity",
    "Base",
    "PlannerSessionRecord",
    "Task",
]
