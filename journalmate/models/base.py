"""
SQLAlchemy Base for JournalMate.

This module provides the declarative base for all SQLAlchemy models.

Usage:
    from journalmate.models.base import Base

    class MyModel(Base):
        __tablename__ = "my_table"
        ...
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base shared by every JournalMate table."""


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


__all__ = ["Base", "new_id", "utcnow"]
