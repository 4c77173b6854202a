"""
Services package for JournalMate.

Contains the planner's collaborators:
- session_store.py: Planning session lifecycle and locking
- planner_storage.py: SQLAlchemy persistence for sessions and activities
- llm.py: AI providers with fallback and circuit breakers
- content_extraction.py: URL and document text extraction
- redis_service.py: Redis locks
"""

from journalmate.services.content_extraction import ExtractedContent, HttpContentExtractor
from journalmate.services.llm import FallbackLLMClient, build_llm_client
from journalmate.services.planner_storage import PlannerStorage, SQLPlannerStorage
from journalmate.services.redis_service import RedisService
from journalmate.services.session_store import SessionStore

__all__ = [
    "ExtractedContent",
    "FallbackLLMClient",
    "HttpContentExtractor",
    "PlannerStorage",
    "RedisService",
    "SQLPlannerStorage",
    "SessionStore",
    "build_llm_client",
]
