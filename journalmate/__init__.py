"""
JournalMate planner: conversational planning sessions that end in an
Activity with Tasks.
"""

__version__ = "0.1.0"
