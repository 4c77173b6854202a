"""
JournalMate Planner -- Application Entry Point.

Starts the FastAPI server via uvicorn.

Usage:
    python main.py              # Development (reload when JOURNALMATE_DEV_MODE=1)
    uvicorn main:app --host 0.0.0.0 --port 8000  # Production
"""

from __future__ import annotations

import os

import uvicorn

from journalmate.api import create_app
from journalmate.config.planner import PlannerSettings
from journalmate.lib.logging import setup_logging

settings = PlannerSettings.from_env()
setup_logging(settings)
app = create_app(settings)


if __name__ == "__main__":
    port = int(os.getenv("JOURNALMATE_PORT", "8000"))
    host = os.getenv("JOURNALMATE_HOST", "0.0.0.0")
    reload = os.getenv("JOURNALMATE_DEV_MODE", "0") == "1"

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )
