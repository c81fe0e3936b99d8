# researcher_sync/tasks.py
from __future__ import annotations

import os
from typing import Any, Dict, Optional

from .auth import SECRET_ENV
from .backfill import MODE_IDENTITY, MODE_TOPICS, run_backfill
from .celery_app import app
from .db import init_db
from .logging_setup import get_logger

logger = get_logger(__name__)


def _run(mode: str, limit: Optional[int]) -> Dict[str, Any]:
    init_db()
    report = run_backfill(mode, secret=os.environ.get(SECRET_ENV), limit=limit)
    return report.as_dict()


@app.task
def init_schema() -> str:
    init_db()
    return "OK"


@app.task(bind=True)
def backfill_topics(self, limit: Optional[int] = None) -> Dict[str, Any]:
    """Scheduled topic backfill for researchers that have an ORCID but no topics."""
    return _run(MODE_TOPICS, limit)


@app.task(bind=True)
def discover_identities(self, limit: Optional[int] = None) -> Dict[str, Any]:
    """Scheduled ORCID discovery for researchers without one."""
    return _run(MODE_IDENTITY, limit)
