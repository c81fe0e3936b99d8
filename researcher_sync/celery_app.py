import os
from celery import Celery
from celery.schedules import crontab
from dotenv import load_dotenv
load_dotenv()

app = Celery(
    "researcher_sync",
    broker=os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0"),
    backend=os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/0"),
    include=["researcher_sync.tasks"],
)

app.conf.update(
    timezone="Europe/Berlin",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# run the backfill queue with --concurrency=1: runs must not overlap
app.conf.task_routes = {
    "researcher_sync.tasks.backfill_topics": {"queue": "backfill"},
    "researcher_sync.tasks.discover_identities": {"queue": "backfill"},
}

app.conf.beat_schedule = {
    "discover-identities-daily": {
        "task": "researcher_sync.tasks.discover_identities",
        "schedule": crontab(minute=15, hour=3),
        "args": [],
    },
    "backfill-topics-daily": {
        "task": "researcher_sync.tasks.backfill_topics",
        "schedule": crontab(minute=45, hour=3),  # after identity discovery
        "args": [],
    },
}
