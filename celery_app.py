from datetime import timedelta

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_init

from config import Config, configure_logging

app = Celery(
    "econews",
    broker=Config.REDIS_URL,
    backend=Config.REDIS_URL,
)

# two queues: the collect/cluster/card pipeline and the hourly lifecycle sweep
app.conf.task_queues = {
    "pipeline": {},
    "lifecycle": {},
}
app.conf.worker_hijack_root_logger = False
import tasks  # noqa: E402,F401

# scheduler
app.conf.beat_schedule = {
    "run-pipeline": {
        "task": "tasks.run_pipeline",
        "schedule": timedelta(minutes=Config.PIPELINE_INTERVAL_MINUTES),
        "options": {"queue": "pipeline"},
    },
    "run-lifecycle-update-hourly": {
        "task": "tasks.run_lifecycle_update",
        "schedule": crontab(minute=0),
        "options": {"queue": "lifecycle"},
    },
}
app.conf.timezone = "UTC"


@worker_init.connect
def _on_worker_init(**kwargs):
    from src.database.db import init_db

    configure_logging()
    init_db()
