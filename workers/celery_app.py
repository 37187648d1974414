from celery import Celery, signals
from kombu import Queue

from core.logging import configure_logging
from core.settings import SETTINGS

MANAGER_REMINDERS_TASK = "workers.tasks.send_manager_reminders"
FILL_TIMESHEET_REMINDERS_TASK = "workers.tasks.send_fill_timesheet_reminders"

app = Celery(
    "timesheet",
    broker=SETTINGS.REDIS.CELERY_BROKER_URL,
    backend=SETTINGS.REDIS.CELERY_RESULT_BACKEND,
    include=["workers.tasks"],
)

app.conf.update(
    task_default_queue="default",
    task_queues=(
        Queue("default"),
        Queue("notifications"),
    ),
    task_routes={
        MANAGER_REMINDERS_TASK: {"queue": "notifications"},
        FILL_TIMESHEET_REMINDERS_TASK: {"queue": "notifications"},
    },
    # Reliability defaults
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Global time limits (can be overridden per task)
    task_soft_time_limit=600,  # seconds
    task_time_limit=660,  # seconds
    worker_hijack_root_logger=False,
)


@signals.setup_logging.connect
def _setup_logging(**_kwargs):
    configure_logging()
