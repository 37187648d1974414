import asyncio
import hashlib
import json
from contextlib import contextmanager
from typing import Dict, List

import redis
import structlog
from billiard.exceptions import SoftTimeLimitExceeded

from core.settings import SETTINGS
from .celery_app import FILL_TIMESHEET_REMINDERS_TASK, MANAGER_REMINDERS_TASK, app
from .initialization import WorkerInitializer

log = structlog.get_logger("workers.tasks")


class DuplicateTaskError(Exception):
    """Raised when the same task payload already ran within the guard's TTL."""


# Simple Redis-based idempotency guard using SET NX with TTL
class IdempotencyGuard:
    def __init__(self, redis_url: str, ttl_seconds: int = 3600):
        self.client = redis.from_url(redis_url, decode_responses=True)
        self.ttl = ttl_seconds

    def _key(self, task_name: str, args: tuple, kwargs: dict) -> str:
        payload = json.dumps(
            {"args": args, "kwargs": kwargs}, sort_keys=True, default=str
        )
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return f"idem:{task_name}:{digest}"

    @contextmanager
    def acquire(self, task_name: str, args: tuple, kwargs: dict):
        key = self._key(task_name, args, kwargs)
        acquired = self.client.set(name=key, value="1", nx=True, ex=self.ttl)
        if not acquired:
            raise DuplicateTaskError(key)
        try:
            yield
        except Exception:
            # A failed run must not block its own retry
            self.client.delete(key)
            raise


idem_guard = IdempotencyGuard(
    SETTINGS.REDIS.REDIS_URL,
    ttl_seconds=SETTINGS.REMINDERS.REMINDER_IDEMPOTENCY_TTL_SECONDS,
)


def _run_step(self, idem_args: tuple, label: str, coro_func) -> dict:
    """Run an async step once per payload, with logging."""
    try:
        with idem_guard.acquire(self.name, idem_args, {}):
            log.info(f"{label}.started", args=idem_args)
            result = asyncio.run(coro_func())
            log.info(f"{label}.finished", result=result)
            return result
    except SoftTimeLimitExceeded:
        log.warning(f"{label}.soft_time_limit_exceeded", args=idem_args)
        raise
    except DuplicateTaskError as e:
        log.info(f"{label}.idempotent_skip", key=str(e))
        return {"status": "skipped"}


async def run_manager_reminders(pending_by_manager: Dict[str, int]) -> dict:
    async with WorkerInitializer.worker_context() as container:
        service = container.services.notification_service()
        db_session = container.services.db_session()
        try:
            summary = await service.send_manager_reminders(pending_by_manager, db_session)
        finally:
            await db_session.close()
    return {"status": "done", **summary.model_dump()}


async def run_fill_timesheet_reminders(user_ids: List[str]) -> dict:
    async with WorkerInitializer.worker_context() as container:
        service = container.services.notification_service()
        db_session = container.services.db_session()
        try:
            summary = await service.send_fill_timesheet_reminders(user_ids, db_session)
        finally:
            await db_session.close()
    return {"status": "done", **summary.model_dump()}


@app.task(
    name=MANAGER_REMINDERS_TASK,
    bind=True,
    autoretry_for=(ConnectionError, OSError),
    retry_backoff=2,
    retry_jitter=True,
    retry_backoff_max=120,
    retry_kwargs={"max_retries": 3},
    queue="notifications",
)
def send_manager_reminders(self, pending_by_manager: Dict[str, int]):
    """Remind managers with a stored conversation about pending timesheet requests."""
    return _run_step(
        self,
        (pending_by_manager,),
        "send_manager_reminders",
        lambda: run_manager_reminders(pending_by_manager),
    )


@app.task(
    name=FILL_TIMESHEET_REMINDERS_TASK,
    bind=True,
    autoretry_for=(ConnectionError, OSError),
    retry_backoff=2,
    retry_jitter=True,
    retry_backoff_max=120,
    retry_kwargs={"max_retries": 3},
    queue="notifications",
)
def send_fill_timesheet_reminders(self, user_ids: List[str]):
    """Remind project members to fill their timesheet, once per user."""
    return _run_step(
        self,
        (sorted(set(user_ids)),),
        "send_fill_timesheet_reminders",
        lambda: run_fill_timesheet_reminders(user_ids),
    )
