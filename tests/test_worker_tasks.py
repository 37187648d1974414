import asyncio
import subprocess
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from dependency_injector import providers

from workers.celery_app import FILL_TIMESHEET_REMINDERS_TASK, MANAGER_REMINDERS_TASK
from workers.initialization import WorkerInitializer
from workers.tasks import (
    DuplicateTaskError,
    IdempotencyGuard,
    send_fill_timesheet_reminders,
    send_manager_reminders,
)

PROJECT_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def guard():
    guard = IdempotencyGuard("redis://localhost:6379/0", ttl_seconds=60)
    guard.client = MagicMock()
    guard.client.set.return_value = True
    return guard


def test_guard_key_ignores_dict_ordering(guard):
    first = guard._key("task", ({"m1": 1, "m2": 2},), {})
    second = guard._key("task", ({"m2": 2, "m1": 1},), {})
    assert first == second


def test_guard_sets_key_with_ttl(guard):
    with guard.acquire("task", ("a",), {}):
        pass

    kwargs = guard.client.set.call_args.kwargs
    assert kwargs["nx"] is True
    assert kwargs["ex"] == 60
    guard.client.delete.assert_not_called()


def test_guard_rejects_duplicate_payload(guard):
    guard.client.set.return_value = None

    with pytest.raises(DuplicateTaskError):
        with guard.acquire("task", ("a",), {}):
            pass


def test_guard_releases_key_when_run_fails(guard):
    with pytest.raises(RuntimeError):
        with guard.acquire("task", ("a",), {}):
            raise RuntimeError("database down")

    guard.client.delete.assert_called_once()


def test_manager_reminder_task_runs_once(guard):
    runner = AsyncMock(return_value={"status": "done", "cards_dispatched": 1})

    with patch("workers.tasks.idem_guard", guard), patch(
        "workers.tasks.run_manager_reminders", runner
    ):
        result = send_manager_reminders.apply(args=({"m1": 2},)).get()

    assert result == {"status": "done", "cards_dispatched": 1}
    runner.assert_awaited_once_with({"m1": 2})


def test_duplicate_reminder_run_is_skipped(guard):
    guard.client.set.return_value = None
    runner = AsyncMock()

    with patch("workers.tasks.idem_guard", guard), patch(
        "workers.tasks.run_fill_timesheet_reminders", runner
    ):
        result = send_fill_timesheet_reminders.apply(args=(["u1", "u2"],)).get()

    assert result == {"status": "skipped"}
    runner.assert_not_called()


@pytest.mark.parametrize(
    "first_import",
    ["workers.tasks", "api.features.notifications.controller", "api.main"],
)
def test_task_module_imports_from_a_fresh_interpreter(first_import):
    code = (
        f"import {first_import}\n"
        "import workers.tasks\n"
        "from workers.celery_app import app\n"
        "print('\\n'.join(sorted(app.tasks)))\n"
    )
    result = subprocess.run(
        [sys.executable, "-c", code],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=60,
    )

    assert result.returncode == 0, result.stderr
    registered = result.stdout.splitlines()
    assert MANAGER_REMINDERS_TASK in registered
    assert FILL_TIMESHEET_REMINDERS_TASK in registered


def test_each_worker_loop_gets_a_fresh_adapter_and_dispatcher():
    container = WorkerInitializer.get_container()
    fake_db = MagicMock()
    fake_db.init = AsyncMock()
    fake_db.shutdown = AsyncMock()

    async def capture():
        async with WorkerInitializer.worker_context() as ctx:
            return (
                ctx.infrastructure.bot_adapter(),
                ctx.services.notification_dispatcher(),
                asyncio.get_running_loop(),
            )

    with container.infrastructure.database.override(providers.Object(fake_db)):
        first_adapter, first_dispatcher, first_loop = asyncio.run(capture())
        second_adapter, second_dispatcher, second_loop = asyncio.run(capture())

    assert first_loop is not second_loop
    assert first_adapter is not second_adapter
    assert first_dispatcher is not second_dispatcher
    assert second_dispatcher.adapter is second_adapter
    assert fake_db.init.await_count == 2
    assert fake_db.shutdown.await_count == 2
