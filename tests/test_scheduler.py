"""Tests for sync triggers."""

from __future__ import annotations

import threading
from typing import Callable
from unittest.mock import MagicMock

import pytest

from inbox_sync.config import READY_FALLBACK_TIMEOUT_SECONDS, Config
from inbox_sync.notifications import MESSAGES, Notifier
from inbox_sync.scheduler import INTERVAL, MANUAL, SyncTriggers, ThreadingScheduler
from inbox_sync.sync_engine import SyncEngine, SyncResult

from tests.conftest import TEST_TOKEN


class FakeScheduler:
    """Records scheduled callbacks; tests fire them by hand."""

    def __init__(self) -> None:
        self.once: list[tuple[float, Callable[[], None]]] = []
        self.repeating: list[tuple[float, Callable[[], None]]] = []
        self.cancelled: list[object] = []

    def schedule_once(self, delay: float, callback: Callable[[], None]) -> object:
        handle = (delay, callback)
        self.once.append(handle)
        return handle

    def schedule_repeating(self, interval: float, callback: Callable[[], None]) -> object:
        handle = (interval, callback)
        self.repeating.append(handle)
        return handle

    def cancel(self, handle: object) -> None:
        self.cancelled.append(handle)

    def active_once(self) -> list[tuple[float, Callable[[], None]]]:
        return [h for h in self.once if h not in self.cancelled]


@pytest.fixture
def trigger_config() -> Config:
    return Config(github_token=TEST_TOKEN, repository="octocat/notes", startup_sync_delay=3, sync_interval=5)


@pytest.fixture
def engine() -> MagicMock:
    engine = MagicMock(spec=SyncEngine)
    engine.is_syncing.return_value = False
    engine.sync.return_value = SyncResult(files_added=2)
    return engine


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock(spec=Notifier)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def triggers(engine, trigger_config, scheduler, notifier) -> SyncTriggers:
    return SyncTriggers(engine, trigger_config, scheduler=scheduler, notifier=notifier)


class TestPerformSync:
    def test_manual_success_is_announced(self, triggers, engine, notifier) -> None:
        result = triggers.perform_sync(MANUAL)

        assert result.files_added == 2
        engine.sync.assert_called_once()
        notifier.info.assert_called_once_with(MESSAGES.sync_success(2))

    def test_background_success_is_silent(self, triggers, notifier) -> None:
        triggers.perform_sync(INTERVAL)

        notifier.info.assert_not_called()
        notifier.error.assert_not_called()

    def test_errors_always_announced(self, triggers, engine, notifier) -> None:
        engine.sync.return_value = SyncResult(errors=["a.md: boom", "b.md: bang"])

        triggers.perform_sync(INTERVAL)

        notifier.error.assert_called_once_with(MESSAGES.sync_error("a.md: boom, b.md: bang"))

    def test_rejected_while_running(self, triggers, engine, notifier) -> None:
        engine.is_syncing.return_value = True

        assert triggers.perform_sync(INTERVAL) is None

        engine.sync.assert_not_called()
        notifier.info.assert_called_once_with(MESSAGES.sync_in_progress())

    def test_manual_cancels_pending_startup(self, triggers, scheduler) -> None:
        triggers.init_startup_sync()
        triggers.notify_ready()
        pending = scheduler.active_once()
        assert len(pending) == 1

        triggers.perform_sync(MANUAL)

        assert scheduler.active_once() == []
        assert triggers.startup_executed


class TestStartupSync:
    def test_ready_schedules_after_delay(self, triggers, scheduler, engine) -> None:
        triggers.init_startup_sync()
        fallback = scheduler.once[0]
        assert fallback[0] == READY_FALLBACK_TIMEOUT_SECONDS

        triggers.notify_ready()

        assert fallback in scheduler.cancelled
        delay, callback = scheduler.active_once()[0]
        assert delay == 3

        callback()
        engine.sync.assert_called_once()
        assert triggers.startup_executed

    def test_fallback_schedules_when_never_ready(self, triggers, scheduler) -> None:
        triggers.init_startup_sync()
        _, fallback = scheduler.once[0]

        fallback()

        assert [h[0] for h in scheduler.active_once()] == [READY_FALLBACK_TIMEOUT_SECONDS, 3]

    def test_runs_only_once(self, triggers, scheduler, engine) -> None:
        triggers.init_startup_sync()
        triggers.notify_ready()
        _, callback = scheduler.active_once()[-1]
        callback()

        triggers.notify_ready()
        triggers.schedule_startup_sync()

        assert len(scheduler.active_once()) == 1
        engine.sync.assert_called_once()

    def test_disabled(self, engine, trigger_config, scheduler, notifier) -> None:
        trigger_config.sync_on_startup = False
        triggers = SyncTriggers(engine, trigger_config, scheduler=scheduler, notifier=notifier)

        triggers.init_startup_sync()
        triggers.notify_ready()

        assert scheduler.once == []

    def test_requires_credentials(self, engine, scheduler, notifier) -> None:
        triggers = SyncTriggers(engine, Config(), scheduler=scheduler, notifier=notifier)

        triggers.init_startup_sync()
        triggers.notify_ready()

        assert scheduler.once == []


class TestAutoSync:
    def test_interval_in_seconds(self, triggers, scheduler, engine) -> None:
        triggers.start_auto_sync()

        interval, callback = scheduler.repeating[0]
        assert interval == 300
        assert triggers.auto_sync_active

        callback()
        engine.sync.assert_called_once()

    def test_restart_cancels_previous(self, triggers, scheduler) -> None:
        triggers.start_auto_sync()
        first = scheduler.repeating[0]

        triggers.handle_auto_sync_change()

        assert first in scheduler.cancelled
        assert len(scheduler.repeating) == 2

    def test_disabled(self, triggers, trigger_config, scheduler) -> None:
        trigger_config.auto_sync = False

        triggers.start_auto_sync()

        assert scheduler.repeating == []
        assert not triggers.auto_sync_active

    def test_update_config_applies_new_interval(self, triggers, scheduler, engine) -> None:
        triggers.start_auto_sync()
        new_config = Config(github_token=TEST_TOKEN, repository="octocat/notes", sync_interval=10)

        triggers.update_config(new_config)

        assert scheduler.repeating[-1][0] == 600
        engine.update_config.assert_called_once_with(new_config)

    def test_shutdown_cancels_everything(self, triggers, scheduler) -> None:
        triggers.init_startup_sync()
        triggers.notify_ready()
        triggers.start_auto_sync()

        triggers.shutdown()

        assert scheduler.active_once() == []
        assert scheduler.repeating[0] in scheduler.cancelled
        assert not triggers.auto_sync_active


class TestThreadingScheduler:
    def test_schedule_once_fires(self) -> None:
        fired = threading.Event()
        ThreadingScheduler().schedule_once(0.01, fired.set)

        assert fired.wait(2)

    def test_cancelled_once_does_not_fire(self) -> None:
        fired = threading.Event()
        scheduler = ThreadingScheduler()
        handle = scheduler.schedule_once(0.2, fired.set)

        scheduler.cancel(handle)

        assert not fired.wait(0.4)

    def test_repeating_fires_until_cancelled(self) -> None:
        calls: list[int] = []
        enough = threading.Event()

        def tick() -> None:
            calls.append(1)
            if len(calls) >= 3:
                enough.set()

        scheduler = ThreadingScheduler()
        handle = scheduler.schedule_repeating(0.01, tick)

        assert enough.wait(2)
        scheduler.cancel(handle)
        handle.join(1)
        assert not handle.is_alive()


def test_startup_success_is_silent(triggers, scheduler, notifier) -> None:
    triggers.init_startup_sync()
    triggers.notify_ready()
    _, callback = scheduler.active_once()[-1]

    callback()

    notifier.info.assert_not_called()
