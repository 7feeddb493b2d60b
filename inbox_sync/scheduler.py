"""
Sync triggers: startup sync, recurring auto-sync and manual runs.

Timers come from a Scheduler; ThreadingScheduler runs callbacks on
daemon threads. All triggers funnel into SyncEngine.sync(), whose run
gate rejects overlapping runs.
"""

import threading
from typing import Callable, Optional, Protocol

from rich.console import Console
from rich.markup import escape

from .config import READY_FALLBACK_TIMEOUT_SECONDS, Config
from .notifications import MESSAGES, Notifier
from .sync_engine import SyncEngine, SyncResult

console = Console()

MANUAL = "manual"
STARTUP = "startup"
INTERVAL = "interval"


class Scheduler(Protocol):
    """Timer primitives. Handles are opaque to callers."""

    def schedule_once(self, delay: float, callback: Callable[[], None]) -> object: ...

    def schedule_repeating(self, interval: float, callback: Callable[[], None]) -> object: ...

    def cancel(self, handle: object) -> None: ...


class _RepeatingTimer(threading.Thread):
    """Calls a function every `interval` seconds until stopped."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        super().__init__(daemon=True)
        self.interval = interval
        self.callback = callback
        self.stopped = threading.Event()

    def run(self) -> None:
        while not self.stopped.wait(self.interval):
            self.callback()

    def cancel(self) -> None:
        self.stopped.set()


class ThreadingScheduler:
    """Scheduler backed by threading timers."""

    def schedule_once(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer

    def schedule_repeating(self, interval: float, callback: Callable[[], None]) -> _RepeatingTimer:
        timer = _RepeatingTimer(interval, callback)
        timer.start()
        return timer

    def cancel(self, handle) -> None:
        handle.cancel()


class SyncTriggers:
    """
    Decides when the engine runs.

    - Startup: once, `startup_sync_delay` seconds after the host reports
      ready (or after a fallback timeout if it never does).
    - Interval: every `sync_interval` minutes while auto-sync is on.
    - Manual: immediately; also cancels a pending startup sync.
    """

    def __init__(
        self,
        engine: SyncEngine,
        config: Config,
        scheduler: Optional[Scheduler] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.engine = engine
        self.config = config
        self.scheduler = scheduler or ThreadingScheduler()
        self.notifier = notifier or Notifier(config.show_notifications)

        self._startup_handle = None
        self._fallback_handle = None
        self._auto_handle = None
        self.startup_executed = False

    def _can_sync(self) -> bool:
        return bool(self.config.github_token and self.config.repository)

    def update_config(self, config: Config) -> None:
        """Apply new settings and restart auto-sync with them."""
        self.config = config
        self.notifier.enabled = config.show_notifications
        self.engine.update_config(config)
        self.handle_auto_sync_change()

    def perform_sync(self, trigger: str = MANUAL) -> Optional[SyncResult]:
        """
        Run the engine for a trigger and notify about the outcome.

        Returns:
            The run result, or None if a run was already active.
        """
        if trigger == MANUAL:
            self.cancel_startup_sync()
            self.startup_executed = True

        if self.engine.is_syncing():
            self.notifier.info(MESSAGES.sync_in_progress())
            return None

        try:
            result = self.engine.sync()
        except Exception as e:
            console.print(f"[red]Sync failed: {escape(str(e))}[/red]")
            self.notifier.error(MESSAGES.sync_error(str(e)))
            return None

        if result.success:
            # Success is only announced for runs the user asked for
            if trigger == MANUAL:
                self.notifier.info(MESSAGES.sync_success(result.files_added))
        else:
            self.notifier.error(MESSAGES.sync_error(", ".join(result.errors)))

        return result

    def init_startup_sync(self) -> None:
        """Arm the startup sync; it fires after notify_ready() or the fallback."""
        if not self.config.sync_on_startup or not self._can_sync():
            return

        self._fallback_handle = self.scheduler.schedule_once(
            READY_FALLBACK_TIMEOUT_SECONDS,
            self._on_fallback,
        )

    def _on_fallback(self) -> None:
        self._fallback_handle = None
        if not self.startup_executed:
            self.schedule_startup_sync()

    def notify_ready(self) -> None:
        """Host is ready: drop the fallback and schedule the startup sync."""
        if self._fallback_handle is not None:
            self.scheduler.cancel(self._fallback_handle)
            self._fallback_handle = None

        if not self.config.sync_on_startup or not self._can_sync():
            return

        self.schedule_startup_sync()

    def schedule_startup_sync(self) -> None:
        if self.startup_executed or self._startup_handle is not None:
            return

        self._startup_handle = self.scheduler.schedule_once(
            self.config.startup_sync_delay,
            self._run_startup_sync,
        )

    def _run_startup_sync(self) -> None:
        self.startup_executed = True
        self._startup_handle = None
        self.perform_sync(STARTUP)

    def cancel_startup_sync(self) -> None:
        if self._startup_handle is not None:
            self.scheduler.cancel(self._startup_handle)
            self._startup_handle = None
        if self._fallback_handle is not None:
            self.scheduler.cancel(self._fallback_handle)
            self._fallback_handle = None

    def start_auto_sync(self) -> None:
        """(Re)start the recurring sync if enabled."""
        self.stop_auto_sync()

        if self.config.auto_sync and self._can_sync():
            self._auto_handle = self.scheduler.schedule_repeating(
                self.config.sync_interval * 60,
                lambda: self.perform_sync(INTERVAL),
            )

    def stop_auto_sync(self) -> None:
        if self._auto_handle is not None:
            self.scheduler.cancel(self._auto_handle)
            self._auto_handle = None

    def handle_auto_sync_change(self) -> None:
        self.stop_auto_sync()
        self.start_auto_sync()

    @property
    def auto_sync_active(self) -> bool:
        return self._auto_handle is not None

    def shutdown(self) -> None:
        """Cancel every pending trigger."""
        self.cancel_startup_sync()
        self.stop_auto_sync()
