"""
Scheduler for Janitarr.
Runs automation cycles on a fixed interval and on demand, never two at once.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from .automation import Automation, CycleActiveError
from ..context import Context
from ..models import SchedulerStatus


# Log entries younger than this are never purged, whatever the config says
MIN_RETENTION_DAYS = 7


class Scheduler:
    """
    Background cycle scheduler.

    STATES:
        Stopped -> start() -> Idle <-> CycleActive

    The timer thread only decides whether a tick launches a cycle; every
    cycle runs on its own thread. Ticks land on fixed boundaries
    (start + k * interval), so a cycle that overruns makes later ticks skip
    rather than drift. A tick that finds a cycle running is skipped, never
    queued.
    """

    def __init__(self, automation: Automation, config, logger=None, log_store=None):
        if automation is None:
            raise ValueError("Scheduler requires an automation instance")
        self.automation = automation
        self.config = config
        self.log_store = log_store
        self.log = logger.get_logger('scheduler') if logger else logging.getLogger('janitarr.scheduler')

        self._lock = threading.Lock()
        self._running = False
        self._enabled = True
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        self._cycle_thread: Optional[threading.Thread] = None
        self._cycle_ctx: Optional[Context] = None

        self.interval_hours = config.get_schedule_config().interval_hours
        self.next_run: Optional[datetime] = None
        self.last_run: Optional[datetime] = None
        self._last_cleanup_date = None

    @property
    def interval(self) -> timedelta:
        return timedelta(hours=self.interval_hours)

    def start(self):
        """Start the timer thread."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._enabled = True
            self._stop_event.clear()
            self.interval_hours = self.config.get_schedule_config().interval_hours
            self.next_run = datetime.now(timezone.utc) + self.interval
            self._thread = threading.Thread(target=self._run_loop, name='scheduler', daemon=True)
            self._thread.start()
        self.log.info(f"Scheduler started (every {self.interval_hours:g}h, next run {self.next_run.isoformat()})")

    def _run_loop(self):
        """Main loop."""
        while not self._stop_event.is_set():
            with self._lock:
                next_run = self.next_run
            delay = (next_run - datetime.now(timezone.utc)).total_seconds()
            if delay > 0 and self._stop_event.wait(delay):
                break
            if self._stop_event.is_set():
                break

            self._on_tick()

            with self._lock:
                now = datetime.now(timezone.utc)
                while self.next_run <= now:
                    self.next_run += self.interval
            self.log.debug(f"Scheduler sleeping until {self.next_run.isoformat()}")

    def _on_tick(self):
        schedule = self.config.get_schedule_config()
        with self._lock:
            enabled = self._enabled and schedule.enabled
        if not enabled:
            self.log.info("Scheduled cycle skipped: scheduling disabled")
            return
        if not self.automation.guard.try_acquire():
            self.log.info("Scheduled cycle skipped: a cycle is already active")
            return
        self._launch(is_manual=False, dry_run=False)

    def trigger_manual(self, dry_run: bool = False):
        """Start a cycle now without waiting for it. Raises CycleActiveError."""
        if not self.automation.guard.try_acquire():
            raise CycleActiveError()
        self.log.info(f"Manual cycle triggered (dry_run={dry_run})")
        self._launch(is_manual=True, dry_run=dry_run)

    def _launch(self, is_manual: bool, dry_run: bool):
        """Run a cycle on its own thread; the guard is already held."""
        ctx = Context.background()
        thread = threading.Thread(target=self._run_cycle, args=(ctx, is_manual, dry_run),
                                  name='cycle', daemon=True)
        with self._lock:
            self._cycle_ctx = ctx
            self._cycle_thread = thread
            thread.start()

    def _run_cycle(self, ctx: Context, is_manual: bool, dry_run: bool):
        try:
            self.automation.run_claimed_cycle(ctx, is_manual, dry_run)
        except Exception as e:
            self.log.error(f"Cycle failed: {e}")
        finally:
            with self._lock:
                self.last_run = datetime.now(timezone.utc)
                if self._cycle_ctx is ctx:
                    self._cycle_ctx = None
        self._run_daily_cleanup()

    def _run_daily_cleanup(self):
        """Purge old activity entries, at most once per day."""
        if self.log_store is None:
            return
        today = datetime.now(timezone.utc).date()
        with self._lock:
            if self._last_cleanup_date == today:
                return
            self._last_cleanup_date = today

        logs = getattr(self.config, 'logs', None)
        retention = max(MIN_RETENTION_DAYS, getattr(logs, 'retention_days', 30))
        try:
            removed = self.log_store.purge_older_than(retention)
            self.log.info(f"Log cleanup: removed {removed} entries older than {retention} days")
        except Exception as e:
            self.log.error(f"Log cleanup failed: {e}")

    def wait_for_cycle(self, timeout: Optional[float] = None) -> bool:
        """Block until the current cycle thread finishes; True if none is running."""
        with self._lock:
            thread = self._cycle_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def shutdown(self, timeout: float = 30.0):
        """
        Stop scheduling and wind down the active cycle.

        The cycle gets `timeout` seconds to finish on its own; after that
        its context is cancelled and this returns once it has stopped.
        """
        with self._lock:
            self._enabled = False
            self._running = False
            timer_thread = self._thread
        self._stop_event.set()
        if timer_thread is not None:
            timer_thread.join(timeout=5)

        # A tick already past the enabled check may have launched a cycle
        with self._lock:
            cycle_thread = self._cycle_thread
            cycle_ctx = self._cycle_ctx

        if cycle_thread is not None and cycle_thread.is_alive():
            self.log.info(f"Waiting up to {timeout:g}s for the active cycle to finish")
            cycle_thread.join(timeout)
            if cycle_thread.is_alive():
                self.log.warning("Active cycle still running, cancelling it")
                if cycle_ctx is not None:
                    cycle_ctx.cancel()
                cycle_thread.join()

        with self._lock:
            self.next_run = None
        self.log.info("Scheduler stopped")

    def get_status(self) -> SchedulerStatus:
        """Snapshot of scheduler state."""
        with self._lock:
            return SchedulerStatus(
                is_running=self._running,
                is_cycle_active=self.automation.guard.active,
                next_run=self.next_run,
                last_run=self.last_run,
                interval_hours=self.interval_hours,
            )
