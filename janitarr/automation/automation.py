"""
Automation cycle for Janitarr.
Detect -> distribute -> execute -> log, once per cycle.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional

from ..context import Context
from .detector import Detector, summarize
from .distributor import FairShareDistributor
from ..models import Category, CycleResult, DetectionResult, ExecutionSummary
from ..storage import LogStoreError


class CycleActiveError(Exception):
    """A cycle is already running; the request is rejected, not queued."""
    def __init__(self, message: str = "cycle already active"):
        super().__init__(message)


class CycleGuard:
    """The single flag that keeps cycles from overlapping."""

    def __init__(self):
        self._lock = threading.Lock()
        self._active = False

    def try_acquire(self) -> bool:
        with self._lock:
            if self._active:
                return False
            self._active = True
            return True

    def acquire(self):
        if not self.try_acquire():
            raise CycleActiveError()

    def release(self):
        with self._lock:
            self._active = False

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active


class Automation:
    """
    Orchestrates one automation cycle.

    FLOW:
        1. Claim the cycle guard (CycleActiveError if held)
        2. Log cycle_start
        3. Detect across all enabled servers; failed servers log an error
           entry and contribute nothing
        4. Per category: distribute within the limit, then execute
        5. Log per-server search counts and search errors
        6. Log cycle_end, count the cycle in metrics
        7. Release the guard

    Only an unwritable activity log marks the cycle itself failed. Server
    and search errors are recovered here and surface as log entries.
    """

    def __init__(self, registry, config, detector: Detector,
                 distributor: FairShareDistributor, activity, metrics=None,
                 logger=None, guard: Optional[CycleGuard] = None):
        for name, value in (('registry', registry), ('config', config), ('detector', detector),
                            ('distributor', distributor), ('activity', activity)):
            if value is None:
                raise ValueError(f"Automation requires {name}")
        self.registry = registry
        self.config = config
        self.detector = detector
        self.distributor = distributor
        self.activity = activity
        self.metrics = metrics
        self.guard = guard or CycleGuard()
        self.log = logger.get_logger('automation') if logger else logging.getLogger('janitarr.automation')

    @property
    def is_cycle_active(self) -> bool:
        return self.guard.active

    def run_cycle(self, ctx: Optional[Context] = None, is_manual: bool = False,
                  dry_run: bool = False) -> CycleResult:
        """Run one full cycle synchronously."""
        self.guard.acquire()
        return self.run_claimed_cycle(ctx, is_manual, dry_run)

    def run_claimed_cycle(self, ctx: Optional[Context], is_manual: bool,
                          dry_run: bool) -> CycleResult:
        """Run a cycle whose guard the caller already holds; releases it."""
        ctx = ctx or Context.background()
        result = CycleResult(
            cycle_id=str(uuid.uuid4()),
            started_at=datetime.now(timezone.utc),
            is_manual=is_manual,
            is_dry_run=dry_run,
        )
        try:
            self._run(ctx, result)
        except Exception as e:
            result.failed = True
            result.errors.append(f"cycle aborted: {e}")
            self.log.exception(f"Automation cycle {result.cycle_id} aborted")
            raise
        finally:
            result.ended_at = datetime.now(timezone.utc)
            if self.metrics is not None:
                self.metrics.increment_cycles(result.failed)
            self.guard.release()
        return result

    # ==================== Cycle steps ====================

    def _run(self, ctx: Context, result: CycleResult):
        is_manual, dry_run = result.is_manual, result.is_dry_run

        self._emit(result, self.activity.log_cycle_start, is_manual, dry_run)

        servers = self.registry.list_enabled_servers()
        detection = self.detector.detect_all(ctx, servers)
        result.detection_results = detection
        self._log_detection(result, detection)

        limits = self.config.get_search_limits()
        for category in Category:
            if ctx.cancelled:
                result.cancelled = True
                break
            self._run_category(ctx, result, category, limits.for_category(category), detection)

        if ctx.cancelled:
            result.cancelled = True
            result.errors.append("cycle cancelled before completion")

        self._emit(result, self.activity.log_cycle_end, result.total_triggered,
                   result.total_failed, is_manual, dry_run)

    def _log_detection(self, result: CycleResult, detection: Dict[str, DetectionResult]):
        summary = summarize(detection)
        self.log.info(f"Detection: {len(detection)} servers, {summary.total_missing} missing, "
                      f"{summary.total_cutoff} cutoff unmet, {summary.failure_count} failed")
        for res in detection.values():
            if res.ok:
                continue
            result.errors.append(f"server {res.server.name} detection failed: {res.error}")
            self._emit(result, self.activity.log_server_error, res.server.name,
                       res.server.type.value, f"detection error: {res.error}", result.is_manual)

    def _run_category(self, ctx: Context, result: CycleResult, category: Category,
                      limit: int, detection: Dict[str, DetectionResult]):
        candidates = [
            (res.server, res.items_for(category))
            for res in sorted(detection.values(), key=lambda r: (r.server.name, r.server.id))
            if res.server.type == category.server_type and res.ok
        ]
        assignments = self.distributor.distribute(category, limit, candidates)
        summary = self.distributor.execute(assignments, dry_run=result.is_dry_run, ctx=ctx)

        counts = result.per_category_counts[category]
        counts.planned = len(assignments)
        counts.triggered = summary.triggered
        counts.failed = summary.failed
        result.total_triggered += summary.triggered
        result.total_failed += summary.failed

        self._log_category(result, category, summary)

    def _log_category(self, result: CycleResult, category: Category, summary: ExecutionSummary):
        is_manual, dry_run = result.is_manual, result.is_dry_run

        if self._detail_searches():
            for outcome in summary.outcomes:
                if outcome.success:
                    a = outcome.assignment
                    self._emit(result, self.activity.log_item_search, a.server.name,
                               a.server.type.value, category.value, a.item.label, is_manual, dry_run)

        logged = False
        for count in summary.counts.values():
            if count.triggered > 0:
                self._emit(result, self.activity.log_searches, count.server.name,
                           count.server.type.value, category.value, count.triggered,
                           is_manual, dry_run)
                logged = True
            if count.failed > 0:
                result.errors.append(f"server {count.server.name} search failed for "
                                     f"{category.value}: {count.last_error}")
                self._emit(result, self.activity.log_search_error, count.server.name,
                           count.server.type.value, category.value, count.last_error,
                           count.failed, is_manual)
        if not logged:
            self._emit(result, self.activity.log_searches, None, category.server_type.value,
                       category.value, 0, is_manual, dry_run)

    def _detail_searches(self) -> bool:
        logs = getattr(self.config, 'logs', None)
        return bool(getattr(logs, 'detail_searches', False))

    def _emit(self, result: CycleResult, log_fn, *args):
        """Write an activity entry; a store failure fails the cycle but not the run."""
        try:
            log_fn(*args)
        except LogStoreError as e:
            if not result.failed:
                self.log.error(f"Activity log unavailable, cycle {result.cycle_id} marked failed: {e}")
            result.failed = True
            result.errors.append(str(e))
