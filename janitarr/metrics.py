"""
Metrics for Janitarr.
Counters for cycles and searches, exposed in Prometheus text format.

We don't use prometheus_client; the text exposition format is small enough
to write directly.
"""

import threading
import time
from typing import Dict, List, Optional, Tuple


class Metrics:
    """Cycle and search counters with Prometheus text output."""

    PREFIX = "janitarr"

    def __init__(self, version: str = ""):
        self._lock = threading.Lock()
        self.start_time = time.time()
        self.version = version
        self.cycles_total = 0
        self.cycles_failed = 0
        self.searches_total: Dict[Tuple[str, str], int] = {}
        self.searches_failed: Dict[Tuple[str, str], int] = {}
        self._scheduler = None

    def set_scheduler(self, scheduler):
        """Attach a scheduler whose status is reported as gauges."""
        with self._lock:
            self._scheduler = scheduler

    def increment_cycles(self, failed: bool):
        with self._lock:
            self.cycles_total += 1
            if failed:
                self.cycles_failed += 1

    def increment_searches(self, server_type: str, category: str, failed: bool):
        key = (server_type, category)
        with self._lock:
            self.searches_total[key] = self.searches_total.get(key, 0) + 1
            if failed:
                self.searches_failed[key] = self.searches_failed.get(key, 0) + 1

    def format(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        with self._lock:
            scheduler = self._scheduler
            cycles_total = self.cycles_total
            cycles_failed = self.cycles_failed
            searches_total = dict(self.searches_total)
            searches_failed = dict(self.searches_failed)

        lines: List[str] = []

        if self.version:
            self._family(lines, "info", "gauge", "Application version information",
                         [(f'version="{self.version}"', 1)])
        self._family(lines, "uptime_seconds", "gauge", "Time since application start",
                     [(None, int(time.time() - self.start_time))])

        if scheduler is not None:
            status = scheduler.get_status()
            self._family(lines, "scheduler_running", "gauge", "Whether scheduler is running",
                         [(None, int(status.is_running))])
            self._family(lines, "scheduler_cycle_active", "gauge", "Whether automation cycle is active",
                         [(None, int(status.is_cycle_active))])
            if status.next_run is not None:
                self._family(lines, "scheduler_next_run_timestamp", "gauge",
                             "Unix timestamp of next scheduled run",
                             [(None, int(status.next_run.timestamp()))])

        self._family(lines, "cycles_total", "counter", "Total number of automation cycles executed",
                     [(None, cycles_total)])
        self._family(lines, "cycles_failed_total", "counter", "Total number of failed automation cycles",
                     [(None, cycles_failed)])

        if searches_total:
            self._family(lines, "searches_total", "counter", "Total number of searches triggered",
                         self._search_samples(searches_total))
        if searches_failed:
            self._family(lines, "searches_failed_total", "counter", "Total number of failed searches",
                         self._search_samples(searches_failed))

        return "\n".join(lines) + "\n"

    @staticmethod
    def _search_samples(counts: Dict[Tuple[str, str], int]) -> List[Tuple[Optional[str], int]]:
        return [(f'type="{t}",category="{c}"', counts[(t, c)]) for t, c in sorted(counts)]

    def _family(self, lines: List[str], name: str, kind: str, help_text: str,
                samples: List[Tuple[Optional[str], int]]):
        full = f"{self.PREFIX}_{name}"
        lines.append(f"# HELP {full} {help_text}")
        lines.append(f"# TYPE {full} {kind}")
        for labels, value in samples:
            if labels:
                lines.append(f"{full}{{{labels}}} {value}")
            else:
                lines.append(f"{full} {value}")
        lines.append("")
