"""
Tests for Prometheus text output.
"""

from datetime import datetime, timezone

from janitarr.metrics import Metrics
from janitarr.models import SchedulerStatus


class StubScheduler:
    def get_status(self):
        return SchedulerStatus(is_running=True, is_cycle_active=False,
                               next_run=datetime(2026, 1, 1, tzinfo=timezone.utc),
                               last_run=None, interval_hours=6)


def test_counters():
    metrics = Metrics(version="0.1.0")
    metrics.increment_cycles(failed=False)
    metrics.increment_cycles(failed=True)
    metrics.increment_searches("sonarr", "missing", failed=False)
    metrics.increment_searches("radarr", "cutoff", failed=True)
    metrics.increment_searches("radarr", "cutoff", failed=False)

    text = metrics.format()

    assert 'janitarr_info{version="0.1.0"} 1' in text
    assert "janitarr_cycles_total 2" in text
    assert "janitarr_cycles_failed_total 1" in text
    assert 'janitarr_searches_total{type="radarr",category="cutoff"} 2' in text
    assert 'janitarr_searches_failed_total{type="radarr",category="cutoff"} 1' in text
    assert "# TYPE janitarr_searches_total counter" in text


def test_search_labels_are_sorted():
    metrics = Metrics()
    metrics.increment_searches("sonarr", "missing", failed=False)
    metrics.increment_searches("radarr", "missing", failed=False)

    lines = [l for l in metrics.format().splitlines() if l.startswith("janitarr_searches_total{")]

    assert lines == [
        'janitarr_searches_total{type="radarr",category="missing"} 1',
        'janitarr_searches_total{type="sonarr",category="missing"} 1',
    ]


def test_scheduler_gauges():
    metrics = Metrics()
    metrics.set_scheduler(StubScheduler())

    text = metrics.format()

    assert "janitarr_scheduler_running 1" in text
    assert "janitarr_scheduler_cycle_active 0" in text
    assert "janitarr_scheduler_next_run_timestamp 1767225600" in text


def test_no_search_families_before_first_search():
    text = Metrics().format()

    assert "janitarr_searches_total" not in text
    assert "janitarr_uptime_seconds" in text
    assert "janitarr_info" not in text
