"""
Automation module - detection, fair-share searching, and scheduling.

This module contains the core automation logic:
- Detector: Polls every server concurrently for missing and cutoff-unmet items
- FairShareDistributor: Splits each category's search budget across servers
- Automation: Runs one detect -> distribute -> execute -> log cycle
- Scheduler: Runs cycles on an interval and on demand, one at a time
"""

from ..context import Context, CancelledError, DeadlineExceeded
from ..models import (
    ServerType, Category, ServerRef, MediaItem, DetectionResult, Assignment,
    SearchOutcome, ExecutionSummary, CycleResult, SchedulerStatus,
)
from .detector import Detector
from .distributor import FairShareDistributor, distribute
from .automation import Automation, CycleActiveError, CycleGuard
from .scheduler import Scheduler
from .formatter import format_cycle_result, format_scan_results

__all__ = [
    'Context', 'CancelledError', 'DeadlineExceeded',
    'ServerType', 'Category', 'ServerRef', 'MediaItem', 'DetectionResult', 'Assignment',
    'SearchOutcome', 'ExecutionSummary', 'CycleResult', 'SchedulerStatus',
    'Detector', 'FairShareDistributor', 'distribute',
    'Automation', 'CycleActiveError', 'CycleGuard', 'Scheduler',
    'format_cycle_result', 'format_scan_results',
]
