"""
Data model for the Janitarr automation engine.
Servers, candidate items, detection results, assignments and cycle results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Any, List, Optional


class ServerType(Enum):
    """Kind of media server."""
    RADARR = "radarr"
    SONARR = "sonarr"


class Category(Enum):
    """Independently limited search classes."""
    MISSING_MOVIES = "missing_movies"
    MISSING_EPISODES = "missing_episodes"
    CUTOFF_MOVIES = "cutoff_movies"
    CUTOFF_EPISODES = "cutoff_episodes"

    @property
    def server_type(self) -> ServerType:
        if self in (Category.MISSING_MOVIES, Category.CUTOFF_MOVIES):
            return ServerType.RADARR
        return ServerType.SONARR

    @property
    def kind(self) -> str:
        """'missing' or 'cutoff'."""
        return self.value.split('_')[0]

    @property
    def label(self) -> str:
        return self.value.replace('_', ' ')


@dataclass(frozen=True)
class ServerRef:
    """A configured server, without its connection secrets."""
    id: str
    name: str
    type: ServerType
    enabled: bool = True


@dataclass
class MediaItem:
    """A movie or episode that can be searched for."""
    id: int
    title: str
    type: str  # 'movie' or 'episode'
    year: Optional[int] = None
    series_title: Optional[str] = None
    season_number: Optional[int] = None
    episode_number: Optional[int] = None

    @property
    def label(self) -> str:
        if self.type == 'episode':
            code = f"S{self.season_number or 0:02d}E{self.episode_number or 0:02d}"
            series = self.series_title or 'Unknown Series'
            return f"{series} - {code} - {self.title}"
        if self.year:
            return f"{self.title} ({self.year})"
        return self.title


@dataclass
class DetectionResult:
    """Detection outcome for one server in one cycle."""
    server: ServerRef
    missing_items: List[MediaItem] = field(default_factory=list)
    cutoff_items: List[MediaItem] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def items_for(self, category: Category) -> List[MediaItem]:
        """Candidates this server contributes to a category."""
        if not self.ok or self.server.type != category.server_type:
            return []
        if category.kind == 'missing':
            return self.missing_items
        return self.cutoff_items


@dataclass(frozen=True)
class Assignment:
    """One planned or executed search."""
    category: Category
    server: ServerRef
    item: MediaItem


@dataclass
class SearchOutcome:
    """What happened to a single assignment."""
    assignment: Assignment
    success: bool
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class ServerCategoryCount:
    """Aggregate counts for one (server, category) pair."""
    server: ServerRef
    category: Category
    triggered: int = 0
    failed: int = 0
    skipped: int = 0
    last_error: Optional[str] = None


@dataclass
class ExecutionSummary:
    """Result of executing a list of assignments."""
    outcomes: List[SearchOutcome] = field(default_factory=list)
    counts: Dict[tuple, ServerCategoryCount] = field(default_factory=dict)

    def record(self, outcome: SearchOutcome):
        assignment = outcome.assignment
        key = (assignment.server.id, assignment.category)
        count = self.counts.get(key)
        if count is None:
            count = ServerCategoryCount(server=assignment.server, category=assignment.category)
            self.counts[key] = count
        if outcome.skipped:
            count.skipped += 1
        elif outcome.success:
            count.triggered += 1
        else:
            count.failed += 1
            count.last_error = outcome.error
        self.outcomes.append(outcome)

    @property
    def triggered(self) -> int:
        return sum(c.triggered for c in self.counts.values())

    @property
    def failed(self) -> int:
        return sum(c.failed for c in self.counts.values())

    @property
    def skipped(self) -> int:
        return sum(c.skipped for c in self.counts.values())


@dataclass
class CategoryCount:
    """Per-category totals for a cycle."""
    planned: int = 0
    triggered: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {'planned': self.planned, 'triggered': self.triggered, 'failed': self.failed}


@dataclass
class CycleResult:
    """Summary of one automation cycle."""
    cycle_id: str
    started_at: datetime
    is_manual: bool
    is_dry_run: bool
    ended_at: Optional[datetime] = None
    per_category_counts: Dict[Category, CategoryCount] = field(
        default_factory=lambda: {c: CategoryCount() for c in Category})
    total_triggered: int = 0
    total_failed: int = 0
    failed: bool = False
    cancelled: bool = False
    errors: List[str] = field(default_factory=list)
    detection_results: Dict[str, DetectionResult] = field(default_factory=dict)

    @property
    def duration(self) -> timedelta:
        if self.ended_at is None:
            return timedelta(0)
        return self.ended_at - self.started_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cycleId': self.cycle_id,
            'startedAt': self.started_at.isoformat(),
            'endedAt': self.ended_at.isoformat() if self.ended_at else None,
            'isManual': self.is_manual,
            'isDryRun': self.is_dry_run,
            'perCategoryCounts': {c.value: n.to_dict() for c, n in self.per_category_counts.items()},
            'totalTriggered': self.total_triggered,
            'totalFailed': self.total_failed,
            'failed': self.failed,
            'cancelled': self.cancelled,
            'errors': list(self.errors),
        }


@dataclass
class SchedulerStatus:
    """Point-in-time view of the scheduler."""
    is_running: bool
    is_cycle_active: bool
    next_run: Optional[datetime]
    last_run: Optional[datetime]
    interval_hours: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isRunning': self.is_running,
            'isCycleActive': self.is_cycle_active,
            'nextRun': self.next_run.isoformat() if self.next_run else None,
            'lastRun': self.last_run.isoformat() if self.last_run else None,
            'intervalHours': self.interval_hours,
        }
