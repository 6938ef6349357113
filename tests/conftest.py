"""
Shared fixtures: in-process fakes for servers, config and the log store.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest

from janitarr.activity import ActivityLog, LogEntry
from janitarr.automation import Automation, Detector, FairShareDistributor
from janitarr.clients import RateLimitError
from janitarr.config import LogsConfig, ScheduleConfig, SearchLimits
from janitarr.metrics import Metrics
from janitarr.models import MediaItem, ServerRef, ServerType
from janitarr.storage import LogStoreError


def radarr(name: str, server_id: Optional[str] = None, enabled: bool = True) -> ServerRef:
    return ServerRef(id=server_id or f"id-{name}", name=name, type=ServerType.RADARR, enabled=enabled)


def sonarr(name: str, server_id: Optional[str] = None, enabled: bool = True) -> ServerRef:
    return ServerRef(id=server_id or f"id-{name}", name=name, type=ServerType.SONARR, enabled=enabled)


def movies(count: int, start: int = 1) -> List[MediaItem]:
    return [MediaItem(id=start + n, title=f"Movie {start + n}", type='movie', year=2020)
            for n in range(count)]


def episodes(count: int, start: int = 1) -> List[MediaItem]:
    return [MediaItem(id=start + n, title=f"Episode {n + 1}", type='episode',
                      series_title="Starfall Academy", season_number=1, episode_number=n + 1)
            for n in range(count)]


class FakeClient:
    """Stands in for a Radarr/Sonarr client."""

    def __init__(self, missing=None, cutoff=None, detect_error: Optional[Exception] = None,
                 delay: float = 0.0, search_errors=None):
        self.missing = list(missing or [])
        self.cutoff = list(cutoff or [])
        self.detect_error = detect_error
        self.delay = delay
        # Exceptions raised by successive trigger_search calls; None means success
        self.search_errors = list(search_errors or [])
        self.searched: List[MediaItem] = []
        self.attempts = 0
        self._lock = threading.Lock()

    def _detect(self, ctx, items):
        if self.delay and ctx is not None and ctx.wait(self.delay):
            ctx.check()
        if self.detect_error is not None:
            raise self.detect_error
        return list(items)

    def get_missing(self, ctx=None):
        return self._detect(ctx, self.missing)

    def get_cutoff_unmet(self, ctx=None):
        return self._detect(ctx, self.cutoff)

    def trigger_search(self, item, ctx=None):
        with self._lock:
            self.attempts += 1
            error = self.search_errors.pop(0) if self.search_errors else None
            if error is None:
                self.searched.append(item)
        if error is not None:
            raise error
        return {'id': len(self.searched), 'status': 'queued'}


class ClientFactory:
    """Maps server ids to FakeClients and counts lookups."""

    def __init__(self, clients: Optional[Dict[str, FakeClient]] = None):
        self.clients = dict(clients or {})

    def __call__(self, server: ServerRef) -> FakeClient:
        try:
            return self.clients[server.id]
        except KeyError:
            raise ValueError(f"no client for {server.name}")

    @property
    def total_searches(self) -> int:
        return sum(len(c.searched) for c in self.clients.values())


@dataclass
class FakeConfig:
    """Registry and config provider in one, like janitarr.config.Config."""
    servers: List[ServerRef] = field(default_factory=list)
    search_limits: SearchLimits = field(default_factory=SearchLimits)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    logs: LogsConfig = field(default_factory=LogsConfig)

    def list_enabled_servers(self) -> List[ServerRef]:
        return [s for s in self.servers if s.enabled]

    def get_search_limits(self) -> SearchLimits:
        return self.search_limits

    def get_schedule_config(self) -> ScheduleConfig:
        return self.schedule


class MemoryStore:
    """Log store kept in a list."""

    def __init__(self):
        self.entries: List[LogEntry] = []
        self.purged_with: List[int] = []
        self._lock = threading.Lock()

    def append(self, entry: LogEntry):
        with self._lock:
            self.entries.append(entry)

    def get_logs(self, limit=100, offset=0, log_type=None, server_name=None):
        with self._lock:
            entries = list(reversed(self.entries))
        if log_type:
            entries = [e for e in entries if e.type == log_type]
        if server_name:
            entries = [e for e in entries if e.server_name == server_name]
        return entries[offset:offset + limit]

    def purge_older_than(self, days: int) -> int:
        self.purged_with.append(days)
        return 0

    def of_type(self, log_type: str) -> List[LogEntry]:
        with self._lock:
            return [e for e in self.entries if e.type == log_type]


class FailingStore(MemoryStore):
    """A store whose disk has gone away."""

    def append(self, entry: LogEntry):
        raise LogStoreError("disk full")


class Engine:
    """An Automation wired to fakes, plus handles on the fakes."""

    def __init__(self, servers=None, clients=None, store=None, limits=None, search_delay=0.0):
        self.config = FakeConfig(servers=list(servers or []))
        if limits is not None:
            self.config.search_limits = limits
        self.factory = ClientFactory(clients)
        self.store = store if store is not None else MemoryStore()
        self.activity = ActivityLog(self.store)
        self.metrics = Metrics()
        self.detector = Detector(self.factory, timeout=2.0)
        self.distributor = FairShareDistributor(self.factory, metrics=self.metrics,
                                                search_delay=search_delay)
        self.automation = Automation(self.config, self.config, self.detector, self.distributor,
                                     self.activity, self.metrics)


@pytest.fixture
def make_engine():
    return Engine


@pytest.fixture
def rate_limited():
    return RateLimitError("Rate limited by server", retry_after=30)
