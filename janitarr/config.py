"""
Configuration management for Janitarr.
Supports JSON file and environment variable configuration.
"""

import os
import json
import logging
import uuid
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Optional
import threading

from .models import ServerRef, ServerType


log = logging.getLogger("janitarr.config")

# Prefix shown in place of all but the last four characters of an API key
MASK = "****"


@dataclass
class ServerInstance:
    """Configuration for a single Radarr or Sonarr server."""
    name: str = ""
    type: str = "radarr"
    url: str = ""
    api_key: str = ""
    enabled: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_valid(self) -> bool:
        return bool(self.url and self.api_key and self.enabled)

    def to_ref(self) -> ServerRef:
        return ServerRef(id=self.id, name=self.name, type=ServerType(self.type), enabled=self.enabled)


@dataclass
class ScheduleConfig:
    """When automation cycles run."""
    interval_hours: float = 6
    enabled: bool = True


@dataclass
class SearchLimits:
    """
    Maximum searches per cycle for each category.

    Each limit is shared by every server of the matching type and split
    between them round-robin. Zero disables that category.
    """
    missing_movies: int = 10
    missing_episodes: int = 10
    cutoff_movies: int = 5
    cutoff_episodes: int = 5

    def for_category(self, category) -> int:
        return getattr(self, category.value)


@dataclass
class LogsConfig:
    """Activity log settings."""
    retention_days: int = 30
    detail_searches: bool = False  # One log entry per searched item


@dataclass
class DetectionConfig:
    """Per-server polling settings."""
    timeout_seconds: float = 15


class Config:
    """Main configuration class."""

    def __init__(self, config_path: str = "/config/config.json"):
        self.config_path = Path(config_path)
        self._lock = threading.RLock()

        self.servers: List[ServerInstance] = []
        self.schedule = ScheduleConfig()
        self.search_limits = SearchLimits()
        self.logs = LogsConfig()
        self.detection = DetectionConfig()

        self.data_dir = str(self.config_path.parent)

        self._load()
        self._apply_env_vars()

    def _load(self):
        """Load configuration from file."""
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                self._apply_dict(data)
            except (OSError, ValueError, TypeError) as e:
                log.warning(f"Could not load config {self.config_path}: {e}")

    def _apply_dict(self, data: Dict[str, Any]):
        """Apply dictionary to configuration; nothing changes if any section is invalid."""
        sections = {
            'servers': lambda d: [ServerInstance(**inst) for inst in d],
            'schedule': lambda d: ScheduleConfig(**d),
            'search_limits': lambda d: SearchLimits(**d),
            'logs': lambda d: LogsConfig(**d),
            'detection': lambda d: DetectionConfig(**d),
        }
        parsed = {name: build(data[name]) for name, build in sections.items() if name in data}
        for name, value in parsed.items():
            setattr(self, name, value)
        self._validate()

    def _validate(self):
        """Clamp values the engine cannot work with."""
        for name in ('missing_movies', 'missing_episodes', 'cutoff_movies', 'cutoff_episodes'):
            if getattr(self.search_limits, name) < 0:
                log.warning(f"Search limit {name} is negative, using 0")
                setattr(self.search_limits, name, 0)
        if self.schedule.interval_hours <= 0:
            log.warning(f"Invalid interval {self.schedule.interval_hours}h, using {ScheduleConfig.interval_hours}h")
            self.schedule.interval_hours = ScheduleConfig.interval_hours
        if self.detection.timeout_seconds <= 0:
            self.detection.timeout_seconds = DetectionConfig.timeout_seconds
        known = {t.value for t in ServerType}
        for server in [s for s in self.servers if s.type not in known]:
            log.warning(f"Ignoring server {server.name!r}: unknown type {server.type!r}")
            self.servers.remove(server)

    def _apply_env_vars(self):
        """Apply environment variable overrides."""
        # Single instance per type via env vars, only when none is configured
        for server_type in ServerType:
            prefix = server_type.value.upper()
            url = os.environ.get(f'{prefix}_URL')
            key = os.environ.get(f'{prefix}_API_KEY')
            has_type = any(s.type == server_type.value for s in self.servers)
            if url and key and not has_type:
                self.servers.append(ServerInstance(
                    name=server_type.value.capitalize(),
                    type=server_type.value,
                    url=url,
                    api_key=key,
                    enabled=True,
                ))

        interval = os.environ.get('JANITARR_INTERVAL_HOURS')
        if interval:
            try:
                self.schedule.interval_hours = float(interval)
            except ValueError:
                log.warning(f"Ignoring JANITARR_INTERVAL_HOURS={interval!r}")
        enabled = os.environ.get('JANITARR_SCHEDULE_ENABLED')
        if enabled:
            self.schedule.enabled = enabled.lower() in ('1', 'true', 'yes', 'on')
        self._validate()

    def save(self):
        """Save configuration to file."""
        with self._lock:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            data = {
                'servers': [asdict(s) for s in self.servers],
                'schedule': asdict(self.schedule),
                'search_limits': asdict(self.search_limits),
                'logs': asdict(self.logs),
                'detection': asdict(self.detection),
            }

            with open(self.config_path, 'w') as f:
                json.dump(data, f, indent=2)

    def update(self, data: Dict[str, Any]):
        """
        Update configuration from dictionary.

        Servers posted back with the masked key from to_dict() keep their
        stored key. Raises TypeError or ValueError on malformed sections.
        """
        with self._lock:
            if 'servers' in data:
                data = dict(data, servers=[self._unmask(inst) for inst in data['servers']])
            self._apply_dict(data)
        self.save()

    def _unmask(self, inst: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(inst, dict):
            return inst
        key = str(inst.get('api_key') or '')
        if not key.startswith(MASK):
            return inst
        current = next((s for s in self.servers if s.id == inst.get('id')), None)
        return dict(inst, api_key=current.api_key if current else '')

    # ==================== Registry / provider ====================

    def list_enabled_servers(self) -> List[ServerRef]:
        """Enabled, usable servers ordered by name then id."""
        with self._lock:
            servers = [s for s in self.servers if s.is_valid()]
        return [s.to_ref() for s in sorted(servers, key=lambda s: (s.name, s.id))]

    def get_server(self, server_id: str) -> Optional[ServerInstance]:
        with self._lock:
            for server in self.servers:
                if server.id == server_id:
                    return server
        return None

    def get_search_limits(self) -> SearchLimits:
        with self._lock:
            return SearchLimits(**asdict(self.search_limits))

    def get_schedule_config(self) -> ScheduleConfig:
        with self._lock:
            return ScheduleConfig(**asdict(self.schedule))

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (for API), API keys masked."""
        with self._lock:
            servers = []
            for s in self.servers:
                d = asdict(s)
                d['api_key'] = MASK + s.api_key[-4:] if s.api_key else ''
                servers.append(d)
            return {
                'servers': servers,
                'schedule': asdict(self.schedule),
                'search_limits': asdict(self.search_limits),
                'logs': asdict(self.logs),
                'detection': asdict(self.detection),
            }
