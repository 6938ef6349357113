"""
Core application for Janitarr.
Coordinates all components and provides API methods.
"""

import os
import threading
from typing import Dict, Any, List, Optional

from . import __version__
from .activity import ActivityLog, LogEntry
from .automation import (
    Automation, Detector, FairShareDistributor, Scheduler,
)
from .clients import BaseClient, create_client
from .config import Config
from .context import Context
from .logger import Logger
from .metrics import Metrics
from .models import CycleResult, DetectionResult, ServerRef
from .storage import LogStore


class JanitarrCore:
    """
    Core application coordinator.

    RESPONSIBILITIES:
        - Builds API clients for configured Radarr and Sonarr servers
        - Wires detection, distribution, cycle orchestration and scheduling
        - Owns the activity log and metrics
        - Provides the methods the web API and CLI call

    ARCHITECTURE:
        JanitarrCore
        ├── log_store      - Durable JSONL activity log
        ├── activity       - Activity log with live-tail subscribers
        ├── metrics        - Cycle/search counters (Prometheus text)
        ├── detector       - Concurrent per-server detection
        ├── distributor    - Fair-share search allocation and execution
        ├── automation     - One detect -> distribute -> execute -> log cycle
        └── scheduler      - Interval and manual cycle triggering
    """

    def __init__(self, config: Config, logger: Logger, search_delay: Optional[float] = None):
        self.config = config
        self.logger = logger
        self.log = logger.get_logger('core')

        # Client cache, keyed by server id; update_config() drops it
        self._clients: Dict[str, BaseClient] = {}
        self._clients_lock = threading.Lock()

        self.log_store = LogStore(os.path.join(config.data_dir, 'activity.jsonl'))
        self.activity = ActivityLog(self.log_store, console=logger.get_logger('activity'))
        self.metrics = Metrics(version=__version__)

        self.detector = Detector(self.get_client, logger, timeout=config.detection.timeout_seconds)
        distributor_kwargs = {} if search_delay is None else {'search_delay': search_delay}
        self.distributor = FairShareDistributor(self.get_client, logger, self.metrics,
                                                **distributor_kwargs)
        self.automation = Automation(config, config, self.detector, self.distributor,
                                     self.activity, self.metrics, logger)
        self.scheduler = Scheduler(self.automation, config, logger, log_store=self.log_store)
        self.metrics.set_scheduler(self.scheduler)

    # ==================== Clients ====================

    def get_client(self, server: ServerRef) -> BaseClient:
        """Client for a configured server; raises ValueError if it is gone."""
        with self._clients_lock:
            client = self._clients.get(server.id)
            if client is not None:
                return client
            instance = self.config.get_server(server.id)
            if instance is None:
                raise ValueError(f"server {server.name} ({server.id}) is not configured")
            client = create_client(instance, timeout=self.config.detection.timeout_seconds)
            self._clients[server.id] = client
            return client

    def reinit_clients(self):
        """Forget cached clients so the next cycle picks up config changes."""
        with self._clients_lock:
            self._clients.clear()
        self.log.info("API clients reset")

    def update_config(self, data: Dict[str, Any]):
        """Apply a config change; later cycles use the new servers and timeout."""
        self.config.update(data)
        self.detector.timeout = self.config.detection.timeout_seconds
        self.reinit_clients()
        self.log.info("Configuration updated")

    def test_server(self, server_id: str) -> Dict[str, Any]:
        instance = self.config.get_server(server_id)
        if instance is None:
            return {'success': False, 'message': 'Unknown server'}
        return create_client(instance).test_connection()

    # ==================== Automation ====================

    def start_scheduler(self):
        self.scheduler.start()

    def trigger_cycle(self, dry_run: bool = False):
        """Start a manual cycle in the background; raises CycleActiveError."""
        self.scheduler.trigger_manual(dry_run=dry_run)

    def run_cycle(self, dry_run: bool = False, ctx: Optional[Context] = None) -> CycleResult:
        """Run one manual cycle in the calling thread."""
        return self.automation.run_cycle(ctx, is_manual=True, dry_run=dry_run)

    def scan(self, ctx: Optional[Context] = None) -> Dict[str, DetectionResult]:
        """Detection only: nothing is searched or logged to the activity log."""
        return self.detector.detect_all(ctx or Context.background(), self.config.list_enabled_servers())

    def get_status(self) -> Dict[str, Any]:
        return self.scheduler.get_status().to_dict()

    def shutdown(self, timeout: float = 30.0):
        self.log.info("🛑 Shutting down...")
        self.scheduler.shutdown(timeout)

    # ==================== Activity log ====================

    def get_logs(self, limit: int = 100, offset: int = 0, log_type: Optional[str] = None,
                 server_name: Optional[str] = None) -> List[LogEntry]:
        return self.log_store.get_logs(limit=limit, offset=offset, log_type=log_type,
                                       server_name=server_name)

    def clear_logs(self):
        self.log_store.clear()
        self.log.info("Activity log cleared")
