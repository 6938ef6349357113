"""
Activity log for Janitarr.
Persists structured activity entries and fans them out to live subscribers.
"""

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional


class LogType:
    """Activity entry types."""
    CYCLE_START = 'cycle_start'
    CYCLE_END = 'cycle_end'
    SEARCH = 'search'
    ERROR = 'error'

    ALL = (CYCLE_START, CYCLE_END, SEARCH, ERROR)


@dataclass
class LogEntry:
    """A single activity log entry."""
    type: str
    message: str
    id: str = ""
    timestamp: Optional[datetime] = None
    server_name: Optional[str] = None
    server_type: Optional[str] = None
    category: Optional[str] = None
    count: Optional[int] = None
    is_manual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'type': self.type,
            'message': self.message,
            'isManual': self.is_manual,
        }
        # Optional fields are omitted when unset
        for key, value in (('serverName', self.server_name), ('serverType', self.server_type),
                           ('category', self.category), ('count', self.count)):
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        timestamp = data.get('timestamp')
        return cls(
            id=data.get('id', ''),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
            type=data.get('type', ''),
            message=data.get('message', ''),
            server_name=data.get('serverName'),
            server_type=data.get('serverType'),
            category=data.get('category'),
            count=data.get('count'),
            is_manual=data.get('isManual', False),
        )


class Subscription:
    """
    Bounded live-tail buffer for one subscriber.

    offer() never blocks: when the buffer is full the entry is dropped for
    this subscriber only. get() keeps returning buffered entries after
    close() until the buffer has drained.
    """

    def __init__(self, maxsize: int = 100):
        self.maxsize = maxsize
        self._items: deque = deque()
        self._cond = threading.Condition()
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, entry: LogEntry) -> bool:
        with self._cond:
            if self._closed or len(self._items) >= self.maxsize:
                self.dropped += 1
                return False
            self._items.append(entry)
            self._cond.notify()
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[LogEntry]:
        """Next entry, or None on timeout or once closed and drained."""
        with self._cond:
            if not self._items and not self._closed:
                self._cond.wait(timeout)
            if self._items:
                return self._items.popleft()
            return None

    def close(self):
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)


class ActivityLog:
    """
    Durable activity log with a live-tail broadcast.

    Every entry is written to the store first; only after the write succeeds
    is it offered to subscribers. A slow subscriber loses entries from its
    own live tail, never from the store.
    """

    def __init__(self, store, console: Optional[logging.Logger] = None,
                 subscriber_buffer: int = 100):
        if store is None:
            raise ValueError("ActivityLog requires a log store")
        self.store = store
        self.console = console or logging.getLogger("janitarr.activity")
        self.subscriber_buffer = subscriber_buffer
        self._lock = threading.Lock()
        self._subscribers: List[Subscription] = []

    def add_log(self, entry: LogEntry) -> LogEntry:
        """Persist then broadcast. LogStoreError propagates, nothing is sent."""
        if not entry.id:
            entry.id = str(uuid.uuid4())
        if entry.timestamp is None:
            entry.timestamp = datetime.now(timezone.utc)
        self.store.append(entry)
        self._broadcast(entry)
        return entry

    def subscribe(self, maxsize: Optional[int] = None) -> Subscription:
        subscription = Subscription(maxsize or self.subscriber_buffer)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)
        subscription.close()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _broadcast(self, entry: LogEntry):
        with self._lock:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.offer(entry)

    # ==================== Typed helpers ====================

    def log_cycle_start(self, is_manual: bool, dry_run: bool = False) -> LogEntry:
        self.console.info(f"🚀 Automation cycle started (manual={is_manual}, dry_run={dry_run})")
        return self.add_log(LogEntry(
            type=LogType.CYCLE_START,
            message=_prefix(dry_run, "Automation cycle started."),
            is_manual=is_manual,
        ))

    def log_cycle_end(self, total_searches: int, failures: int, is_manual: bool,
                      dry_run: bool = False) -> LogEntry:
        self.console.info(f"🏁 Automation cycle finished: {total_searches} searches, {failures} failures")
        return self.add_log(LogEntry(
            type=LogType.CYCLE_END,
            message=_prefix(dry_run, f"Automation cycle finished. {total_searches} searches triggered, {failures} failed."),
            count=total_searches,
            is_manual=is_manual,
        ))

    def log_searches(self, server_name: Optional[str], server_type: Optional[str],
                     category: str, count: int, is_manual: bool,
                     dry_run: bool = False) -> LogEntry:
        self.console.info(f"🔍 {category}: {count} searches on {server_name or 'no server'}")
        verb = "Would trigger" if dry_run else "Triggered"
        return self.add_log(LogEntry(
            type=LogType.SEARCH,
            message=_prefix(dry_run, f"{verb} {count} {category.replace('_', ' ')} searches."),
            server_name=server_name,
            server_type=server_type,
            category=category,
            count=count,
            is_manual=is_manual,
        ))

    def log_item_search(self, server_name: str, server_type: str, category: str,
                        title: str, is_manual: bool, dry_run: bool = False) -> LogEntry:
        self.console.debug(f"Search: {title} on {server_name} ({category})")
        return self.add_log(LogEntry(
            type=LogType.SEARCH,
            message=_prefix(dry_run, f"Search triggered: {title}"),
            server_name=server_name,
            server_type=server_type,
            category=category,
            count=1,
            is_manual=is_manual,
        ))

    def log_server_error(self, server_name: str, server_type: str, reason: str,
                         is_manual: bool = False) -> LogEntry:
        self.console.error(f"❌ Server error on {server_name} ({server_type}): {reason}")
        return self.add_log(LogEntry(
            type=LogType.ERROR,
            message=reason,
            server_name=server_name,
            server_type=server_type,
            is_manual=is_manual,
        ))

    def log_search_error(self, server_name: str, server_type: str, category: str,
                         reason: str, count: int = 1, is_manual: bool = False) -> LogEntry:
        self.console.error(f"❌ Search error on {server_name} ({category}): {reason}")
        return self.add_log(LogEntry(
            type=LogType.ERROR,
            message=f"{count} {category.replace('_', ' ')} searches failed: {reason}",
            server_name=server_name,
            server_type=server_type,
            category=category,
            count=count,
            is_manual=is_manual,
        ))


def _prefix(dry_run: bool, message: str) -> str:
    return f"[dry run] {message}" if dry_run else message
