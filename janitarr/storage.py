"""
Activity log storage for Janitarr.
One JSON object per line, newest entries appended at the end.
"""

import json
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from .activity import LogEntry


class LogStoreError(Exception):
    """The activity log could not be written or read."""
    pass


class LogStore:
    """Append-only JSON-lines store for activity entries."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(self, entry: LogEntry):
        line = json.dumps(entry.to_dict())
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, 'a', encoding='utf-8') as f:
                    f.write(line + '\n')
            except OSError as e:
                raise LogStoreError(f"Could not write activity log {self.path}: {e}") from e

    def _read_all(self) -> List[LogEntry]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                lines = f.readlines()
        except OSError as e:
            raise LogStoreError(f"Could not read activity log {self.path}: {e}") from e

        entries = []
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(LogEntry.from_dict(json.loads(line)))
            except (ValueError, TypeError):
                continue  # Torn write from a crash
        return entries

    def _write_all(self, entries: List[LogEntry]):
        tmp = self.path.with_suffix(self.path.suffix + '.tmp')
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, 'w', encoding='utf-8') as f:
                for entry in entries:
                    f.write(json.dumps(entry.to_dict()) + '\n')
            tmp.replace(self.path)
        except OSError as e:
            raise LogStoreError(f"Could not rewrite activity log {self.path}: {e}") from e

    def get_logs(self, limit: int = 100, offset: int = 0,
                 log_type: Optional[str] = None,
                 server_name: Optional[str] = None) -> List[LogEntry]:
        """Entries newest first, optionally filtered."""
        with self._lock:
            entries = self._read_all()
        entries.reverse()
        if log_type:
            entries = [e for e in entries if e.type == log_type]
        if server_name:
            entries = [e for e in entries if e.server_name == server_name]
        return entries[offset:offset + limit]

    def count(self) -> int:
        with self._lock:
            return len(self._read_all())

    def clear(self):
        with self._lock:
            self._write_all([])

    def purge_older_than(self, days: int) -> int:
        """Delete entries older than `days`; returns how many went."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        with self._lock:
            entries = self._read_all()
            keep = [e for e in entries if e.timestamp is None or _aware(e.timestamp) >= cutoff]
            removed = len(entries) - len(keep)
            if removed:
                self._write_all(keep)
        return removed


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
