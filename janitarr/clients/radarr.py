"""
Radarr API client for Janitarr.
Handles wanted/missing, wanted/cutoff and movie search commands.
"""

from typing import Dict, List, Optional

from .base import BaseClient
from ..context import Context
from ..models import MediaItem, ServerType


class RadarrClient(BaseClient):
    """Client for Radarr API v3."""

    server_type = ServerType.RADARR

    # ==================== Wanted ====================

    def get_missing(self, ctx: Optional[Context] = None) -> List[MediaItem]:
        """Get all monitored missing movies (paginated internally)."""
        return self._get_all_pages('wanted/missing', self._to_item, ctx=ctx)

    def get_cutoff_unmet(self, ctx: Optional[Context] = None) -> List[MediaItem]:
        """Get movies that don't meet quality cutoff."""
        return self._get_all_pages('wanted/cutoff', self._to_item, ctx=ctx)

    @staticmethod
    def _to_item(record: Dict) -> MediaItem:
        return MediaItem(
            id=record.get('id', 0),
            title=record.get('title', ''),
            type='movie',
            year=record.get('year'),
        )

    # ==================== Search ====================

    def trigger_search(self, item: MediaItem, ctx: Optional[Context] = None) -> Dict:
        """Trigger search for a specific movie."""
        return self.post('command', data={
            'name': 'MoviesSearch',
            'movieIds': [item.id]
        }, ctx=ctx)

