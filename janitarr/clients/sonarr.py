"""
Sonarr API client for Janitarr.
Handles wanted/missing, wanted/cutoff and episode search commands.
"""

from typing import Dict, List, Optional

from .base import BaseClient
from ..context import Context
from ..models import MediaItem, ServerType


class SonarrClient(BaseClient):
    """Client for Sonarr API v3."""

    server_type = ServerType.SONARR

    # ==================== Wanted ====================

    def get_missing(self, ctx: Optional[Context] = None) -> List[MediaItem]:
        """Get monitored missing episodes across all pages."""
        return self._get_all_pages('wanted/missing', self._to_item, ctx=ctx,
                                   extra_params={'includeSeries': 'true'})

    def get_cutoff_unmet(self, ctx: Optional[Context] = None) -> List[MediaItem]:
        """Get episodes that don't meet quality cutoff."""
        return self._get_all_pages('wanted/cutoff', self._to_item, ctx=ctx,
                                   extra_params={'includeSeries': 'true'})

    @staticmethod
    def _to_item(record: Dict) -> MediaItem:
        series = record.get('series') or {}
        return MediaItem(
            id=record.get('id', 0),
            title=record.get('title', ''),
            type='episode',
            series_title=series.get('title') or record.get('seriesTitle'),
            season_number=record.get('seasonNumber'),
            episode_number=record.get('episodeNumber'),
        )

    # ==================== Search ====================

    def trigger_search(self, item: MediaItem, ctx: Optional[Context] = None) -> Dict:
        """Trigger search for a specific episode."""
        return self.post('command', data={
            'name': 'EpisodeSearch',
            'episodeIds': [item.id]
        }, ctx=ctx)

