"""API Clients for Radarr and Sonarr."""

from .base import APIError, RateLimitError, BaseClient
from .sonarr import SonarrClient
from .radarr import RadarrClient
from ..models import ServerType


def create_client(instance, timeout: float = 15) -> BaseClient:
    """Build the right client for a configured server instance."""
    if ServerType(instance.type) == ServerType.SONARR:
        return SonarrClient(instance.url, instance.api_key, instance.name, timeout=timeout)
    return RadarrClient(instance.url, instance.api_key, instance.name, timeout=timeout)


__all__ = ['APIError', 'RateLimitError', 'BaseClient', 'SonarrClient', 'RadarrClient', 'create_client']
