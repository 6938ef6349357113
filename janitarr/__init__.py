"""
Janitarr - Automated search for missing and upgradeable media.
A companion tool for Radarr and Sonarr that periodically detects missing and
cutoff-unmet items and triggers a fair share of searches on every server.
"""

__version__ = "0.1.0"
__app_name__ = "Janitarr"

from .config import Config
from .logger import Logger
