"""
Base HTTP client for Radarr/Sonarr API communication.
Uses urllib to avoid external dependencies.
"""

import json
import logging
import re
import socket
import time
import urllib.request
import urllib.error
import urllib.parse
from typing import Dict, Any, List, Optional, Callable
from abc import ABC, abstractmethod

from ..context import Context
from ..models import MediaItem, ServerType


DEFAULT_TIMEOUT = 15
PAGE_SIZE = 100
MAX_PAGES = 500  # 50,000 items max


class APIError(Exception):
    """Exception raised for API errors."""
    def __init__(self, message: str, status_code: int = 0, response: str = ""):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class RateLimitError(APIError):
    """HTTP 429 from the server."""
    def __init__(self, message: str, retry_after: Optional[int] = None, response: str = ""):
        super().__init__(message, status_code=429, response=response)
        self.retry_after = retry_after


def normalize_url(url: str) -> str:
    """Ensure a URL has a scheme and no trailing slash."""
    normalized = url.strip()
    if not re.match(r'^https?://', normalized):
        normalized = f"http://{normalized}"
    return normalized.rstrip('/')


class BaseClient(ABC):
    """Base class for *arr API clients."""

    server_type: ServerType

    def __init__(self, url: str, api_key: str, name: str = "",
                 timeout: float = DEFAULT_TIMEOUT):
        self.base_url = normalize_url(url)
        self.api_key = api_key
        self.name = name or self.__class__.__name__
        self.timeout = timeout
        self.log = logging.getLogger(f"janitarr.clients.{self.server_type.value}")

    @property
    def api_version(self) -> str:
        """API version path."""
        return "/api/v3"

    def _build_url(self, endpoint: str, params: Optional[Dict] = None) -> str:
        """Build full URL with optional query parameters."""
        url = f"{self.base_url}{self.api_version}/{endpoint.lstrip('/')}"
        if params:
            query = urllib.parse.urlencode(params)
            url = f"{url}?{query}"
        return url

    def _get_headers(self) -> Dict[str, str]:
        """Get request headers with API key."""
        return {
            'X-Api-Key': self.api_key,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def _request_timeout(self, ctx: Optional[Context]) -> float:
        """Per-request timeout, never past the context deadline."""
        if ctx is None:
            return self.timeout
        ctx.check()
        remaining = ctx.remaining()
        if remaining is None:
            return self.timeout
        return max(0.001, min(self.timeout, remaining))

    def _request(self, method: str, endpoint: str,
                 params: Optional[Dict] = None,
                 data: Optional[Dict] = None,
                 ctx: Optional[Context] = None) -> Any:
        """Make HTTP request and decode the JSON response."""
        url = self._build_url(endpoint, params)
        timeout = self._request_timeout(ctx)

        body = None
        if data is not None:
            body = json.dumps(data).encode('utf-8')

        req = urllib.request.Request(url, data=body, headers=self._get_headers(), method=method)

        start_time = time.time()
        try:
            with urllib.request.urlopen(req, timeout=timeout) as response:
                content = response.read().decode('utf-8')
                elapsed_ms = (time.time() - start_time) * 1000
                self.log.debug(f"{self.name}: {method} {endpoint} -> {response.status} ({elapsed_ms:.0f}ms)")
                if content:
                    return json.loads(content)
                return {}
        except urllib.error.HTTPError as e:
            response_body = ""
            try:
                response_body = e.read().decode('utf-8')
            except (OSError, UnicodeDecodeError):
                pass
            raise self._error_for_status(e.code, e.reason, response_body, e.headers)
        except urllib.error.URLError as e:
            if ctx is not None:
                ctx.check()
            if isinstance(e.reason, socket.timeout):
                raise APIError(f"Request timeout after {timeout:.1f}s")
            raise APIError(f"Connection error: {e.reason}")
        except socket.timeout:
            if ctx is not None:
                ctx.check()
            raise APIError(f"Request timeout after {timeout:.1f}s")
        except OSError as e:
            if ctx is not None:
                ctx.check()
            raise APIError(f"Connection error: {e}")
        except json.JSONDecodeError as e:
            raise APIError(f"Invalid JSON response: {e}")

    def _error_for_status(self, code: int, reason: str, body: str, headers) -> APIError:
        if code == 401:
            return APIError("Unauthorized: invalid API key", status_code=code, response=body)
        if code == 404:
            return APIError("Not found: check server URL", status_code=code, response=body)
        if code == 429:
            retry_after = None
            if headers is not None and headers.get('Retry-After', '').isdigit():
                retry_after = int(headers.get('Retry-After'))
            return RateLimitError("Rate limited by server", retry_after=retry_after, response=body)
        return APIError(f"HTTP {code}: {reason}", status_code=code, response=body)

    def get(self, endpoint: str, params: Optional[Dict] = None,
            ctx: Optional[Context] = None) -> Any:
        """HTTP GET request."""
        return self._request('GET', endpoint, params=params, ctx=ctx)

    def post(self, endpoint: str, data: Optional[Dict] = None,
             params: Optional[Dict] = None, ctx: Optional[Context] = None) -> Any:
        """HTTP POST request."""
        return self._request('POST', endpoint, params=params, data=data or {}, ctx=ctx)

    def _get_all_pages(self, endpoint: str, to_item: Callable[[Dict], MediaItem],
                       ctx: Optional[Context] = None,
                       extra_params: Optional[Dict] = None) -> List[MediaItem]:
        """Walk a paged wanted/* endpoint, oldest id first."""
        items: List[MediaItem] = []
        page = 1
        while page <= MAX_PAGES:
            params = {
                'page': page,
                'pageSize': PAGE_SIZE,
                'sortKey': 'id',
                'sortDirection': 'ascending',
            }
            if extra_params:
                params.update(extra_params)
            result = self.get(endpoint, params=params, ctx=ctx) or {}
            records = result.get('records', [])
            items.extend(to_item(r) for r in records)

            total = result.get('totalRecords', 0)
            if not records or len(items) >= total:
                break
            page += 1
        return items

    def test_connection(self) -> Dict[str, Any]:
        """Test connection to the service."""
        try:
            status = self.get('system/status')
            return {
                'success': True,
                'message': 'Connected',
                'version': status.get('version', ''),
                'appName': status.get('appName', ''),
            }
        except APIError as e:
            return {'success': False, 'message': str(e)}

    # ==================== Automation interface ====================

    @abstractmethod
    def get_missing(self, ctx: Optional[Context] = None) -> List[MediaItem]:
        """All monitored items with no file."""

    @abstractmethod
    def get_cutoff_unmet(self, ctx: Optional[Context] = None) -> List[MediaItem]:
        """All items whose file is below the quality cutoff."""

    @abstractmethod
    def trigger_search(self, item: MediaItem, ctx: Optional[Context] = None) -> Dict:
        """Ask the server to search indexers for one item."""
