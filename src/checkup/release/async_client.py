"""
Async HTTP Client for Checkup

This module provides the shared aiohttp session used by every release source.
It pools connections, remembers each upstream host's advertised rate limit and
turns transport and HTTP failures into UpstreamError.

Example:
    async with AsyncReleaseClient() as client:
        data = await client.get_json("https://api.github.com/repos/owner/repo/releases")
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import aiohttp
from aiohttp import ClientResponse, ClientSession, ClientTimeout, TCPConnector

from checkup.constants import (
    DEFAULT_CONNECTOR_LIMIT,
    DEFAULT_LIMIT_PER_HOST,
    DEFAULT_REQUEST_TIMEOUT,
    HTTP_STATUS_ERROR_THRESHOLD,
    HTTP_STATUS_RETRY_THRESHOLD,
)
from checkup.exceptions import UpstreamError
from checkup.log_utils import logger
from checkup.utils import get_user_agent

_RATE_LIMITED_STATUSES = (403, 429)


def _pool_size(name: str, value: Any, default: int) -> int:
    """Coerce a connection pool setting to an int >= 1, warning about bad values."""
    try:
        size = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s value %r; using %d", name, value, default)
        return default
    if size < 1:
        logger.warning("%s must be at least 1, got %d; using 1", name, size)
        return 1
    return size


@dataclass
class HostRateLimit:
    """Last rate-limit headers seen from one upstream host."""

    remaining: Optional[int] = None
    reset_at: Optional[datetime] = None

    def exhausted(self, now: datetime) -> bool:
        return self.remaining == 0 and self.reset_at is not None and self.reset_at > now

    def expired(self, now: datetime) -> bool:
        return self.reset_at is not None and self.reset_at < now

    def update(self, response: ClientResponse) -> None:
        """Read `X-RateLimit-Remaining` / `X-RateLimit-Reset`; unparsable values are ignored."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining:
            try:
                self.remaining = int(remaining)
            except (TypeError, ValueError):
                pass

        reset = response.headers.get("X-RateLimit-Reset")
        if reset:
            try:
                self.reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc)
            except (TypeError, ValueError, OSError):
                pass


class AsyncReleaseClient:
    """
    Asynchronous HTTP client shared by the release sources.

    The session is created on first use and reused for every upstream call.
    The configured total timeout is the only bound on a single fetch.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        connector_limit: int = DEFAULT_CONNECTOR_LIMIT,
        limit_per_host: int = DEFAULT_LIMIT_PER_HOST,
    ) -> None:
        """
        Parameters:
            timeout (float): Total request timeout in seconds.
            connector_limit (int): Maximum number of pooled connections.
            limit_per_host (int): Maximum connections to a single upstream host.
        """
        self.timeout = ClientTimeout(total=timeout)
        self.connector_limit = _pool_size(
            "connector_limit", connector_limit, DEFAULT_CONNECTOR_LIMIT
        )
        self.limit_per_host = _pool_size(
            "limit_per_host", limit_per_host, DEFAULT_LIMIT_PER_HOST
        )
        self._session: Optional[ClientSession] = None
        self._closed = False
        self.rate_limits: Dict[str, HostRateLimit] = {}

    async def __aenter__(self) -> "AsyncReleaseClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, *_exc_info: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        """Return the open session, creating a new one if there is none or it was closed."""
        if self._session is not None and not self._session.closed:
            return self._session

        self._session = ClientSession(
            connector=TCPConnector(
                limit=self.connector_limit,
                limit_per_host=self.limit_per_host,
                enable_cleanup_closed=True,
            ),
            timeout=self.timeout,
            headers=self._get_default_headers(),
        )
        self._closed = False
        return self._session

    def _get_default_headers(self) -> Dict[str, str]:
        return {"User-Agent": get_user_agent()}

    async def close(self) -> None:
        """Close the session; the next request opens a new one."""
        session, self._session = self._session, None
        if session is not None and not session.closed:
            await session.close()
        self._closed = True
        self._forget_expired_rate_limits()

    def _forget_expired_rate_limits(self) -> None:
        now = datetime.now(timezone.utc)
        expired = [host for host, limit in self.rate_limits.items() if limit.expired(now)]
        for host in expired:
            del self.rate_limits[host]
        if expired:
            logger.debug("Forgot expired rate limits for %s", ", ".join(expired))

    def _check_rate_limit(self, host: str, url: str) -> None:
        """
        Raises:
            UpstreamError: If `host` reported no remaining requests and its reset time has not passed.
        """
        self._forget_expired_rate_limits()
        limit = self.rate_limits.get(host)
        if limit is not None and limit.exhausted(datetime.now(timezone.utc)):
            raise UpstreamError(
                f"API rate limit exceeded for {host}. Resets at {limit.reset_at}",
                url=url,
                status_code=403,
                is_retryable=True,
            )

    def _raise_for_status(self, host: str, url: str, response: ClientResponse) -> None:
        limit = self.rate_limits[host]
        if response.status in _RATE_LIMITED_STATUSES and limit.remaining == 0:
            raise UpstreamError(
                f"API rate limit exceeded for {host}. Resets at {limit.reset_at}",
                url=url,
                status_code=response.status,
                is_retryable=True,
            )
        if response.status >= HTTP_STATUS_ERROR_THRESHOLD:
            raise UpstreamError(
                f"{host} returned status: {response.status}",
                url=url,
                status_code=response.status,
                is_retryable=response.status >= HTTP_STATUS_RETRY_THRESHOLD,
            )

    async def _request(
        self,
        url: str,
        *,
        as_json: bool,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        host = urlparse(url).hostname or ""
        self._check_rate_limit(host, url)
        session = await self._ensure_session()

        try:
            async with session.get(url, params=params, headers=headers) as response:
                self.rate_limits.setdefault(host, HostRateLimit()).update(response)
                self._raise_for_status(host, url, response)
                if as_json:
                    return await response.json(content_type=None)
                return await response.text()
        except aiohttp.ClientError as e:
            logger.error(f"Network error fetching {url}: {e}")
            raise UpstreamError(f"Network error: {e}", url=url, is_retryable=True) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out fetching {url}")
            raise UpstreamError(
                f"Request to {host} timed out", url=url, is_retryable=True
            ) from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Invalid response body from {url}: {e}")
            raise UpstreamError(
                f"Invalid response from {host}", url=url, details=str(e)
            ) from e

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        GET `url` and decode the body as JSON.

        Raises:
            UpstreamError: On HTTP error statuses, transport failures, timeouts or invalid JSON.
        """
        return await self._request(url, as_json=True, params=params, headers=headers)

    async def get_text(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        GET `url` and return the decoded body.

        Raises:
            UpstreamError: On HTTP error statuses, transport failures or timeouts.
        """
        return await self._request(url, as_json=False, params=params, headers=headers)
