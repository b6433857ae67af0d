"""
Fetch Coordinator for the Checkup Release Cache

Decides, per repository key, whether a request is served from the store,
answered with a placeholder while a background refresh runs, or answered with
the last upstream error. At most one upstream fetch per key is in flight at
any time, process-wide.

States:
    FRESH   -- a snapshot exists and is within its TTL
    STALE   -- a snapshot exists but has expired; a refresh was started (or one
               is already running, or the key is failing) and the old data is served
    PENDING -- no snapshot exists and a refresh is in flight
    FAILED  -- no snapshot exists and the last refresh failed
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from checkup.exceptions import (
    AlreadyProcessingError,
    SerializationError,
    StorageError,
    UpstreamError,
)
from checkup.log_utils import logger

from .cache import ReleaseStore
from .interfaces import CacheEntry, Release, ReleaseSource, RepositoryKey

# (key, releases, cached_at, provider) -> rendered release page
Renderer = Callable[[RepositoryKey, List[Release], datetime, str], str]


class FetchState(Enum):
    FRESH = "fresh"
    STALE = "stale"
    PENDING = "pending"
    FAILED = "failed"


@dataclass
class FetchOutcome:
    """Result of asking the coordinator for a repository's releases."""

    state: FetchState
    entry: Optional[CacheEntry] = None
    error: Optional[str] = None
    """Last upstream error message; set for FAILED, and for STALE while the key is failing"""

    @property
    def has_data(self) -> bool:
        return self.entry is not None

    @property
    def releases(self) -> List[Release]:
        return self.entry.releases if self.entry else []


class FetchTracker:
    """
    Process-wide bookkeeping of in-flight and failed fetches.

    `try_begin` checks and claims a key without yielding to the event loop, so
    two coroutines can never both claim the same key.
    """

    def __init__(self) -> None:
        self._pending: Set[str] = set()
        self._failed: Dict[str, str] = {}

    def try_begin(self, key: RepositoryKey) -> bool:
        """Claim `key` for a fetch; returns False if a fetch is already in flight."""
        cache_key = key.cache_key
        if cache_key in self._pending:
            return False
        self._pending.add(cache_key)
        return True

    def finish(self, key: RepositoryKey) -> None:
        self._pending.discard(key.cache_key)

    def is_pending(self, key: RepositoryKey) -> bool:
        return key.cache_key in self._pending

    def record_failure(self, key: RepositoryKey, message: str) -> None:
        self._failed[key.cache_key] = message

    def clear_failure(self, key: RepositoryKey) -> None:
        self._failed.pop(key.cache_key, None)

    def failure(self, key: RepositoryKey) -> Optional[str]:
        return self._failed.get(key.cache_key)

    @property
    def pending_count(self) -> int:
        return len(self._pending)


_default_tracker = FetchTracker()


def get_default_tracker() -> FetchTracker:
    return _default_tracker


class FetchCoordinator:
    """
    Single-flight, stale-while-revalidate access to one release source.

    Every coordinator shares the process-wide FetchTracker unless one is
    passed in, so coordinators for different sources still agree on which
    keys are in flight.
    """

    def __init__(
        self,
        store: ReleaseStore,
        source: ReleaseSource,
        renderer: Renderer,
        tracker: Optional[FetchTracker] = None,
    ):
        """
        Parameters:
            store (ReleaseStore): Persistent snapshot store.
            source (ReleaseSource): Upstream adapter used for every fetch.
            renderer (Renderer): Builds the release page stored next to each snapshot.
            tracker (Optional[FetchTracker]): Pending/failed bookkeeping; defaults to the process-wide tracker.
        """
        self.store = store
        self.source = source
        self.renderer = renderer
        self.tracker = tracker or get_default_tracker()
        self._tasks: Set["asyncio.Task[None]"] = set()

    @property
    def provider(self) -> str:
        return self.source.provider

    async def _read_entry(self, key: RepositoryKey) -> Optional[CacheEntry]:
        """Read the stored snapshot, treating unreadable or malformed data as a miss."""
        try:
            return await asyncio.to_thread(self.store.read_entry, key)
        except SerializationError as e:
            logger.warning("Ignoring malformed cache entry for %s: %s", key, e)
        except StorageError as e:
            logger.warning("Could not read cache entry for %s: %s", key, e)
        return None

    async def get_or_refresh(
        self, key: RepositoryKey, retry: bool = False
    ) -> FetchOutcome:
        """
        Return the current state for `key`, starting a background refresh if needed.

        Parameters:
            key (RepositoryKey): Repository to look up.
            retry (bool): Forget a remembered failure first so a new fetch may start.

        Returns:
            FetchOutcome: FRESH/STALE carry the stored snapshot; PENDING and FAILED carry none.
        """
        entry = await self._read_entry(key)
        if entry is not None and not self.store.is_expired(entry.cached_at):
            return FetchOutcome(FetchState.FRESH, entry=entry)

        if retry and self.tracker.failure(key) is not None:
            logger.info("Retrying failed repository %s", key)
            self.tracker.clear_failure(key)

        error = self.tracker.failure(key)
        if error is not None:
            if entry is not None:
                return FetchOutcome(FetchState.STALE, entry=entry, error=error)
            return FetchOutcome(FetchState.FAILED, error=error)

        if self.tracker.try_begin(key):
            # A refresh may have completed while the first read was in flight
            try:
                entry = await self._read_entry(key)
            except BaseException:
                self.tracker.finish(key)
                raise
            if entry is not None and not self.store.is_expired(entry.cached_at):
                self.tracker.finish(key)
                return FetchOutcome(FetchState.FRESH, entry=entry)
            self._start_refresh(key)

        if entry is not None:
            return FetchOutcome(FetchState.STALE, entry=entry)
        return FetchOutcome(FetchState.PENDING)

    def _start_refresh(self, key: RepositoryKey) -> None:
        """Launch a supervised background refresh for a key already claimed in the tracker."""
        logger.debug("Starting background refresh for %s", key)
        task = asyncio.create_task(self._refresh(key), name=f"refresh:{key}")
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_refresh_done(key, t))

    def _on_refresh_done(self, key: RepositoryKey, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        # A task cancelled before it first ran never reaches its finally block
        if task.cancelled():
            self.tracker.finish(key)

    async def _refresh(self, key: RepositoryKey) -> None:
        try:
            await self._fetch_and_store(key)
        except UpstreamError:
            # Already recorded in the tracker and logged
            pass
        except Exception as e:
            logger.exception("Unexpected error refreshing %s", key)
            self.tracker.record_failure(key, f"Internal error: {e}")
        finally:
            self.tracker.finish(key)

    async def _fetch_and_store(self, key: RepositoryKey) -> List[Release]:
        """
        Fetch from upstream and persist the result.

        A persistence failure is logged and does not fail the fetch.

        Raises:
            UpstreamError: If the source fails; the message is recorded as the key's failure first.
        """
        try:
            releases = await self.source.fetch_releases(key)
        except UpstreamError as e:
            logger.error("Fetching releases for %s failed: %s", key, e)
            self.tracker.record_failure(key, str(e))
            raise

        cached_at = self.store.now()
        html = self.renderer(key, releases, cached_at, self.provider)
        try:
            await asyncio.to_thread(
                self.store.write_entry, key, releases, html, cached_at
            )
        except StorageError as e:
            logger.error("Could not persist releases for %s: %s", key, e)

        self.tracker.clear_failure(key)
        logger.info("Cached %d releases for %s", len(releases), key)
        return releases

    async def blocking_fetch(
        self, key: RepositoryKey, strict: bool = False
    ) -> List[Release]:
        """
        Return releases for `key`, fetching inline when the snapshot is missing or expired.

        The inline fetch does not claim the key in the tracker, so it may run
        alongside a background refresh of the same key.

        Parameters:
            key (RepositoryKey): Repository to look up.
            strict (bool): Raise AlreadyProcessingError instead of fetching while a refresh is in flight.

        Raises:
            UpstreamError: If the inline fetch fails.
            AlreadyProcessingError: In strict mode, if a refresh for `key` is in flight.
        """
        entry = await self._read_entry(key)
        if entry is not None and not self.store.is_expired(entry.cached_at):
            return entry.releases

        if strict and self.tracker.is_pending(key):
            raise AlreadyProcessingError(key.cache_key)

        return await self._fetch_and_store(key)

    async def snapshot(self, key: RepositoryKey) -> Optional[CacheEntry]:
        """Return the stored snapshot for `key` regardless of age, or None."""
        return await self._read_entry(key)

    async def wait_idle(self) -> None:
        """Wait until every background refresh started by this coordinator has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding background refreshes and wait for them to unwind."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
