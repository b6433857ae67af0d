"""
Release Store for the Checkup Release Cache

This module persists one snapshot per repository key on disk: the release
list, the pre-rendered HTML page and a separate freshness timestamp.

Layout::

    <cache_dir>/repo/<host>/<owner>/<repo>/
        releases.json
        index.html
        cached_at
    <cache_dir>/repo-path/<host>/<repository path>/
        (same files, for owner-less cgit keys)

A refresh writes the payload files first and the timestamp last, each through
a temporary file and an atomic rename, so a reader that sees a new timestamp
always sees the payload it belongs to.
"""

import contextlib
import json
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from checkup.constants import (
    APP_NAME,
    CACHE_HTML_FILE,
    CACHE_PATH_REPO_DIR_NAME,
    CACHE_RELEASES_FILE,
    CACHE_REPO_DIR_NAME,
    CACHE_TIMESTAMP_FILE,
    DEFAULT_CACHE_HOURS,
)
from checkup.exceptions import SerializationError, StorageError
from checkup.log_utils import logger
from checkup.utils import parse_iso_datetime_utc

from .interfaces import CacheEntry, Release, RepositoryKey


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _atomic_write_text(file_path: str, content: str) -> bool:
    """
    Replace `file_path` with `content` through a sibling temporary file.

    The temporary file is flushed to disk before `os.replace`, so the target
    is either the old file or the complete new one.

    Returns:
        bool: `True` once the new content is in place, `False` (after logging) on any error.
    """
    directory, name = os.path.split(file_path)
    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, prefix=f".{name}.", delete=False
        ) as temp_f:
            temp_path = temp_f.name
            temp_f.write(content)
            temp_f.flush()
            os.fsync(temp_f.fileno())
        os.replace(temp_path, file_path)
        temp_path = None
    except (OSError, UnicodeEncodeError) as e:
        logger.error(f"Could not write cache file {file_path}: {e}")
        return False
    finally:
        if temp_path is not None:
            with contextlib.suppress(OSError):
                os.remove(temp_path)
    return True


class ReleaseStore:
    """
    Filesystem-backed store holding the latest release snapshot per repository.

    Entries are overwritten wholesale by each successful refresh and are never
    deleted here; removing the cache directory is the only eviction.
    """

    def __init__(
        self,
        cache_dir: Optional[str] = None,
        cache_hours: float = DEFAULT_CACHE_HOURS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the store with a cache directory and a fixed TTL.

        Parameters:
            cache_dir (Optional[str]): Root directory for cached entries. If None, the platform user cache directory is used.
            cache_hours (float): Time-to-live applied to every entry; negative values are clamped to 0.
            clock (Optional[Callable[[], datetime]]): Source of the current UTC time; injectable for tests.
        """
        self.cache_dir = str(cache_dir or self._get_default_cache_dir())
        self.ttl = timedelta(hours=max(float(cache_hours), 0.0))
        self._clock = clock or _utc_now
        self._ensure_cache_dir_exists()

    def _get_default_cache_dir(self) -> str:
        import platformdirs

        return platformdirs.user_cache_dir(APP_NAME)

    def _ensure_cache_dir_exists(self) -> None:
        """
        Ensure the store's root directory exists, creating it if necessary.

        Raises:
            OSError: If the directory cannot be created or is otherwise inaccessible.
        """
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create cache directory {self.cache_dir}: {e}")
            raise

    def now(self) -> datetime:
        return self._clock()

    def get_cache_path(self, key: RepositoryKey) -> str:
        """
        Return the directory holding the snapshot for `key`.

        Owner/repo keys and owner-less repository paths use separate roots, so
        `host/a/b` and the cgit path `a/b` on the same host never share a directory.
        """
        root = CACHE_REPO_DIR_NAME if key.owner else CACHE_PATH_REPO_DIR_NAME
        return os.path.join(self.cache_dir, root, *key.path_segments())

    def _file_path(self, key: RepositoryKey, name: str) -> str:
        return os.path.join(self.get_cache_path(key), name)

    def _ensure_entry_dir(self, key: RepositoryKey) -> str:
        entry_dir = self.get_cache_path(key)
        try:
            os.makedirs(entry_dir, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Could not create cache directory for {key}", path=entry_dir
            ) from e
        return entry_dir

    def _read_text(self, file_path: str) -> Optional[str]:
        """
        Read a cache file, returning None when it does not exist.

        Raises:
            StorageError: If the file exists but cannot be read.
        """
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError("Could not read cache file", path=file_path) from e

    # ------------------------------------------------------------------
    # Timestamp
    # ------------------------------------------------------------------

    def read_timestamp(self, key: RepositoryKey) -> Optional[datetime]:
        """
        Return when `key` was last refreshed, or None if it never was.

        Raises:
            StorageError: If the timestamp record exists but cannot be read.
            SerializationError: If the timestamp record is not a valid ISO 8601 value.
        """
        file_path = self._file_path(key, CACHE_TIMESTAMP_FILE)
        raw = self._read_text(file_path)
        if raw is None:
            return None
        cached_at = parse_iso_datetime_utc(raw)
        if cached_at is None:
            logger.warning("Malformed cache timestamp for %s: %r", key, raw[:64])
            raise SerializationError(
                f"Malformed cache timestamp for {key}", path=file_path
            )
        return cached_at

    def write_timestamp(self, key: RepositoryKey, now: datetime) -> None:
        """
        Record `now` as the freshness timestamp for `key`, replacing any previous value.

        Raises:
            StorageError: If the timestamp could not be written.
        """
        self._ensure_entry_dir(key)
        file_path = self._file_path(key, CACHE_TIMESTAMP_FILE)
        if not _atomic_write_text(file_path, now.isoformat()):
            raise StorageError(f"Could not write cache timestamp for {key}", path=file_path)

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    def read_releases(self, key: RepositoryKey) -> Optional[List[Release]]:
        """
        Load the cached release list for `key`.

        Returns:
            Optional[List[Release]]: Releases newest first, or None when nothing is cached.

        Raises:
            StorageError: If the file exists but cannot be read.
            SerializationError: If the stored payload is malformed.
        """
        file_path = self._file_path(key, CACHE_RELEASES_FILE)
        raw = self._read_text(file_path)
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
            items = payload["releases"] if isinstance(payload, dict) else payload
            if not isinstance(items, list):
                raise TypeError(f"expected a list of releases, got {type(items).__name__}")
            return [Release.from_dict(item) for item in items]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed cached releases for %s: %s", key, e)
            raise SerializationError(
                f"Malformed cached releases for {key}", path=file_path, details=str(e)
            ) from e

    def write_releases(self, key: RepositoryKey, releases: List[Release]) -> None:
        """
        Persist the release list for `key`.

        Raises:
            StorageError: If the file could not be written.
        """
        self._ensure_entry_dir(key)
        file_path = self._file_path(key, CACHE_RELEASES_FILE)
        payload = {
            "repo_path": key.cache_key,
            "releases": [release.to_dict() for release in releases],
        }
        if not _atomic_write_text(file_path, json.dumps(payload, indent=2)):
            raise StorageError(f"Could not write cached releases for {key}", path=file_path)

    # ------------------------------------------------------------------
    # Rendered HTML
    # ------------------------------------------------------------------

    def read_rendered_html(self, key: RepositoryKey) -> Optional[str]:
        """
        Raises:
            StorageError: If the file exists but cannot be read.
        """
        return self._read_text(self._file_path(key, CACHE_HTML_FILE))

    def write_rendered_html(self, key: RepositoryKey, html: str) -> None:
        """
        Raises:
            StorageError: If the file could not be written.
        """
        self._ensure_entry_dir(key)
        file_path = self._file_path(key, CACHE_HTML_FILE)
        if not _atomic_write_text(file_path, html):
            raise StorageError(f"Could not write rendered page for {key}", path=file_path)

    # ------------------------------------------------------------------
    # Whole entries
    # ------------------------------------------------------------------

    def is_expired(
        self, cached_at: datetime, ttl: Optional[timedelta] = None
    ) -> bool:
        """Return True when more than `ttl` (default: the store TTL) has passed since `cached_at`."""
        return self.now() - cached_at > (self.ttl if ttl is None else ttl)

    def read_entry(self, key: RepositoryKey) -> Optional[CacheEntry]:
        """
        Load the complete snapshot for `key`.

        The timestamp is read before the payload, matching the write order, so
        the returned `cached_at` is never newer than the releases it describes.

        Returns:
            Optional[CacheEntry]: The snapshot, or None when no complete snapshot exists.

        Raises:
            StorageError: If any part of the snapshot is unreadable or malformed.
        """
        cached_at = self.read_timestamp(key)
        if cached_at is None:
            return None
        releases = self.read_releases(key)
        if releases is None:
            return None
        rendered_html = self.read_rendered_html(key)
        return CacheEntry(
            releases=releases, cached_at=cached_at, rendered_html=rendered_html
        )

    def write_entry(
        self,
        key: RepositoryKey,
        releases: List[Release],
        rendered_html: str,
        cached_at: Optional[datetime] = None,
    ) -> CacheEntry:
        """
        Persist a complete snapshot: releases, then HTML, then the timestamp.

        If a payload write fails the timestamp is left untouched, so the
        previous snapshot keeps its own (older) freshness.

        Raises:
            StorageError: If any part of the snapshot could not be written.
        """
        cached_at = cached_at or self.now()
        self.write_releases(key, releases)
        self.write_rendered_html(key, rendered_html)
        self.write_timestamp(key, cached_at)
        logger.debug("Saved %d releases for %s", len(releases), key)
        return CacheEntry(
            releases=releases, cached_at=cached_at, rendered_html=rendered_html
        )
