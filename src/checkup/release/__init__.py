"""
Checkup Release Cache

Core Components:
- interfaces: Repository keys, the release model and the ReleaseSource interface
- cache: Filesystem-backed snapshot store with a fixed TTL
- coordinator: Single-flight, stale-while-revalidate fetch coordination
- naming: Stable "latest" asset filenames
- async_client: Shared aiohttp client used by the sources
- sources: GitHub, GitLab, Forgejo and cgit adapters
"""

from .async_client import AsyncReleaseClient
from .cache import ReleaseStore
from .coordinator import FetchCoordinator, FetchOutcome, FetchState, FetchTracker
from .interfaces import Asset, CacheEntry, Release, ReleaseSource, RepositoryKey
from .naming import (
    extract_extension,
    find_latest_asset,
    rename_to_latest,
    split_stem_ext,
)

__all__ = [
    # Interfaces
    "RepositoryKey",
    "Asset",
    "Release",
    "CacheEntry",
    "ReleaseSource",
    # Storage and coordination
    "ReleaseStore",
    "FetchCoordinator",
    "FetchOutcome",
    "FetchState",
    "FetchTracker",
    # HTTP
    "AsyncReleaseClient",
    # Naming
    "split_stem_ext",
    "rename_to_latest",
    "extract_extension",
    "find_latest_asset",
]
