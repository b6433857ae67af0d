"""
Core Interfaces for the Checkup Release Cache

This module defines the data structures shared by the release sources, the
on-disk store and the fetch coordinator, plus the ReleaseSource interface
every upstream adapter implements.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from checkup.exceptions import InvalidKeyError
from checkup.utils import parse_iso_datetime_utc

_UNSAFE_SEGMENTS = {".", ".."}


def _validate_component(value: str, *, allow_slash: bool) -> bool:
    if "\x00" in value or "\\" in value:
        return False
    segments = value.split("/") if allow_slash else [value]
    for segment in segments:
        if not segment or segment in _UNSAFE_SEGMENTS:
            return False
        if not allow_slash and "/" in segment:
            return False
    return True


@dataclass(frozen=True)
class RepositoryKey:
    """Identifies one cached repository; also the single-flight lock key."""

    host: str
    """Upstream host (e.g. 'github.com', 'git.kernel.org')"""

    owner: str
    """Repository owner; empty for path-based sources such as cgit"""

    repo: str
    """Repository name, or the repository path for cgit"""

    @classmethod
    def create(
        cls, host: str, owner: str, repo: str, path: Optional[str] = None
    ) -> "RepositoryKey":
        """
        Build a key after validating each component.

        cgit keys carry an empty owner and may use a multi-segment repo path;
        every other component must be a single, non-empty path segment.

        Raises:
            InvalidKeyError: If any component is empty or unsafe to use as a path segment.
        """
        offending = path if path is not None else f"{host}/{owner}/{repo}"
        host = (host or "").strip()
        owner = (owner or "").strip()
        repo = (repo or "").strip().strip("/")
        if not _validate_component(host, allow_slash=False):
            raise InvalidKeyError(offending, details="missing or invalid host")
        if owner and not _validate_component(owner, allow_slash=False):
            raise InvalidKeyError(offending, details="invalid owner")
        if not _validate_component(repo, allow_slash=not owner):
            raise InvalidKeyError(offending, details="missing or invalid repository")
        return cls(host=host, owner=owner, repo=repo)

    @classmethod
    def parse(cls, path: str) -> "RepositoryKey":
        """
        Parse a `host/owner/repo` path into a key.

        Raises:
            InvalidKeyError: If the path does not have exactly three segments.
        """
        parts = (path or "").strip("/").split("/")
        if len(parts) != 3:
            raise InvalidKeyError(path)
        return cls.create(parts[0], parts[1], parts[2], path=path)

    @property
    def cache_key(self) -> str:
        return f"{self.host}/{self.owner}/{self.repo}"

    def path_segments(self) -> List[str]:
        """Return the directory segments under which this key is stored."""
        segments = [self.host]
        if self.owner:
            segments.append(self.owner)
        segments.extend(self.repo.split("/"))
        return segments

    def __str__(self) -> str:
        return self.cache_key


@dataclass
class Asset:
    """Represents a downloadable asset from a release."""

    name: str
    """The filename of the asset"""

    url: str
    """Direct URL to download the asset"""

    content_type: Optional[str] = None
    """MIME type of the asset"""

    size: int = 0
    """File size in bytes; 0 when upstream did not report it"""

    download_count: int = 0
    """Download counter; 0 when upstream did not report it"""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "content_type": self.content_type,
            "size": self.size,
            "download_count": self.download_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        """
        Rebuild an asset from its serialized form.

        Raises:
            KeyError, TypeError, ValueError: If required fields are missing or malformed.
        """
        name = data["name"]
        url = data["url"]
        if not isinstance(name, str) or not isinstance(url, str):
            raise TypeError("asset name and url must be strings")
        return cls(
            name=name,
            url=url,
            content_type=data.get("content_type"),
            size=int(data.get("size") or 0),
            download_count=int(data.get("download_count") or 0),
        )


@dataclass
class Release:
    """Represents a software release from a repository."""

    tag_name: str
    """The release tag/version identifier (e.g., 'v2.7.8')"""

    published_at: datetime
    """Timezone-aware UTC timestamp when the release was published"""

    html_url: str
    """Human-facing page for the release"""

    name: Optional[str] = None
    """Display name; falls back to tag_name when absent"""

    body: Optional[str] = None
    """Release notes/markdown content"""

    prerelease: bool = False
    """Whether this is a prerelease version"""

    draft: bool = False
    """Whether this is an unpublished draft"""

    assets: List[Asset] = field(default_factory=list)
    """List of downloadable assets for this release"""

    @property
    def display_name(self) -> str:
        return self.name or self.tag_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag_name": self.tag_name,
            "name": self.name,
            "published_at": self.published_at.isoformat(),
            "html_url": self.html_url,
            "body": self.body,
            "prerelease": self.prerelease,
            "draft": self.draft,
            "assets": [asset.to_dict() for asset in self.assets],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Release":
        """
        Rebuild a release from its serialized form.

        Raises:
            KeyError, TypeError, ValueError: If required fields are missing or malformed.
        """
        tag_name = data["tag_name"]
        if not isinstance(tag_name, str):
            raise TypeError("tag_name must be a string")
        published_at = parse_iso_datetime_utc(data["published_at"])
        if published_at is None:
            raise ValueError(f"invalid published_at for release {tag_name}")
        assets = data.get("assets") or []
        if not isinstance(assets, list):
            raise TypeError("assets must be a list")
        return cls(
            tag_name=tag_name,
            published_at=published_at,
            html_url=str(data["html_url"]),
            name=data.get("name"),
            body=data.get("body"),
            prerelease=bool(data.get("prerelease", False)),
            draft=bool(data.get("draft", False)),
            assets=[Asset.from_dict(asset) for asset in assets],
        )


@dataclass
class CacheEntry:
    """The persisted snapshot for one repository key."""

    releases: List[Release]
    """Normalized releases, newest first"""

    cached_at: datetime
    """When the releases were fetched from upstream"""

    rendered_html: Optional[str] = None
    """Pre-rendered release page"""

    def to_snapshot(self, key: RepositoryKey) -> Dict[str, Any]:
        """Return the machine-readable JSON form served on `/cache` endpoints."""
        return {
            "releases": [release.to_dict() for release in self.releases],
            "cached_at": self.cached_at.isoformat(),
            "repo_path": key.cache_key,
        }


class ReleaseSource(ABC):
    """
    Abstract base class for release sources.

    A ReleaseSource maps one upstream host family (GitHub, GitLab, Forgejo,
    cgit) onto the normalized Release/Asset model.
    """

    provider: str = ""
    """Route prefix served by this source (e.g. 'github')"""

    @abstractmethod
    async def fetch_releases(self, key: RepositoryKey) -> List[Release]:
        """
        Retrieve all releases for the repository, newest first.

        Raises:
            UpstreamError: If the upstream request fails or returns unusable data.
        """
