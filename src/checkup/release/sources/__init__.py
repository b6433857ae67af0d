"""
Release sources, one per upstream host family.
"""

from typing import Dict, Optional

from ..async_client import AsyncReleaseClient
from ..interfaces import ReleaseSource
from .cgit import CgitReleaseSource
from .forgejo import ForgejoReleaseSource
from .github import GitHubReleaseSource
from .gitlab import GitLabReleaseSource


def build_sources(
    client: AsyncReleaseClient, github_token: Optional[str] = None
) -> Dict[str, ReleaseSource]:
    """Create every release source over a shared client, keyed by route prefix."""
    sources = [
        GitHubReleaseSource(client, github_token=github_token),
        GitLabReleaseSource(client),
        ForgejoReleaseSource(client),
        CgitReleaseSource(client),
    ]
    return {source.provider: source for source in sources}


__all__ = [
    "CgitReleaseSource",
    "ForgejoReleaseSource",
    "GitHubReleaseSource",
    "GitLabReleaseSource",
    "build_sources",
]
