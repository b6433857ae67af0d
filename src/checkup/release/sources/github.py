"""
GitHub Release Source

Fetches releases from the GitHub REST API and maps them onto the shared
release model, adding the tag's source tarball and zipball as assets.
"""

from typing import Any, Dict, List, Optional

from checkup.constants import GITHUB_API_BASE, GITHUB_MAX_PER_PAGE, PROVIDER_GITHUB
from checkup.log_utils import logger

from ..async_client import AsyncReleaseClient
from ..interfaces import Release, RepositoryKey
from .base import (
    HttpReleaseSource,
    parse_published_at,
    parse_tag_name,
    parse_uploaded_assets,
    source_archive_assets,
)


class GitHubReleaseSource(HttpReleaseSource):
    """Release source for repositories hosted on github.com."""

    provider = PROVIDER_GITHUB

    def __init__(self, client: AsyncReleaseClient, github_token: Optional[str] = None):
        """
        Parameters:
            client (AsyncReleaseClient): Shared HTTP client.
            github_token (Optional[str]): Personal access token sent as a Bearer token to raise the API rate limit.
        """
        super().__init__(client)
        self.github_token = github_token

    def releases_url(self, key: RepositoryKey) -> str:
        return f"{GITHUB_API_BASE}/{key.owner}/{key.repo}/releases"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"
        return headers

    async def fetch_releases(self, key: RepositoryKey) -> List[Release]:
        url = self.releases_url(key)
        data = await self.client.get_json(
            url, params={"per_page": GITHUB_MAX_PER_PAGE}, headers=self._headers()
        )
        releases = []
        for item in self._require_release_list(data, url):
            release = parse_github_release(item, url)
            if release is not None:
                releases.append(release)
        logger.debug("Fetched %d releases for %s from GitHub", len(releases), key)
        return releases


def parse_github_release(item: Dict[str, Any], url: str) -> Optional[Release]:
    """
    Create a Release from one GitHub (or Forgejo) API release object.

    Drafts have no `published_at`; their `created_at` is used instead.

    Returns:
        Optional[Release]: The parsed release, or None when required fields are missing.
    """
    tag_name = parse_tag_name(item, url)
    if tag_name is None:
        return None

    published_at = parse_published_at(item, "published_at", "created_at")
    if published_at is None:
        logger.warning("Skipping release %s from %s without a publish date", tag_name, url)
        return None

    html_url = item.get("html_url")
    assets = parse_uploaded_assets(item.get("assets"), tag_name)
    assets.extend(source_archive_assets(item, tag_name))

    name = item.get("name")
    body = item.get("body")
    return Release(
        tag_name=tag_name,
        published_at=published_at,
        html_url=html_url if isinstance(html_url, str) else "",
        name=name if isinstance(name, str) and name else None,
        body=body if isinstance(body, str) else None,
        prerelease=bool(item.get("prerelease", False)),
        draft=bool(item.get("draft", False)),
        assets=assets,
    )
