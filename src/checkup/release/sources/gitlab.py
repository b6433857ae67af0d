"""
GitLab Release Source

GitLab addresses projects by their URL-encoded full path. Each release
carries generated source archives (one per format) and optional release
links, both of which become assets.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from checkup.constants import GITLAB_API_BASE, PROVIDER_GITLAB
from checkup.log_utils import logger

from ..interfaces import Asset, Release, RepositoryKey
from .base import HttpReleaseSource, parse_published_at, parse_tag_name


class GitLabReleaseSource(HttpReleaseSource):
    """Release source for projects on gitlab.com."""

    provider = PROVIDER_GITLAB

    def releases_url(self, key: RepositoryKey) -> str:
        project = quote(f"{key.owner}/{key.repo}", safe="")
        return f"{GITLAB_API_BASE}/{project}/releases"

    async def fetch_releases(self, key: RepositoryKey) -> List[Release]:
        url = self.releases_url(key)
        data = await self.client.get_json(url, headers={"Accept": "application/json"})
        releases = []
        for item in self._require_release_list(data, url):
            release = parse_gitlab_release(item, url)
            if release is not None:
                releases.append(release)
        logger.debug("Fetched %d releases for %s from GitLab", len(releases), key)
        return releases


def _gitlab_assets(assets_data: Any, tag_name: str) -> List[Asset]:
    if not isinstance(assets_data, dict):
        return []

    assets = []
    for source in assets_data.get("sources") or []:
        if not isinstance(source, dict):
            continue
        fmt = source.get("format")
        source_url = source.get("url")
        if not isinstance(fmt, str) or not isinstance(source_url, str):
            continue
        fmt = fmt.lower()
        assets.append(
            Asset(
                name=f"{tag_name}.{fmt}",
                url=source_url,
                content_type=f"application/{fmt}",
            )
        )

    for link in assets_data.get("links") or []:
        if not isinstance(link, dict):
            continue
        name = link.get("name")
        link_url = link.get("direct_asset_url") or link.get("url")
        if not isinstance(name, str) or not name or not isinstance(link_url, str):
            logger.warning("Skipping malformed link in GitLab release %s", tag_name)
            continue
        assets.append(Asset(name=name, url=link_url))

    return assets


def parse_gitlab_release(item: Dict[str, Any], url: str) -> Optional[Release]:
    """Create a Release from one GitLab API release object, or None if it is unusable."""
    tag_name = parse_tag_name(item, url)
    if tag_name is None:
        return None

    published_at = parse_published_at(item, "released_at", "created_at")
    if published_at is None:
        logger.warning("Skipping release %s from %s without a release date", tag_name, url)
        return None

    links = item.get("_links")
    html_url = links.get("self") if isinstance(links, dict) else None
    name = item.get("name")
    description = item.get("description")

    return Release(
        tag_name=tag_name,
        published_at=published_at,
        html_url=html_url if isinstance(html_url, str) else "",
        name=name if isinstance(name, str) and name else None,
        body=description if isinstance(description, str) else None,
        prerelease=bool(item.get("upcoming_release", False)),
        assets=_gitlab_assets(item.get("assets"), tag_name),
    )
