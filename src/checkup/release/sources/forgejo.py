"""
Forgejo Release Source

Forgejo (and Gitea) instances expose a GitHub-compatible releases endpoint
under /api/v1 on whatever host they run on.
"""

from typing import List

from checkup.constants import PROVIDER_FORGEJO
from checkup.log_utils import logger

from ..interfaces import Release, RepositoryKey
from .base import HttpReleaseSource
from .github import parse_github_release


class ForgejoReleaseSource(HttpReleaseSource):
    """Release source for self-hosted Forgejo instances."""

    provider = PROVIDER_FORGEJO

    def releases_url(self, key: RepositoryKey) -> str:
        return f"https://{key.host}/api/v1/repos/{key.owner}/{key.repo}/releases"

    async def fetch_releases(self, key: RepositoryKey) -> List[Release]:
        url = self.releases_url(key)
        data = await self.client.get_json(url, headers={"Accept": "application/json"})
        releases = []
        for item in self._require_release_list(data, url):
            release = parse_github_release(item, url)
            if release is not None:
                releases.append(release)
        logger.debug("Fetched %d releases for %s from Forgejo", len(releases), key)
        return releases
