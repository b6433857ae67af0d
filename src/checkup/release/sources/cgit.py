"""
cgit Release Source

cgit has no API, so releases are scraped from the repository's tag table at
`https://<host>/<repo path>/refs/tags`. Each tag becomes a release with a
single asset: the first snapshot archive linked from its row.
"""

from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from checkup.constants import CGIT_AGE_TITLE_FORMAT, PROVIDER_CGIT
from checkup.log_utils import logger

from ..interfaces import Asset, Release, RepositoryKey
from .base import HttpReleaseSource

# Columns that may hold the age <span title="..."> depending on cgit version
_AGE_COLUMNS = (3, 4)


class CgitReleaseSource(HttpReleaseSource):
    """Release source for cgit web frontends (e.g. git.kernel.org)."""

    provider = PROVIDER_CGIT

    def tags_url(self, key: RepositoryKey) -> str:
        return f"https://{key.host}/{key.repo}/refs/tags"

    async def fetch_releases(self, key: RepositoryKey) -> List[Release]:
        url = self.tags_url(key)
        html = await self.client.get_text(url, headers={"Accept": "text/html"})
        releases = parse_tag_table(html, key)
        logger.debug("Scraped %d tags for %s from cgit", len(releases), key)
        return releases


def _parse_age_title(title: Optional[str]) -> Optional[datetime]:
    if not title:
        return None
    try:
        return datetime.strptime(title.strip(), CGIT_AGE_TITLE_FORMAT).astimezone(
            timezone.utc
        )
    except ValueError:
        return None


def parse_tag_table(
    html: str, key: RepositoryKey, now: Optional[datetime] = None
) -> List[Release]:
    """
    Parse a cgit `refs/tags` page into releases, in page order.

    Rows without both a tag link and a download link are skipped. When no
    age title can be parsed the release is stamped with `now`.

    Parameters:
        html (str): The refs/tags page body.
        key (RepositoryKey): Key whose host and repo path are used to build absolute URLs.
        now (Optional[datetime]): Fallback publish time; defaults to the current UTC time.

    Returns:
        List[Release]: One release per usable tag row.
    """
    now = now or datetime.now(timezone.utc)
    base_url = f"https://{key.host}/"
    soup = BeautifulSoup(html, "html.parser")

    releases = []
    # The first row is the column header
    for row in soup.select("table.list tr")[1:]:
        cells = row.find_all("td", recursive=False)
        if len(cells) < 2:
            continue
        tag_link = cells[0].find("a")
        download_link = cells[1].find("a")
        if tag_link is None or download_link is None:
            continue

        tag_name = tag_link.get_text().strip()
        download_url = (download_link.get("href") or "").strip()
        if not tag_name or not download_url:
            continue

        published_at = None
        for idx in _AGE_COLUMNS:
            if idx >= len(cells):
                break
            span = cells[idx].find("span")
            if span is not None:
                published_at = _parse_age_title(span.get("title"))
                break
        if published_at is None:
            published_at = now

        asset_name = download_url.rstrip("/").rsplit("/", 1)[-1] or tag_name
        if not download_url.startswith(("http://", "https://")):
            download_url = urljoin(base_url, download_url)

        releases.append(
            Release(
                tag_name=tag_name,
                published_at=published_at,
                html_url=f"https://{key.host}/{key.repo}/tag/?h={tag_name}",
                name=tag_name,
                assets=[
                    Asset(
                        name=asset_name,
                        url=download_url,
                        content_type="application/gzip",
                    )
                ],
            )
        )
    return releases
