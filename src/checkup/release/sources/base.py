"""
Shared helpers for the REST-backed release sources.
"""

from typing import Any, Dict, List, Optional

from checkup.exceptions import UpstreamError
from checkup.log_utils import logger
from checkup.utils import parse_iso_datetime_utc

from ..async_client import AsyncReleaseClient
from ..interfaces import Asset, ReleaseSource


class HttpReleaseSource(ReleaseSource):
    """Base class for sources that talk to an upstream over the shared HTTP client."""

    def __init__(self, client: AsyncReleaseClient):
        self.client = client

    def _require_release_list(self, data: Any, url: str) -> List[Dict[str, Any]]:
        """
        Validate that an upstream payload is a list of release objects.

        Non-dict entries are skipped with a warning; a payload that is not a
        list at all fails the whole fetch.

        Raises:
            UpstreamError: If the payload is not a JSON array.
        """
        if not isinstance(data, list):
            raise UpstreamError(
                f"Unexpected releases payload from {url}",
                url=url,
                details=f"expected list, got {type(data).__name__}",
            )
        items = []
        for item in data:
            if not isinstance(item, dict):
                logger.warning(
                    "Skipping malformed release entry from %s: expected dict, got %s",
                    url,
                    type(item).__name__,
                )
                continue
            items.append(item)
        return items


def parse_count(value: Any) -> int:
    """Coerce an optional upstream counter to a non-negative int; unknown maps to 0."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return 0
    return max(parsed, 0)


def parse_tag_name(item: Dict[str, Any], url: str) -> Optional[str]:
    tag_name = item.get("tag_name")
    if not isinstance(tag_name, str) or not tag_name.strip():
        logger.warning(
            "Skipping release entry from %s with invalid or empty tag_name", url
        )
        return None
    return tag_name.strip()


def parse_published_at(item: Dict[str, Any], *fields: str):
    """Return the first of `fields` that parses as a timestamp, or None."""
    for field_name in fields:
        parsed = parse_iso_datetime_utc(item.get(field_name))
        if parsed is not None:
            return parsed
    return None


def source_archive_assets(item: Dict[str, Any], tag_name: str) -> List[Asset]:
    """
    Build the tarball/zipball source archive assets GitHub and Forgejo expose.

    Sizes and download counts are unknown for these archives.
    """
    assets = []
    tarball_url = item.get("tarball_url")
    if isinstance(tarball_url, str) and tarball_url:
        assets.append(
            Asset(
                name=f"{tag_name}.tar.gz",
                url=tarball_url,
                content_type="application/gzip",
            )
        )
    zipball_url = item.get("zipball_url")
    if isinstance(zipball_url, str) and zipball_url:
        assets.append(
            Asset(
                name=f"{tag_name}.zip",
                url=zipball_url,
                content_type="application/zip",
            )
        )
    return assets


def parse_uploaded_assets(
    assets_data: Any, tag_name: str, url_field: str = "browser_download_url"
) -> List[Asset]:
    """Map a GitHub/Forgejo style `assets` array onto Asset objects, skipping bad entries."""
    if not isinstance(assets_data, list):
        if assets_data is not None:
            logger.warning(
                "Skipping assets for release %s due to invalid assets type %s",
                tag_name,
                type(assets_data).__name__,
            )
        return []

    assets = []
    for asset in assets_data:
        if not isinstance(asset, dict):
            logger.warning(
                "Skipping malformed asset in release %s: expected dict, got %s",
                tag_name,
                type(asset).__name__,
            )
            continue
        name = asset.get("name")
        download_url = asset.get(url_field)
        if not isinstance(name, str) or not name or not isinstance(download_url, str):
            logger.warning("Skipping asset with invalid name or url for release %s", tag_name)
            continue
        content_type = asset.get("content_type")
        assets.append(
            Asset(
                name=name,
                url=download_url,
                content_type=content_type if isinstance(content_type, str) else None,
                size=parse_count(asset.get("size")),
                download_count=parse_count(asset.get("download_count")),
            )
        )
    return assets
