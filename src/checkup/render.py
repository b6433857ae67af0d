"""
HTML rendering for release pages, placeholders and errors.
"""

from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from checkup.constants import (
    DISPLAY_DATETIME_FORMAT,
    PROCESSING_REFRESH_SECONDS,
    PROVIDER_CGIT,
    PROVIDER_GITHUB,
    PROVIDER_GITLAB,
    RELEASE_NOTES_PREVIEW_LINES,
)
from checkup.release.interfaces import Release, RepositoryKey
from checkup.release.naming import latest_asset_names
from checkup.utils import format_size

TEMPLATE_DIR = Path(__file__).parent / "templates"


def _format_datetime(value: Optional[datetime]) -> str:
    return value.strftime(DISPLAY_DATETIME_FORMAT) if value else ""


def _notes_preview(body: Optional[str]) -> str:
    if not body:
        return ""
    return "\n".join(body.splitlines()[:RELEASE_NOTES_PREVIEW_LINES])


@lru_cache(maxsize=1)
def _env() -> Environment:
    loader = FileSystemLoader(TEMPLATE_DIR)
    env = Environment(loader=loader, autoescape=select_autoescape(["html", "xml", "j2"]))
    env.filters["filesize"] = format_size
    env.filters["utc"] = _format_datetime
    env.filters["notes_preview"] = _notes_preview
    return env


def route_path(key: RepositoryKey, provider: str) -> str:
    """
    Return the public URL path serving `key` through `provider`.

    github.com and gitlab.com are implied by their route prefix, so only the
    owner and repo appear; Forgejo and cgit carry the host.
    """
    if provider in (PROVIDER_GITHUB, PROVIDER_GITLAB):
        return f"/{provider}/{key.owner}/{key.repo}"
    if provider == PROVIDER_CGIT:
        return f"/{provider}/{key.host}/{key.repo}"
    return f"/{provider}/{key.host}/{key.owner}/{key.repo}"


def render_releases_page(
    key: RepositoryKey,
    releases: List[Release],
    cached_at: Optional[datetime],
    provider: str,
) -> str:
    """
    Render the release listing for one repository.

    The newest release gets a highlighted box whose download buttons point at
    the stable "latest" URLs served by this proxy.
    """
    base_path = route_path(key, provider)
    latest = releases[0] if releases else None
    latest_links = []
    if latest is not None:
        latest_links = [
            {"asset": asset, "href": f"{base_path}/{latest_name}"}
            for asset, latest_name in latest_asset_names(latest.assets)
        ]
    return (
        _env()
        .get_template("releases.html.j2")
        .render(
            repo_path=key.cache_key,
            base_path=base_path,
            cached_at=cached_at,
            latest=latest,
            latest_links=latest_links,
            releases=releases,
        )
    )


def render_processing_page(key: RepositoryKey, provider: str) -> str:
    return (
        _env()
        .get_template("processing.html.j2")
        .render(
            repo_path=key.cache_key,
            base_path=route_path(key, provider),
            refresh_seconds=PROCESSING_REFRESH_SECONDS,
        )
    )


def render_error_page(
    title: str, message: str, retry_path: Optional[str] = None
) -> str:
    """Render an error page; `retry_path` adds a link that forces a new fetch."""
    return (
        _env()
        .get_template("error.html.j2")
        .render(title=title, message=message, retry_path=retry_path)
    )


def render_index_page() -> str:
    return _env().get_template("index.html.j2").render()
