"""
HTTP front end for the release cache.

Request paths map onto repository keys per provider:

    /github/{owner}/{repo}
    /gitlab/{owner}/{repo}
    /forgejo/{host}/{owner}/{repo}
    /cgit/{host}/{repo path...}

Any of them may end in `/cache` (JSON snapshot) or in a `latest` asset name
(redirect to the newest matching download).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from aiohttp import web

from checkup.config import ServerConfig
from checkup.constants import (
    GITHUB_HOST,
    GITLAB_HOST,
    PROCESSING_REFRESH_SECONDS,
    PROVIDER_CGIT,
    PROVIDER_FORGEJO,
    PROVIDER_GITHUB,
    PROVIDER_GITLAB,
    PROVIDERS,
)
from checkup.exceptions import InvalidKeyError, UpstreamError
from checkup.log_utils import logger
from checkup.release.async_client import AsyncReleaseClient
from checkup.release.cache import ReleaseStore
from checkup.release.coordinator import (
    FetchCoordinator,
    FetchOutcome,
    FetchState,
    FetchTracker,
)
from checkup.release.interfaces import ReleaseSource, RepositoryKey
from checkup.release.naming import find_latest_asset, is_latest_request
from checkup.release.sources import build_sources
from checkup.render import (
    render_error_page,
    render_index_page,
    render_processing_page,
    render_releases_page,
    route_path,
)

COORDINATORS_KEY = web.AppKey("coordinators", Dict[str, FetchCoordinator])
CLIENT_KEY = web.AppKey("client", Optional[AsyncReleaseClient])

CACHE_SUFFIX = "cache"
_TRUTHY = ("1", "true", "yes")

# Segments needed after the provider prefix to name a repository
_MIN_SEGMENTS = {
    PROVIDER_GITHUB: 2,
    PROVIDER_GITLAB: 2,
    PROVIDER_FORGEJO: 3,
    PROVIDER_CGIT: 2,
}


@dataclass
class RequestTarget:
    key: RepositoryKey
    want_cache: bool = False
    latest_name: Optional[str] = None


def parse_request_path(provider: str, tail: str) -> RequestTarget:
    """
    Turn the part of a request path after the provider prefix into a target.

    Raises:
        InvalidKeyError: If the path does not name a repository for `provider`.
    """
    full_path = f"/{provider}/{tail}"
    segments = tail.strip("/").split("/")
    if provider not in _MIN_SEGMENTS or any(not s for s in segments):
        raise InvalidKeyError(full_path)

    want_cache = False
    latest_name = None
    if len(segments) > _MIN_SEGMENTS[provider]:
        if segments[-1] == CACHE_SUFFIX:
            want_cache = True
            segments = segments[:-1]
        elif is_latest_request(segments[-1]):
            latest_name = segments[-1]
            segments = segments[:-1]

    if provider in (PROVIDER_GITHUB, PROVIDER_GITLAB):
        if len(segments) != 2:
            raise InvalidKeyError(full_path, details="expected /{owner}/{repo}")
        host = GITHUB_HOST if provider == PROVIDER_GITHUB else GITLAB_HOST
        key = RepositoryKey.create(host, segments[0], segments[1], path=full_path)
    elif provider == PROVIDER_FORGEJO:
        if len(segments) != 3:
            raise InvalidKeyError(full_path, details="expected /{host}/{owner}/{repo}")
        key = RepositoryKey.create(
            segments[0], segments[1], segments[2], path=full_path
        )
    else:
        if len(segments) < 2:
            raise InvalidKeyError(full_path, details="expected /{host}/{repo path}")
        key = RepositoryKey.create(
            segments[0], "", "/".join(segments[1:]), path=full_path
        )

    return RequestTarget(key=key, want_cache=want_cache, latest_name=latest_name)


def _html_response(
    outcome: FetchOutcome, coordinator: FetchCoordinator, key: RepositoryKey
) -> web.Response:
    provider = coordinator.provider
    if outcome.state is FetchState.PENDING:
        return web.Response(
            status=202,
            text=render_processing_page(key, provider),
            content_type="text/html",
            headers={"Retry-After": str(PROCESSING_REFRESH_SECONDS)},
        )
    if outcome.state is FetchState.FAILED:
        return web.Response(
            status=502,
            text=render_error_page(
                f"Could not fetch releases for {key}",
                outcome.error or "Unknown error",
                retry_path=route_path(key, provider),
            ),
            content_type="text/html",
        )

    entry = outcome.entry
    html = entry.rendered_html
    if html is None:
        html = render_releases_page(key, entry.releases, entry.cached_at, provider)
    return web.Response(text=html, content_type="text/html")


def _json_response(outcome: FetchOutcome, key: RepositoryKey) -> web.Response:
    if outcome.state is FetchState.PENDING:
        return web.json_response(
            {"status": "pending", "repo_path": key.cache_key},
            status=202,
            headers={"Retry-After": str(PROCESSING_REFRESH_SECONDS)},
        )
    if outcome.state is FetchState.FAILED:
        return web.json_response(
            {"status": "failed", "error": outcome.error, "repo_path": key.cache_key},
            status=502,
        )
    return web.json_response(outcome.entry.to_snapshot(key))


async def _redirect_latest(
    coordinator: FetchCoordinator, key: RepositoryKey, latest_name: str
) -> web.Response:
    try:
        releases = await coordinator.blocking_fetch(key)
    except UpstreamError as e:
        return web.Response(status=502, text=f"Could not fetch releases for {key}: {e}")

    asset = find_latest_asset(releases, latest_name)
    if asset is None:
        return web.Response(
            status=404, text=f"No asset matching '{latest_name}' found for {key}"
        )
    logger.debug("Redirecting %s/%s to %s", key, latest_name, asset.url)
    raise web.HTTPTemporaryRedirect(asset.url)


async def handle_repository(request: web.Request) -> web.Response:
    provider = request.match_info["provider"]
    coordinator = request.app[COORDINATORS_KEY].get(provider)
    if coordinator is None:
        raise web.HTTPNotFound(text=f"Unknown provider: {provider}")

    try:
        target = parse_request_path(provider, request.match_info["tail"])
    except InvalidKeyError as e:
        logger.debug("Rejected request path %s: %s", request.path, e)
        return web.Response(status=400, text=str(e))

    if target.latest_name is not None:
        return await _redirect_latest(coordinator, target.key, target.latest_name)

    retry = request.query.get("refresh", "").lower() in _TRUTHY
    outcome = await coordinator.get_or_refresh(target.key, retry=retry)
    if target.want_cache:
        return _json_response(outcome, target.key)
    return _html_response(outcome, coordinator, target.key)


async def handle_health(request: web.Request) -> web.Response:
    return web.Response(text="OK")


async def handle_index(request: web.Request) -> web.Response:
    return web.Response(text=render_index_page(), content_type="text/html")


async def _on_cleanup(app: web.Application) -> None:
    for coordinator in app[COORDINATORS_KEY].values():
        await coordinator.close()
    client = app[CLIENT_KEY]
    if client is not None:
        await client.close()


def create_app(
    config: ServerConfig,
    sources: Optional[Dict[str, ReleaseSource]] = None,
    store: Optional[ReleaseStore] = None,
    tracker: Optional[FetchTracker] = None,
) -> web.Application:
    """
    Build the aiohttp application.

    Parameters:
        config (ServerConfig): Resolved server settings.
        sources (Optional[Dict[str, ReleaseSource]]): Release sources by provider; defaults to the built-in sources over a shared HTTP client.
        store (Optional[ReleaseStore]): Snapshot store; defaults to one rooted at `config.cache_dir`.
        tracker (Optional[FetchTracker]): Pending/failed bookkeeping; defaults to the process-wide tracker.
    """
    client = None
    if sources is None:
        client = AsyncReleaseClient(timeout=config.request_timeout)
        sources = build_sources(client, github_token=config.github_token)
    if store is None:
        store = ReleaseStore(config.cache_dir, cache_hours=config.cache_hours)

    app = web.Application()
    app[CLIENT_KEY] = client
    app[COORDINATORS_KEY] = {
        provider: FetchCoordinator(store, source, render_releases_page, tracker=tracker)
        for provider, source in sources.items()
    }

    routes: List[web.RouteDef] = [
        web.get("/", handle_index),
        web.get("/health", handle_health),
    ]
    for provider in PROVIDERS:
        if provider in sources:
            routes.append(
                web.get(
                    f"/{{provider:{provider}}}/{{tail:.+}}",
                    handle_repository,
                )
            )
    app.add_routes(routes)
    app.on_cleanup.append(_on_cleanup)
    return app


def run_server(config: ServerConfig) -> None:
    """Serve the application until interrupted."""
    app = create_app(config)
    logger.info(
        "Serving on http://%s:%d (cache: %s, ttl: %sh)",
        config.host,
        config.port,
        config.cache_dir,
        config.cache_hours,
    )
    web.run_app(app, host=config.host, port=config.port, print=None)
