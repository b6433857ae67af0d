from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import platformdirs
import pytest

from checkup.release.interfaces import Asset, Release, ReleaseSource, RepositoryKey

_ASYNC_NETWORK_BLOCK_MSG = (
    "Async network access is blocked during tests. Mock aiohttp.ClientSession."
)


async def _async_block_network(*_args, **_kwargs):
    """
    Prevent async network calls during tests by raising a RuntimeError.

    Replaces the aiohttp entry points the release client uses so tests do not
    perform real HTTP requests. aiohttp's own TestClient goes through
    ClientSession.request and keeps working.

    Raises:
        RuntimeError: `_ASYNC_NETWORK_BLOCK_MSG` explaining that async network access is blocked.
    """
    raise RuntimeError(_ASYNC_NETWORK_BLOCK_MSG)


pytest_plugins = ("pytest_asyncio",)


def pytest_configure(config):
    """
    Register the markers used across the suite.

    Parameters:
        config: pytest.Config
            The pytest configuration object used to register markers.
    """
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test (auto-detected)"
    )
    config.addinivalue_line("markers", "unit: fast, isolated tests")
    config.addinivalue_line("markers", "integration: tests spanning several modules")
    config.addinivalue_line("markers", "core_cache: release store and coordinator tests")
    config.addinivalue_line("markers", "sources: upstream release source tests")
    config.addinivalue_line("markers", "server: HTTP front end tests")


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Create isolated XDG directories and point platformdirs at them.

    Also clears the CHECKUP_* and GITHUB_TOKEN environment variables so the
    developer's own settings never leak into config tests.
    """
    base = tmp_path_factory.mktemp("checkup")
    cache_dir = base / "cache"
    state_dir = base / "state"
    config_dir = base / "config"
    log_dir = state_dir / "log"

    for path in (cache_dir, state_dir, config_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_STATE_HOME", str(state_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    for var in (
        "CHECKUP_CACHE_DIR",
        "CHECKUP_CACHE_HOURS",
        "CHECKUP_HOST",
        "CHECKUP_PORT",
        "GITHUB_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_state_dir", lambda *_args, **_kwargs: str(state_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing aiohttp entry points with blocking callables.
    """
    import aiohttp

    aiohttp.request = _async_block_network
    aiohttp.ClientSession.get = _async_block_network  # type: ignore[assignment]


# =============================================================================
# Release Fixtures
# =============================================================================


class FakeClock:
    """Manually advanced UTC clock for TTL tests."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeSource(ReleaseSource):
    """
    In-memory release source.

    Each call returns `releases` (or raises `error`). When `gate` is set the
    call waits on it first, so tests can hold a fetch in flight.
    """

    provider = "github"

    def __init__(self, releases=None, error=None, gate=None):
        self.releases = releases or []
        self.error = error
        self.gate = gate
        self.calls = []

    async def fetch_releases(self, key):
        self.calls.append(key)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.releases)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_source():
    """Factory for FakeSource instances: make_source(releases=..., error=..., gate=...)."""
    return FakeSource


@pytest.fixture
def repo_key():
    return RepositoryKey.create("github.com", "sharkdp", "bat")


@pytest.fixture
def sample_releases():
    """Two releases, newest first, in the normalized model."""
    return [
        Release(
            tag_name="v0.26.1",
            name="v0.26.1",
            published_at=datetime(2026, 1, 10, 8, 30, tzinfo=timezone.utc),
            html_url="https://github.com/sharkdp/bat/releases/tag/v0.26.1",
            body="Fixes\n- one\n- two\n- three",
            assets=[
                Asset(
                    name="bat-v0.26.1-x86_64-unknown-linux-gnu.tar.gz",
                    url="https://example.invalid/bat-v0.26.1-x86_64-unknown-linux-gnu.tar.gz",
                    content_type="application/gzip",
                    size=2_500_000,
                    download_count=1234,
                ),
                Asset(
                    name="bat_0.26.1_amd64.deb",
                    url="https://example.invalid/bat_0.26.1_amd64.deb",
                    size=1_800_000,
                ),
            ],
        ),
        Release(
            tag_name="v0.26.0",
            published_at=datetime(2025, 12, 1, 8, 30, tzinfo=timezone.utc),
            html_url="https://github.com/sharkdp/bat/releases/tag/v0.26.0",
            prerelease=True,
            assets=[
                Asset(
                    name="bat-v0.26.0-x86_64-unknown-linux-gnu.tar.gz",
                    url="https://example.invalid/bat-v0.26.0-x86_64-unknown-linux-gnu.tar.gz",
                ),
            ],
        ),
    ]


# =============================================================================
# Async Test Fixtures
# =============================================================================


@pytest.fixture
def mock_aiohttp_session(mocker):
    """
    Provide a mock aiohttp.ClientSession for testing async HTTP operations.

    Yields a MagicMock configured with the aiohttp.ClientSession spec and with `closed` set to False.
    """
    import aiohttp

    mock_session = mocker.MagicMock(spec=aiohttp.ClientSession)
    mock_session.closed = False
    yield mock_session


@pytest.fixture
def make_response():
    """
    Build a mock aiohttp response usable as `async with session.get(...) as response`.
    """

    def _make(status=200, json_data=None, text="", headers=None):
        response = AsyncMock()
        response.status = status
        response.headers = headers or {}
        response.json = AsyncMock(return_value=json_data)
        response.text = AsyncMock(return_value=text)
        response.__aenter__ = AsyncMock(return_value=response)
        response.__aexit__ = AsyncMock(return_value=False)
        return response

    return _make


@pytest.fixture
def release_client(mock_aiohttp_session, mocker):
    """
    Provides an AsyncReleaseClient whose `_ensure_session` returns the mocked session.
    """
    from checkup.release.async_client import AsyncReleaseClient

    client = AsyncReleaseClient()
    mock_aiohttp_session.get = Mock()
    mocker.patch.object(
        client, "_ensure_session", AsyncMock(return_value=mock_aiohttp_session)
    )
    yield client
