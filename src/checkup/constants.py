"""
Constants and configuration values for Checkup.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

APP_NAME = "checkup"

# Upstream API URLs
GITHUB_API_BASE = "https://api.github.com/repos"
GITLAB_API_BASE = "https://gitlab.com/api/v4/projects"
GITHUB_HOST = "github.com"
GITLAB_HOST = "gitlab.com"

# Provider route prefixes
PROVIDER_GITHUB = "github"
PROVIDER_GITLAB = "gitlab"
PROVIDER_FORGEJO = "forgejo"
PROVIDER_CGIT = "cgit"
PROVIDERS = (PROVIDER_GITHUB, PROVIDER_GITLAB, PROVIDER_FORGEJO, PROVIDER_CGIT)

# Network timeouts (in seconds)
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_CONNECTOR_LIMIT = 10
DEFAULT_LIMIT_PER_HOST = 5
GITHUB_MAX_PER_PAGE = 100

# HTTP status thresholds
HTTP_STATUS_ERROR_THRESHOLD = 400
HTTP_STATUS_RETRY_THRESHOLD = 500

# Server defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_CACHE_HOURS = 24

# Cache layout
CACHE_REPO_DIR_NAME = "repo"
# Keys without an owner (cgit repository paths) live under their own root
CACHE_PATH_REPO_DIR_NAME = "repo-path"
CACHE_RELEASES_FILE = "releases.json"
CACHE_HTML_FILE = "index.html"
CACHE_TIMESTAMP_FILE = "cached_at"

# Asset naming
LATEST_PREFIX = "latest"

# Ordered most specific first; the first suffix that matches wins.
KNOWN_ASSET_EXTENSIONS = (
    ".tar.gz.sha256",
    ".tar.xz.sha256",
    ".tar.bz2.sha256",
    ".tar.zst.sha256",
    ".zip.sha256",
    ".xz.sha256",
    ".gz.sha256",
    ".bz2.sha256",
    ".xz.asc",
    ".tar.gz",
    ".tar.xz",
    ".tar.bz2",
    ".tar.zst",
    ".xz",
    ".gz",
    ".bz2",
    ".zst",
    ".zip",
    ".sha256",
    ".sha512",
    ".exe",
    ".msi",
    ".deb",
    ".rpm",
)
LEGACY_DOUBLE_EXTENSIONS = (".tar.gz", ".tar.bz2", ".tar.xz")

# Rendering
RELEASE_NOTES_PREVIEW_LINES = 3
PROCESSING_REFRESH_SECONDS = 5
DISPLAY_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"
CGIT_AGE_TITLE_FORMAT = "%Y-%m-%d %H:%M:%S %z"

# Logging configuration
LOGGER_NAME = "checkup"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_NAME = "checkup.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5

# Configuration file names
CONFIG_FILE_NAME = "checkup.yaml"

# Environment variable names
LOG_LEVEL_ENV_VAR = "CHECKUP_LOG_LEVEL"
CACHE_DIR_ENV_VAR = "CHECKUP_CACHE_DIR"
CACHE_HOURS_ENV_VAR = "CHECKUP_CACHE_HOURS"
HOST_ENV_VAR = "CHECKUP_HOST"
PORT_ENV_VAR = "CHECKUP_PORT"
GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"
