"""
Exception hierarchy for checkup.

Everything the package raises on purpose derives from CheckupError, so the
CLI and the HTTP layer can tell expected failures from bugs.
"""


class CheckupError(Exception):
    """
    Base class for checkup errors.

    Attributes:
        message: Short description shown to users.
        details: Extra context (an upstream status, a parser message, ...).
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if not self.details:
            return self.message
        return f"{self.message} - {self.details}"


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(CheckupError):
    """The server settings could not be resolved."""


class ConfigFileError(ConfigurationError):
    """checkup.yaml exists but is unreadable, not YAML, or not a mapping."""


class ConfigValidationError(ConfigurationError):
    """A setting has a value of the wrong type or outside its range."""


# =============================================================================
# Requests
# =============================================================================


class InvalidKeyError(CheckupError):
    """
    A request path does not name a repository.

    Raised before the cache is touched; the HTTP layer answers 400.

    Attributes:
        path: The offending request path.
    """

    def __init__(self, path: str, details: str | None = None) -> None:
        super().__init__(f"Invalid repository path: {path}", details)
        self.path = path


class AlreadyProcessingError(CheckupError):
    """A strict blocking fetch found a background refresh of the same key in flight."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Already fetching this repository: {key}")
        self.key = key


# =============================================================================
# Upstream
# =============================================================================


class UpstreamError(CheckupError):
    """
    A release source could not produce a release list.

    Covers error statuses, exhausted rate limits, transport failures,
    timeouts and payloads that do not fit the release model.

    Attributes:
        url: Upstream URL that was requested, if any.
        status_code: HTTP status returned by the upstream, if any.
        is_retryable: True for failures that are likely to clear up on their own.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        is_retryable: bool = False,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code
        self.is_retryable = is_retryable


# =============================================================================
# Storage
# =============================================================================


class StorageError(CheckupError):
    """
    The on-disk release cache could not be read or written.

    Attributes:
        path: File or directory involved, if known.
    """

    def __init__(
        self, message: str, path: str | None = None, details: str | None = None
    ) -> None:
        super().__init__(message, details)
        self.path = path


class SerializationError(StorageError):
    """A cached file exists but its contents are malformed."""
