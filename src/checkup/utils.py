# src/checkup/utils.py
import functools
import importlib.metadata
from datetime import datetime, timezone
from typing import Any, Optional

from checkup.constants import APP_NAME

_SIZE_UNITS = (
    ("GB", 1024**3),
    ("MB", 1024**2),
    ("KB", 1024),
)


def get_version() -> str:
    """Return the installed checkup version, or `unknown` when not installed."""
    try:
        return importlib.metadata.version(APP_NAME)
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


@functools.lru_cache(maxsize=1)
def get_user_agent() -> str:
    """Return `checkup/<version>`, sent as the User-Agent on every upstream request."""
    return f"{APP_NAME}/{get_version()}"


def parse_iso_datetime_utc(value: Any) -> Optional[datetime]:
    """
    Convert an upstream or cached timestamp to an aware UTC datetime.

    Accepts ISO 8601 strings (a trailing "Z" included) and datetimes; naive
    values are taken to be UTC. Empty or unparsable input gives None.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except (ValueError, TypeError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_size(size: int) -> str:
    """
    Format a byte count for display, e.g. 1536 -> "1.50 KB".
    """
    for unit, factor in _SIZE_UNITS:
        if size >= factor:
            return f"{size / factor:.2f} {unit}"
    return f"{size} B"
