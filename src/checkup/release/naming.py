"""
Asset Name Normalization

Derives stable, version-independent "latest" filenames from release asset
names so a fixed URL can always point at the newest build for a platform and
format, e.g.::

    forgejo-14.0.2-linux-amd64.xz.sha256  -> latest-linux-amd64.xz.sha256
    bat_0.26.1_amd64.deb                  -> latest_amd64.deb
    linux-6.19.2.tar.gz                   -> latest.tar.gz
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from checkup.constants import (
    KNOWN_ASSET_EXTENSIONS,
    LATEST_PREFIX,
    LEGACY_DOUBLE_EXTENSIONS,
)

from .interfaces import Asset, Release

_ASCII_DIGITS = frozenset("0123456789")


def _is_number(value: str) -> bool:
    return bool(value) and all(ch in _ASCII_DIGITS for ch in value)


def split_stem_ext(filename: str) -> Tuple[str, str]:
    """
    Split a filename into its stem and file extension.

    Known compound extensions (".tar.gz.sha256", ".xz.asc", ".deb", ...) are
    matched first. Otherwise the text after the last dot counts as an
    extension only if it is non-empty, has no "-" and is not purely numeric,
    so version fragments such as the ".2" in "linux-6.19.2" stay in the stem.

    Returns:
        Tuple[str, str]: `(stem, ext)`; `ext` keeps its leading dot and is empty when none was found.
    """
    for ext in KNOWN_ASSET_EXTENSIONS:
        if filename.endswith(ext):
            return filename[: -len(ext)], ext

    pos = filename.rfind(".")
    if pos != -1:
        suffix = filename[pos + 1 :]
        if suffix and "-" not in suffix and not _is_number(suffix):
            return filename[:pos], filename[pos:]

    return filename, ""


def _is_version_segment(segment: str) -> bool:
    # major.minor[.patch...] with an optional leading "v"
    if segment.startswith("v"):
        segment = segment[1:]
    components = segment.split(".")
    return len(components) >= 2 and _is_number(components[0]) and _is_number(components[1])


def rename_to_latest(filename: str) -> str:
    """
    Map a versioned asset filename onto its stable "latest" name.

    The stem is split on "-" (or "_" when it has no dashes). Everything up to
    and including the first version-shaped segment is dropped; when no
    segment looks like a version only the leading app name is dropped.

    Examples:
        >>> rename_to_latest("bat-v0.26.1-x86_64-unknown-linux-gnu.tar.gz")
        'latest-x86_64-unknown-linux-gnu.tar.gz'
        >>> rename_to_latest("checkup-windows-x86_64.exe")
        'latest-windows-x86_64.exe'
    """
    stem, ext = split_stem_ext(filename)
    sep = "-" if "-" in stem else "_"
    parts = stem.split(sep)

    version_idx = next(
        (idx for idx, part in enumerate(parts) if _is_version_segment(part)), None
    )
    remaining = parts[version_idx + 1 :] if version_idx is not None else parts[1:]

    if not remaining:
        return f"{LATEST_PREFIX}{ext}"
    return f"{LATEST_PREFIX}{sep}{sep.join(remaining)}{ext}"


def extract_extension(name: str) -> str:
    """
    Return the bare extension of an asset name, without the leading dot.

    Only ".tar.gz", ".tar.bz2" and ".tar.xz" are treated as compound; names
    without any dot are returned unchanged.
    """
    for ext in LEGACY_DOUBLE_EXTENSIONS:
        if name.endswith(ext):
            return ext[1:]

    pos = name.rfind(".")
    if pos != -1:
        return name[pos + 1 :]
    return name


def is_latest_request(name: str) -> bool:
    """Return True when a path segment asks for a "latest" asset redirect."""
    if name == LATEST_PREFIX:
        return True
    return any(name.startswith(f"{LATEST_PREFIX}{sep}") for sep in (".", "-", "_"))


def latest_asset_names(assets: Iterable[Asset]) -> List[Tuple[Asset, str]]:
    """Pair each asset with its stable "latest" filename."""
    return [(asset, rename_to_latest(asset.name)) for asset in assets]


def find_latest_asset(
    releases: Sequence[Release], requested: str
) -> Optional[Asset]:
    """
    Find the asset of the newest release that a "latest" name refers to.

    An exact match against the renamed filename wins. Failing that, a request
    of the form "latest.<ext>" matches the first asset whose bare extension
    equals `<ext>`.

    Returns:
        Optional[Asset]: The matching asset, or None when nothing matches or there are no releases.
    """
    if not releases:
        return None
    assets = releases[0].assets

    for asset, latest_name in latest_asset_names(assets):
        if latest_name == requested:
            return asset

    legacy_prefix = f"{LATEST_PREFIX}."
    if requested.startswith(legacy_prefix):
        wanted_ext = requested[len(legacy_prefix) :]
        for asset in assets:
            if extract_extension(asset.name) == wanted_ext:
                return asset

    return None
