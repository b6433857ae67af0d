"""
Tests for the asset name normalizer.

Covers:
- split_stem_ext against the compound extension table and the fallback rule
- rename_to_latest on real-world asset names
- legacy extract_extension
- both "latest" matching modes in find_latest_asset
"""

import pytest

from checkup.release.naming import (
    extract_extension,
    find_latest_asset,
    is_latest_request,
    latest_asset_names,
    rename_to_latest,
    split_stem_ext,
)

pytestmark = [pytest.mark.unit]


# =============================================================================
# split_stem_ext
# =============================================================================


class TestSplitStemExt:
    """Test stem/extension splitting."""

    def test_compound_extension(self):
        """Known compound extensions are split off whole."""
        assert split_stem_ext("bat-v0.26.1-x86_64.tar.gz") == (
            "bat-v0.26.1-x86_64",
            ".tar.gz",
        )

    def test_checksum_of_compressed_binary(self):
        """The most specific table entry wins over shorter suffixes."""
        assert split_stem_ext("forgejo-14.0.2-linux-amd64.xz.sha256") == (
            "forgejo-14.0.2-linux-amd64",
            ".xz.sha256",
        )

    def test_signature_extension(self):
        assert split_stem_ext("forgejo-14.0.2-linux-amd64.xz.asc") == (
            "forgejo-14.0.2-linux-amd64",
            ".xz.asc",
        )

    def test_unknown_extension_after_last_dot(self):
        """An unknown but plausible extension is still split off."""
        assert split_stem_ext("app-v2.0.0-x86_64.AppImage") == (
            "app-v2.0.0-x86_64",
            ".AppImage",
        )

    def test_numeric_suffix_is_not_an_extension(self):
        """A trailing version component is not mistaken for an extension."""
        assert split_stem_ext("linux-6.19.2") == ("linux-6.19.2", "")

    def test_suffix_with_dash_is_not_an_extension(self):
        assert split_stem_ext("forgejo-14.0.2-linux-amd64") == (
            "forgejo-14.0.2-linux-amd64",
            "",
        )

    def test_no_dot(self):
        assert split_stem_ext("README") == ("README", "")

    def test_trailing_dot(self):
        assert split_stem_ext("weird.") == ("weird.", "")


# =============================================================================
# rename_to_latest
# =============================================================================


class TestRenameToLatest:
    """Test stable "latest" filename derivation."""

    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("forgejo-14.0.2-linux-amd64", "latest-linux-amd64"),
            ("forgejo-14.0.2-linux-amd64.xz", "latest-linux-amd64.xz"),
            ("forgejo-14.0.2-linux-amd64.xz.sha256", "latest-linux-amd64.xz.sha256"),
            (
                "bat-v0.26.1-x86_64-unknown-linux-gnu.tar.gz",
                "latest-x86_64-unknown-linux-gnu.tar.gz",
            ),
            ("linux-6.19.2.tar.gz", "latest.tar.gz"),
            ("checkup-windows-x86_64.exe", "latest-windows-x86_64.exe"),
            ("bat_0.26.1_amd64.deb", "latest_amd64.deb"),
        ],
    )
    def test_known_vectors(self, filename, expected):
        """Real-world asset names map onto their stable names."""
        assert rename_to_latest(filename) == expected

    def test_version_only_name(self):
        """A name that is only app and version collapses to the bare prefix."""
        assert rename_to_latest("tool-1.2") == "latest"

    def test_single_segment_without_version(self):
        """Dropping the app name leaves nothing but the extension."""
        assert rename_to_latest("installer.msi") == "latest.msi"

    def test_bare_v_is_not_a_version(self):
        assert rename_to_latest("tool-v-linux.zip") == "latest-v-linux.zip"

    def test_first_version_segment_wins(self):
        assert rename_to_latest("tool-1.0-extra-2.0-linux.zip") == (
            "latest-extra-2.0-linux.zip"
        )

    def test_same_platform_different_versions_agree(self):
        """Two versions of the same build collapse onto the same stable name."""
        assert rename_to_latest("bat-v0.26.1-x86_64.tar.gz") == rename_to_latest(
            "bat-v0.27.0-x86_64.tar.gz"
        )


# =============================================================================
# extract_extension (legacy)
# =============================================================================


class TestExtractExtension:
    """Test legacy bare-extension extraction."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("v0.1.0.tar.gz", "tar.gz"),
            ("linux-6.19.2.tar.xz", "tar.xz"),
            ("src.tar.bz2", "tar.bz2"),
            ("package-1.0.0.zip", "zip"),
            ("app-v2.0.0.AppImage", "AppImage"),
            ("grab-linux-x86_64", "grab-linux-x86_64"),
        ],
    )
    def test_extract_extension(self, name, expected):
        assert extract_extension(name) == expected


# =============================================================================
# Matching
# =============================================================================


class TestIsLatestRequest:
    """Test recognition of "latest" path segments."""

    @pytest.mark.parametrize(
        "name", ["latest", "latest.tar.gz", "latest-linux-amd64", "latest_amd64.deb"]
    )
    def test_latest_names(self, name):
        assert is_latest_request(name) is True

    @pytest.mark.parametrize("name", ["latestx", "v1.0", "cache", "my-latest.zip"])
    def test_other_names(self, name):
        assert is_latest_request(name) is False


class TestFindLatestAsset:
    """Test both matching modes against the newest release."""

    def test_exact_renamed_match(self, sample_releases):
        asset = find_latest_asset(sample_releases, "latest-x86_64-unknown-linux-gnu.tar.gz")

        assert asset is sample_releases[0].assets[0]

    def test_exact_match_with_underscore_separator(self, sample_releases):
        asset = find_latest_asset(sample_releases, "latest_amd64.deb")

        assert asset is sample_releases[0].assets[1]

    def test_bare_extension_match(self, sample_releases):
        """latest.<ext> falls back to the first asset with that extension."""
        assert find_latest_asset(sample_releases, "latest.deb") is sample_releases[0].assets[1]
        assert (
            find_latest_asset(sample_releases, "latest.tar.gz")
            is sample_releases[0].assets[0]
        )

    def test_no_match(self, sample_releases):
        assert find_latest_asset(sample_releases, "latest.rpm") is None
        assert find_latest_asset(sample_releases, "latest-aarch64.tar.gz") is None

    def test_only_newest_release_is_considered(self, sample_releases):
        """Assets of older releases never satisfy a latest request."""
        del sample_releases[0].assets[:]

        assert find_latest_asset(sample_releases, "latest.tar.gz") is None

    def test_no_releases(self):
        assert find_latest_asset([], "latest.tar.gz") is None

    def test_latest_asset_names(self, sample_releases):
        names = [name for _asset, name in latest_asset_names(sample_releases[0].assets)]

        assert names == ["latest-x86_64-unknown-linux-gnu.tar.gz", "latest_amd64.deb"]
