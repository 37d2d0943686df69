"""Tests for npm-style version selection."""

import pytest

from solbundle.versioning import semver

CANDIDATES = ["4.7.0", "4.8.3", "4.9.3", "5.0.0", "5.0.2", "5.1.0-rc.0", "not-a-version"]


class TestPickRange:
    """Highest satisfying version, prereleases excluded unless requested."""

    @pytest.mark.parametrize(
        "spec, expected",
        [
            ("^4.8.0", "4.9.3"),
            ("~4.8.0", "4.8.3"),
            ("5", "5.0.2"),
            ("5.x", "5.0.2"),
            (">=4.8.0 <5.0.0", "4.9.3"),
            ("4.7.0 - 4.8.3", "4.8.3"),
            ("*", "5.0.2"),
        ],
    )
    def test_highest_satisfying(self, spec, expected):
        version, error = semver.pick_range(spec, CANDIDATES)
        assert error is None
        assert version == expected

    def test_prerelease_when_range_names_one(self):
        version, _ = semver.pick_range("^5.1.0-rc.0", CANDIDATES)
        assert version == "5.1.0-rc.0"

    def test_no_match(self):
        version, error = semver.pick_range("^6.0.0", CANDIDATES)
        assert version is None
        assert "No versions match" in error


class TestPickLatest:
    def test_latest_stable(self):
        assert semver.pick_latest(CANDIDATES) == ("5.0.2", None)

    def test_empty(self):
        version, error = semver.pick_latest([])
        assert version is None
        assert error == "No versions available"

    def test_only_prereleases(self):
        version, error = semver.pick_latest(["1.0.0-beta.1"])
        assert version is None
        assert error is not None


class TestHelpers:
    def test_exact_versions(self):
        assert semver.is_exact_version("4.8.3")
        assert semver.is_exact_version("v4.8.3")
        assert semver.is_exact_version("=4.8.3")
        assert not semver.is_exact_version("^4.8.3")
        assert not semver.is_exact_version("5")

    def test_satisfies(self):
        assert semver.satisfies("1.2.3", "^1.0.0")
        assert not semver.satisfies("2.0.0", "^1.0.0")
        assert not semver.satisfies("garbage", "^1.0.0")

    def test_includes_prerelease(self):
        assert semver.includes_prerelease("^5.0.0-rc.1")
        assert not semver.includes_prerelease("1.0.0 - 2.0.0")
