"""Tests for yarn.lock, package-lock.json and package.json parsing."""

import json

import pytest

from solbundle.errors import ParseError
from solbundle.versioning.lockfile_parser import parse_package_lock, parse_yarn_lock, split_descriptor
from solbundle.versioning.manifest import parse_manifest
from solbundle.versioning.models import LockEntry

YARN_V1 = """# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.
# yarn lockfile v1


"@openzeppelin/contracts@^4.8.0", "@openzeppelin/contracts@^4.9.0":
  version "4.9.3"
  resolved "https://registry.yarnpkg.com/@openzeppelin/contracts/-/contracts-4.9.3.tgz"
  integrity sha512-abc

solmate@^6.2.0:
  version "6.2.0"
  resolved "https://registry.yarnpkg.com/solmate/-/solmate-6.2.0.tgz"
  dependencies:
    ds-test "^1.0.0"
"""

YARN_BERRY = """__metadata:
  version: 6
  cacheKey: 8

"@openzeppelin/contracts@npm:^4.8.0":
  version: 4.8.3
  resolution: "@openzeppelin/contracts@npm:4.8.3"
  checksum: abc
"""


class TestYarnLockParser:
    """Test yarn.lock parsing."""

    def test_v1_multiple_descriptors(self):
        entries = parse_yarn_lock(YARN_V1)

        assert entries["@openzeppelin/contracts"] == [
            LockEntry("^4.8.0", "4.9.3"),
            LockEntry("^4.9.0", "4.9.3"),
        ]
        assert entries["solmate"] == [LockEntry("^6.2.0", "6.2.0")]
        assert "ds-test" not in entries

    def test_berry_format(self):
        entries = parse_yarn_lock(YARN_BERRY)

        assert entries == {"@openzeppelin/contracts": [LockEntry("^4.8.0", "4.8.3")]}

    def test_empty(self):
        assert parse_yarn_lock("") == {}

    def test_split_descriptor_alias(self):
        assert split_descriptor('"my-oz@npm:@openzeppelin/contracts@^4.0.0"') == ("my-oz", "^4.0.0")
        assert split_descriptor("nodash") is None


class TestPackageLockParser:
    """Test package-lock.json parsing."""

    def test_v3_top_level_packages_only(self):
        content = json.dumps(
            {
                "lockfileVersion": 3,
                "packages": {
                    "": {"name": "app"},
                    "node_modules/@openzeppelin/contracts": {"version": "4.8.3"},
                    "node_modules/foo/node_modules/bar": {"version": "1.0.0"},
                },
            }
        )
        entries = parse_package_lock(content)

        assert entries == {"@openzeppelin/contracts": [LockEntry(None, "4.8.3")]}

    def test_v1_dependencies(self):
        content = json.dumps(
            {
                "lockfileVersion": 1,
                "dependencies": {
                    "solmate": {"version": "6.2.0", "dependencies": {"nested": {"version": "1.0.0"}}},
                },
            }
        )
        entries = parse_package_lock(content)

        assert entries == {"solmate": [LockEntry(None, "6.2.0")]}

    def test_invalid_json(self):
        with pytest.raises(ParseError):
            parse_package_lock("{oops")


class TestManifest:
    """Test package.json declarations."""

    def test_override_fields_win(self):
        manifest = parse_manifest(
            json.dumps(
                {
                    "name": "app",
                    "dependencies": {"@openzeppelin/contracts": "^4.8.0"},
                    "resolutions": {"@openzeppelin/contracts": "4.8.3"},
                }
            )
        )

        assert manifest.name == "app"
        assert manifest.declared_range("@openzeppelin/contracts") == ("4.8.3", "resolutions")

    def test_dependency_field_order(self):
        manifest = parse_manifest(
            json.dumps(
                {
                    "devDependencies": {"solmate": "^6.0.0"},
                    "peerDependencies": {"solmate": "^5.0.0", "forge-std": "1.7.0"},
                }
            )
        )

        assert manifest.declared_range("solmate") == ("^6.0.0", "devDependencies")
        assert manifest.declared_range("forge-std") == ("1.7.0", "peerDependencies")
        assert manifest.declared_range("missing") is None

    def test_npm_alias_unwrapped(self):
        manifest = parse_manifest(json.dumps({"dependencies": {"oz": "npm:@openzeppelin/contracts@^4.9.0"}}))
        assert manifest.declared_range("oz") == ("^4.9.0", "dependencies")

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
    def test_malformed(self, content):
        with pytest.raises(ParseError):
            parse_manifest(content)
