"""Version selection: semver matching, lockfiles, manifest and the priority chain."""

from .lockfile_parser import parse_package_lock, parse_yarn_lock
from .manifest import Manifest, parse_manifest
from .models import LockEntry, ResolvedPackageKey, ResolvedVersion
from .resolver import VersionResolver, load_lockfile, load_manifest

__all__ = [
    "LockEntry",
    "Manifest",
    "ResolvedPackageKey",
    "ResolvedVersion",
    "VersionResolver",
    "load_lockfile",
    "load_manifest",
    "parse_manifest",
    "parse_package_lock",
    "parse_yarn_lock",
]
