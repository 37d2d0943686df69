"""Lockfile parsers for the npm ecosystem (yarn.lock, package-lock.json).

Both parsers take file content and return pinned versions keyed by package
name. A package may appear more than once when different ranges were locked
to different versions.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Dict, List, Optional

from ..errors import ParseError
from .models import LockEntry

logger = logging.getLogger(__name__)

Lockfile = Dict[str, List[LockEntry]]

# Yarn v1: `  version "1.2.3"`; Yarn berry: `  version: 1.2.3`
_YARN_VERSION_RE = re.compile(r'^\s+version:?\s+"?([^"\s]+)"?\s*$')


def split_descriptor(descriptor: str) -> Optional[tuple]:
    """Split ``name@range`` (scoped names keep their leading '@').

    Returns:
        (name, range) or None when the descriptor has no range part.
    """
    descriptor = descriptor.strip().strip('"').strip("'")
    at = descriptor.find("@", 1)
    if at <= 0:
        return None
    name, spec = descriptor[:at], descriptor[at + 1:]
    if spec.startswith("npm:"):
        spec = spec[len("npm:"):]
        # Aliased descriptor: `npm:real-name@^1.0.0`
        inner = spec.find("@", 1)
        if inner > 0:
            spec = spec[inner + 1:]
    return name, spec


def parse_yarn_lock(content: str) -> Lockfile:
    """Extract locked versions from yarn.lock (v1 and berry layouts).

    Args:
        content: yarn.lock text

    Returns:
        Mapping of package name to its lock entries.
    """
    entries: Lockfile = {}
    pending: List[tuple] = []
    for line in content.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        if not line[0].isspace():
            # Entry header: one or more comma separated descriptors ending in ':'
            header = line.rstrip()
            if not header.endswith(":"):
                pending = []
                continue
            pending = []
            for descriptor in header[:-1].split(","):
                parsed = split_descriptor(descriptor)
                if parsed is not None and parsed[0] != "__metadata":
                    pending.append(parsed)
            continue
        match = _YARN_VERSION_RE.match(line)
        if match and pending:
            version = match.group(1)
            for name, spec in pending:
                entries.setdefault(name, []).append(LockEntry(declared_range=spec, version=version))
            pending = []

    logger.debug("Parsed %d packages from yarn.lock", len(entries))
    return entries


def _name_from_lock_path(pkg_path: str) -> Optional[str]:
    # Only top-level installs are relevant: "node_modules/@scope/pkg" or "node_modules/pkg"
    if not pkg_path.startswith("node_modules/"):
        return None
    rest = pkg_path[len("node_modules/"):]
    if "/node_modules/" in rest:
        return None
    return rest or None


def parse_package_lock(content: str) -> Lockfile:
    """Extract top-level locked versions from package-lock.json.

    Supports lockfileVersion 1, 2, and 3. package-lock does not record the
    declared range, so entries carry ``declared_range=None``.

    Raises:
        ParseError: content is not a JSON object.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}", source="package-lock.json") from e
    if not isinstance(data, dict):
        raise ParseError("lockfile is not a JSON object", source="package-lock.json")

    entries: Lockfile = {}
    packages = data.get("packages")
    if isinstance(packages, dict):
        # Version 2/3: flat packages structure
        for pkg_path, pkg_info in packages.items():
            name = _name_from_lock_path(pkg_path)
            if not name or not isinstance(pkg_info, dict):
                continue
            version = pkg_info.get("version")
            if isinstance(version, str):
                entries.setdefault(name, []).append(LockEntry(declared_range=None, version=version))

    deps = data.get("dependencies")
    if not entries and isinstance(deps, dict):
        # Version 1: nested dependencies, only the first level is installed at the root
        for name, pkg_info in deps.items():
            if isinstance(pkg_info, dict) and isinstance(pkg_info.get("version"), str):
                entries.setdefault(name, []).append(LockEntry(declared_range=None, version=pkg_info["version"]))

    logger.debug("Parsed %d packages from package-lock.json", len(entries))
    return entries
