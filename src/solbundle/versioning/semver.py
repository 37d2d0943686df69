"""npm-style semantic version selection."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

import semantic_version

_PRERELEASE_IN_SPEC = re.compile(r"\d-[0-9A-Za-z]")


def parse_version(value: str) -> Optional[semantic_version.Version]:
    """Parse a concrete version, tolerating a leading 'v' or '='."""
    text = value.strip().lstrip("=v").strip()
    try:
        return semantic_version.Version(text)
    except ValueError:
        return None


def is_exact_version(spec: str) -> bool:
    return parse_version(spec) is not None


def includes_prerelease(spec: str) -> bool:
    """True when the range itself names a prerelease (e.g. ``^5.0.0-rc.1``)."""
    return bool(_PRERELEASE_IN_SPEC.search(spec))


def _normalize_spec(spec_str: str) -> str:
    """Normalize npm range syntax (hyphen, x-ranges) into SimpleSpec-compatible form."""
    s = spec_str.strip()

    # Hyphen ranges: "1.2.3 - 1.4.5" => ">=1.2.3,<=1.4.5"
    m = re.match(r'^\s*([0-9A-Za-z\.\-\+]+)\s+-\s+([0-9A-Za-z\.\-\+]+)\s*$', s)
    if m:
        return f">={m.group(1)},<={m.group(2)}"

    s2 = s.replace('*', 'x').lower()
    m = re.match(r'^\s*(\d+)\.(\d+)\.x\s*$', s2)
    if m:
        major, minor = int(m.group(1)), int(m.group(2))
        return f">={major}.{minor}.0,<{major}.{minor + 1}.0"

    m = re.match(r'^\s*(\d+)(?:\.x)?\s*$', s2)
    if m:
        major = int(m.group(1))
        return f">={major}.0.0,<{major + 1}.0.0"

    return spec_str


def _build_spec(spec_str: str):
    # NpmSpec understands ^, ~, hyphen ranges, x-ranges and partial versions
    try:
        return semantic_version.NpmSpec(spec_str)
    except ValueError:
        return semantic_version.SimpleSpec(_normalize_spec(spec_str))


def satisfies(version: str, spec_str: str) -> bool:
    """Return True when version matches the npm range spec_str."""
    parsed = parse_version(version)
    if parsed is None:
        return False
    try:
        spec = _build_spec(spec_str)
    except ValueError:
        return False
    return spec.match(parsed)


def _parse_all(candidates: Iterable[str], include_prerelease: bool) -> List[semantic_version.Version]:
    parsed = []
    for value in candidates:
        version = parse_version(value)
        if version is None:
            continue  # Skip invalid versions
        if version.prerelease and not include_prerelease:
            continue
        parsed.append(version)
    return parsed


def pick_latest(candidates: List[str]) -> Tuple[Optional[str], Optional[str]]:
    """Pick the highest stable version.

    Returns:
        Tuple of (version or None, error message or None).
    """
    if not candidates:
        return None, "No versions available"
    parsed = _parse_all(candidates, include_prerelease=False)
    if not parsed:
        return None, "No stable semantic versions found"
    return str(max(parsed)), None


def pick_range(spec_str: str, candidates: List[str]) -> Tuple[Optional[str], Optional[str]]:
    """Pick the highest version satisfying an npm range.

    Prereleases are excluded unless the range names one.

    Returns:
        Tuple of (version or None, error message or None).
    """
    try:
        spec = _build_spec(spec_str)
    except ValueError as e:
        return None, f"Invalid semver spec: {str(e)}"

    matching = [v for v in _parse_all(candidates, includes_prerelease(spec_str)) if spec.match(v)]
    if not matching:
        return None, f"No versions match spec '{spec_str}'"
    return str(max(matching)), None
