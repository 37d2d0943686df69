"""package.json declarations used by the version priority chain."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..errors import ParseError

logger = logging.getLogger(__name__)

# Checked in order; the first field declaring a package wins.
OVERRIDE_FIELDS = ("resolutions", "overrides")
DEPENDENCY_FIELDS = ("dependencies", "devDependencies", "peerDependencies")
# Fields of a published package that constrain the versions its own files import.
PARENT_FIELDS = ("dependencies", "peerDependencies")


def _unwrap_alias(spec: str) -> str:
    """``npm:@scope/real@^1.2.0`` declares the range ``^1.2.0``."""
    if not spec.startswith("npm:"):
        return spec
    target = spec[len("npm:"):]
    at = target.find("@", 1)
    return target[at + 1:] if at > 0 else "*"


@dataclass
class Manifest:
    """Declared dependency ranges of a package.json (workspace root or fetched package)."""

    name: Optional[str] = None
    declarations: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def declared_range(self, package: str) -> Optional[Tuple[str, str]]:
        """Return (range, field) for package, honouring override fields first."""
        for field_name in OVERRIDE_FIELDS + DEPENDENCY_FIELDS:
            spec = self.declarations.get(field_name, {}).get(package)
            if spec:
                return _unwrap_alias(spec), field_name
        return None

    def runtime_dependencies(self) -> Dict[str, str]:
        """Ranges this package declares for its imports; dependencies win over peers."""
        deps: Dict[str, str] = {}
        for field_name in PARENT_FIELDS:
            for package, spec in self.declarations.get(field_name, {}).items():
                deps.setdefault(package, _unwrap_alias(spec))
        return deps


def parse_manifest(content: str) -> Manifest:
    """Parse package.json text.

    Non-string entries (nested npm overrides, workspace objects) are ignored.

    Raises:
        ParseError: content is not a JSON object.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}", source="package.json") from e
    if not isinstance(data, dict):
        raise ParseError("manifest is not a JSON object", source="package.json")

    manifest = Manifest(name=data.get("name") if isinstance(data.get("name"), str) else None)
    for field_name in OVERRIDE_FIELDS + DEPENDENCY_FIELDS:
        section = data.get(field_name)
        if not isinstance(section, dict):
            continue
        manifest.declarations[field_name] = {
            pkg: spec.strip() for pkg, spec in section.items() if isinstance(spec, str) and spec.strip()
        }
    logger.debug(
        "Parsed manifest %s with %d declaration fields",
        manifest.name or "<unnamed>",
        len(manifest.declarations),
    )
    return manifest
