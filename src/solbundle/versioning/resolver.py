"""Version Resolver: canonical version selection for package references.

Priority chain for unpinned references (first applicable wins):

1. session reuse: a version already chosen for the package in this run
2. lockfile: the pinned version from yarn.lock (package-lock.json fallback)
3. manifest: highest published version satisfying the package.json range
4. parent: the range declared by the fetched package whose file holds the import
5. registry: highest published stable version

Explicitly pinned references bypass the chain and never feed session reuse.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from ..common.logging_utils import extra_context, is_debug_enabled
from ..common.warning_system import WarningSystem
from ..constants import Constants, VersionSource
from ..errors import ParseError, RegistryError, ResolutionError
from ..imports.package_ref import PackageReference
from ..registry.base import RegistryClient
from ..workspace.base import Workspace, read_optional
from . import semver
from .lockfile_parser import Lockfile, parse_package_lock, parse_yarn_lock
from .manifest import Manifest, parse_manifest
from .models import LockEntry, ResolvedPackageKey, ResolvedVersion

logger = logging.getLogger(__name__)


async def load_manifest(workspace: Workspace, warnings: Optional[WarningSystem] = None) -> Optional[Manifest]:
    """Load package.json; a malformed manifest is skipped with a warning."""
    content = await read_optional(workspace, Constants.PACKAGE_JSON_FILE)
    if content is None:
        return None
    try:
        return parse_manifest(content)
    except ParseError as exc:
        if warnings:
            warnings.parse_failure(Constants.PACKAGE_JSON_FILE, str(exc))
        return None


async def load_lockfile(workspace: Workspace, warnings: Optional[WarningSystem] = None) -> Optional[Lockfile]:
    """Load yarn.lock, falling back to package-lock.json."""
    content = await read_optional(workspace, Constants.YARN_LOCK_FILE)
    if content is not None:
        entries = parse_yarn_lock(content)
        if entries:
            return entries
        if content.strip() and warnings:
            warnings.parse_failure(Constants.YARN_LOCK_FILE, "no lock entries found")

    content = await read_optional(workspace, Constants.PACKAGE_LOCK_FILE)
    if content is None:
        return None
    try:
        return parse_package_lock(content)
    except ParseError as exc:
        if warnings:
            warnings.parse_failure(Constants.PACKAGE_LOCK_FILE, str(exc))
        return None


class VersionResolver:
    """Run-scoped resolver implementing the version priority chain.

    Args:
        registry: registry collaborator used for version lists.
        manifest: parsed package.json, or None.
        lockfile: parsed lock entries, or None.
        warnings: warning sink for skipped sources and unsatisfiable ranges.
        session: canonical versions already chosen in this run; shared with the
            run's context so all lookups in one traversal agree.
        parents: dependency ranges declared by each fetched package, keyed by
            package key; shared with the run's context.
    """

    def __init__(
        self,
        registry: RegistryClient,
        manifest: Optional[Manifest] = None,
        lockfile: Optional[Lockfile] = None,
        warnings: Optional[WarningSystem] = None,
        session: Optional[Dict[str, str]] = None,
        parents: Optional[Dict[ResolvedPackageKey, Dict[str, str]]] = None,
    ):
        self.registry = registry
        self.manifest = manifest
        self.lockfile = lockfile or {}
        self.warnings = warnings or WarningSystem()
        self.session: Dict[str, str] = session if session is not None else {}
        self.parents: Dict[ResolvedPackageKey, Dict[str, str]] = parents if parents is not None else {}
        self._versions: Dict[str, List[str]] = {}
        self._pins: Dict[Tuple[str, str], str] = {}

    @classmethod
    async def from_workspace(
        cls,
        workspace: Workspace,
        registry: RegistryClient,
        warnings: Optional[WarningSystem] = None,
        session: Optional[Dict[str, str]] = None,
        parents: Optional[Dict[ResolvedPackageKey, Dict[str, str]]] = None,
    ) -> "VersionResolver":
        warnings = warnings or WarningSystem()
        manifest = await load_manifest(workspace, warnings)
        lockfile = await load_lockfile(workspace, warnings)
        return cls(
            registry, manifest=manifest, lockfile=lockfile, warnings=warnings, session=session, parents=parents
        )

    async def available_versions(self, ref: PackageReference) -> List[str]:
        """Published versions of a package, fetched at most once per run.

        Raises:
            ResolutionError: registry lookup failed.
        """
        name = ref.full_name
        if name not in self._versions:
            try:
                self._versions[name] = list(await self.registry.fetch_versions(name))
            except RegistryError as exc:
                raise ResolutionError(f"Registry lookup failed for {name}: {exc}", reference=ref) from exc
        return self._versions[name]

    async def resolve(self, ref: PackageReference, parent: Optional[ResolvedPackageKey] = None) -> ResolvedVersion:
        """Determine the version to fetch for ref.

        Args:
            ref: the package reference to resolve.
            parent: key of the fetched package whose file contains the import,
                or None for workspace files.

        Raises:
            ResolutionError: no step produced a version, or the registry failed.
        """
        if ref.explicit_version:
            return await self._resolve_pin(ref)

        name = ref.full_name
        self._check_parent_conflicts(name)
        if name in self.session:
            return ResolvedVersion(self.session[name], VersionSource.SESSION)

        resolved = self._from_lockfile(ref)
        if resolved is None:
            resolved = await self._from_manifest(ref)
        if resolved is None:
            resolved = await self._from_parent(ref, parent)
        if resolved is None:
            resolved = await self._from_registry(ref)

        self.session[name] = resolved.version
        if is_debug_enabled(logger):
            logger.debug(
                "Resolved %s to %s via %s",
                name,
                resolved.version,
                resolved.source.value,
                extra=extra_context(
                    event="version_resolved",
                    component="version_resolver",
                    package=name,
                    source=resolved.source.value,
                ),
            )
        return resolved

    async def _resolve_pin(self, ref: PackageReference) -> ResolvedVersion:
        pin = ref.explicit_version or ""
        if semver.is_exact_version(pin):
            return ResolvedVersion(pin, VersionSource.EXPLICIT, detail=pin)

        cache_key = (ref.full_name, pin)
        if cache_key not in self._pins:
            version, error = semver.pick_range(pin, await self.available_versions(ref))
            if version is None:
                raise ResolutionError(f"Cannot resolve pinned version {ref.full_name}@{pin}: {error}", reference=ref)
            self._pins[cache_key] = version
        return ResolvedVersion(self._pins[cache_key], VersionSource.EXPLICIT, detail=pin)

    def _valid_lock_entries(self, name: str) -> List[LockEntry]:
        valid = []
        for entry in self.lockfile.get(name, []):
            if entry.declared_range and semver.is_exact_version(entry.version):
                if not semver.satisfies(entry.version, entry.declared_range):
                    self.warnings.invalid_lock_entry(name, entry.declared_range, entry.version)
                    continue
            valid.append(entry)
        return valid

    def _from_lockfile(self, ref: PackageReference) -> Optional[ResolvedVersion]:
        entries = self._valid_lock_entries(ref.full_name)
        if not entries:
            return None

        declared = self.manifest.declared_range(ref.full_name) if self.manifest else None
        if declared:
            for entry in entries:
                if entry.declared_range == declared[0]:
                    return ResolvedVersion(entry.version, VersionSource.LOCKFILE, detail=entry.declared_range)

        # Several ranges locked and none matches the manifest: take the highest pin
        best = max(entries, key=lambda e: semver.parse_version(e.version) or semver.parse_version("0.0.0"))
        return ResolvedVersion(best.version, VersionSource.LOCKFILE, detail=best.declared_range)

    async def _from_manifest(self, ref: PackageReference) -> Optional[ResolvedVersion]:
        if not self.manifest:
            return None
        declared = self.manifest.declared_range(ref.full_name)
        if not declared:
            return None
        spec, field_name = declared
        if semver.is_exact_version(spec):
            return ResolvedVersion(spec.lstrip("=v"), VersionSource.MANIFEST, detail=field_name)

        version, error = semver.pick_range(spec, await self.available_versions(ref))
        if version is None:
            self.warnings.unresolved_manifest_range(ref.full_name, spec, error)
            return None
        return ResolvedVersion(version, VersionSource.MANIFEST, detail=field_name)

    async def _from_parent(
        self, ref: PackageReference, parent: Optional[ResolvedPackageKey]
    ) -> Optional[ResolvedVersion]:
        declared = self.parents.get(parent, {}).get(ref.full_name) if parent else None
        if not declared:
            return None
        if semver.is_exact_version(declared):
            return ResolvedVersion(declared.lstrip("=v"), VersionSource.PARENT, detail=str(parent))

        version, error = semver.pick_range(declared, await self.available_versions(ref))
        if version is None:
            self.warnings.unresolved_parent_range(str(parent), ref.full_name, declared, error)
            return None
        return ResolvedVersion(version, VersionSource.PARENT, detail=str(parent))

    def _check_parent_conflicts(self, name: str) -> None:
        requirements = [(str(key), deps[name]) for key, deps in self.parents.items() if name in deps]
        if len({spec for _, spec in requirements}) > 1:
            self.warnings.multi_parent_conflict(name, requirements)

    async def _from_registry(self, ref: PackageReference) -> ResolvedVersion:
        version, error = semver.pick_latest(await self.available_versions(ref))
        if version is None:
            raise ResolutionError(f"Cannot resolve a version for {ref.full_name}: {error}", reference=ref)
        return ResolvedVersion(version, VersionSource.REGISTRY)
