"""Dependency Graph Builder: breadth-first import traversal into a source bundle."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set

from ..common.logging_utils import Timer, extra_context, is_debug_enabled
from ..constants import Constants, ImportKind
from ..errors import ParseError, ResolutionError, WorkspaceIOError
from ..imports.package_ref import PackageReference, parse_package_reference
from ..imports.parser import ImportReference, extract_imports, is_relative_import
from ..imports.remapping import RemappingRule, apply_remappings, load_remappings
from ..registry.base import RegistryClient
from ..versioning.manifest import parse_manifest
from ..versioning.models import ResolvedPackageKey
from ..versioning.resolver import VersionResolver
from ..workspace.base import Workspace, ensure_parent_dir, read_text_with_retry
from .cache import ResolutionCache, ResolvedNode
from .context import ResolutionContext
from .index import ResolutionIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PackageImport:
    """A package import waiting for its package to be fetched."""

    source_file: str
    literal: str
    key: ResolvedPackageKey
    subpath: str

    @property
    def resolved_path(self) -> str:
        return self.key.path_for(self.subpath)


class DependencyGraphBuilder:
    """Resolve every transitive import of an entry file into a flat bundle.

    The builder itself is stateless between runs apart from the shared cache
    and the set of packages already written to the workspace; all run state
    lives in the ResolutionContext.
    """

    def __init__(
        self,
        workspace: Workspace,
        registry: RegistryClient,
        cache: Optional[ResolutionCache] = None,
        index: Optional[ResolutionIndex] = None,
        remappings: Optional[Sequence[RemappingRule]] = None,
    ):
        self.workspace = workspace
        self.registry = registry
        self.cache = cache or ResolutionCache(registry)
        self.index = index
        self.remappings = list(remappings) if remappings is not None else None
        self._materialized: Set[ResolvedPackageKey] = set()

    async def build(
        self,
        entry_path: str,
        entry_content: str,
        context: Optional[ResolutionContext] = None,
    ) -> Dict[str, str]:
        """Build the source bundle for entry_path.

        Files are processed level by level; all package fetches of a level run
        concurrently and are joined before the next level starts. A superseded
        run stops early and must be discarded by the caller.

        Returns:
            dict: resolved path -> content, always containing entry_path.

        Raises:
            ResolutionError: an import could not be resolved or read.
        """
        context = context or ResolutionContext(target=entry_path)
        if self.index is not None:
            await self.index.load()
        rules = self.remappings
        if rules is None:
            rules = await load_remappings(self.workspace, warnings=context.warnings)
        versions = await VersionResolver.from_workspace(
            self.workspace,
            self.registry,
            warnings=context.warnings,
            session=context.session_versions,
            parents=context.parent_dependencies,
        )

        bundle: Dict[str, str] = {entry_path: entry_content}
        visited: Set[str] = {entry_path}
        fetched: Set[ResolvedPackageKey] = set()
        level: List[str] = [entry_path]
        depth = 0

        with Timer() as t:
            while level:
                if context.superseded:
                    logger.info("Resolution of %s superseded, stopping", entry_path)
                    return bundle
                next_level: List[str] = []
                waiting: List[_PackageImport] = []

                for source_file in level:
                    context.mark_scanned(source_file)
                    for ref in extract_imports(bundle[source_file], source_file):
                        await self._resolve_import(
                            ref, rules, versions, context, bundle, visited, next_level, waiting
                        )

                new_keys = sorted({w.key for w in waiting if w.key not in fetched})
                nodes = await self._fetch_all(new_keys)
                for node in nodes:
                    fetched.add(node.key)
                    self._record_parent_dependencies(node, context)
                    self._add_package(node, context, bundle, visited, next_level)
                    await self._materialize(node)

                for item in waiting:
                    if item.resolved_path not in bundle:
                        raise ResolutionError(
                            f"File {item.subpath} not found in package {item.key} (imported by {item.source_file})",
                            reference=item.literal,
                        )

                if is_debug_enabled(logger):
                    logger.debug(
                        "Level %d: %d files scanned, %d packages fetched",
                        depth,
                        len(level),
                        len(nodes),
                        extra=extra_context(event="graph_level", component="graph_builder", depth=depth),
                    )
                level = next_level
                depth += 1

        context.bundle = bundle
        logger.info(
            "Resolved %s: %d files from %d packages in %d ms",
            entry_path,
            len(bundle),
            len(fetched),
            t.duration_ms(),
            extra=extra_context(
                event="graph_build",
                component="graph_builder",
                outcome="success",
                target=entry_path,
                duration_ms=t.duration_ms(),
            ),
        )

        if self.index is not None and context.commit(self.index):
            await self.index.save()
        return bundle

    def classify(self, literal: str) -> ImportKind:
        """Classify a remapped literal without touching the workspace."""
        if is_relative_import(literal):
            return ImportKind.RELATIVE
        if literal.startswith(Constants.DEPS_DIR) and not literal.startswith(Constants.DEPS_NPM_DIR):
            return ImportKind.LOCAL
        return ImportKind.PACKAGE

    async def _resolve_import(
        self,
        ref: ImportReference,
        rules: Sequence[RemappingRule],
        versions: VersionResolver,
        context: ResolutionContext,
        bundle: Dict[str, str],
        visited: Set[str],
        next_level: List[str],
        waiting: List[_PackageImport],
    ) -> None:
        literal, rule = apply_remappings(ref.raw_path, rules)
        kind = self.classify(literal)

        if kind is ImportKind.RELATIVE:
            path = posixpath.normpath(posixpath.join(posixpath.dirname(ref.source_file), literal))
            await self._add_local(path, ref, bundle, visited, next_level)
        elif kind is ImportKind.PACKAGE and (literal in visited or await self._is_workspace_file(literal, ref)):
            path = literal
            await self._add_local(path, ref, bundle, visited, next_level)
        elif kind is ImportKind.LOCAL:
            path = literal
            await self._add_local(path, ref, bundle, visited, next_level)
        else:
            package_literal = literal
            if literal.startswith(Constants.DEPS_NPM_DIR):
                package_literal = literal[len(Constants.DEPS_NPM_DIR):]
            try:
                package_ref = parse_package_reference(package_literal)
            except ParseError as exc:
                context.warnings.parse_failure(f"import {ref.raw_path!r} in {ref.source_file}", str(exc))
                return
            parent = context.file_packages.get(ref.source_file)
            path = await self._resolve_package(ref, package_ref, versions, waiting, parent)

        context.add_edge(ref.source_file, path)
        context.record_resolution(ref.source_file, ref.raw_path, path)
        if rule is not None:
            context.record_resolution(ref.source_file, literal, path)

    async def _resolve_package(
        self,
        ref: ImportReference,
        package_ref: PackageReference,
        versions: VersionResolver,
        waiting: List[_PackageImport],
        parent: Optional[ResolvedPackageKey] = None,
    ) -> str:
        if not package_ref.subpath:
            raise ResolutionError(
                f"Import {ref.raw_path!r} in {ref.source_file} does not name a file", reference=package_ref
            )
        resolved = await versions.resolve(package_ref, parent=parent)
        key = ResolvedPackageKey(package_ref.full_name, resolved.version)
        item = _PackageImport(ref.source_file, ref.raw_path, key, package_ref.subpath)
        waiting.append(item)
        return item.resolved_path

    async def _is_workspace_file(self, path: str, ref: ImportReference) -> bool:
        try:
            return await self.workspace.exists(path)
        except WorkspaceIOError as exc:
            raise ResolutionError(f"Cannot check {path} in the workspace: {exc}", reference=ref.raw_path) from exc

    async def _add_local(
        self,
        path: str,
        ref: ImportReference,
        bundle: Dict[str, str],
        visited: Set[str],
        next_level: List[str],
    ) -> None:
        if path in visited:
            return
        try:
            if not await self.workspace.exists(path):
                raise ResolutionError(
                    f"File {path} imported by {ref.source_file} not found", reference=ref.raw_path
                )
            content = await read_text_with_retry(self.workspace, path)
        except WorkspaceIOError as exc:
            raise ResolutionError(f"Cannot read {path}: {exc}", reference=ref.raw_path) from exc
        visited.add(path)
        bundle[path] = content
        next_level.append(path)

    async def _fetch_all(self, keys: List[ResolvedPackageKey]) -> List[ResolvedNode]:
        """Fetch keys concurrently, waiting for every fetch before reporting a failure."""
        if not keys:
            return []
        results = await asyncio.gather(*(self.cache.get_or_fetch(k) for k in keys), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)

    def _add_package(
        self,
        node: ResolvedNode,
        context: ResolutionContext,
        bundle: Dict[str, str],
        visited: Set[str],
        next_level: List[str],
    ) -> None:
        for relative_path in sorted(node.files):
            if not relative_path.endswith(Constants.SOURCE_EXTENSIONS):
                continue
            path = node.path_for(relative_path)
            if path in visited:
                continue
            context.note_package_file(node.key.name, relative_path, node.key.version)
            context.file_packages[path] = node.key
            visited.add(path)
            bundle[path] = node.files[relative_path]
            next_level.append(path)

    def _record_parent_dependencies(self, node: ResolvedNode, context: ResolutionContext) -> None:
        """Remember the ranges a fetched package declares for its own imports."""
        content = node.files.get(Constants.PACKAGE_JSON_FILE)
        if content is None:
            return
        try:
            deps = parse_manifest(content).runtime_dependencies()
        except ParseError as exc:
            context.warnings.parse_failure(node.path_for(Constants.PACKAGE_JSON_FILE), str(exc))
            return
        if deps:
            context.parent_dependencies[node.key] = deps

    async def _materialize(self, node: ResolvedNode) -> None:
        """Write fetched package files under the deps directory for editor navigation."""
        if not Constants.MATERIALIZE_DEPENDENCIES or node.key in self._materialized:
            return
        try:
            for relative_path, content in node.files.items():
                path = node.path_for(relative_path)
                await ensure_parent_dir(self.workspace, path)
                await self.workspace.write_file(path, content)
        except WorkspaceIOError as exc:
            logger.warning(
                "Failed to write %s to the workspace: %s",
                node.key,
                exc,
                extra=extra_context(event="materialize", component="graph_builder", outcome="error"),
            )
            return
        self._materialized.add(node.key)
