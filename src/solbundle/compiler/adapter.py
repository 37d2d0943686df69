"""Compiler adapter that resolves package imports before compiling.

The adapter wraps any ``Compiler`` by composition. Each compile request for a
target gets a new generation; only the newest generation of a target may
update the resolution index or reach the compiler.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Dict, Optional

from ..common.logging_utils import Timer, extra_context
from ..constants import Constants
from ..errors import ResolutionError, WorkspaceIOError
from ..imports.parser import has_import_grammar
from ..registry.base import RegistryClient
from ..resolver.cache import ResolutionCache
from ..resolver.context import ResolutionContext
from ..resolver.graph import DependencyGraphBuilder
from ..resolver.index import ResolutionIndex
from ..workspace.base import Workspace, ensure_parent_dir, read_text_with_retry
from .base import CompilationOutcome, CompilationResult, Compiler, CompilerDiagnostic

logger = logging.getLogger(__name__)

_SNAPSHOT_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def resolution_diagnostic(target: str, exc: Exception) -> CompilerDiagnostic:
    """Turn a resolution failure into an error diagnostic for target."""
    kind = "IOError" if isinstance(exc, WorkspaceIOError) else "ResolutionError"
    message = f"Failed to resolve imports: {exc}"
    return CompilerDiagnostic(
        severity="error",
        type=kind,
        component="resolver",
        message=message,
        formatted_message=f"{kind}: {message}\n --> {target}\n",
        source_file=target,
    )


class DependencyResolvingCompiler:
    """Resolve, bundle and forward to the wrapped compiler.

    Args:
        compiler: backend that receives the resolved bundle.
        workspace: workspace file-system capability.
        registry: package registry collaborator.
        cache: shared package cache; one is created when omitted.
        index: workspace resolution index; one is created when omitted.
    """

    def __init__(
        self,
        compiler: Compiler,
        workspace: Workspace,
        registry: RegistryClient,
        cache: Optional[ResolutionCache] = None,
        index: Optional[ResolutionIndex] = None,
    ):
        self.compiler = compiler
        self.workspace = workspace
        self.registry = registry
        self.cache = cache or ResolutionCache(registry)
        self.index = index or ResolutionIndex(workspace)
        self.builder = DependencyGraphBuilder(workspace, registry, cache=self.cache, index=self.index)
        self._generations: Dict[str, int] = {}
        self._workspace_epoch = 0

    def new_context(self, target: str) -> ResolutionContext:
        """Start a new generation for target, superseding any run in flight.

        A run also stops being current once the workspace changes under it.
        """
        generation = self._generations.get(target, 0) + 1
        self._generations[target] = generation
        epoch = self._workspace_epoch
        return ResolutionContext(
            target=target,
            generation=generation,
            is_current=lambda: self._workspace_epoch == epoch and self._generations.get(target) == generation,
        )

    async def compile(self, sources: Dict[str, str], target: str) -> CompilationOutcome:
        """Resolve imports of target and compile the resulting bundle.

        Resolution failures never fall back to compiling the unresolved
        sources; they are reported as an error diagnostic instead.
        """
        context = self.new_context(target)

        if not has_import_grammar(target):
            logger.debug("Skipping resolution for %s", target)
            return await self._forward(dict(sources), target, context)

        try:
            entry_content = sources.get(target)
            if entry_content is None:
                entry_content = await read_text_with_retry(self.workspace, target)
            with Timer() as t:
                bundle = await self.builder.build(target, entry_content, context)
        except (ResolutionError, WorkspaceIOError) as exc:
            if context.superseded:
                return self._superseded(context)
            diagnostic = resolution_diagnostic(target, exc)
            logger.error(
                "Import resolution failed for %s: %s",
                target,
                exc,
                extra=extra_context(event="resolve", component="compiler_adapter", outcome="error", target=target),
            )
            return CompilationOutcome(
                target=target,
                success=False,
                generation=context.generation,
                diagnostics=[diagnostic],
                warnings=list(context.warnings.messages),
                context=context,
            )

        if context.superseded:
            return self._superseded(context)

        if target not in bundle:
            bundle[target] = entry_content
        logger.debug(
            "Bundle for %s ready (%d files, %d ms)",
            target,
            len(bundle),
            t.duration_ms(),
            extra=extra_context(event="resolve", component="compiler_adapter", outcome="success", target=target),
        )
        if Constants.WRITE_BUNDLE_SNAPSHOT:
            await self._write_snapshot(target, bundle)
        return await self._forward(bundle, target, context)

    async def _forward(
        self, sources: Dict[str, str], target: str, context: ResolutionContext
    ) -> CompilationOutcome:
        result = await self.compiler.compile(sources, target, context)
        if context.superseded:
            return self._superseded(context)

        if isinstance(result, CompilerDiagnostic):
            compiled: Optional[CompilationResult] = None
            diagnostics = [result]
            success = not result.is_error
        else:
            compiled = result
            diagnostics = list(result.diagnostics)
            success = result.success
        return CompilationOutcome(
            target=target,
            success=success,
            generation=context.generation,
            result=compiled,
            diagnostics=diagnostics,
            bundle=sources,
            warnings=list(context.warnings.messages),
            context=context,
        )

    def _superseded(self, context: ResolutionContext) -> CompilationOutcome:
        logger.info(
            "Dropping superseded compile of %s (generation %d)",
            context.target,
            context.generation,
            extra=extra_context(event="compile", component="compiler_adapter", outcome="superseded"),
        )
        return CompilationOutcome(
            target=context.target,
            success=False,
            generation=context.generation,
            superseded=True,
            context=context,
        )

    async def _write_snapshot(self, target: str, bundle: Dict[str, str]) -> None:
        """Write the bundle as JSON for debugging; failures are only logged."""
        name = _SNAPSHOT_NAME_RE.sub("_", target).strip("_") or "bundle"
        path = f"{Constants.BUNDLE_SNAPSHOT_DIR}{name}.json"
        try:
            await ensure_parent_dir(self.workspace, path)
            await self.workspace.write_file(path, json.dumps({"target": target, "sources": bundle}, indent=2))
        except WorkspaceIOError as exc:
            logger.warning("Failed to write bundle snapshot %s: %s", path, exc)

    async def navigate(self, source_file: Optional[str], import_path: str) -> Optional[str]:
        """Map an as-written import back to the file it resolved to."""
        await self.index.load()
        if source_file:
            resolved = self.index.lookup(source_file, import_path)
            if resolved is not None:
                return resolved
        return self.index.lookup_any(import_path)

    async def on_workspace_changed(self) -> None:
        """Drop workspace-derived state after the user switched workspaces.

        Runs still in flight are superseded and never commit into the reloaded
        index.
        """
        self._workspace_epoch += 1
        self.cache.clear()
        self.builder = DependencyGraphBuilder(self.workspace, self.registry, cache=self.cache, index=self.index)
        await self.index.reload()
        logger.info("Workspace changed: cache cleared and resolution index reloaded")
