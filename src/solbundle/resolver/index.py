"""Persistent map from as-written imports to resolved files, for editor navigation."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, Optional

from ..common.logging_utils import Timer, extra_context, is_debug_enabled
from ..constants import Constants
from ..errors import IndexCorruption, WorkspaceIOError
from ..workspace.base import Workspace, ensure_parent_dir, read_text_with_retry

logger = logging.getLogger(__name__)

IndexData = Dict[str, Dict[str, str]]


def parse_index(content: str) -> IndexData:
    """Validate and decode a persisted index snapshot.

    Raises:
        IndexCorruption: content is not a ``{source: {import: resolved}}`` object.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise IndexCorruption(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise IndexCorruption("index root is not an object")
    out: IndexData = {}
    for source, mapping in data.items():
        if not isinstance(mapping, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in mapping.items()
        ):
            raise IndexCorruption(f"entry for {source!r} is not a string mapping")
        out[source] = dict(mapping)
    return out


class ResolutionIndex:
    """Workspace-singleton resolution index.

    ``load()`` is memoized and concurrent callers share one in-flight load.
    ``save()`` writes a complete snapshot and only when something changed;
    saves are serialized so snapshots never interleave.
    """

    def __init__(self, workspace: Workspace, path: Optional[str] = None):
        self.workspace = workspace
        self.path = path or Constants.RESOLUTION_INDEX_FILE
        self._data: IndexData = {}
        self._loaded = False
        self._dirty = False
        self._load_task: Optional[asyncio.Task] = None
        self._save_lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    async def load(self) -> None:
        """Load the persisted index once; later calls return immediately."""
        if self._loaded:
            return
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load())
        task = self._load_task
        try:
            await asyncio.shield(task)
        finally:
            if task.done() and self._load_task is task and not self._loaded:
                # Failed load: let the next caller retry
                self._load_task = None

    async def _load(self) -> None:
        data: IndexData = {}
        try:
            if await self.workspace.exists(self.path):
                data = parse_index(await read_text_with_retry(self.workspace, self.path))
        except IndexCorruption as exc:
            logger.warning(
                "Resolution index %s is corrupt, starting empty: %s",
                self.path,
                exc,
                extra=extra_context(event="index_load", component="resolution_index", outcome="corrupt"),
            )
            data = {}
        except WorkspaceIOError as exc:
            logger.warning(
                "Resolution index %s could not be read, starting empty: %s",
                self.path,
                exc,
                extra=extra_context(event="index_load", component="resolution_index", outcome="io_error"),
            )
            data = {}
        # Records added while loading win over the persisted ones
        for source, mapping in self._data.items():
            data.setdefault(source, {}).update(mapping)
        self._data = data
        self._loaded = True
        logger.debug("Loaded resolution index with %d source files", len(self._data))

    async def save(self) -> bool:
        """Persist the index when dirty.

        Failures are logged and never raised.

        Returns:
            bool: True when a snapshot was written.
        """
        async with self._save_lock:
            if not self._dirty:
                return False
            snapshot = json.dumps(self._data, indent=2, sort_keys=True)
            # Changes made while writing mark the index dirty again
            self._dirty = False
            try:
                with Timer() as t:
                    await ensure_parent_dir(self.workspace, self.path)
                    await self.workspace.write_file(self.path, snapshot)
            except WorkspaceIOError as exc:
                self._dirty = True
                logger.warning(
                    "Failed to save resolution index %s: %s",
                    self.path,
                    exc,
                    extra=extra_context(event="index_save", component="resolution_index", outcome="error"),
                )
                return False
            if is_debug_enabled(logger):
                logger.debug(
                    "Saved resolution index (%d source files)",
                    len(self._data),
                    extra=extra_context(
                        event="index_save",
                        component="resolution_index",
                        outcome="success",
                        duration_ms=t.duration_ms(),
                    ),
                )
            return True

    async def reload(self) -> None:
        """Forget in-memory state and load again (workspace switch)."""
        self._data = {}
        self._loaded = False
        self._dirty = False
        self._load_task = None
        await self.load()

    def record_resolution(self, source_file: str, original_import: str, resolved_path: str) -> None:
        """Record one mapping; identity mappings are ignored."""
        if original_import == resolved_path:
            return
        mapping = self._data.setdefault(source_file, {})
        if mapping.get(original_import) != resolved_path:
            mapping[original_import] = resolved_path
            self._dirty = True

    def clear_file_resolutions(self, source_file: str) -> None:
        if self._data.pop(source_file, None) is not None:
            self._dirty = True

    def lookup(self, source_file: str, import_path: str) -> Optional[str]:
        return self._data.get(source_file, {}).get(import_path)

    def lookup_any(self, import_path: str) -> Optional[str]:
        """Find import_path under any source file.

        Used when the importing file is not itself a key, e.g. navigation from
        inside a library file.
        """
        for mapping in self._data.values():
            resolved = mapping.get(import_path)
            if resolved is not None:
                return resolved
        return None

    def get_resolutions_for_file(self, source_file: str) -> Dict[str, str]:
        return dict(self._data.get(source_file, {}))

    def snapshot(self) -> IndexData:
        """Deep copy of the current mapping."""
        return {source: dict(mapping) for source, mapping in self._data.items()}
