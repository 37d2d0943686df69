"""Disk-backed and in-memory workspace implementations."""

from __future__ import annotations

import asyncio
import posixpath
from pathlib import Path
from typing import Dict, Optional, Set, Union

from ..errors import WorkspaceIOError
from .base import Workspace


class LocalWorkspace(Workspace):
    """Workspace rooted at a directory on disk.

    Blocking file-system calls run in the default executor so the event loop
    keeps serving other resolutions.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def _path(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise WorkspaceIOError(f"Path escapes workspace: {path}", path=path)
        return target

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._path(path).exists)

    async def read_file(self, path: str) -> str:
        target = self._path(path)
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise WorkspaceIOError(f"Cannot read {path}: {exc}", path=path) from exc

    async def write_file(self, path: str, content: str) -> None:
        target = self._path(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp = target.with_name(target.name + ".tmp")
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(target)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise WorkspaceIOError(f"Cannot write {path}: {exc}", path=path) from exc

    async def mkdir(self, path: str) -> None:
        target = self._path(path)
        try:
            await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceIOError(f"Cannot create directory {path}: {exc}", path=path) from exc


class MemoryWorkspace(Workspace):
    """Workspace kept entirely in memory; used by tests and embedders."""

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self.files: Dict[str, str] = {}
        self.dirs: Set[str] = set()
        for path, content in (files or {}).items():
            self._store(path, content)

    @staticmethod
    def _norm(path: str) -> str:
        return posixpath.normpath(path).lstrip("/") if path else ""

    def _store(self, path: str, content: str) -> None:
        path = self._norm(path)
        self.files[path] = content
        parent = posixpath.dirname(path)
        while parent:
            self.dirs.add(parent)
            parent = posixpath.dirname(parent)

    async def exists(self, path: str) -> bool:
        path = self._norm(path)
        return path in self.files or path in self.dirs

    async def read_file(self, path: str) -> str:
        path = self._norm(path)
        if path not in self.files:
            raise WorkspaceIOError(f"No such file: {path}", path=path)
        return self.files[path]

    async def write_file(self, path: str, content: str) -> None:
        self._store(path, content)

    async def mkdir(self, path: str) -> None:
        path = self._norm(path)
        while path:
            self.dirs.add(path)
            path = posixpath.dirname(path)
