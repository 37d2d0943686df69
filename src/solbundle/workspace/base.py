"""Workspace file-system capability used by the resolver."""

from __future__ import annotations

import abc
import logging
from typing import Optional

from ..common.logging_utils import extra_context
from ..errors import ResolutionError, WorkspaceIOError

logger = logging.getLogger(__name__)


class Workspace(abc.ABC):
    """Narrow async file-system interface.

    Paths are workspace-relative POSIX strings. Implementations raise
    WorkspaceIOError for any read or write failure.
    """

    @abc.abstractmethod
    async def exists(self, path: str) -> bool:
        """Return True when a file or directory exists at path."""

    @abc.abstractmethod
    async def read_file(self, path: str) -> str:
        """Return the text content of path."""

    @abc.abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        """Write text content to path, replacing it."""

    @abc.abstractmethod
    async def mkdir(self, path: str) -> None:
        """Create a directory (and parents) at path."""


async def read_text_with_retry(workspace: Workspace, path: str) -> str:
    """Read a workspace file, retrying once on WorkspaceIOError.

    The second failure propagates to the caller.
    """
    try:
        return await workspace.read_file(path)
    except WorkspaceIOError as exc:
        logger.debug(
            "Workspace read failed, retrying once: %s",
            exc,
            extra=extra_context(event="io_retry", component="workspace", target=path),
        )
    return await workspace.read_file(path)


async def read_optional(workspace: Workspace, path: str) -> Optional[str]:
    """Read a workspace file that may be absent.

    Raises:
        ResolutionError: the file exists but could not be read after a retry.
    """
    try:
        if not await workspace.exists(path):
            return None
        return await read_text_with_retry(workspace, path)
    except WorkspaceIOError as exc:
        raise ResolutionError(f"Failed to read {path}: {exc}") from exc


async def ensure_parent_dir(workspace: Workspace, path: str) -> None:
    """Create the parent directory of path when missing."""
    parent = path.rsplit("/", 1)[0] if "/" in path else ""
    if parent and not await workspace.exists(parent):
        await workspace.mkdir(parent)
