"""Workspace file-system implementations."""

from .base import Workspace, ensure_parent_dir, read_optional, read_text_with_retry
from .local import LocalWorkspace, MemoryWorkspace

__all__ = [
    "Workspace",
    "LocalWorkspace",
    "MemoryWorkspace",
    "ensure_parent_dir",
    "read_optional",
    "read_text_with_retry",
]
