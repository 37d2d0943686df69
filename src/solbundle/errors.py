"""Exception taxonomy for import resolution."""

from __future__ import annotations

from typing import Any, Optional


class SolbundleError(Exception):
    """Base class for all resolver errors."""


class ParseError(SolbundleError):
    """Malformed import literal, manifest, lockfile or config content.

    Recoverable: callers skip the offending source of truth and continue.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class ResolutionError(SolbundleError):
    """A package or file could not be resolved.

    Fatal for the current compile target only.
    """

    def __init__(self, message: str, reference: Optional[Any] = None):
        super().__init__(message)
        self.reference = reference


class RegistryError(ResolutionError):
    """Registry lookup or download failed."""

    def __init__(self, message: str, package: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.package = package
        self.status_code = status_code


class WorkspaceIOError(SolbundleError):
    """Workspace read or write failure."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class IndexCorruption(SolbundleError):
    """The persisted resolution index could not be parsed."""
