"""Data models for version resolution and package identity."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..constants import Constants, VersionSource


@dataclass(frozen=True, order=True)
class ResolvedPackageKey:
    """Deduplication identity of a fetched package: ``scope/name@version``."""

    name: str  # registry name, including the scope when present
    version: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"

    @classmethod
    def parse(cls, text: str) -> "ResolvedPackageKey":
        """Inverse of str(); the version follows the last '@' after the scope."""
        name, sep, version = text.rpartition("@")
        if not sep or not name or name == "@" or not version:
            raise ValueError(f"Not a package key: {text!r}")
        return cls(name=name, version=version)

    @property
    def root(self) -> str:
        """Workspace directory holding this package's files."""
        return f"{Constants.DEPS_NPM_DIR}{self}"

    def path_for(self, subpath: str) -> str:
        """Resolved absolute path of a file inside this package."""
        return f"{self.root}/{subpath}" if subpath else self.root


@dataclass(frozen=True)
class ResolvedVersion:
    """Outcome of the priority chain for one package reference."""

    version: str
    source: VersionSource
    detail: Optional[str] = None


@dataclass(frozen=True)
class LockEntry:
    """One lockfile record: declared range (if recorded) and pinned version."""

    declared_range: Optional[str]
    version: str
