"""Split a bare import literal into scope, name, explicit version and subpath."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..errors import ParseError

_NAME_RE = re.compile(r"^[A-Za-z0-9._~-]+$")
_SCOPE_RE = re.compile(r"^@[A-Za-z0-9._~-]+$")
_VERSION_RE = re.compile(r"^[A-Za-z0-9.^~<>=*+\-|]+$")


@dataclass(frozen=True)
class PackageReference:
    """Package identity parsed from an import literal."""

    scope: Optional[str]
    name: str
    explicit_version: Optional[str]
    subpath: str

    @property
    def full_name(self) -> str:
        """Registry name: ``@scope/name`` or ``name``."""
        return f"{self.scope}/{self.name}" if self.scope else self.name

    def __str__(self) -> str:
        version = f"@{self.explicit_version}" if self.explicit_version else ""
        tail = f"/{self.subpath}" if self.subpath else ""
        return f"{self.full_name}{version}{tail}"


def parse_package_reference(literal: str) -> PackageReference:
    """Parse an (already remapped) import literal.

    ``@openzeppelin/contracts@4.8.3/token/ERC20/ERC20.sol`` becomes
    scope ``@openzeppelin``, name ``contracts``, version ``4.8.3`` and subpath
    ``token/ERC20/ERC20.sol``. A version marker is only recognized directly
    after the name segment.

    Raises:
        ParseError: literal is empty or malformed.
    """
    if not literal or literal != literal.strip():
        raise ParseError(f"Malformed import literal: {literal!r}", source=literal)

    rest = literal
    scope: Optional[str] = None
    if rest.startswith("@"):
        scope, sep, rest = rest.partition("/")
        if not sep or not _SCOPE_RE.match(scope):
            raise ParseError(f"Malformed package scope in import: {literal!r}", source=literal)

    head, _, subpath = rest.partition("/")
    name, marker, version = head.partition("@")
    if not name or not _NAME_RE.match(name):
        raise ParseError(f"Malformed package name in import: {literal!r}", source=literal)
    explicit_version: Optional[str] = None
    if marker:
        if not version or not _VERSION_RE.match(version):
            raise ParseError(f"Malformed version in import: {literal!r}", source=literal)
        explicit_version = version
    if subpath.startswith("/") or "//" in subpath:
        raise ParseError(f"Malformed subpath in import: {literal!r}", source=literal)

    return PackageReference(scope=scope, name=name, explicit_version=explicit_version, subpath=subpath)
