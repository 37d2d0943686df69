"""Extract import literals and their positions from Solidity source text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from ..constants import Constants

# Every form captures the literal (group "path") including its offsets.
_IMPORT_PATTERNS = [
    re.compile(r"""\bimport\s+(?P<q>["'])(?P<path>[^"']+)(?P=q)\s*;"""),
    re.compile(r"""\bimport\s+(?P<q>["'])(?P<path>[^"']+)(?P=q)\s+as\s+\w+\s*;"""),
    re.compile(r"""\bimport\s*\{[^}]*\}\s*from\s+(?P<q>["'])(?P<path>[^"']+)(?P=q)\s*;"""),
    re.compile(r"""\bimport\s+\*\s+as\s+\w+\s+from\s+(?P<q>["'])(?P<path>[^"']+)(?P=q)\s*;"""),
    re.compile(r"""\bimport\s+\w+\s+from\s+(?P<q>["'])(?P<path>[^"']+)(?P=q)\s*;"""),
    re.compile(r"""\bimport\s+\w+\s*,\s*\{[^}]*\}\s*from\s+(?P<q>["'])(?P<path>[^"']+)(?P=q)\s*;"""),
]


@dataclass(frozen=True)
class ImportReference:
    """One import statement found in a source file."""

    source_file: str
    raw_path: str
    start_offset: int
    end_offset: int

    @property
    def is_relative(self) -> bool:
        return is_relative_import(self.raw_path)


def is_relative_import(path: str) -> bool:
    return path.startswith("./") or path.startswith("../")


def has_import_grammar(path: str) -> bool:
    """Return False for file kinds compiled from their literal sources only."""
    return not path.lower().endswith(Constants.NO_DEPENDENCY_EXTENSIONS)


def mask_source(content: str) -> str:
    """Blank out comments and string contents while keeping offsets stable.

    Masked characters become spaces (newlines are kept) so offsets computed on
    the result are valid in the original text. String delimiters survive, so
    an import literal shows up as a quoted run of spaces at its own offsets.
    """
    out = list(content)
    i = 0
    n = len(content)
    quote = ""
    while i < n:
        ch = content[i]
        if quote:
            if ch == quote or ch == "\n":
                quote = ""
                i += 1
                continue
            step = 2 if ch == "\\" else 1
            for j in range(i, min(i + step, n)):
                if out[j] != "\n":
                    out[j] = " "
            i += step
            continue
        if ch in ("'", '"'):
            quote = ch
            i += 1
            continue
        if content.startswith("//", i):
            end = content.find("\n", i)
            end = n if end == -1 else end
            for j in range(i, end):
                out[j] = " "
            i = end
            continue
        if content.startswith("/*", i):
            end = content.find("*/", i + 2)
            end = n if end == -1 else end + 2
            for j in range(i, end):
                if out[j] != "\n":
                    out[j] = " "
            i = end
            continue
        i += 1
    return "".join(out)


def extract_imports(content: str, source_file: str) -> List[ImportReference]:
    """Return the import references of a file in source order.

    Files without import grammar yield an empty list.
    """
    if not has_import_grammar(source_file):
        return []
    masked = mask_source(content)
    found = {}
    for pattern in _IMPORT_PATTERNS:
        for match in pattern.finditer(masked):
            start, end = match.span("path")
            if start not in found:
                found[start] = ImportReference(
                    source_file=source_file,
                    raw_path=content[start:end],
                    start_offset=start,
                    end_offset=end,
                )
    return [found[k] for k in sorted(found)]
