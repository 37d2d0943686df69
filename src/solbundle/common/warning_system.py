"""User-facing warnings with per-run de-duplication."""

from __future__ import annotations

import logging
from typing import List, Optional, Set, Tuple

from .logging_utils import extra_context

logger = logging.getLogger(__name__)


class WarningSystem:
    """Collects resolver warnings and emits each distinct one once.

    Emitted messages are kept in ``messages`` so callers can surface them next
    to compiler diagnostics.
    """

    def __init__(self) -> None:
        self._emitted: Set[str] = set()
        self.messages: List[Tuple[str, str]] = []

    def _emit(self, key: str, level: int, message: str, event: str) -> bool:
        if key in self._emitted:
            return False
        self._emitted.add(key)
        self.messages.append((logging.getLevelName(level).lower(), message))
        logger.log(level, message, extra=extra_context(event=event, component="warning_system"))
        return True

    def parse_failure(self, source: str, reason: str) -> None:
        """A manifest, lockfile or config file was unreadable and skipped."""
        self._emit(
            f"parse:{source}",
            logging.WARNING,
            f"Skipping {source}: {reason}",
            "parse_error",
        )

    def invalid_lock_entry(self, package: str, declared: str, pinned: str) -> None:
        self._emit(
            f"lock:{package}:{declared}:{pinned}",
            logging.WARNING,
            f"Ignoring lockfile entry {package}@{declared}: pinned {pinned} does not satisfy the range",
            "lockfile_mismatch",
        )

    def duplicate_file(
        self,
        package: str,
        relative_path: str,
        previous_version: str,
        requested_version: str,
    ) -> None:
        """The same package file is bundled from two versions of one package."""
        versions = sorted((previous_version, requested_version))
        self._emit(
            f"dup:{package}:{relative_path}:{versions[0]}:{versions[1]}",
            logging.WARNING,
            (
                f"Duplicate file {package}/{relative_path} bundled from versions "
                f"{previous_version} and {requested_version}; pin one version explicitly "
                f'(import "{package}@{previous_version}/{relative_path}";) to avoid '
                "duplicate declaration errors"
            ),
            "duplicate_file",
        )

    def unresolved_manifest_range(self, package: str, spec: str, reason: Optional[str]) -> None:
        self._emit(
            f"range:{package}:{spec}",
            logging.WARNING,
            f"Declared range {package}@{spec} could not be satisfied: {reason}",
            "manifest_range_unsatisfied",
        )

    def unresolved_parent_range(self, parent: str, package: str, spec: str, reason: Optional[str]) -> None:
        self._emit(
            f"parent-range:{parent}:{package}:{spec}",
            logging.WARNING,
            f"{parent} declares {package}@{spec}, which could not be satisfied: {reason}",
            "parent_range_unsatisfied",
        )

    def multi_parent_conflict(self, package: str, requirements: List[Tuple[str, str]]) -> None:
        """Several fetched packages declare different ranges for package.

        Args:
            requirements: (parent key, declared range) pairs.
        """
        ranges = sorted({spec for _, spec in requirements})
        lines = [f"Multiple parent packages require different versions of {package}:"]
        lines.extend(f"  {parent} requires {package}@{spec}" for parent, spec in sorted(requirements))
        self._emit(
            f"multi-parent:{package}:{'|'.join(ranges)}",
            logging.WARNING,
            "\n".join(lines),
            "multi_parent_conflict",
        )
