"""Run-scoped state of one resolution, passed explicitly through the compile call."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..common.logging_utils import extra_context
from ..common.warning_system import WarningSystem
from ..versioning.models import ResolvedPackageKey
from .index import ResolutionIndex

logger = logging.getLogger(__name__)


@dataclass
class ResolutionContext:
    """Everything one resolution run owns.

    Index records are buffered here and only reach the shared index through
    ``commit()``, which refuses once a newer run for the same target started.
    """

    target: str
    generation: int = 0
    is_current: Callable[[], bool] = lambda: True
    warnings: WarningSystem = field(default_factory=WarningSystem)
    session_versions: Dict[str, str] = field(default_factory=dict)
    import_graph: Dict[str, List[str]] = field(default_factory=dict)
    pending_records: Dict[str, Dict[str, str]] = field(default_factory=dict)
    scanned_files: Set[str] = field(default_factory=set)
    # (package name, relative path) -> version first bundled
    bundled_package_files: Dict[Tuple[str, str], str] = field(default_factory=dict)
    # fetched package -> ranges it declares; package file -> owning package
    parent_dependencies: Dict[ResolvedPackageKey, Dict[str, str]] = field(default_factory=dict)
    file_packages: Dict[str, ResolvedPackageKey] = field(default_factory=dict)
    bundle: Optional[Dict[str, str]] = None

    @property
    def superseded(self) -> bool:
        return not self.is_current()

    def mark_scanned(self, source_file: str) -> None:
        self.scanned_files.add(source_file)
        self.import_graph.setdefault(source_file, [])

    def add_edge(self, source_file: str, resolved_path: str) -> None:
        edges = self.import_graph.setdefault(source_file, [])
        if resolved_path not in edges:
            edges.append(resolved_path)

    def record_resolution(self, source_file: str, original_import: str, resolved_path: str) -> None:
        """Buffer an index record; identity mappings are dropped."""
        if original_import == resolved_path:
            return
        self.pending_records.setdefault(source_file, {})[original_import] = resolved_path

    def note_package_file(self, package: str, relative_path: str, version: str) -> None:
        """Warn when one package file is bundled from two versions."""
        previous = self.bundled_package_files.setdefault((package, relative_path), version)
        if previous != version:
            self.warnings.duplicate_file(package, relative_path, previous, version)

    def commit(self, index: ResolutionIndex) -> bool:
        """Replace the index records of every scanned file with this run's.

        Returns:
            bool: False when the run was superseded and nothing was written.
        """
        if self.superseded:
            logger.info(
                "Discarding superseded resolution of %s (generation %d)",
                self.target,
                self.generation,
                extra=extra_context(event="index_commit", component="resolution_context", outcome="superseded"),
            )
            return False
        for source_file in self.scanned_files | set(self.pending_records):
            mapping = self.pending_records.get(source_file, {})
            if index.get_resolutions_for_file(source_file) == mapping:
                continue
            index.clear_file_resolutions(source_file)
            for original_import, resolved_path in mapping.items():
                index.record_resolution(source_file, original_import, resolved_path)
        return True
