"""Compiler collaborator interface and result types."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

if TYPE_CHECKING:
    from ..resolver.context import ResolutionContext


@dataclass
class CompilerDiagnostic:
    """A compiler-shaped message (mirrors solc standard JSON errors)."""

    severity: str
    message: str
    formatted_message: str
    type: str = "Error"
    component: str = "general"
    source_file: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "severity": self.severity,
            "type": self.type,
            "component": self.component,
            "message": self.message,
            "formattedMessage": self.formatted_message,
        }
        if self.source_file:
            out["sourceLocation"] = {"file": self.source_file, "start": -1, "end": -1}
        return out


@dataclass
class CompilationResult:
    """Output of a compiler run."""

    success: bool
    contracts: Dict[str, Any] = field(default_factory=dict)
    diagnostics: List[CompilerDiagnostic] = field(default_factory=list)


class Compiler(abc.ABC):
    """Compiler backend wrapped by DependencyResolvingCompiler."""

    @abc.abstractmethod
    async def compile(
        self,
        sources: Dict[str, str],
        entry_path: str,
        context: Optional["ResolutionContext"] = None,
    ) -> Union[CompilationResult, CompilerDiagnostic]:
        """Compile sources, starting from entry_path.

        context carries the resolution run that produced sources; backends may
        use it to answer import callbacks without shared state.
        """


@dataclass
class CompilationOutcome:
    """What DependencyResolvingCompiler.compile reports back."""

    target: str
    success: bool
    generation: int = 0
    superseded: bool = False
    result: Optional[CompilationResult] = None
    diagnostics: List[CompilerDiagnostic] = field(default_factory=list)
    bundle: Optional[Dict[str, str]] = None
    warnings: List[Tuple[str, str]] = field(default_factory=list)
    context: Optional["ResolutionContext"] = None
