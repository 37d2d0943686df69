"""Compiler interface and the dependency-resolving adapter."""

from .adapter import DependencyResolvingCompiler, resolution_diagnostic
from .base import CompilationOutcome, CompilationResult, Compiler, CompilerDiagnostic

__all__ = [
    "CompilationOutcome",
    "CompilationResult",
    "Compiler",
    "CompilerDiagnostic",
    "DependencyResolvingCompiler",
    "resolution_diagnostic",
]
