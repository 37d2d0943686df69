"""solbundle: package import resolution and source bundling for Solidity projects."""

from .compiler import (
    CompilationOutcome,
    CompilationResult,
    Compiler,
    CompilerDiagnostic,
    DependencyResolvingCompiler,
)
from .constants import Constants, ImportKind, VersionSource, load_yaml_config
from .common.logging_utils import configure_logging
from .errors import (
    IndexCorruption,
    ParseError,
    RegistryError,
    ResolutionError,
    SolbundleError,
    WorkspaceIOError,
)
from .registry import NpmRegistryClient, RegistryClient
from .resolver import DependencyGraphBuilder, ResolutionCache, ResolutionContext, ResolutionIndex
from .versioning import ResolvedPackageKey, VersionResolver
from .workspace import LocalWorkspace, MemoryWorkspace, Workspace

__version__ = "0.1.0"

__all__ = [
    "CompilationOutcome",
    "CompilationResult",
    "Compiler",
    "CompilerDiagnostic",
    "Constants",
    "DependencyGraphBuilder",
    "DependencyResolvingCompiler",
    "ImportKind",
    "IndexCorruption",
    "LocalWorkspace",
    "MemoryWorkspace",
    "NpmRegistryClient",
    "ParseError",
    "RegistryClient",
    "RegistryError",
    "ResolutionCache",
    "ResolutionContext",
    "ResolutionError",
    "ResolvedPackageKey",
    "SolbundleError",
    "VersionResolver",
    "VersionSource",
    "Workspace",
    "WorkspaceIOError",
    "configure_logging",
    "load_yaml_config",
]
