"""Resolution run state, package cache, persistent index and graph traversal."""

from .cache import ResolutionCache, ResolvedNode
from .context import ResolutionContext
from .graph import DependencyGraphBuilder
from .index import ResolutionIndex, parse_index

__all__ = [
    "DependencyGraphBuilder",
    "ResolutionCache",
    "ResolutionContext",
    "ResolutionIndex",
    "ResolvedNode",
    "parse_index",
]
