"""Process-wide cache of fetched packages with single-flight fetching."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from ..common.logging_utils import Timer, extra_context
from ..registry.base import RegistryClient
from ..versioning.models import ResolvedPackageKey

logger = logging.getLogger(__name__)


@dataclass
class ResolvedNode:
    """A fetched package: its key and files by package-relative path."""

    key: ResolvedPackageKey
    files: Dict[str, str]
    created_at: float = field(default_factory=time.time)

    def path_for(self, relative_path: str) -> str:
        return self.key.path_for(relative_path)


class ResolutionCache:
    """Cache of ResolvedNode by ResolvedPackageKey.

    Shared across resolution runs. Concurrent requests for the same key share
    one registry fetch; failed fetches are reported to every waiter and never
    stored. Entries live until invalidated.
    """

    def __init__(self, registry: RegistryClient):
        """Initialize the cache.

        Args:
            registry: Registry collaborator used to fetch package files.
        """
        self._registry = registry
        self._entries: Dict[ResolvedPackageKey, ResolvedNode] = {}
        self._inflight: Dict[ResolvedPackageKey, asyncio.Future] = {}
        self._epoch = 0
        self._hits = 0
        self._fetches = 0
        self._shared = 0

    def get(self, key: ResolvedPackageKey):
        """Return the cached node for key, or None."""
        return self._entries.get(key)

    def __contains__(self, key: ResolvedPackageKey) -> bool:
        return key in self._entries

    async def get_or_fetch(self, key: ResolvedPackageKey) -> ResolvedNode:
        """Return the node for key, fetching it at most once concurrently.

        Raises:
            ResolutionError: the registry fetch failed.
        """
        node = self._entries.get(key)
        if node is not None:
            self._hits += 1
            return node

        pending = self._inflight.get(key)
        if pending is not None:
            self._shared += 1
            # shield: a cancelled waiter must not cancel the shared fetch
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        epoch = self._epoch
        self._fetches += 1
        try:
            with Timer() as t:
                files = await self._registry.fetch_package_files(key.name, key.version)
            node = ResolvedNode(key=key, files=dict(files))
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            future.exception()  # mark retrieved when nobody else is waiting
            logger.warning(
                "Fetch failed for %s: %s",
                key,
                exc,
                extra=extra_context(event="package_fetch", component="resolution_cache", outcome="error", key=str(key)),
            )
            raise
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

        if epoch == self._epoch:
            self._entries[key] = node
        future.set_result(node)
        logger.info(
            "Fetched %s (%d files) in %d ms",
            key,
            len(node.files),
            t.duration_ms(),
            extra=extra_context(
                event="package_fetch",
                component="resolution_cache",
                outcome="success",
                key=str(key),
                duration_ms=t.duration_ms(),
            ),
        )
        return node

    def invalidate(self, key: ResolvedPackageKey) -> None:
        """Drop one cached package."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every cached package; fetches in flight are not stored."""
        self._entries.clear()
        self._epoch += 1

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "total_entries": len(self._entries),
            "inflight": len(self._inflight),
            "hits": self._hits,
            "fetches": self._fetches,
            "shared_waits": self._shared,
        }
