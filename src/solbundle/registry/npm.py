"""NPM registry client: packument versions and tarball contents."""

from __future__ import annotations

import asyncio
import io
import json
import logging
import tarfile
import urllib.parse
from typing import Any, Dict, List, Optional

import aiohttp

from ..common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from ..constants import Constants
from ..errors import RegistryError
from .base import RegistryClient

logger = logging.getLogger(__name__)


class NpmRegistryClient(RegistryClient):
    """Async client for an npm-compatible registry.

    Packuments are memoized for the lifetime of the client so that version
    listing and tarball lookup for one package cost a single request.
    """

    PACKUMENT_ACCEPT = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"

    def __init__(
        self,
        registry_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the registry client.

        Args:
            registry_url: Registry base URL; defaults to Constants.REGISTRY_URL_NPM.
            timeout: Request timeout in seconds; defaults to Constants.REQUEST_TIMEOUT.
            session: Optional externally managed aiohttp session.
        """
        base = registry_url or Constants.REGISTRY_URL_NPM
        self._base = base if base.endswith("/") else base + "/"
        self._timeout = aiohttp.ClientTimeout(total=timeout or Constants.REQUEST_TIMEOUT)
        self._session = session
        self._owns_session = session is None
        self._packuments: Dict[str, Dict[str, Any]] = {}

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

    async def stop(self) -> None:
        """Stop the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "NpmRegistryClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    def packument_url(self, package_name: str) -> str:
        """Build the packument URL; scoped names keep '@' and encode '/'."""
        return self._base + urllib.parse.quote(package_name, safe="@")

    async def _get(self, url: str, *, headers: Optional[Dict[str, str]] = None) -> tuple[int, bytes]:
        """GET with retries on timeouts, connection errors and 5xx responses."""
        if self._session is None:
            await self.start()
        assert self._session is not None
        target = safe_url(url)
        last_error = "no attempt made"
        for attempt in range(max(1, Constants.HTTP_RETRY_MAX)):
            with Timer() as timer:
                try:
                    async with self._session.get(url, headers=headers) as response:
                        body = await response.read()
                        status = response.status
                except asyncio.TimeoutError:
                    last_error = "timeout"
                    status = None
                except aiohttp.ClientError as exc:
                    last_error = str(exc)
                    status = None
            if status is not None and status < 500:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP response",
                        extra=extra_context(
                            event="http_response",
                            component="npm_registry",
                            action="GET",
                            status_code=status,
                            duration_ms=timer.duration_ms(),
                            target=target,
                            attempt=attempt + 1,
                        ),
                    )
                return status, body
            if status is not None:
                last_error = f"HTTP {status}"
            logger.debug(
                "HTTP attempt failed: %s",
                last_error,
                extra=extra_context(event="http_exception", component="npm_registry", target=target, attempt=attempt + 1),
            )
            if attempt + 1 < Constants.HTTP_RETRY_MAX:
                await asyncio.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt))
        raise RegistryError(f"Request to {target} failed after {Constants.HTTP_RETRY_MAX} attempts: {last_error}")

    async def _packument(self, package_name: str) -> Dict[str, Any]:
        cached = self._packuments.get(package_name)
        if cached is not None:
            return cached
        url = self.packument_url(package_name)
        status, body = await self._get(url, headers={"Accept": self.PACKUMENT_ACCEPT})
        if status == 404:
            raise RegistryError(f"Package not found in registry: {package_name}", package=package_name, status_code=404)
        if status != 200:
            raise RegistryError(
                f"Registry returned HTTP {status} for {package_name}", package=package_name, status_code=status
            )
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RegistryError(f"Invalid packument for {package_name}: {exc}", package=package_name) from exc
        if not isinstance(data, dict) or not isinstance(data.get("versions"), dict):
            raise RegistryError(f"Packument for {package_name} has no versions", package=package_name)
        self._packuments[package_name] = data
        return data

    async def fetch_versions(self, package_name: str) -> List[str]:
        data = await self._packument(package_name)
        return list(data["versions"].keys())

    async def fetch_package_files(self, package_name: str, version: str) -> Dict[str, str]:
        data = await self._packument(package_name)
        manifest = data["versions"].get(version)
        if not isinstance(manifest, dict):
            raise RegistryError(f"Version {version} of {package_name} is not published", package=package_name)
        tarball = (manifest.get("dist") or {}).get("tarball")
        if not tarball:
            raise RegistryError(f"No tarball for {package_name}@{version}", package=package_name)
        status, body = await self._get(tarball)
        if status != 200:
            raise RegistryError(
                f"Tarball download for {package_name}@{version} returned HTTP {status}",
                package=package_name,
                status_code=status,
            )
        try:
            files = extract_package_files(body)
        except (tarfile.TarError, OSError, EOFError) as exc:
            raise RegistryError(f"Corrupt tarball for {package_name}@{version}: {exc}", package=package_name) from exc
        logger.info("Fetched %s@%s (%d files)", package_name, version, len(files))
        return files


def extract_package_files(archive: bytes) -> Dict[str, str]:
    """Extract source and manifest files from an npm tarball.

    The leading top-level directory (``package/`` for npm) is stripped and
    only names ending in Constants.PACKAGE_FILE_EXTENSIONS are kept.
    """
    files: Dict[str, str] = {}
    with tarfile.open(fileobj=io.BytesIO(archive), mode="r:*") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            parts = member.name.lstrip("./").split("/", 1)
            if len(parts) != 2 or not parts[1]:
                continue
            rel = parts[1]
            if ".." in rel.split("/"):
                continue
            if not rel.endswith(Constants.PACKAGE_FILE_EXTENSIONS):
                continue
            handle = tar.extractfile(member)
            if handle is None:
                continue
            try:
                files[rel] = handle.read().decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("Skipping non-UTF-8 package file: %s", rel)
    return files
