"""Registry collaborator contract."""

from __future__ import annotations

import abc
from typing import Dict, List


class RegistryClient(abc.ABC):
    """Source of published package versions and package file contents."""

    @abc.abstractmethod
    async def fetch_versions(self, package_name: str) -> List[str]:
        """Return every published version string of package_name.

        Raises:
            RegistryError: lookup failed or the package does not exist.
        """

    @abc.abstractmethod
    async def fetch_package_files(self, package_name: str, version: str) -> Dict[str, str]:
        """Return package files keyed by path relative to the package root.

        Raises:
            RegistryError: download failed or the version does not exist.
        """
