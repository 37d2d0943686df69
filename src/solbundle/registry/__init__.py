"""Package registry clients."""

from .base import RegistryClient
from .npm import NpmRegistryClient, extract_package_files

__all__ = ["RegistryClient", "NpmRegistryClient", "extract_package_files"]
