"""Constants used in the project."""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class VersionSource(Enum):
    """Where a canonical package version came from.

    Args:
        Enum (string): Step of the resolution priority chain.
    """

    EXPLICIT = "explicit"
    SESSION = "session"
    LOCKFILE = "lockfile"
    MANIFEST = "manifest"
    PARENT = "parent"
    REGISTRY = "registry"


class ImportKind(Enum):
    """Classification of an import literal after remapping.

    Args:
        Enum (string): How the graph builder locates the imported file.
    """

    RELATIVE = "relative"
    LOCAL = "local"
    PACKAGE = "package"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3

    DEPS_DIR = ".deps/"
    DEPS_NPM_DIR = ".deps/npm/"
    RESOLUTION_INDEX_FILE = ".deps/npm/.resolution-index.json"
    BUNDLE_SNAPSHOT_DIR = ".deps/.bundles/"

    REMAPPINGS_FILE = "remappings.txt"
    PROJECT_CONFIG_FILE = "remix.config.json"
    PACKAGE_JSON_FILE = "package.json"
    YARN_LOCK_FILE = "yarn.lock"
    PACKAGE_LOCK_FILE = "package-lock.json"
    CONFIG_FILE = "solbundle.yml"
    ENV_CONFIG = "SOLBUNDLE_CONFIG"

    SOURCE_EXTENSIONS = (".sol",)
    NO_DEPENDENCY_EXTENSIONS = (".yul",)
    PACKAGE_FILE_EXTENSIONS = (".sol", "package.json")

    USE_FILE_CONFIGURATION = True
    MATERIALIZE_DEPENDENCIES = True
    WRITE_BUNDLE_SNAPSHOT = False

    LOG_FORMAT = "[%(levelname)s] %(message)s"


# YAML key -> (Constants attribute, coercion)
_CONFIG_KEYS = {
    "registry_url": ("REGISTRY_URL_NPM", str),
    "request_timeout": ("REQUEST_TIMEOUT", int),
    "http_retry_max": ("HTTP_RETRY_MAX", int),
    "http_retry_base_delay": ("HTTP_RETRY_BASE_DELAY_SEC", float),
    "deps_dir": ("DEPS_DIR", str),
    "deps_npm_dir": ("DEPS_NPM_DIR", str),
    "resolution_index_file": ("RESOLUTION_INDEX_FILE", str),
    "bundle_snapshot_dir": ("BUNDLE_SNAPSHOT_DIR", str),
    "remappings_file": ("REMAPPINGS_FILE", str),
    "project_config_file": ("PROJECT_CONFIG_FILE", str),
    "use_file_configuration": ("USE_FILE_CONFIGURATION", bool),
    "materialize_dependencies": ("MATERIALIZE_DEPENDENCIES", bool),
    "write_bundle_snapshot": ("WRITE_BUNDLE_SNAPSHOT", bool),
}


def _coerce(value: Any, kind: type) -> Any:
    if kind is bool and isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return kind(value)


def apply_config(cfg: Dict[str, Any]) -> None:
    """Apply a configuration mapping onto Constants.

    Unknown keys are logged and ignored; values that cannot be coerced keep
    the current default.
    """
    for key, value in cfg.items():
        target = _CONFIG_KEYS.get(key)
        if target is None:
            logger.warning("Ignoring unknown configuration key: %s", key)
            continue
        attr, kind = target
        try:
            setattr(Constants, attr, _coerce(value, kind))
        except (TypeError, ValueError):
            logger.warning("Invalid value for %s: %r, keeping default", key, value)
    if not Constants.REGISTRY_URL_NPM.endswith("/"):
        Constants.REGISTRY_URL_NPM += "/"


def load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load YAML configuration and apply it onto Constants.

    Lookup order: explicit path, SOLBUNDLE_CONFIG environment variable,
    then ./solbundle.yml. Missing files are not an error.

    Returns:
        dict: The mapping that was applied (empty when nothing was loaded).
    """
    import yaml  # pylint: disable=import-outside-toplevel

    candidate = path or os.environ.get(Constants.ENV_CONFIG) or Constants.CONFIG_FILE
    if not os.path.isfile(candidate):
        if path:
            logger.warning("Configuration file not found: %s", candidate)
        return {}
    try:
        with open(candidate, "r", encoding="utf-8") as fh:
            cfg = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load configuration %s: %s", candidate, exc)
        return {}
    if not isinstance(cfg, dict):
        logger.warning("Configuration %s is not a mapping, ignoring", candidate)
        return {}
    apply_config(cfg)
    logger.debug("Loaded configuration from %s", candidate)
    return cfg
