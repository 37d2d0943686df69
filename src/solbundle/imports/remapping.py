"""Prefix remapping of import literals (remappings.txt and project config)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from ..common.warning_system import WarningSystem
from ..constants import Constants
from ..errors import ParseError
from ..workspace.base import Workspace, read_optional
from .parser import is_relative_import

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemappingRule:
    """Rewrite literals starting with from_prefix to start with to_prefix."""

    from_prefix: str
    to_prefix: str
    source: str = "inline"

    def matches(self, literal: str) -> bool:
        return bool(self.from_prefix) and literal.startswith(self.from_prefix)

    def apply(self, literal: str) -> str:
        return self.to_prefix + literal[len(self.from_prefix):]


def parse_remapping_line(line: str, source: str = "inline") -> Optional[RemappingRule]:
    """Parse one ``from=to`` entry; blank, comment and incomplete lines yield None."""
    line = line.strip()
    if not line or line.startswith("#") or line.startswith("//"):
        return None
    from_prefix, sep, to_prefix = line.partition("=")
    from_prefix, to_prefix = from_prefix.strip(), to_prefix.strip()
    if not sep or not from_prefix or not to_prefix:
        logger.debug("Skipping malformed remapping line: %r", line)
        return None
    return RemappingRule(from_prefix, to_prefix, source)


def parse_remappings(lines: Iterable[str], source: str = "inline") -> List[RemappingRule]:
    rules = []
    for line in lines:
        rule = parse_remapping_line(line, source)
        if rule is not None:
            rules.append(rule)
    return rules


def _config_remappings(content: str, source: str) -> List[str]:
    """Pull remapping strings out of project config text."""
    try:
        config: Any = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid JSON: {exc}", source=source) from exc
    if not isinstance(config, dict):
        raise ParseError("project config is not a JSON object")
    candidates = [config.get("remappings")]
    compiler = config.get("solidity-compiler")
    if isinstance(compiler, dict):
        settings = compiler.get("settings")
        if isinstance(settings, dict):
            candidates.append(settings.get("remappings"))
        candidates.append(compiler.get("remappings"))
    out: List[str] = []
    for value in candidates:
        if value is None:
            continue
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ParseError("remappings must be a list of 'from=to' strings")
        out.extend(value)
    return out


async def load_remappings(
    workspace: Workspace,
    use_file_configuration: Optional[bool] = None,
    warnings: Optional[WarningSystem] = None,
) -> List[RemappingRule]:
    """Load ordered remapping rules from the workspace.

    remappings.txt entries come first; project config entries are appended
    only when file configuration is enabled. A malformed project config is
    skipped with a warning.

    Raises:
        ResolutionError: a remapping source exists but could not be read.
    """
    if use_file_configuration is None:
        use_file_configuration = Constants.USE_FILE_CONFIGURATION
    rules: List[RemappingRule] = []

    txt_path = Constants.REMAPPINGS_FILE
    content = await read_optional(workspace, txt_path)
    if content is not None:
        rules.extend(parse_remappings(content.splitlines(), source=txt_path))

    cfg_path = Constants.PROJECT_CONFIG_FILE
    content = await read_optional(workspace, cfg_path) if use_file_configuration else None
    if content is not None:
        try:
            rules.extend(parse_remappings(_config_remappings(content, cfg_path), source=cfg_path))
        except ParseError as exc:
            if warnings:
                warnings.parse_failure(cfg_path, str(exc))
            else:
                logger.warning("Skipping %s: %s", cfg_path, exc)

    logger.debug("Loaded %d remapping rules", len(rules))
    return rules


def apply_remappings(literal: str, rules: Iterable[RemappingRule]) -> Tuple[str, Optional[RemappingRule]]:
    """Rewrite literal with the first matching rule.

    Relative literals are never remapped. Returns the (possibly unchanged)
    literal and the rule that applied.
    """
    if is_relative_import(literal):
        return literal, None
    for rule in rules:
        if rule.matches(literal):
            return rule.apply(literal), rule
    return literal, None
