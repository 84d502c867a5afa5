"""
Configuration management and loading.

Handles the optional YAML run configuration: document paths, provider
report commands and default merge policy.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from usage_sync.sources.providers import CLAUDE_CODE, CODEX
from usage_sync.storage.repository import DEFAULT_DOCUMENT_PATH

DEFAULT_CONFIG_PATH = "usage-sync.yaml"

DEFAULT_COMMANDS = {
    CLAUDE_CODE: "bunx ccusage@latest --json",
    CODEX: "bunx @ccusage/codex@latest --json",
}


@dataclass(frozen=True)
class CommandConfig:
    """Shell commands that print each provider's usage report as JSON."""
    claude_code: str = DEFAULT_COMMANDS[CLAUDE_CODE]
    codex: str = DEFAULT_COMMANDS[CODEX]

    def __post_init__(self):
        """Validate commands are non-empty."""
        if not self.claude_code.strip():
            raise ValueError("commands.claudeCode cannot be empty")
        if not self.codex.strip():
            raise ValueError("commands.codex cannot be empty")

    def by_provider(self) -> Dict[str, str]:
        return {CLAUDE_CODE: self.claude_code, CODEX: self.codex}


@dataclass(frozen=True)
class SyncConfig:
    """Complete run configuration."""
    base_path: str = DEFAULT_DOCUMENT_PATH
    output_path: Optional[str] = None
    accept_lower: bool = False
    audit_imports: bool = False
    commands: CommandConfig = field(default_factory=CommandConfig)

    @property
    def target_path(self) -> str:
        return self.output_path or self.base_path


def load_sync_config(path: Optional[str] = None) -> SyncConfig:
    """Load and validate the run configuration from a YAML file.

    Without an explicit path the default file is used when present, and
    built-in defaults otherwise.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated SyncConfig object

    Raises:
        FileNotFoundError: If an explicitly given file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        config_path = Path(DEFAULT_CONFIG_PATH)
        if not config_path.exists():
            return SyncConfig()
    else:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {config_path}: {e}")

    if raw_config is None:
        return SyncConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'base_path', 'output_path', 'accept_lower', 'audit_imports', 'commands'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    base_path = _parse_string(raw_config, 'base_path', DEFAULT_DOCUMENT_PATH)
    output_path = _parse_string(raw_config, 'output_path', None)
    accept_lower = _parse_bool(raw_config, 'accept_lower')
    audit_imports = _parse_bool(raw_config, 'audit_imports')
    commands = _parse_commands(raw_config.get('commands', {}))

    return SyncConfig(
        base_path=base_path,
        output_path=output_path,
        accept_lower=accept_lower,
        audit_imports=audit_imports,
        commands=commands,
    )


def _parse_string(data: Dict[str, Any], key: str, default: Optional[str]) -> Optional[str]:
    if key not in data or data[key] is None:
        return default
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' must be a non-empty string")
    return value


def _parse_bool(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be true or false")
    return value


def _parse_commands(data: Any) -> CommandConfig:
    """Parse and validate the provider commands section.

    Args:
        data: Commands configuration data

    Returns:
        Validated CommandConfig

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'commands' must be a dictionary")

    allowed_keys = {CLAUDE_CODE, CODEX}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in commands: {unknown_keys}")

    for key, value in data.items():
        if not isinstance(value, str):
            raise ValueError(f"'commands.{key}' must be a string")

    return CommandConfig(
        claude_code=data.get(CLAUDE_CODE, DEFAULT_COMMANDS[CLAUDE_CODE]),
        codex=data.get(CODEX, DEFAULT_COMMANDS[CODEX]),
    )
