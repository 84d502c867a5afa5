"""
Unit tests for configuration loading.

Tests YAML parsing, defaults and validation errors.
"""

import os
import tempfile
from unittest.mock import patch

import pytest
import yaml

from usage_sync.config.loader import (
    DEFAULT_COMMANDS,
    CommandConfig,
    SyncConfig,
    load_sync_config,
)


def write_config(temp_dir, content):
    path = os.path.join(temp_dir, "usage-sync.yaml")
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


class TestLoadSyncConfig:
    """Test loading of the run configuration."""

    def test_full_config(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = write_config(temp_dir, """
base_path: data/usage.json
output_path: build/usage.json
accept_lower: true
audit_imports: true
commands:
  codex: cat codex.json
""")
            config = load_sync_config(path)

        assert config.base_path == "data/usage.json"
        assert config.target_path == "build/usage.json"
        assert config.accept_lower
        assert config.audit_imports
        assert config.commands.codex == "cat codex.json"
        assert config.commands.claude_code == DEFAULT_COMMANDS["claudeCode"]

    def test_empty_file_uses_defaults(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config = load_sync_config(write_config(temp_dir, ""))
        assert config == SyncConfig()
        assert config.target_path == "public/data/cc.json"

    def test_default_file_is_optional(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch("usage_sync.config.loader.DEFAULT_CONFIG_PATH", os.path.join(temp_dir, "missing.yaml")):
                assert load_sync_config() == SyncConfig()

    def test_explicit_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_sync_config("/nonexistent/usage-sync.yaml")

    def test_invalid_yaml(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = write_config(temp_dir, "base_path: [unclosed")
            with pytest.raises(yaml.YAMLError):
                load_sync_config(path)


class TestConfigValidation:
    """Test rejection of invalid configuration."""

    @pytest.mark.parametrize("content, message", [
        ("- a\n- b\n", "must be a dictionary"),
        ("base_path: a\nthreshold: 3\n", "Unknown configuration keys"),
        ("base_path: ''\n", "'base_path' must be a non-empty string"),
        ("accept_lower: 'yes'\n", "'accept_lower' must be true or false"),
        ("commands: codex\n", "'commands' must be a dictionary"),
        ("commands:\n  gemini: run\n", "Unknown keys in commands"),
        ("commands:\n  codex: 3\n", "'commands.codex' must be a string"),
        ("commands:\n  codex: '  '\n", "commands.codex cannot be empty"),
    ])
    def test_invalid(self, content, message):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = write_config(temp_dir, content)
            with pytest.raises(ValueError, match=message):
                load_sync_config(path)


def test_commands_by_provider():
    commands = CommandConfig(claude_code="a", codex="b")
    assert commands.by_provider() == {"claudeCode": "a", "codex": "b"}
