"""
Tests for the CLI interface.
"""
import json
import os
import tempfile
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from usage_sync.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from usage_sync.core.validator import CostMismatch, ReconciliationError

runner = CliRunner()

CLAUDE_REPORT = {
    "daily": [{
        "date": "2025-01-01",
        "inputTokens": 40,
        "outputTokens": 60,
        "totalTokens": 100,
        "totalCost": 1.19,
        "modelsUsed": ["claude-sonnet-4"],
        "modelBreakdowns": [
            {"modelName": "claude-sonnet-4", "cost": 0.6},
            {"modelName": "claude-opus-4", "cost": 0.6},
        ],
    }],
    "totals": {"totalTokens": 100, "totalCost": 1.19},
}


@pytest.fixture
def workspace():
    """Temporary directory holding a Claude Code report."""
    with tempfile.TemporaryDirectory() as temp_dir:
        with open(os.path.join(temp_dir, "claude.json"), "w", encoding="utf-8") as f:
            json.dump(CLAUDE_REPORT, f)
        yield temp_dir


def read_json(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class TestInit:
    """Test the init command."""

    def test_init_directory_target(self, workspace):
        target = os.path.join(workspace, "data")

        result = runner.invoke(app, ["init", target])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Initialized blank usage document" in result.output
        document = read_json(os.path.join(target, "cc.json"))
        assert list(document) == ["totals", "claudeCode", "codex"]
        assert document["claudeCode"]["daily"] == []

    def test_init_refuses_to_overwrite(self, workspace):
        path = os.path.join(workspace, "claude.json")

        result = runner.invoke(app, ["init", path])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "File already exists" in result.output
        assert read_json(path) == CLAUDE_REPORT

    def test_init_force(self, workspace):
        path = os.path.join(workspace, "claude.json")

        result = runner.invoke(app, ["init", "--out", path, "--force"])

        assert result.exit_code == EXIT_CODE_PASS
        assert read_json(path)["totals"]["totalTokens"] == 0


class TestSync:
    """Test the sync command."""

    def test_sync_writes_reconciled_data(self, workspace):
        base = os.path.join(workspace, "cc.json")

        result = runner.invoke(app, ["sync", os.path.join(workspace, "claude.json"), "claude", "--base", base])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Summary" in result.output
        day = read_json(base)["claudeCode"]["daily"][0]
        assert day["totalCost"] == pytest.approx(1.2)
        assert day["totalTokens"] == 100

    def test_sync_reports_reconciliations(self, workspace):
        base = os.path.join(workspace, "cc.json")

        result = runner.invoke(app, ["sync", os.path.join(workspace, "claude.json"), "claudeCode", "--base", base])

        assert "Reconciled daily totals" in result.output
        assert "sync:claudeCode" in result.output

    def test_sync_dry_run(self, workspace):
        base = os.path.join(workspace, "cc.json")

        result = runner.invoke(app, ["sync", os.path.join(workspace, "claude.json"), "claude", "--base", base, "--dry"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "[DRY RUN] Claude Code entries: 1" in result.output
        assert "Detected cost discrepancies" in result.output
        assert not os.path.exists(base)

    def test_sync_twice_reports_no_changes(self, workspace):
        base = os.path.join(workspace, "cc.json")
        args = ["sync", os.path.join(workspace, "claude.json"), "claude", "--base", base]

        runner.invoke(app, args)
        before = open(base, encoding="utf-8").read()
        result = runner.invoke(app, args)

        assert result.exit_code == EXIT_CODE_PASS
        assert "Unchanged: 1" in result.output
        assert open(base, encoding="utf-8").read() == before

    def test_invalid_provider(self, workspace):
        result = runner.invoke(app, ["sync", os.path.join(workspace, "claude.json"), "gemini"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid provider" in result.output

    def test_missing_input(self, workspace):
        result = runner.invoke(app, ["sync", os.path.join(workspace, "missing.json"), "codex"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Input file not found" in result.output

    def test_invalid_input_json(self, workspace):
        path = os.path.join(workspace, "broken.json")
        with open(path, "w", encoding="utf-8") as f:
            f.write("{")

        result = runner.invoke(app, ["sync", path, "codex"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid JSON" in result.output

    def test_reconciliation_failure_exits_non_zero(self, workspace):
        error = ReconciliationError("Codex dataset", [CostMismatch("2025-01-01", 1.0, 2.0)])

        with patch("usage_sync.cli.main.run_merge", side_effect=error):
            result = runner.invoke(app, [
                "sync", os.path.join(workspace, "claude.json"), "claude",
                "--base", os.path.join(workspace, "cc.json"),
            ])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Cost reconciliation failed" in result.output

    def test_config_paths(self, workspace):
        """The configured output path receives the merge; the base is only read."""
        base = os.path.join(workspace, "cc.json")
        output = os.path.join(workspace, "build", "cc.json")
        config = os.path.join(workspace, "usage-sync.yaml")
        with open(config, "w", encoding="utf-8") as f:
            f.write(f"base_path: {base}\noutput_path: {output}\n")

        result = runner.invoke(app, ["sync", os.path.join(workspace, "claude.json"), "claude", "--config", config])

        assert result.exit_code == EXIT_CODE_PASS
        assert not os.path.exists(base)
        assert read_json(output)["claudeCode"]["daily"][0]["totalTokens"] == 100

    def test_base_option_ignores_configured_output(self, workspace):
        base = os.path.join(workspace, "cc.json")
        output = os.path.join(workspace, "build", "cc.json")
        config = os.path.join(workspace, "usage-sync.yaml")
        with open(config, "w", encoding="utf-8") as f:
            f.write(f"output_path: {output}\n")

        result = runner.invoke(app, [
            "sync", os.path.join(workspace, "claude.json"), "claude", "--config", config, "--base", base,
        ])

        assert result.exit_code == EXIT_CODE_PASS
        assert os.path.exists(base)
        assert not os.path.exists(output)

    def test_invalid_config(self, workspace):
        config = os.path.join(workspace, "usage-sync.yaml")
        with open(config, "w", encoding="utf-8") as f:
            f.write("threshold: 3\n")

        result = runner.invoke(app, ["sync", os.path.join(workspace, "claude.json"), "claude", "--config", config])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Configuration error" in result.output


class TestAuto:
    """Test the auto command."""

    def test_failed_fetch_keeps_other_provider(self, workspace):
        base = os.path.join(workspace, "cc.json")

        with patch("usage_sync.cli.main.fetch_reports") as mock_fetch:
            mock_fetch.return_value = {"Claude Code": CLAUDE_REPORT, "Codex": None}
            result = runner.invoke(app, ["auto", "--base", base])

        assert result.exit_code == EXIT_CODE_PASS
        commands = mock_fetch.call_args[0][0]
        assert set(commands) == {"Claude Code", "Codex"}
        document = read_json(base)
        assert "claudeCode" in document
        assert "codex" not in document

    def test_command_overrides(self, workspace):
        base = os.path.join(workspace, "cc.json")

        with patch("usage_sync.cli.main.fetch_reports") as mock_fetch:
            mock_fetch.return_value = {"Claude Code": None, "Codex": None}
            result = runner.invoke(app, [
                "auto", "--base", base,
                "--claude-cmd", "cat claude.json",
                "--codex-cmd", "cat codex.json",
            ])

        assert result.exit_code == EXIT_CODE_PASS
        assert mock_fetch.call_args[0][0] == {
            "Claude Code": "cat claude.json",
            "Codex": "cat codex.json",
        }
