"""
Unit tests for concurrent report fetching.
"""

import asyncio
from unittest.mock import patch

import pytest

from usage_sync.sources.fetcher import FetchError, fetch_reports, run_report_command


class TestRunReportCommand:
    """Test the subprocess wrapper."""

    def test_stdout_is_returned(self):
        output = asyncio.run(run_report_command("echo hello"))
        assert output.strip() == "hello"

    def test_non_zero_exit_raises(self):
        with pytest.raises(FetchError, match="status 3"):
            asyncio.run(run_report_command("exit 3"))


class TestFetchReports:
    """Test that fetches fail independently."""

    def test_all_succeed(self):
        results = asyncio.run(fetch_reports({
            "Claude Code": "echo '{\"daily\": []}'",
            "Codex": "echo '{\"totals\": {}}'",
        }))

        assert results == {"Claude Code": {"daily": []}, "Codex": {"totals": {}}}

    def test_failures_yield_none(self):
        results = asyncio.run(fetch_reports({
            "Claude Code": "echo '{\"daily\": []}'",
            "Codex": "exit 1",
        }))

        assert results["Claude Code"] == {"daily": []}
        assert results["Codex"] is None

    def test_invalid_json_yields_none(self):
        results = asyncio.run(fetch_reports({"Codex": "echo not-json"}))
        assert results == {"Codex": None}

    def test_os_error_yields_none(self):
        with patch("usage_sync.sources.fetcher.run_report_command", side_effect=OSError("no shell")):
            results = asyncio.run(fetch_reports({"Codex": "anything"}))
        assert results == {"Codex": None}
