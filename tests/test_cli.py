"""
Tests for the Airtable MCP CLI.
"""

import json

from typer.testing import CliRunner

runner = CliRunner()


class TestFormulaPreview:
    """Tests for the offline formula preview commands."""

    def test_age(self):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["formula", "age", "29", "42"])

        assert result.exit_code == 0
        assert "OR({Age} = '25-34', {Age} = '35-44')" in result.output

    def test_age_custom_ranges(self):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["formula", "age", "5", "6", "--field", "Kids", "--ranges", "0-9, 10-14"])

        assert result.exit_code == 0
        assert "{Kids} = '0-9'" in result.output

    def test_select_with_fuzzy_options(self):
        from airtable_mcp.cli import app

        result = runner.invoke(
            app, ["formula", "select", "Type", "ugc", "--match", "hasAll", "--options", "UGC Creator,Model"]
        )

        assert result.exit_code == 0
        assert "AND(FIND('UGC Creator', ARRAYJOIN({Type})))" in result.output

    def test_number(self):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["formula", "number", "Followers", "--min", "1000"])

        assert result.exit_code == 0
        assert "{Followers} >= 1000" in result.output

    def test_bad_date_fails(self):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["formula", "date", "Created", "--start", "yesterday"])

        assert result.exit_code == 1
        assert "ISO 8601" in result.output

    def test_injection_in_field_name_fails(self):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["formula", "number", "A}B", "--min", "1"])

        assert result.exit_code == 1


class TestConfigCommands:
    """Tests for status and config commands."""

    def test_config_saves_base_id(self, isolated_config):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["config", "--base-id", "appABCDEFGHIJKLMN", "--rate-limit", "3"])

        assert result.exit_code == 0
        stored = json.loads((isolated_config / "config.json").read_text())
        assert stored["default_base_id"] == "appABCDEFGHIJKLMN"
        assert stored["max_requests_per_second"] == 3

    def test_config_saves_log_level(self, isolated_config):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["config", "--log-level", "debug"])

        assert result.exit_code == 0
        stored = json.loads((isolated_config / "config.json").read_text())
        assert stored["log_level"] == "DEBUG"

    def test_config_rejects_unknown_log_level(self):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["config", "--log-level", "chatty"])

        assert result.exit_code == 1

    def test_config_rejects_bad_base_id(self):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["config", "--base-id", "nope"])

        assert result.exit_code == 1

    def test_status_without_token(self):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "AIRTABLE_PAT" in result.output

    def test_validate_fails_without_token(self):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["validate"])

        assert result.exit_code == 1
        assert "FAILED" in result.output

    def test_mcp_config_uses_placeholder_token(self, airtable_env):
        from airtable_mcp.cli import app

        result = runner.invoke(app, ["mcp-config", "claude"])

        assert result.exit_code == 0
        assert "<your-personal-access-token>" in result.output
        assert "patABCDEFGHIJKLMN" not in result.output
