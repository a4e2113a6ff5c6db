"""
Shared fixtures for Airtable MCP tests.
"""

import pytest

VALID_PAT = "patABCDEFGHIJKLMN.0123456789abcdef"
VALID_BASE_ID = "appABCDEFGHIJKLMN"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.airtable-mcp and the real token."""
    monkeypatch.setenv("AIRTABLE_MCP_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.delenv("AIRTABLE_PAT", raising=False)
    monkeypatch.delenv("AIRTABLE_BASE_ID", raising=False)
    monkeypatch.delenv("AIRTABLE_TIMEOUT", raising=False)
    return tmp_path / "config"


@pytest.fixture
def airtable_env(monkeypatch):
    """A valid token and default base in the environment."""
    monkeypatch.setenv("AIRTABLE_PAT", VALID_PAT)
    monkeypatch.setenv("AIRTABLE_BASE_ID", VALID_BASE_ID)
