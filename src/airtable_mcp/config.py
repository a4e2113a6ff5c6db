"""
Airtable MCP Configuration Module

Configuration management for Airtable access via Personal Access Tokens.

SECURITY NOTES:
- Tokens are read from the environment only and are never written to disk
- Logs go to stderr; stdout is reserved for the MCP stdio transport
- Limits below bound every tool input to keep responses manageable
"""

import json
import logging
import os
from pathlib import Path

APP_NAME = "airtable_mcp"
FULL_NAME = "Airtable MCP Server"
SERVER_NAME = "airtable-mcp-server"

AIRTABLE_API_URL = "https://api.airtable.com/v0"

# Setup logging
# CRITICAL: Logs must never contain tokens or record field values
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(APP_NAME)


# -------------------------------------------------------------------
# Query Defaults
# -------------------------------------------------------------------

# Age buckets used by single-select "Age" fields when the caller supplies none
DEFAULT_AGE_RANGES = ["12-17", "18-24", "25-34", "35-44", "45-65", "65+"]

DEFAULT_AGE_FIELD = "Age"


# -------------------------------------------------------------------
# Configuration Directory (for non-sensitive settings only)
# -------------------------------------------------------------------
def _get_config_dir() -> Path:
    """Get configuration directory. Uses home directory for consistency."""
    return Path(os.getenv("AIRTABLE_MCP_CONFIG_DIR", str(Path.home() / ".airtable-mcp")))


def _get_runtime_config_path() -> Path:
    return _get_config_dir() / "config.json"


# -------------------------------------------------------------------
# Runtime Configuration (non-sensitive settings only)
# -------------------------------------------------------------------

def _get_default_runtime_config() -> dict:
    """Default runtime configuration."""
    return {
        "default_base_id": "",
        "request_timeout": 30,
        # Airtable allows 5 requests per second per base
        "max_requests_per_second": 5,
        "log_level": "INFO",
        "exclude_attachments_default": True,
        "default_age_ranges": list(DEFAULT_AGE_RANGES),
    }


def load_runtime_config() -> dict:
    """Load runtime configuration from config file."""
    config_path = _get_runtime_config_path()
    if config_path.exists():
        try:
            with open(config_path) as f:
                config = json.load(f)
                # Merge with defaults to ensure all keys exist
                defaults = _get_default_runtime_config()
                defaults.update(config)
                return defaults
        except (OSError, ValueError) as e:
            logger.warning(f"Could not parse runtime config: {e}. Using defaults.")
    return _get_default_runtime_config()


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in ("token", "pat", "secret", "api_key", "apikey"))


def save_runtime_config(config: dict) -> None:
    """Save runtime configuration to config file."""
    # SECURITY: Ensure tokens are never stored
    safe_config = {
        k: v for k, v in config.items()
        if not k.startswith("_") and not _is_secret_key(k)
    }

    config_path = _get_runtime_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        json.dump(safe_config, indent=2, fp=f)

    logger.info(f"Configuration saved to {config_path}")


def get_airtable_config() -> dict:
    """Get Airtable configuration from environment and config file."""
    config = load_runtime_config()

    return {
        "api_key": os.getenv("AIRTABLE_PAT", ""),
        "base_id": os.getenv("AIRTABLE_BASE_ID", config.get("default_base_id", "")),
        "timeout": float(os.getenv("AIRTABLE_TIMEOUT", config.get("request_timeout", 30))),
        "max_requests_per_second": int(config.get("max_requests_per_second", 5)),
    }


def get_default_age_ranges() -> list[str]:
    """Age buckets to use when a query names none."""
    ranges = load_runtime_config().get("default_age_ranges")
    return list(ranges) if ranges else list(DEFAULT_AGE_RANGES)


def apply_log_level() -> None:
    """Set the server log level from LOG_LEVEL, falling back to the runtime config."""
    level = str(os.getenv("LOG_LEVEL") or load_runtime_config().get("log_level") or "INFO").upper()
    if not isinstance(logging.getLevelName(level), int):
        logger.warning(f"Unknown log level {level!r}, using INFO")
        level = "INFO"
    logger.setLevel(level)


def validate_airtable_config(config: dict | None = None) -> tuple[bool, str]:
    """
    Validate Airtable configuration format.

    The base ID is optional: a PAT can access several bases, in which case
    every tool call must name its base.

    Returns:
        Tuple of (is_valid, message)
    """
    if config is None:
        config = get_airtable_config()

    api_key = config.get("api_key", "")
    base_id = config.get("base_id", "")

    if not api_key:
        return False, "AIRTABLE_PAT environment variable not set"

    if not api_key.startswith("pat"):
        return False, (
            'Invalid token format. Expected Personal Access Token starting with "pat". '
            "Legacy API keys are no longer supported."
        )

    if len(api_key) < 20:
        return False, "Invalid AIRTABLE_PAT format - token appears too short"

    if base_id and (not base_id.startswith("app") or len(base_id) != 17):
        return False, "Invalid AIRTABLE_BASE_ID format. Expected format: appXXXXXXXXXXXXXX"

    if base_id:
        return True, f"Airtable configured with default base {base_id[:6]}***"
    return True, "Airtable configured (no default base - pass baseId per call)"


# -------------------------------------------------------------------
# Security Configuration
# -------------------------------------------------------------------

# Maximum array sizes and string lengths accepted by tool inputs
MAX_RECORDS = 1000
MAX_FIELDS = 100
MAX_SORT_FIELDS = 10
MAX_CONDITIONS = 20
MAX_VALUES = 100
MAX_STRING_LENGTH = 1000
MAX_FORMULA_LENGTH = 10000
MAX_AGE_RANGES = 50

# Airtable's per-request limit for batch create/update/delete
MAX_BATCH_SIZE = 10


def get_security_config() -> dict:
    """Get security-related configuration."""
    return {
        "max_records": MAX_RECORDS,
        "max_fields": MAX_FIELDS,
        "max_sort_fields": MAX_SORT_FIELDS,
        "max_conditions": MAX_CONDITIONS,
        "max_values": MAX_VALUES,
        "max_string_length": MAX_STRING_LENGTH,
        "max_formula_length": MAX_FORMULA_LENGTH,
        "max_batch_size": MAX_BATCH_SIZE,
    }


apply_log_level()
