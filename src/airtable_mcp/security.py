"""
Airtable MCP Security Module

Security controls for everything that ends up inside an Airtable formula or
leaves the server as an error message.

FORMULA INJECTION PREVENTION:
1. Field names are wrapped in {braces}; a name containing a brace or a line
   break could close the identifier early and inject formula logic, so such
   names are rejected outright (never sanitized-and-continued)
2. String literals are escaped SQL-style (' becomes ''). Airtable does NOT
   understand backslash escapes, so \\' would itself be the injection

This module also implements:
- Credential redaction for error messages and logs
- Client-side request throttling (Airtable allows 5 requests/second per base)
- Privacy-preserving tool-call audit logging
"""

import hashlib
import json
import re
import time
from datetime import datetime, timezone
from typing import Any

from airtable_mcp.config import logger
from airtable_mcp.errors import FormulaInjectionError, ValidationError


# -------------------------------------------------------------------
# Formula Sanitizers
# -------------------------------------------------------------------

_FORBIDDEN_IDENTIFIER_CHARS = re.compile(r"[{}\n\r]")


def sanitize_identifier(name: str) -> str:
    """
    Validate a field name for use inside {braces} in a formula.

    The check runs on the raw input, before trimming, so a brace or line
    break anywhere is fatal.

    Returns:
        The trimmed field name

    Raises:
        FormulaInjectionError: name contains {, }, \\n or \\r
        ValidationError: name is empty after trimming
    """
    if not isinstance(name, str):
        raise ValidationError(f"Field name must be a string, got {type(name).__name__}")

    if _FORBIDDEN_IDENTIFIER_CHARS.search(name):
        raise FormulaInjectionError(name)

    trimmed = name.strip()
    if not trimmed:
        raise ValidationError("Field name cannot be empty")

    return trimmed


def escape_literal(value: Any) -> str:
    """Escape a value for embedding inside a single-quoted formula string."""
    return str(value).replace("'", "''")


# -------------------------------------------------------------------
# Credential Redaction
# -------------------------------------------------------------------

_REDACTION_PATTERNS = [
    (re.compile(r"pat[a-zA-Z0-9]{14}[\w.]*"), "pat***"),  # Personal Access Tokens
    (re.compile(r"key[a-zA-Z0-9]{14,}", re.IGNORECASE), "key***"),  # Legacy API keys
    (re.compile(r"app[a-zA-Z0-9]{14}", re.IGNORECASE), "app***"),  # Base IDs
    (re.compile(r"rec[a-zA-Z0-9]{14}", re.IGNORECASE), "rec***"),  # Record IDs
    (re.compile(r"Bearer\s+\S+", re.IGNORECASE), "Bearer ***"),
]


def redact_credentials(text: str) -> str:
    """Remove tokens, base IDs and record IDs from a message."""
    redacted = str(text)
    for pattern, replacement in _REDACTION_PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


# -------------------------------------------------------------------
# Rate Limiting
# -------------------------------------------------------------------

class RateLimiter:
    """
    Sliding-window limiter for outgoing Airtable requests.

    Airtable rejects more than 5 requests per second per base with a 429 and
    a 30 second penalty, so the client throttles itself below that.
    """

    def __init__(self, max_requests_per_second: int = 5, window_seconds: float = 1.0):
        self.max_per_window = max_requests_per_second
        self.window_seconds = window_seconds
        self._request_times: list[float] = []

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        self._request_times = [t for t in self._request_times if t > cutoff]

    def check_rate_limit(self) -> tuple[bool, str]:
        """
        Check if another request fits in the current window.

        Returns:
            Tuple of (allowed, message)
        """
        self._prune(time.monotonic())

        if len(self._request_times) >= self.max_per_window:
            return False, (
                f"Rate limit exceeded: {self.max_per_window} requests per "
                f"{self.window_seconds:g}s. Please slow down."
            )

        return True, "OK"

    def seconds_until_available(self) -> float:
        """Time to wait before the next request fits in the window."""
        now = time.monotonic()
        self._prune(now)
        if len(self._request_times) < self.max_per_window:
            return 0.0
        oldest = self._request_times[-self.max_per_window]
        return max(0.0, oldest + self.window_seconds - now)

    def record_request(self):
        """Record an outgoing request."""
        self._request_times.append(time.monotonic())

    def get_status(self) -> dict:
        self._prune(time.monotonic())
        return {
            "requests_in_window": len(self._request_times),
            "max_per_window": self.max_per_window,
            "window_seconds": self.window_seconds,
        }


# -------------------------------------------------------------------
# Tool Call Audit Logging (Privacy-Preserving)
# -------------------------------------------------------------------

class ToolAuditLog:
    """
    Privacy-preserving tool call audit log.

    IMPORTANT: This log stores call metadata ONLY, never:
    - Record field values
    - Access tokens
    - Raw tool arguments (only a truncated hash)
    """

    def __init__(self, max_entries: int = 1000):
        self.entries: list[dict] = []
        self.max_entries = max_entries

    def log_call(
        self,
        tool: str,
        arguments: dict | None,
        success: bool,
        error_code: str | None = None,
        duration_ms: float | None = None,
    ):
        """
        Log tool call metadata.

        Args:
            tool: MCP tool name
            arguments: Tool arguments (hashed, not stored)
            success: Whether the call succeeded
            error_code: AirtableMCPError code if it failed
            duration_ms: Call duration
        """
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tool": tool,
            "arguments_hash": get_arguments_hash(arguments)[:16],
            "success": success,
            "error_code": error_code,
            "duration_ms": duration_ms,
        }

        self.entries.append(entry)

        if len(self.entries) > self.max_entries:
            self.entries = self.entries[-self.max_entries:]

    def get_summary(self) -> dict:
        """Get summary statistics (no sensitive data)."""
        if not self.entries:
            return {"total_calls": 0}

        return {
            "total_calls": len(self.entries),
            "successful": sum(1 for e in self.entries if e["success"]),
            "failed": sum(1 for e in self.entries if not e["success"]),
            "tools_called": sorted({e["tool"] for e in self.entries}),
        }


# Global audit log instance
_audit_log = ToolAuditLog()


def get_arguments_hash(arguments: dict | None) -> str:
    """Stable hash of tool arguments (for deduplication, not reconstruction)."""
    serialized = json.dumps(arguments or {}, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode()).hexdigest()


def log_tool_call(
    tool: str,
    arguments: dict | None,
    success: bool,
    error_code: str | None = None,
    duration_ms: float | None = None,
):
    """Log a tool call to the audit trail."""
    _audit_log.log_call(
        tool=tool,
        arguments=arguments,
        success=success,
        error_code=error_code,
        duration_ms=duration_ms,
    )
    if not success:
        logger.warning(f"Tool {tool} failed with {error_code}")


def get_security_status(rate_limiter: RateLimiter | None = None) -> dict:
    """Get current security status for diagnostics."""
    status = {"audit_log": _audit_log.get_summary()}
    if rate_limiter is not None:
        status["rate_limiter"] = rate_limiter.get_status()
    return status
