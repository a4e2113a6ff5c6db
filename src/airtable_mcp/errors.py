"""
Airtable MCP Error Types

Every error raised inside the server derives from AirtableMCPError and knows
how to render itself for the client. Client-facing messages never carry
tokens, base IDs or record IDs.
"""

import re
from typing import Any


class AirtableMCPError(Exception):
    """Base error for all Airtable MCP failures."""

    def __init__(self, message: str, code: str = "AIRTABLE_MCP_ERROR", status_code: int = 500):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(self.message)

    def to_client_error(self) -> dict[str, Any]:
        """Error payload that is safe to return to the MCP client."""
        return {"error": self.message, "code": self.code}


class ValidationError(AirtableMCPError):
    """Raised when the caller supplied invalid input."""

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400)
        self.details = details

    def to_client_error(self) -> dict[str, Any]:
        payload = super().to_client_error()
        if self.details:
            payload["details"] = self.details
        return payload


class FormulaInjectionError(ValidationError):
    """Raised when a field name could break out of its {braces} context."""

    def __init__(self, field_name: str):
        super().__init__(
            f"Invalid field name {field_name!r}: contains forbidden characters ({{}}, newlines)"
        )
        self.code = "FORMULA_INJECTION_DETECTED"
        self.field_name = field_name


class AuthenticationError(AirtableMCPError):
    """Raised when the access token is missing or rejected."""

    def __init__(self, message: str = "Invalid or missing API credentials"):
        super().__init__(message, code="AUTHENTICATION_ERROR", status_code=401)

    def to_client_error(self) -> dict[str, Any]:
        # Don't leak specific authentication details
        return {
            "error": "Authentication failed. Please check your API credentials.",
            "code": self.code,
        }


class AuthorizationError(AirtableMCPError):
    """Raised when the token lacks permission for the resource."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, code="AUTHORIZATION_ERROR", status_code=403)

    def to_client_error(self) -> dict[str, Any]:
        return {
            "error": "You do not have permission to perform this action.",
            "code": self.code,
        }


class NotFoundError(AirtableMCPError):
    """Raised when a base, table or record does not exist."""

    def __init__(self, resource: str, resource_id: str | None = None):
        if resource_id:
            message = f"{resource} with ID '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message, code="NOT_FOUND", status_code=404)


class RateLimitError(AirtableMCPError):
    """Raised when Airtable (or the local limiter) throttles a request."""

    def __init__(
        self,
        message: str = "Too many requests. Please try again later.",
        retry_after: float | None = None,
    ):
        super().__init__(message, code="RATE_LIMIT_EXCEEDED", status_code=429)
        self.retry_after = retry_after

    def to_client_error(self) -> dict[str, Any]:
        payload = super().to_client_error()
        if self.retry_after is not None:
            payload["retryAfter"] = self.retry_after
        return payload


class AirtableAPIError(AirtableMCPError):
    """Raised for errors reported by the Airtable service itself."""

    def __init__(
        self,
        message: str,
        airtable_error_code: str | None = None,
        status_code: int = 500,
    ):
        super().__init__(message, code="AIRTABLE_API_ERROR", status_code=status_code)
        self.airtable_error_code = airtable_error_code

    def to_client_error(self) -> dict[str, Any]:
        from airtable_mcp.security import redact_credentials

        return {"error": redact_credentials(self.message), "code": self.code}


class InternalServerError(AirtableMCPError):
    """Raised for unexpected failures; details never reach the client."""

    def __init__(
        self,
        message: str = "An internal error occurred",
        original_error: BaseException | None = None,
    ):
        super().__init__(message, code="INTERNAL_SERVER_ERROR", status_code=500)
        self.original_error = original_error

    def to_client_error(self) -> dict[str, Any]:
        return {
            "error": "An internal error occurred. Please try again later.",
            "code": self.code,
        }


class PayloadTooLargeError(AirtableMCPError):
    """Raised when a request exceeds a size limit."""

    def __init__(self, resource: str, limit: int, actual: int):
        super().__init__(
            f"{resource} exceeds maximum size limit. Max: {limit}, Actual: {actual}",
            code="PAYLOAD_TOO_LARGE",
            status_code=413,
        )


class ConfigurationError(AirtableMCPError):
    """Raised for missing configuration such as a base ID.

    The message is shown as-is because it carries setup guidance.
    """

    def __init__(self, message: str):
        super().__init__(message, code="CONFIGURATION_ERROR", status_code=400)


_AUTH_PHRASES = (
    "unauthorized",
    "invalid api key",
    "invalid key",
    "authentication failed",
)


def wrap_error(error: BaseException) -> AirtableMCPError:
    """Map any exception onto the AirtableMCPError hierarchy."""
    if isinstance(error, AirtableMCPError):
        return error

    message = str(error)
    lower_message = message.lower()

    if "AIRTABLE" in message or "API" in message:
        return AirtableAPIError(message)

    if any(phrase in lower_message for phrase in _AUTH_PHRASES):
        return AuthenticationError()

    if "not found" in lower_message or "could not find" in lower_message:
        match = re.search(r"table\s+['\"]?([^'\"]+)['\"]?", message, re.IGNORECASE)
        resource = f"Table '{match.group(1)}'" if match else "Resource"
        return NotFoundError(resource)

    return InternalServerError(message, error)


def error_from_response(status_code: int, payload: Any = None) -> AirtableMCPError:
    """
    Build an error from a failed Airtable HTTP response.

    Airtable error bodies look like {"error": {"type": ..., "message": ...}}
    or, for some 404s, {"error": "NOT_FOUND"}.
    """
    error_type = None
    message = f"Airtable API request failed with status {status_code}"

    if isinstance(payload, dict):
        body = payload.get("error")
        if isinstance(body, dict):
            error_type = body.get("type")
            message = body.get("message") or error_type or message
        elif isinstance(body, str):
            error_type = body
            message = body

    if status_code == 401:
        return AuthenticationError(message)
    if status_code == 403:
        return AuthorizationError(message)
    if status_code == 404:
        return NotFoundError("Resource")
    if status_code == 422:
        from airtable_mcp.security import redact_credentials

        return ValidationError(f"Airtable rejected the request: {redact_credentials(message)}")
    if status_code == 429:
        return RateLimitError(retry_after=30)
    return AirtableAPIError(message, error_type, status_code)
