"""
Airtable MCP Server

An MCP (Model Context Protocol) server exposing Airtable bases as callable
tools: list/get/create/update/delete records, batch operations, and smart
queries compiled into Airtable formulas.

IMPORTANT SECURITY NOTICE:
- Every generated formula escapes literals SQL-style ('' not \\')
- Field names are validated before being wrapped in {braces}
- Credentials are redacted from every error returned to the client
- The customFormula condition is a raw passthrough and is NOT validated

License: MIT
"""

__version__ = "1.0.0"
__tool_name__ = "airtable-mcp"
__full_name__ = "Airtable MCP Server"
