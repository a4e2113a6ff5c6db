"""
Airtable MCP Server

Provides MCP tools for reading and writing Airtable bases, plus "smart"
query tools that compile structured intents (age ranges, multiple select
matches, number and date ranges) into safe filterByFormula expressions.

SECURITY ARCHITECTURE:
- Every tool input is validated against a schema (schemas.py)
- Field names are sanitized and literals escaped in generated formulas
- Errors returned to clients are redacted and never carry stack traces
- Requests are throttled to Airtable's per-base rate limit
- Tool calls are audit-logged as metadata only (no field values)
"""

import json
import os
import time
from typing import Any, Callable

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from airtable_mcp import __version__
from airtable_mcp.airtable_client import AirtableClient
from airtable_mcp.conditions import build_condition_formula, build_smart_query_formula
from airtable_mcp.config import (
    APP_NAME,
    FULL_NAME,
    SERVER_NAME,
    get_airtable_config,
    get_default_age_ranges,
    get_security_config,
    load_runtime_config,
    logger,
    validate_airtable_config,
)
from airtable_mcp.errors import ConfigurationError, wrap_error
from airtable_mcp.formulas import build_age_range_formula, combine_formulas_and
from airtable_mcp.schemas import (
    BatchCreateRecordsInput,
    BatchDeleteRecordsInput,
    BatchUpdateRecordsInput,
    CreateRecordInput,
    DeleteRecordInput,
    GetRecordInput,
    GetTableSchemaInput,
    ListRecordsInput,
    ListTablesInput,
    MultipleSelectCondition,
    QueryByAgeRangeInput,
    QueryMultipleSelectInput,
    SetTableSchemaInput,
    SmartQueryInput,
    validate_tool_args,
)
from airtable_mcp.security import get_security_status, log_tool_call, redact_credentials

# Create FastMCP server instance
mcp = FastMCP(SERVER_NAME)

# Global Airtable client
_client: AirtableClient | None = None


def _get_client() -> AirtableClient:
    """Get the Airtable client, creating it from the environment on first use."""
    global _client

    if _client is None:
        config = get_airtable_config()
        is_valid, msg = validate_airtable_config(config)
        if not is_valid:
            raise ConfigurationError(msg)
        _client = AirtableClient.from_config(config)
    return _client


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def _run_tool(name: str, arguments: dict, action: Callable[[], Any]) -> str:
    """
    Run a tool body with timing, audit logging and error sanitization.

    Failures are raised as ToolError carrying the redacted client error
    JSON, so MCP clients see isError=true.
    """
    start_time = time.time()

    try:
        result = action()
    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        error = wrap_error(e)
        logger.error(f"Tool {name} failed: {redact_credentials(str(e))}")
        log_tool_call(name, arguments, success=False, error_code=error.code, duration_ms=duration_ms)
        raise ToolError(_to_json(error.to_client_error())) from e

    duration_ms = (time.time() - start_time) * 1000
    log_tool_call(name, arguments, success=True, duration_ms=duration_ms)
    return _to_json(result)


def _with_additional_filters(formula: str, additional_filters: str | None) -> str:
    if additional_filters:
        return combine_formulas_and(formula, additional_filters)
    return formula


def _query_result(query: dict, records: list[dict]) -> dict:
    return {"query": query, "recordCount": len(records), "records": records}


# ==========================================
# TOOL HANDLERS
# ==========================================
# Each handler takes a client and raw (snake_case or camelCase) arguments
# and returns JSON-serializable data.

def handle_list_bases(client: AirtableClient, args: dict) -> dict:
    bases = client.list_bases()
    return {"count": len(bases), "bases": bases}


def handle_list_tables(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(ListTablesInput, args)
    tables = client.list_tables(params.base_id)
    return {"count": len(tables), "tables": tables}


def handle_get_table_schema(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(GetTableSchemaInput, args)
    return client.get_table_schema(params.table, params.base_id, refresh=params.refresh)


def handle_list_records(client: AirtableClient, args: dict) -> list[dict]:
    params = validate_tool_args(ListRecordsInput, args)

    exclude_attachments = params.exclude_attachments
    if exclude_attachments is None:
        # Attachment payloads routinely exceed MCP client response limits
        exclude_attachments = load_runtime_config().get("exclude_attachments_default", True)

    return client.list_records(
        params.table,
        base_id=params.base_id,
        filter_by_formula=params.filter_by_formula,
        max_records=params.max_records,
        view=params.view,
        fields=params.fields,
        exclude_fields=params.exclude_fields,
        exclude_attachments=exclude_attachments,
        exclude_long_text=bool(params.exclude_long_text),
        preset=params.preset,
        sort=[s.model_dump() for s in params.sort] if params.sort else None,
    )


def handle_get_record(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(GetRecordInput, args)
    return client.get_record(params.table, params.record_id, params.base_id)


def handle_create_record(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(CreateRecordInput, args)
    return client.create_record(params.table, params.fields, params.base_id)


def handle_update_record(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(UpdateRecordInput, args)
    return client.update_record(params.table, params.record_id, params.fields, params.base_id)


def handle_delete_record(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(DeleteRecordInput, args)
    deleted_id = client.delete_record(params.table, params.record_id, params.base_id)
    return {"success": True, "deletedId": deleted_id}


def handle_set_table_schema(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(SetTableSchemaInput, args)
    fields = [f.model_dump(exclude_none=True) for f in params.fields]
    client.set_table_schema(params.table, fields, params.base_id)
    return {"success": True, "message": f"Schema updated for table: {params.table}"}


def handle_query_by_age_range(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(QueryByAgeRangeInput, args)

    age_ranges = params.available_age_ranges
    if age_ranges is None:
        age_ranges = get_default_age_ranges()

    age_formula = build_age_range_formula(
        params.age_field_name, params.min_age, params.max_age, age_ranges
    )
    formula = _with_additional_filters(age_formula, params.additional_filters)

    records = client.list_records(
        params.table,
        base_id=params.base_id,
        filter_by_formula=formula,
        max_records=params.max_records,
        fields=params.fields,
    )
    return _query_result(
        {"minAge": params.min_age, "maxAge": params.max_age, "formula": formula},
        records,
    )


def handle_query_multiple_select(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(QueryMultipleSelectInput, args)

    condition = MultipleSelectCondition(
        type="multipleSelect",
        field_name=params.field_name,
        match_type=params.match_type,
        values=params.values,
        available_options=params.available_options,
        use_fuzzy_match=params.use_fuzzy_match,
    )
    formula = _with_additional_filters(
        build_condition_formula(condition), params.additional_filters
    )

    records = client.list_records(
        params.table,
        base_id=params.base_id,
        filter_by_formula=formula,
        max_records=params.max_records,
        fields=params.fields,
    )
    return _query_result(
        {
            "fieldName": params.field_name,
            "matchType": params.match_type,
            "values": params.values,
            "formula": formula,
        },
        records,
    )


def handle_smart_query(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(SmartQueryInput, args)
    formula = build_smart_query_formula(params.conditions, params.combine_with)

    records = client.list_records(
        params.table,
        base_id=params.base_id,
        filter_by_formula=formula,
        max_records=params.max_records,
        fields=params.fields,
        sort=[s.model_dump() for s in params.sort] if params.sort else None,
    )
    return _query_result(
        {
            "conditions": [
                c.model_dump(by_alias=True, exclude_none=True) for c in params.conditions
            ],
            "combineWith": params.combine_with,
            "formula": formula,
        },
        records,
    )


def handle_batch_create_records(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(BatchCreateRecordsInput, args)
    records = client.batch_create_records(params.table, params.records, params.base_id)
    return {"success": True, "recordCount": len(records), "records": records}


def handle_batch_update_records(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(BatchUpdateRecordsInput, args)
    updates = [{"id": u.id, "fields": u.fields} for u in params.updates]
    records = client.batch_update_records(params.table, updates, params.base_id)
    return {"success": True, "recordCount": len(records), "records": records}


def handle_batch_delete_records(client: AirtableClient, args: dict) -> dict:
    params = validate_tool_args(BatchDeleteRecordsInput, args)
    deleted_ids = client.batch_delete_records(params.table, params.record_ids, params.base_id)
    return {"success": True, "deletedCount": len(deleted_ids), "deletedIds": deleted_ids}


def get_server_status() -> dict:
    """Server, configuration and security status. Never includes the token."""
    config = get_airtable_config()
    is_valid, msg = validate_airtable_config(config)
    base_id = config.get("base_id")

    status = {
        "server": SERVER_NAME,
        "version": __version__,
        "configured": is_valid,
        "configMessage": msg,
        "defaultBaseId": f"{base_id[:6]}***" if base_id else None,
        "limits": get_security_config(),
        "security": get_security_status(_client.rate_limiter if _client else None),
    }
    if _client is not None:
        status["cachedSchemas"] = len(_client.schema_cache)
    return status


def _call(name: str, handler: Callable[[AirtableClient, dict], Any], args: dict) -> str:
    return _run_tool(name, args, lambda: handler(_get_client(), args))


def _drop_none(**kwargs) -> dict:
    return {k: v for k, v in kwargs.items() if v is not None}


# ==========================================
# MCP TOOLS - PUBLIC API
# ==========================================

@mcp.tool()
def airtable_list_bases() -> str:
    """🗂️ List all Airtable bases your token can access.

    **When to use:** Start here. Most other tools need a base ID.

    Returns:
        JSON with `count` and `bases` (id, name, permissionLevel)
    """
    return _call("airtable_list_bases", handle_list_bases, {})


@mcp.tool()
def airtable_list_tables(base_id: str | None = None) -> str:
    """📋 List all tables in an Airtable base.

    Args:
        base_id: Airtable base ID (starts with "app"). Use `airtable_list_bases`
            first to see available bases. Optional if a default base is configured.

    Returns:
        JSON with `count` and `tables` (id, name, description)
    """
    return _call("airtable_list_tables", handle_list_tables, _drop_none(base_id=base_id))


@mcp.tool()
def airtable_get_table_schema(table: str, base_id: str | None = None, refresh: bool = False) -> str:
    """🔍 Get a table's schema: every field with its type and options.

    **Pro tip:** Use this before querying to learn exact field names and the
    available options of select fields (needed for fuzzy matching).

    Args:
        table: Name of the table
        base_id: Airtable base ID (starts with "app")
        refresh: Re-fetch from Airtable instead of using the cached schema
    """
    return _call(
        "airtable_get_table_schema",
        handle_get_table_schema,
        _drop_none(table=table, base_id=base_id, refresh=refresh),
    )


@mcp.tool()
def airtable_list_records(
    table: str,
    base_id: str | None = None,
    filter_by_formula: str | None = None,
    max_records: int | None = None,
    view: str | None = None,
    fields: list[str] | None = None,
    exclude_fields: list[str] | None = None,
    exclude_attachments: bool | None = None,
    exclude_long_text: bool | None = None,
    preset: str | None = None,
    sort: list[dict] | None = None,
) -> str:
    """📄 List records from a table with optional filtering and sorting.

    **⚠️ Large responses:** Attachment fields are excluded by default. Use
    `preset` ("minimal", "contact", "summary", "full") or `fields` to keep
    responses small.

    Args:
        table: Name of the table
        base_id: Airtable base ID (starts with "app")
        filter_by_formula: Airtable formula, e.g. `{Status} = 'Active'`
        max_records: Maximum number of records to return (1-1000)
        view: Name or ID of a view
        fields: Specific fields to return (overrides preset and exclusions)
        exclude_fields: Fields to leave out
        exclude_attachments: Leave out attachment-like fields (default: true)
        exclude_long_text: Leave out long text fields such as notes
        preset: Field preset
        sort: e.g. `[{"field": "Name", "direction": "asc"}]`
    """
    args = _drop_none(
        table=table,
        base_id=base_id,
        filter_by_formula=filter_by_formula,
        max_records=max_records,
        view=view,
        fields=fields,
        exclude_fields=exclude_fields,
        exclude_attachments=exclude_attachments,
        exclude_long_text=exclude_long_text,
        preset=preset,
        sort=sort,
    )
    return _call("airtable_list_records", handle_list_records, args)


@mcp.tool()
def airtable_get_record(table: str, record_id: str, base_id: str | None = None) -> str:
    """📌 Get a single record by ID.

    Args:
        table: Name of the table
        record_id: Record ID (starts with "rec")
        base_id: Airtable base ID (starts with "app")
    """
    return _call(
        "airtable_get_record",
        handle_get_record,
        _drop_none(table=table, record_id=record_id, base_id=base_id),
    )


@mcp.tool()
def airtable_create_record(table: str, fields: dict[str, Any], base_id: str | None = None) -> str:
    """➕ Create a new record. Values are converted to each field's type.

    Args:
        table: Name of the table
        fields: Field values, e.g. `{"Name": "Jane", "Tags": ["UGC Creator"]}`
        base_id: Airtable base ID (starts with "app")
    """
    return _call(
        "airtable_create_record",
        handle_create_record,
        _drop_none(table=table, fields=fields, base_id=base_id),
    )


@mcp.tool()
def airtable_update_record(
    table: str, record_id: str, fields: dict[str, Any], base_id: str | None = None
) -> str:
    """✏️ Update fields of an existing record. Only the given fields change.

    Args:
        table: Name of the table
        record_id: Record ID (starts with "rec")
        fields: Field values to set
        base_id: Airtable base ID (starts with "app")
    """
    return _call(
        "airtable_update_record",
        handle_update_record,
        _drop_none(table=table, record_id=record_id, fields=fields, base_id=base_id),
    )


@mcp.tool()
def airtable_delete_record(table: str, record_id: str, base_id: str | None = None) -> str:
    """🗑️ Delete a record.

    Args:
        table: Name of the table
        record_id: Record ID (starts with "rec")
        base_id: Airtable base ID (starts with "app")
    """
    return _call(
        "airtable_delete_record",
        handle_delete_record,
        _drop_none(table=table, record_id=record_id, base_id=base_id),
    )


@mcp.tool()
def airtable_set_table_schema(
    table: str, fields: list[dict[str, Any]], base_id: str | None = None
) -> str:
    """🧩 Define field types for a table so values are converted correctly.

    Only needed when the token cannot read the Metadata API.

    Args:
        table: Name of the table
        fields: Field definitions, e.g. `[{"name": "Age", "type": "singleSelect"}]`
        base_id: Airtable base ID (starts with "app")
    """
    return _call(
        "airtable_set_table_schema",
        handle_set_table_schema,
        _drop_none(table=table, fields=fields, base_id=base_id),
    )


@mcp.tool()
def airtable_query_by_age_range(
    table: str,
    min_age: int,
    max_age: int,
    base_id: str | None = None,
    age_field_name: str | None = None,
    available_age_ranges: list[str] | None = None,
    additional_filters: str | None = None,
    max_records: int | None = None,
    fields: list[str] | None = None,
) -> str:
    """🎂 Find records whose age-range bucket overlaps an age interval.

    **What this does:** Age fields are often single selects with buckets like
    "25-34". A query for ages 29-42 matches the buckets "25-34" and "35-44".

    Args:
        table: Name of the table (e.g. "Roster")
        min_age: Minimum age (inclusive)
        max_age: Maximum age (inclusive)
        base_id: Airtable base ID (starts with "app")
        age_field_name: Name of the age field (default: "Age")
        available_age_ranges: Bucket options (default: 12-17, 18-24, 25-34, 35-44, 45-65, 65+)
        additional_filters: Extra Airtable formula, combined with AND
        max_records: Maximum number of records to return
        fields: Specific fields to return
    """
    args = _drop_none(
        table=table,
        min_age=min_age,
        max_age=max_age,
        base_id=base_id,
        age_field_name=age_field_name,
        available_age_ranges=available_age_ranges,
        additional_filters=additional_filters,
        max_records=max_records,
        fields=fields,
    )
    return _call("airtable_query_by_age_range", handle_query_by_age_range, args)


@mcp.tool()
def airtable_query_multiple_select(
    table: str,
    field_name: str,
    match_type: str,
    values: list[str],
    base_id: str | None = None,
    available_options: list[str] | None = None,
    use_fuzzy_match: bool = True,
    additional_filters: str | None = None,
    max_records: int | None = None,
    fields: list[str] | None = None,
) -> str:
    """🏷️ Query a multiple select field with hasAny / hasAll / hasNone logic.

    **Fuzzy matching:** with `available_options`, "ugc" matches "UGC Creator".
    Without options, values are matched exactly.

    Args:
        table: Name of the table
        field_name: Multiple select field (e.g. "Status", "Creator Type")
        match_type: "hasAny" (OR), "hasAll" (AND) or "hasNone" (NOT)
        values: Values to match
        base_id: Airtable base ID (starts with "app")
        available_options: The field's options (enables fuzzy matching)
        use_fuzzy_match: Enable fuzzy matching (default: true)
        additional_filters: Extra Airtable formula, combined with AND
        max_records: Maximum number of records to return
        fields: Specific fields to return
    """
    args = _drop_none(
        table=table,
        field_name=field_name,
        match_type=match_type,
        values=values,
        base_id=base_id,
        available_options=available_options,
        use_fuzzy_match=use_fuzzy_match,
        additional_filters=additional_filters,
        max_records=max_records,
        fields=fields,
    )
    return _call("airtable_query_multiple_select", handle_query_multiple_select, args)


@mcp.tool()
def airtable_smart_query(
    table: str,
    conditions: list[dict[str, Any]],
    base_id: str | None = None,
    combine_with: str = "AND",
    max_records: int | None = None,
    fields: list[str] | None = None,
    sort: list[dict] | None = None,
) -> str:
    """🧠 Combine several conditions with AND / OR into one query.

    **Condition types** (keys in camelCase):
    - `{"type": "ageRange", "fieldName": "Age", "minAge": 25, "maxAge": 40}`
    - `{"type": "multipleSelect", "fieldName": "Tags", "matchType": "hasAny", "values": ["ugc"]}`
    - `{"type": "numberRange", "fieldName": "Followers", "min": 1000, "max": 50000}`
    - `{"type": "dateRange", "fieldName": "Joined", "startDate": "2024-01-01"}`
    - `{"type": "customFormula", "formula": "{Status} = 'Active'"}`

    **⚠️ Note:** customFormula is passed to Airtable as-is.

    Args:
        table: Name of the table
        conditions: 1-20 conditions
        base_id: Airtable base ID (starts with "app")
        combine_with: "AND" (default) or "OR"
        max_records: Maximum number of records to return
        fields: Specific fields to return
        sort: e.g. `[{"field": "Name", "direction": "desc"}]`
    """
    args = _drop_none(
        table=table,
        conditions=conditions,
        base_id=base_id,
        combine_with=combine_with,
        max_records=max_records,
        fields=fields,
        sort=sort,
    )
    return _call("airtable_smart_query", handle_smart_query, args)


@mcp.tool()
def airtable_batch_create_records(
    table: str, records: list[dict[str, Any]], base_id: str | None = None
) -> str:
    """📦 Create up to 10 records at once.

    Args:
        table: Name of the table
        records: Field maps, one per record
        base_id: Airtable base ID (starts with "app")
    """
    return _call(
        "airtable_batch_create_records",
        handle_batch_create_records,
        _drop_none(table=table, records=records, base_id=base_id),
    )


@mcp.tool()
def airtable_batch_update_records(
    table: str, updates: list[dict[str, Any]], base_id: str | None = None
) -> str:
    """📦 Update up to 10 records at once.

    Args:
        table: Name of the table
        updates: e.g. `[{"id": "rec...", "fields": {"Status": "Done"}}]`
        base_id: Airtable base ID (starts with "app")
    """
    return _call(
        "airtable_batch_update_records",
        handle_batch_update_records,
        _drop_none(table=table, updates=updates, base_id=base_id),
    )


@mcp.tool()
def airtable_batch_delete_records(
    table: str, record_ids: list[str], base_id: str | None = None
) -> str:
    """📦 Delete up to 10 records at once.

    Args:
        table: Name of the table
        record_ids: Record IDs (start with "rec")
        base_id: Airtable base ID (starts with "app")
    """
    return _call(
        "airtable_batch_delete_records",
        handle_batch_delete_records,
        _drop_none(table=table, record_ids=record_ids, base_id=base_id),
    )


@mcp.tool()
def airtable_get_server_status() -> str:
    """🩺 Show server version, configuration state, limits and tool call statistics."""
    return _run_tool("airtable_get_server_status", {}, get_server_status)


# ==========================================
# SERVER INITIALIZATION
# ==========================================

def _initialize_server():
    """Validate configuration and credentials before accepting tool calls."""
    try:
        client = _get_client()
        logger.info(client.validate_credentials())
        logger.info(f"{FULL_NAME} ({APP_NAME}) v{__version__} initialized")
        if client.base_id:
            logger.info(f"Default base ID configured: {client.base_id[:6]}***")
        else:
            logger.info("No default base ID configured - PAT can access multiple bases")
    except Exception as e:
        logger.error(f"Server initialization failed: {redact_credentials(str(e))}")
        raise


def main():
    """Main entry point for MCP server.

    Runs FastMCP server in STDIO mode by default.

    Environment Variables:
        AIRTABLE_PAT: Personal Access Token (required)
        AIRTABLE_BASE_ID: Default base ID (optional)
        MCP_TRANSPORT: "stdio" (default) or "http"
        MCP_HOST: Host for HTTP mode (default: "localhost")
        MCP_PORT: Port for HTTP mode (default: 3000)
        MCP_PATH: Path for HTTP mode (default: "/mcp")
    """
    _initialize_server()

    transport = os.getenv("MCP_TRANSPORT", "stdio").lower()

    if transport in ("sse", "http"):
        host = os.getenv("MCP_HOST", "localhost")
        port = int(os.getenv("MCP_PORT", "3000"))
        path = os.getenv("MCP_PATH", "/mcp")

        logger.warning("⚠️ HTTP transport enabled - ensure proper network security!")
        mcp.run(transport="streamable-http", host=host, port=port, path=path)
    else:
        logger.info("Starting in STDIO mode")
        mcp.run()


if __name__ == "__main__":
    main()
