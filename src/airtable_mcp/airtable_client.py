"""
Airtable REST Client

Thin wrapper over the Airtable Web API (records) and Metadata API (bases,
tables, field schemas), with field type conversion, field filtering,
client-side throttling and an explicit per-table schema cache.
"""

import time
from typing import Any
from urllib.parse import quote

import requests

from airtable_mcp import __version__
from airtable_mcp.config import (
    AIRTABLE_API_URL,
    MAX_BATCH_SIZE,
    MAX_RECORDS,
    SERVER_NAME,
    get_airtable_config,
    logger,
)
from airtable_mcp.errors import (
    AirtableAPIError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    PayloadTooLargeError,
    error_from_response,
)
from airtable_mcp.field_converter import convert_fields
from airtable_mcp.field_filters import filter_fields
from airtable_mcp.security import RateLimiter, redact_credentials

BASE_ID_GUIDANCE = (
    "Please use the airtable_list_bases tool to see available bases and get "
    "their IDs, then provide the baseId parameter."
)


class SchemaCache:
    """
    Table schemas keyed by (base_id, table name).

    Owned by a client instance; entries are replaced by set_table_schema and
    dropped with invalidate().
    """

    def __init__(self):
        self._schemas: dict[tuple[str, str], dict] = {}

    def get(self, base_id: str, table: str) -> dict | None:
        return self._schemas.get((base_id, table))

    def set(self, base_id: str, table: str, schema: dict) -> None:
        self._schemas[(base_id, table)] = schema

    def invalidate(self, base_id: str, table: str | None = None) -> None:
        """Drop one table's schema, or every schema of the base."""
        if table is not None:
            self._schemas.pop((base_id, table), None)
            return
        for key in [k for k in self._schemas if k[0] == base_id]:
            del self._schemas[key]

    def clear(self) -> None:
        self._schemas.clear()

    def tables(self, base_id: str) -> list[str]:
        return [table for (base, table) in self._schemas if base == base_id]

    def __len__(self) -> int:
        return len(self._schemas)


def _basic_schema(table: str) -> dict:
    return {"id": table, "name": table, "fields": []}


def _format_record(record: dict) -> dict:
    return {
        "id": record.get("id"),
        "fields": record.get("fields", {}),
        "createdTime": record.get("createdTime"),
    }


def _chunks(items: list, size: int = MAX_BATCH_SIZE):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class AirtableClient:
    """Airtable API client authenticated with a Personal Access Token."""

    def __init__(
        self,
        api_key: str,
        base_id: str | None = None,
        timeout: float = 30,
        rate_limiter: RateLimiter | None = None,
        session: requests.Session | None = None,
        schema_cache: SchemaCache | None = None,
    ):
        self.base_id = base_id or None
        self.timeout = timeout
        self.rate_limiter = rate_limiter or RateLimiter()
        self.schema_cache = schema_cache if schema_cache is not None else SchemaCache()
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": f"{SERVER_NAME}/{__version__}",
        })

    @classmethod
    def from_config(cls, config: dict | None = None) -> "AirtableClient":
        """Build a client from get_airtable_config()."""
        config = config or get_airtable_config()
        return cls(
            api_key=config["api_key"],
            base_id=config.get("base_id"),
            timeout=config.get("timeout", 30),
            rate_limiter=RateLimiter(config.get("max_requests_per_second", 5)),
        )

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _resolve_base(self, base_id: str | None) -> str:
        resolved = base_id or self.base_id
        if not resolved:
            raise ConfigurationError(f"Base ID required. {BASE_ID_GUIDANCE}")
        return resolved

    def _throttle(self) -> None:
        wait = self.rate_limiter.seconds_until_available()
        if wait > 0:
            logger.debug(f"Throttling Airtable request for {wait:.3f}s")
            time.sleep(wait)
        self.rate_limiter.record_request()

    def _request(
        self,
        method: str,
        path: str,
        params: Any = None,
        json: dict | None = None,
    ) -> dict:
        self._throttle()
        url = f"{AIRTABLE_API_URL}/{path}"
        logger.debug(f"{method} {redact_credentials(path)}")

        try:
            response = self.session.request(
                method, url, params=params, json=json, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise AirtableAPIError(
                f"Airtable API request failed: {redact_credentials(str(e))}"
            ) from e

        if not response.ok:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise error_from_response(response.status_code, payload)

        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _table_path(base_id: str, table: str, record_id: str | None = None) -> str:
        path = f"{base_id}/{quote(table, safe='')}"
        if record_id:
            path += f"/{quote(record_id, safe='')}"
        return path

    # ------------------------------------------------------------------
    # Metadata API
    # ------------------------------------------------------------------

    def list_bases(self) -> list[dict]:
        """List every base the token can access."""
        bases = []
        offset = None
        while True:
            data = self._request("GET", "meta/bases", params={"offset": offset} if offset else None)
            bases.extend(
                {
                    "id": base.get("id"),
                    "name": base.get("name"),
                    "permissionLevel": base.get("permissionLevel"),
                }
                for base in data.get("bases", [])
            )
            offset = data.get("offset")
            if not offset:
                return bases

    def _fetch_tables(self, base_id: str) -> list[dict]:
        data = self._request("GET", f"meta/bases/{base_id}/tables")
        tables = data.get("tables", [])
        for table in tables:
            self.schema_cache.set(base_id, table["name"], {
                "id": table.get("id"),
                "name": table["name"],
                "fields": [
                    {
                        "id": f.get("id"),
                        "name": f.get("name"),
                        "type": f.get("type"),
                        "options": f.get("options"),
                    }
                    for f in table.get("fields", [])
                ],
            })
        return tables

    def list_tables(self, base_id: str | None = None) -> list[dict]:
        """List tables in a base; refreshes the schema cache for the base."""
        base = self._resolve_base(base_id)
        self.schema_cache.invalidate(base)
        return [
            {
                "id": table.get("id"),
                "name": table.get("name"),
                "description": table.get("description"),
            }
            for table in self._fetch_tables(base)
        ]

    def get_table_schema(self, table: str, base_id: str | None = None, refresh: bool = False) -> dict:
        """
        Fetch and cache a table's schema including field metadata.

        If the Metadata API is unavailable (e.g. the token lacks the
        schema.bases:read scope) an empty schema is cached instead, and
        values are then passed to Airtable without conversion.
        """
        base = self._resolve_base(base_id)
        if refresh:
            self.schema_cache.invalidate(base, table)

        cached = self.schema_cache.get(base, table)
        if cached is not None:
            return cached

        try:
            self._fetch_tables(base)
        except (AirtableAPIError, AuthorizationError, NotFoundError) as e:
            logger.warning(
                f"Metadata API unavailable ({e.code}); using basic schema for table {table!r}"
            )

        schema = self.schema_cache.get(base, table)
        if schema is None:
            schema = _basic_schema(table)
            self.schema_cache.set(base, table, schema)
        return schema

    def set_table_schema(self, table: str, fields: list[dict], base_id: str | None = None) -> dict:
        """Replace the cached field metadata for a table."""
        base = self._resolve_base(base_id)
        existing = self.schema_cache.get(base, table) or _basic_schema(table)
        schema = {**existing, "fields": fields}
        self.schema_cache.set(base, table, schema)
        return schema

    def validate_credentials(self) -> str:
        """
        Check the token against the Metadata API.

        Returns:
            Human-readable summary of what the token can access

        Raises:
            AuthenticationError: token rejected or base not accessible
        """
        if not self.base_id:
            bases = self.list_bases()
            return f"PAT validated successfully. You have access to {len(bases)} bases."

        try:
            tables = self._fetch_tables(self.base_id)
        except NotFoundError as e:
            raise AuthenticationError(f"Base not found: {self.base_id}") from e
        except AuthorizationError as e:
            raise AuthenticationError(f"No access to base: {self.base_id}") from e
        return f"PAT validated successfully. Base contains {len(tables)} tables."

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _select_fields(
        self,
        table: str,
        base_id: str,
        exclude_fields: list[str] | None,
        exclude_attachments: bool,
        exclude_long_text: bool,
        preset: str | None,
    ) -> list[str] | None:
        if not (exclude_fields or exclude_attachments or exclude_long_text or preset):
            return None

        schema = self.get_table_schema(table, base_id)
        all_fields = [f["name"] for f in schema["fields"]]
        if not all_fields:
            return None

        return filter_fields(
            all_fields,
            exclude_fields=exclude_fields,
            exclude_attachments=exclude_attachments,
            exclude_long_text=exclude_long_text,
            preset=preset,
        )

    def list_records(
        self,
        table: str,
        base_id: str | None = None,
        filter_by_formula: str | None = None,
        max_records: int | None = None,
        page_size: int | None = None,
        view: str | None = None,
        fields: list[str] | None = None,
        exclude_fields: list[str] | None = None,
        exclude_attachments: bool = False,
        exclude_long_text: bool = False,
        preset: str | None = None,
        sort: list[dict] | None = None,
    ) -> list[dict]:
        """
        List records, following pagination until max_records is reached.

        An explicit fields list takes precedence over presets and exclusions.
        """
        base = self._resolve_base(base_id)

        if not fields:
            fields = self._select_fields(
                table, base, exclude_fields, exclude_attachments, exclude_long_text, preset
            )

        params: list[tuple[str, Any]] = []
        if filter_by_formula:
            params.append(("filterByFormula", filter_by_formula))
        if max_records:
            params.append(("maxRecords", max_records))
        if page_size:
            params.append(("pageSize", page_size))
        if view:
            params.append(("view", view))
        for i, sort_field in enumerate(sort or []):
            params.append((f"sort[{i}][field]", sort_field["field"]))
            params.append((f"sort[{i}][direction]", sort_field.get("direction", "asc")))
        for field in fields or []:
            params.append(("fields[]", field))

        records = []
        offset = None
        while True:
            page_params = params + ([("offset", offset)] if offset else [])
            data = self._request("GET", self._table_path(base, table), params=page_params)
            records.extend(_format_record(r) for r in data.get("records", []))

            offset = data.get("offset")
            if not offset or (max_records and len(records) >= max_records):
                break

        if max_records:
            records = records[:max_records]
        return records

    def get_record(self, table: str, record_id: str, base_id: str | None = None) -> dict:
        base = self._resolve_base(base_id)
        return _format_record(self._request("GET", self._table_path(base, table, record_id)))

    def _convert(self, table: str, base: str, fields: dict) -> dict:
        schema = self.get_table_schema(table, base)
        return convert_fields(fields, schema["fields"])

    def create_record(self, table: str, fields: dict, base_id: str | None = None) -> dict:
        """Create a record, converting values by field type."""
        base = self._resolve_base(base_id)
        payload = {"fields": self._convert(table, base, fields)}
        return _format_record(self._request("POST", self._table_path(base, table), json=payload))

    def update_record(
        self, table: str, record_id: str, fields: dict, base_id: str | None = None
    ) -> dict:
        """Update (PATCH) a record, converting values by field type."""
        base = self._resolve_base(base_id)
        payload = {"fields": self._convert(table, base, fields)}
        return _format_record(
            self._request("PATCH", self._table_path(base, table, record_id), json=payload)
        )

    def delete_record(self, table: str, record_id: str, base_id: str | None = None) -> str:
        base = self._resolve_base(base_id)
        data = self._request("DELETE", self._table_path(base, table, record_id))
        return data.get("id", record_id)

    # ------------------------------------------------------------------
    # Batch operations (Airtable accepts 10 records per request)
    # ------------------------------------------------------------------

    @staticmethod
    def _check_batch_size(items: list) -> None:
        if len(items) > MAX_RECORDS:
            raise PayloadTooLargeError("Batch", MAX_RECORDS, len(items))

    def batch_create_records(
        self, table: str, records: list[dict], base_id: str | None = None
    ) -> list[dict]:
        self._check_batch_size(records)
        base = self._resolve_base(base_id)
        created = []
        for chunk in _chunks(records):
            payload = {"records": [{"fields": self._convert(table, base, f)} for f in chunk]}
            data = self._request("POST", self._table_path(base, table), json=payload)
            created.extend(_format_record(r) for r in data.get("records", []))
        return created

    def batch_update_records(
        self, table: str, updates: list[dict], base_id: str | None = None
    ) -> list[dict]:
        """Apply [{"id": ..., "fields": {...}}, ...] updates."""
        self._check_batch_size(updates)
        base = self._resolve_base(base_id)
        updated = []
        for chunk in _chunks(updates):
            payload = {
                "records": [
                    {"id": u["id"], "fields": self._convert(table, base, u["fields"])}
                    for u in chunk
                ]
            }
            data = self._request("PATCH", self._table_path(base, table), json=payload)
            updated.extend(_format_record(r) for r in data.get("records", []))
        return updated

    def batch_delete_records(
        self, table: str, record_ids: list[str], base_id: str | None = None
    ) -> list[str]:
        self._check_batch_size(record_ids)
        base = self._resolve_base(base_id)
        deleted = []
        for chunk in _chunks(record_ids):
            params = [("records[]", record_id) for record_id in chunk]
            data = self._request("DELETE", self._table_path(base, table), params=params)
            deleted.extend(r["id"] for r in data.get("records", []) if r.get("deleted", True))
        return deleted
