"""
Airtable MCP CLI

Command-line interface for configuring and checking the Airtable MCP server.

Commands:
- airtable-mcp serve: Run the MCP server
- airtable-mcp status: Show configuration and limits
- airtable-mcp config: Edit non-secret runtime settings
- airtable-mcp validate: Validate configuration and test the token
- airtable-mcp mcp-config: Print MCP client configuration
- airtable-mcp formula ...: Preview generated formulas offline
"""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from airtable_mcp import __full_name__, __tool_name__, __version__
from airtable_mcp.config import (
    APP_NAME,
    DEFAULT_AGE_FIELD,
    FULL_NAME,
    SERVER_NAME,
    get_airtable_config,
    get_default_age_ranges,
    get_security_config,
    load_runtime_config,
    logger,
    save_runtime_config,
    validate_airtable_config,
)
from airtable_mcp.errors import AirtableMCPError

app = typer.Typer(
    name=__tool_name__,
    help=f"🗂️ {FULL_NAME} - Airtable bases as MCP tools, with safe formula generation.",
    add_completion=False,
    rich_markup_mode="markdown",
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

formula_app = typer.Typer(
    help="🧮 Preview the filterByFormula generated for a query (no credentials needed).",
    rich_markup_mode="markdown",
)
app.add_typer(formula_app, name="formula")


def version_callback(value: bool):
    if value:
        typer.echo(f"🗂️ {__tool_name__} Version: {__version__}")
        typer.echo(f"   {__full_name__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show CLI version.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-V",
            help="Enable DEBUG level logging.",
        ),
    ] = False,
):
    """
    🗂️ Airtable MCP CLI - Airtable bases as MCP tools.
    """
    if verbose:
        logging.getLogger(APP_NAME).setLevel(logging.DEBUG)
        logger.debug("Verbose mode enabled.")


@app.command("serve")
def serve_cmd():
    """🚀 Run the MCP server (stdio by default, see MCP_TRANSPORT)."""
    from airtable_mcp.mcp_server import main as server_main

    try:
        server_main()
    except AirtableMCPError as e:
        typer.secho(f"❌ {e.to_client_error()['error']}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command("status")
def status_cmd():
    """📊 Show current configuration and limits."""
    typer.secho(f"\n🗂️ {FULL_NAME}", fg=typer.colors.BRIGHT_GREEN, bold=True)
    typer.secho(f"   Version: {__version__}", fg=typer.colors.WHITE)

    typer.echo()
    typer.secho("🔑 Airtable Configuration:", fg=typer.colors.BRIGHT_BLUE, bold=True)

    config = get_airtable_config()
    is_valid, msg = validate_airtable_config(config)

    if is_valid:
        typer.secho(f"   ✅ {msg}", fg=typer.colors.GREEN)
    else:
        typer.secho(f"   ❌ {msg}", fg=typer.colors.RED)
        typer.echo()
        typer.secho("   To configure, set environment variables:", fg=typer.colors.YELLOW)
        typer.echo("   export AIRTABLE_PAT='patXXXXXXXXXXXXXX.XXXX'")
        typer.echo("   export AIRTABLE_BASE_ID='appXXXXXXXXXXXXXX'  # optional")

    typer.echo()
    typer.secho("⚙️  Runtime Configuration:", fg=typer.colors.BRIGHT_BLUE, bold=True)
    runtime_config = load_runtime_config()
    typer.echo(f"   Request timeout: {config['timeout']}s")
    typer.echo(f"   Rate limit: {config['max_requests_per_second']} requests/second")
    typer.echo(f"   Exclude attachments by default: {runtime_config.get('exclude_attachments_default')}")
    typer.echo(f"   Default age ranges: {', '.join(runtime_config.get('default_age_ranges', []))}")

    typer.echo()
    typer.secho("🔒 Input Limits:", fg=typer.colors.BRIGHT_BLUE, bold=True)
    for name, value in get_security_config().items():
        typer.echo(f"   • {name}: {value}")
    typer.echo()


@app.command("config")
def config_cmd(
    base_id: Annotated[
        str | None,
        typer.Option(
            "--base-id",
            "-b",
            help="Default Airtable base ID (appXXXXXXXXXXXXXX).",
        ),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option(
            "--timeout",
            "-t",
            help="Request timeout in seconds.",
        ),
    ] = None,
    rate_limit: Annotated[
        int | None,
        typer.Option(
            "--rate-limit",
            help="Maximum Airtable requests per second (Airtable allows 5).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Server log level (DEBUG, INFO, WARNING, ERROR). LOG_LEVEL overrides it.",
        ),
    ] = None,
    show: Annotated[
        bool,
        typer.Option(
            "--show",
            help="Show current configuration without modifying.",
        ),
    ] = False,
):
    """⚙️  Configure non-secret settings.

    The Personal Access Token is never stored; set `AIRTABLE_PAT` instead.

    **Examples:**

    • Set a default base:
      `airtable-mcp config --base-id appXXXXXXXXXXXXXX`

    • Show current config:
      `airtable-mcp config --show`
    """
    config = load_runtime_config()

    if show:
        typer.echo(json.dumps(config, indent=2))
        return

    modified = False

    if base_id:
        if not base_id.startswith("app") or len(base_id) != 17:
            typer.secho("❌ Invalid base ID. Expected format: appXXXXXXXXXXXXXX", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        config["default_base_id"] = base_id
        modified = True
        typer.secho(f"✅ Default base set to: {base_id}", fg=typer.colors.GREEN)

    if timeout is not None:
        config["request_timeout"] = timeout
        modified = True
        typer.secho(f"✅ Request timeout set to: {timeout}s", fg=typer.colors.GREEN)

    if rate_limit is not None:
        if rate_limit < 1:
            typer.secho("❌ Rate limit must be at least 1", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        config["max_requests_per_second"] = rate_limit
        modified = True
        typer.secho(f"✅ Rate limit set to: {rate_limit}/s", fg=typer.colors.GREEN)

    if log_level is not None:
        level = log_level.upper()
        if level not in _LOG_LEVELS:
            typer.secho(f"❌ Log level must be one of: {', '.join(_LOG_LEVELS)}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        config["log_level"] = level
        modified = True
        typer.secho(f"✅ Log level set to: {level}", fg=typer.colors.GREEN)

    if modified:
        save_runtime_config(config)
        typer.echo()
        typer.secho("💾 Configuration saved!", fg=typer.colors.BRIGHT_GREEN)
        typer.secho("⚠️  Note: AIRTABLE_BASE_ID in the environment takes precedence.", fg=typer.colors.YELLOW)
    else:
        typer.echo("No configuration changes specified.")
        typer.echo()
        typer.echo("Usage examples:")
        typer.echo("  airtable-mcp config --base-id appXXXXXXXXXXXXXX")
        typer.echo("  airtable-mcp config --show")


@app.command("validate")
def validate_cmd():
    """✅ Validate configuration and test the token against Airtable.

    This command:
    1. Checks the token and base ID format
    2. Calls the Airtable Metadata API with the token
    """
    from airtable_mcp.airtable_client import AirtableClient

    typer.secho("\n🔍 Validating Airtable MCP Configuration...\n", fg=typer.colors.BRIGHT_BLUE, bold=True)

    errors = []

    typer.echo("1️⃣  Checking configuration format...")
    config = get_airtable_config()
    is_valid, msg = validate_airtable_config(config)
    if is_valid:
        typer.secho(f"   ✅ {msg}", fg=typer.colors.GREEN)
    else:
        typer.secho(f"   ❌ {msg}", fg=typer.colors.RED)
        errors.append(msg)

    if is_valid:
        typer.echo("\n2️⃣  Testing token against the Metadata API...")
        try:
            result = AirtableClient.from_config(config).validate_credentials()
            typer.secho(f"   ✅ {result}", fg=typer.colors.GREEN)
        except AirtableMCPError as e:
            message = e.to_client_error()["error"]
            typer.secho(f"   ❌ {message}", fg=typer.colors.RED)
            errors.append(message)

    typer.echo("\n" + "=" * 50)
    if errors:
        typer.secho("❌ Validation FAILED", fg=typer.colors.RED, bold=True)
        typer.echo("\nErrors:")
        for error in errors:
            typer.secho(f"  • {error}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.secho("✅ Validation PASSED", fg=typer.colors.GREEN, bold=True)
    typer.echo()


def get_claude_desktop_config_path() -> Path:
    """Claude Desktop config location for the current OS."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Claude" / "claude_desktop_config.json"
    elif sys.platform == "win32":
        return Path.home() / "AppData" / "Roaming" / "Claude" / "claude_desktop_config.json"
    else:
        return Path.home() / ".config" / "Claude" / "claude_desktop_config.json"


def generate_mcp_config(base_id: str | None = None) -> dict:
    """MCP server entry for this server. The token is left as a placeholder."""
    env_vars = {"AIRTABLE_PAT": "<your-personal-access-token>"}
    if base_id:
        env_vars["AIRTABLE_BASE_ID"] = base_id

    return {
        "mcpServers": {
            SERVER_NAME: {
                "command": sys.executable,
                "args": ["-m", "airtable_mcp.mcp_server"],
                "env": env_vars,
            }
        }
    }


@app.command("mcp-config")
def mcp_config_cmd(
    client: Annotated[
        str | None,
        typer.Argument(
            help="MCP client to configure (e.g., 'claude').",
        ),
    ] = None,
    output: Annotated[
        str | None,
        typer.Option(
            "--output",
            "-o",
            help="Save configuration to file.",
        ),
    ] = None,
):
    """🔧 Generate MCP configuration for LLM clients.

    **Example:**

    `airtable-mcp mcp-config claude`
    """
    mcp_config = generate_mcp_config(get_airtable_config().get("base_id"))

    typer.secho("\n🔧 Airtable MCP Configuration\n", fg=typer.colors.BRIGHT_BLUE, bold=True)

    if client and client.lower() == "claude":
        typer.secho("📋 Claude Desktop Configuration:", fg=typer.colors.BRIGHT_GREEN, bold=True)
        typer.echo()
        typer.echo(f"Add this to {get_claude_desktop_config_path()}:")
        typer.echo()

    typer.echo(json.dumps(mcp_config, indent=2))

    if output:
        with open(output, "w") as f:
            json.dump(mcp_config, f, indent=2)
        typer.secho(f"\n💾 Configuration saved to: {output}", fg=typer.colors.GREEN)

    typer.echo()
    typer.secho("⚠️  Important:", fg=typer.colors.YELLOW, bold=True)
    typer.echo("   • Replace the AIRTABLE_PAT placeholder with your token")
    typer.echo("   • Grant the token data.records:read/write and schema.bases:read scopes")
    typer.echo()


# ==========================================
# FORMULA PREVIEW
# ==========================================

def _split_csv(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _print_formula(build) -> None:
    try:
        formula = build()
    except AirtableMCPError as e:
        typer.secho(f"❌ {e.to_client_error()['error']}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(formula)


@formula_app.command("age")
def formula_age_cmd(
    min_age: Annotated[int, typer.Argument(help="Minimum age (inclusive).")],
    max_age: Annotated[int, typer.Argument(help="Maximum age (inclusive).")],
    field: Annotated[str, typer.Option("--field", "-f", help="Age field name.")] = DEFAULT_AGE_FIELD,
    ranges: Annotated[
        str | None,
        typer.Option("--ranges", "-r", help="Comma-separated buckets, e.g. '18-24,25-34,65+'."),
    ] = None,
):
    """🎂 Formula matching age buckets that overlap MIN_AGE..MAX_AGE."""
    from airtable_mcp.formulas import build_age_range_formula

    available = _split_csv(ranges)
    if available is None:
        available = get_default_age_ranges()
    _print_formula(lambda: build_age_range_formula(field, min_age, max_age, available))


@formula_app.command("select")
def formula_select_cmd(
    field: Annotated[str, typer.Argument(help="Multiple select field name.")],
    values: Annotated[list[str], typer.Argument(help="Values to match.")],
    match_type: Annotated[
        str, typer.Option("--match", "-m", help="hasAny, hasAll or hasNone.")
    ] = "hasAny",
    options: Annotated[
        str | None,
        typer.Option("--options", "-o", help="Comma-separated field options (enables fuzzy matching)."),
    ] = None,
    fuzzy: Annotated[bool, typer.Option("--fuzzy/--no-fuzzy", help="Fuzzy-match values.")] = True,
):
    """🏷️ Formula for a multiple select hasAny / hasAll / hasNone match."""
    from airtable_mcp.conditions import build_condition_formula, parse_conditions

    raw = {
        "type": "multipleSelect",
        "fieldName": field,
        "matchType": match_type,
        "values": values,
        "availableOptions": _split_csv(options),
        "useFuzzyMatch": fuzzy,
    }
    _print_formula(lambda: build_condition_formula(parse_conditions([raw])[0]))


@formula_app.command("number")
def formula_number_cmd(
    field: Annotated[str, typer.Argument(help="Number field name.")],
    min_value: Annotated[float | None, typer.Option("--min", help="Minimum (inclusive).")] = None,
    max_value: Annotated[float | None, typer.Option("--max", help="Maximum (inclusive).")] = None,
):
    """🔢 Formula for an inclusive number range."""
    from airtable_mcp.formulas import build_number_range_formula

    _print_formula(lambda: build_number_range_formula(field, min_value, max_value))


@formula_app.command("date")
def formula_date_cmd(
    field: Annotated[str, typer.Argument(help="Date field name.")],
    start: Annotated[str | None, typer.Option("--start", help="Start date (YYYY-MM-DD).")] = None,
    end: Annotated[str | None, typer.Option("--end", help="End date (YYYY-MM-DD).")] = None,
):
    """📅 Formula for an exclusive date range."""
    from airtable_mcp.formulas import build_date_range_formula

    _print_formula(lambda: build_date_range_formula(field, start, end))


if __name__ == "__main__":
    app()
