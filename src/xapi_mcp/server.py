"""MCP server entry point for the xAPI trading platform.

Exposes the typed client as tools, resources, and prompts via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from datetime import datetime
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import ConnectionSettings, Credentials
from .errors import UnsupportedResponseError
from .models.chart import ChartLastData
from .models.symbols import AllSymbolsData
from .protocol.commands import (
    Period,
    build_chart_last_request,
    build_get_all_symbols,
    build_login,
    build_logout,
)
from .protocol.parser import Fail, LoginSuccessful, Output, Success
from .transport.tls_connection import XapiConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "xapi",
    instructions="MCP server for the xAPI trading platform (login, chart history)",
)

# Global connection state
_connection: XapiConnection | None = None


def _get_connection() -> XapiConnection:
    """Get the active connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to xAPI. Use the 'connect' tool first."
        )
    return _connection


def _fail_result(output: Fail) -> dict[str, Any]:
    return {
        "status": False,
        "error_code": output.error_code,
        "error_descr": output.error_descr,
    }


def _unexpected(output: Output) -> dict[str, Any]:
    return {"error": f"Unexpected {type(output).__name__} response", **output.to_dict()}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
async def connect(host: str | None = None, port: int | None = None) -> dict[str, Any]:
    """Open a TLS connection to the xAPI server.

    Settings come from ``XAPI_*`` environment variables; ``host`` and
    ``port`` override them when given.

    Args:
        host: Server hostname (default xapi.xtb.com).
        port: Server port (default 5124).
    """
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "host": _connection.endpoint_info.host,
        }

    overrides = {k: v for k, v in (("host", host), ("port", port)) if v is not None}
    try:
        settings = dataclasses.replace(ConnectionSettings.from_env(), **overrides)
    except ValueError as e:
        return {"error": str(e)}

    _connection = XapiConnection(settings)
    info = await _connection.open()
    return {
        "connected": True,
        "host": info.host,
        "port": info.port,
        "tls_version": info.tls_version,
    }


@mcp.tool()
async def disconnect() -> dict[str, bool]:
    """Close the connection. Does not log out; call 'logout' first."""
    global _connection
    if _connection is None:
        return {"disconnected": True}
    await _connection.close()
    _connection = None
    return {"disconnected": True}


# ─── SESSION TOOLS ────────────────────────────────────────────────────

@mcp.tool()
async def login(user_id: str | None = None, password: str | None = None) -> dict[str, Any]:
    """Log in to the trading account.

    When no credentials are given, XTB_LOGIN and XTB_PASSWORD are used.

    Args:
        user_id: Account number.
        password: Account password.
    """
    if user_id is None and password is None:
        try:
            credentials = Credentials.from_env()
        except KeyError as e:
            return {"error": str(e)}
        user_id, password = credentials.user_id, credentials.password
    if not user_id or password is None:
        return {"error": "Both user_id and password are required"}

    conn = _get_connection()
    output = await conn.issue_command(build_login(user_id, password))
    if isinstance(output, Fail):
        return _fail_result(output)
    if isinstance(output, LoginSuccessful):
        return {"logged_in": True, "stream_session_id": output.stream_session_id}
    return _unexpected(output)


@mcp.tool()
async def logout() -> dict[str, Any]:
    """Log out of the trading account. The connection stays open."""
    conn = _get_connection()
    output = await conn.issue_command(build_logout())
    if isinstance(output, Fail):
        return _fail_result(output)
    return {"logged_out": output.status}


# ─── MARKET DATA TOOLS ────────────────────────────────────────────────

@mcp.tool()
async def get_chart_last(symbol: str, start: str, period: int = Period.D1.value) -> dict[str, Any]:
    """Fetch candles for a symbol from a start time up to now.

    Args:
        symbol: Instrument symbol, e.g. "EURUSD".
        start: First candle time in ISO format, e.g. "2023-12-10 07:00:00".
        period: Minutes per candle: 1, 5, 15, 30, 60, 240, 1440, 10080 or 43200.
    """
    try:
        start_dt = datetime.fromisoformat(start)
    except ValueError:
        return {"error": f"start must be an ISO date/time, got {start!r}"}
    try:
        command = build_chart_last_request(symbol, period, start_dt)
    except ValueError as e:
        return {"error": str(e)}

    conn = _get_connection()
    output = await conn.issue_command(command)
    if isinstance(output, Fail):
        return _fail_result(output)
    if not isinstance(output, Success):
        return _unexpected(output)

    data = ChartLastData.from_output(output)
    if data is None:
        return {"error": "Chart response did not have the expected layout"}

    result = data.to_dict()
    result["symbol"] = symbol
    result["period"] = command.period.value
    return result


@mcp.tool()
async def get_all_symbols() -> dict[str, Any]:
    """List all symbols available to the account.

    The request is sent, but decoding the symbol list is not supported yet.
    """
    conn = _get_connection()
    output = await conn.issue_command(build_get_all_symbols())
    if isinstance(output, Fail):
        return _fail_result(output)
    if not isinstance(output, Success):
        return _unexpected(output)

    # The projection raises until the symbol schema is confirmed
    try:
        AllSymbolsData.from_output(output)
    except UnsupportedResponseError as e:
        error = str(e)
    return {"status": output.status, "error": error}


# ─── MCP RESOURCES ────────────────────────────────────────────────────

@mcp.resource("xapi://catalog/periods")
def resource_periods() -> str:
    """Chart periods and their minutes-per-candle codes."""
    return json.dumps({"periods": {p.name: p.value for p in Period}})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def review_chart(symbol: str, period: str = "D1") -> str:
    """Guide the AI through fetching and summarising recent price action.

    Args:
        symbol: Instrument symbol.
        period: Period name (M1, M5, M15, M30, H1, H4, D1, W1, MN1).
    """
    return f"""Fetch recent {period} candles for {symbol} with the get_chart_last tool.
Connect and log in first if needed.
Summarise:
- Overall trend across the returned candles
- Highest high and lowest low, quoted with the returned digit precision
- Notable volume changes

Period codes: {', '.join(f'{p.name}={p.value}' for p in Period)}.
Log out when finished."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=os.environ.get("XAPI_LOG_LEVEL", "INFO").upper())
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
