"""Typed asyncio client and MCP server for the xAPI trading-platform protocol."""

from .errors import XapiError
from .protocol.commands import (
    Period,
    LoginCommand,
    LogoutCommand,
    GetChartLastRequestCommand,
    GetAllSymbolsCommand,
)
from .protocol.parser import Success, Fail, LoginSuccessful, Logout, parse_output
from .transport.tls_connection import XapiConnection
