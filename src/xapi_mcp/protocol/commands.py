"""Request commands and their wire serialization.

Every command is sent as a single JSON object::

    {"command": "<name>", "arguments": {...}}

``arguments`` is omitted entirely for commands that take none. Keys are
always emitted in that order, with no extra keys.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, ClassVar

from ..errors import SerializeError
from ..utils.timestamps import to_epoch_millis


class Period(IntEnum):
    """Chart candle granularity, in minutes per candle."""

    M1 = 1
    M5 = 5
    M15 = 15
    M30 = 30
    H1 = 60
    H4 = 240
    D1 = 1440
    W1 = 10080
    MN1 = 43200


# Argument keys whose values are replaced before logging
SECRET_ARGUMENTS = frozenset({"password"})


@dataclass(frozen=True)
class Command:
    """Base class for all request commands."""

    name: ClassVar[str] = ""

    def arguments(self) -> dict[str, Any] | None:
        """Return the ``arguments`` payload, or ``None`` if there is none."""
        return None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"command": self.name}
        arguments = self.arguments()
        if arguments is not None:
            payload["arguments"] = arguments
        return payload

    def to_json(self) -> str:
        """Serialize to compact single-line JSON.

        Raises:
            SerializeError: If the payload holds a value JSON cannot encode.
        """
        try:
            return json.dumps(
                self.to_dict(), separators=(",", ":"), ensure_ascii=False
            )
        except (TypeError, ValueError) as e:
            raise SerializeError(f"Cannot serialize {self.name!r} command: {e}") from e

    def redacted(self) -> dict[str, Any]:
        """Return the payload with secret argument values masked."""
        payload = self.to_dict()
        arguments = payload.get("arguments")
        if arguments:
            payload["arguments"] = {
                key: "***" if key in SECRET_ARGUMENTS else value
                for key, value in arguments.items()
            }
        return payload


@dataclass(frozen=True)
class LoginCommand(Command):
    """Authenticate the connection."""

    name: ClassVar[str] = "login"

    user_id: str
    password: str = field(repr=False)

    def arguments(self) -> dict[str, Any]:
        return {"userId": self.user_id, "password": self.password}


@dataclass(frozen=True)
class LogoutCommand(Command):
    name: ClassVar[str] = "logout"


@dataclass(frozen=True)
class GetChartLastRequestCommand(Command):
    """Request candles for ``symbol`` from ``start`` up to now."""

    name: ClassVar[str] = "getChartLastRequest"

    symbol: str
    period: Period
    start: datetime

    def arguments(self) -> dict[str, Any]:
        return {
            "info": {
                "period": int(self.period),
                "start": to_epoch_millis(self.start),
                "symbol": self.symbol,
            }
        }


@dataclass(frozen=True)
class GetAllSymbolsCommand(Command):
    """Request every symbol available to the user.

    Only the request side exists; see :class:`~xapi_mcp.models.symbols.AllSymbolsData`.
    """

    name: ClassVar[str] = "getAllSymbols"


def build_login(user_id: str, password: str) -> LoginCommand:
    """Build a login command.

    Args:
        user_id: Account number.
        password: Account password.
    """
    if not user_id:
        raise ValueError("user_id must not be empty")
    return LoginCommand(user_id=user_id, password=password)


def build_logout() -> LogoutCommand:
    return LogoutCommand()


def build_chart_last_request(
    symbol: str, period: Period | int, start: datetime
) -> GetChartLastRequestCommand:
    """Build a chart history command.

    Args:
        symbol: Instrument symbol, e.g. ``"EURUSD"``.
        period: Candle period; plain integers must be a :class:`Period` value.
        start: First candle time, see :func:`~xapi_mcp.utils.timestamps.to_epoch_millis`.
    """
    if not symbol:
        raise ValueError("symbol must not be empty")
    try:
        period = Period(period)
    except ValueError:
        raise ValueError(
            f"Unknown period {period}. Valid: {[p.value for p in Period]}"
        ) from None
    return GetChartLastRequestCommand(symbol=symbol, period=period, start=start)


def build_get_all_symbols() -> GetAllSymbolsCommand:
    return GetAllSymbolsCommand()
