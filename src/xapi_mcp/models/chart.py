"""Chart history model: typed projection of a ``getChartLastRequest`` result.

``returnData`` layout::

    {
        "digits": 2,
        "rateInfos": [
            {"ctm": ..., "ctmString": "...", "open": ..., "close": ...,
             "high": ..., "low": ..., "vol": ...},
            ...
        ]
    }

Prices are kept as :class:`~decimal.Decimal`; they are never routed through
``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from ..protocol.parser import Output, Success
from ..utils.timestamps import from_epoch_millis

PRICE_FIELDS = ("open", "close", "high", "low", "vol")


def _as_decimal(value: Any) -> Decimal | None:
    # bool is an int subclass but never a price
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        if value != value.strip():
            return None
        try:
            value = Decimal(value)
        except InvalidOperation:
            return None
    elif isinstance(value, int):
        value = Decimal(value)
    if not isinstance(value, Decimal) or not value.is_finite():
        return None
    return value


def _as_int(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


@dataclass(frozen=True)
class RateInfo:
    """One candle."""

    open: Decimal
    close: Decimal
    high: Decimal
    low: Decimal
    vol: Decimal
    ctm: int
    ctm_string: str

    @property
    def time(self) -> datetime:
        """Candle start as a naive wall-clock datetime."""
        return from_epoch_millis(self.ctm)

    @classmethod
    def from_dict(cls, data: Any) -> RateInfo | None:
        if not isinstance(data, dict):
            return None

        prices = {}
        for name in PRICE_FIELDS:
            value = _as_decimal(data.get(name))
            if value is None:
                return None
            prices[name] = value

        ctm = _as_int(data.get("ctm"))
        ctm_string = data.get("ctmString")
        if ctm is None or not isinstance(ctm_string, str):
            return None

        return cls(ctm=ctm, ctm_string=ctm_string, **prices)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {name: str(getattr(self, name)) for name in PRICE_FIELDS}
        result["ctm"] = self.ctm
        result["ctm_string"] = self.ctm_string
        return result


@dataclass(frozen=True)
class ChartLastData:
    """Candles returned by ``getChartLastRequest``."""

    digits: int
    rate_infos: list[RateInfo] = field(default_factory=list)

    @classmethod
    def from_output(cls, output: Output) -> ChartLastData | None:
        """Project a ``Success`` output onto the chart schema.

        Returns:
            The chart data, or ``None`` if ``returnData`` does not have the
            chart layout.

        Raises:
            TypeError: If ``output`` is not a ``Success``. Only a successful
                response carries chart data, so this is a caller bug.
        """
        if not isinstance(output, Success):
            raise TypeError(
                f"Chart data can only be read from a Success output, "
                f"got {type(output).__name__}"
            )
        return cls.from_return_data(output.return_data)

    @classmethod
    def from_return_data(cls, data: Any) -> ChartLastData | None:
        if not isinstance(data, dict):
            return None

        digits = _as_int(data.get("digits"))
        if digits is None or not 0 <= digits <= 255:
            return None

        raw_infos = data.get("rateInfos")
        if not isinstance(raw_infos, list):
            return None

        rate_infos = []
        for raw in raw_infos:
            info = RateInfo.from_dict(raw)
            if info is None:
                return None
            rate_infos.append(info)

        return cls(digits=digits, rate_infos=rate_infos)

    def to_dict(self) -> dict[str, Any]:
        return {
            "digits": self.digits,
            "rate_infos": [info.to_dict() for info in self.rate_infos],
        }
