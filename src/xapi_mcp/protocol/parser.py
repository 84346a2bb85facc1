"""Response parsing for xAPI messages.

Responses carry no type tag. The shape is inferred from which fields are
present, trying each alternative of :data:`OUTPUT_SHAPES` in order and
taking the first whose required fields are present with the right JSON
types. Unknown extra fields are ignored, so an object can satisfy more than
one shape; the order below decides:

1. ``Success``          ``status`` + ``returnData``
2. ``Fail``             ``status`` + ``errorCode`` + ``errorDescr``
3. ``LoginSuccessful``  ``status`` + ``streamSessionId``
4. ``Logout``           ``status``
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

from ..errors import ParseError

logger = logging.getLogger(__name__)


def _to_json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _to_json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_json_safe(v) for v in value]
    return value


@dataclass(frozen=True)
class Success:
    """Command succeeded; ``return_data`` depends on the command."""

    status: bool
    return_data: Any

    @classmethod
    def match(cls, obj: dict[str, Any]) -> Success | None:
        if not isinstance(obj.get("status"), bool) or "returnData" not in obj:
            return None
        return cls(status=obj["status"], return_data=obj["returnData"])

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "return_data": _to_json_safe(self.return_data)}


@dataclass(frozen=True)
class Fail:
    """The remote side rejected the command."""

    status: bool
    error_code: str
    error_descr: str

    @classmethod
    def match(cls, obj: dict[str, Any]) -> Fail | None:
        if not isinstance(obj.get("status"), bool):
            return None
        code = obj.get("errorCode")
        descr = obj.get("errorDescr")
        if not isinstance(code, str) or not isinstance(descr, str):
            return None
        return cls(status=obj["status"], error_code=code, error_descr=descr)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "error_code": self.error_code,
            "error_descr": self.error_descr,
        }


@dataclass(frozen=True)
class LoginSuccessful:
    """Login accepted. ``stream_session_id`` keys the (unused) streaming channel."""

    status: bool
    stream_session_id: str

    @classmethod
    def match(cls, obj: dict[str, Any]) -> LoginSuccessful | None:
        session = obj.get("streamSessionId")
        if not isinstance(obj.get("status"), bool) or not isinstance(session, str):
            return None
        return cls(status=obj["status"], stream_session_id=session)

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "stream_session_id": self.stream_session_id}


@dataclass(frozen=True)
class Logout:
    """Bare acknowledgement carrying only ``status``."""

    status: bool

    @classmethod
    def match(cls, obj: dict[str, Any]) -> Logout | None:
        if not isinstance(obj.get("status"), bool):
            return None
        return cls(status=obj["status"])

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status}


Output = Union[Success, Fail, LoginSuccessful, Logout]

# Resolution order; the first match wins
OUTPUT_SHAPES: tuple[type, ...] = (Success, Fail, LoginSuccessful, Logout)


def resolve_output(obj: Any) -> Output:
    """Classify a decoded JSON value into one of the output shapes.

    Raises:
        ParseError: If ``obj`` is not an object or matches no shape.
    """
    if not isinstance(obj, dict):
        raise ParseError(f"Expected a JSON object, got {type(obj).__name__}")

    for shape in OUTPUT_SHAPES:
        output = shape.match(obj)
        if output is not None:
            return output

    raise ParseError(f"Message matches no known response shape: keys={sorted(obj)}")


def parse_output(text: str) -> Output:
    """Decode one JSON message and classify it.

    JSON numbers with a fraction or exponent are decoded as
    :class:`~decimal.Decimal` so price data keeps its exact value.

    Raises:
        ParseError: If ``text`` is not valid JSON or matches no shape.
    """
    try:
        obj = json.loads(text, parse_float=Decimal)
    except ValueError as e:
        raise ParseError(f"Malformed JSON in response: {e}") from e

    output = resolve_output(obj)
    logger.debug("Resolved response as %s", type(output).__name__)
    return output
