"""Connection settings and credentials.

Defaults point at the public xAPI endpoint. Every value can be overridden
in code or through ``XAPI_*`` environment variables, which is how tests
point a connection at a local mock endpoint.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .protocol.framing import READ_CHUNK_SIZE

DEFAULT_HOST = "xapi.xtb.com"
DEFAULT_PORT = 5124
DEFAULT_SEND_DELAY = 0.2  # seconds, applied before every write
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_SEND_TIMEOUT = 10.0
DEFAULT_RECEIVE_TIMEOUT = 30.0

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}
_NONE = {"", "none", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _parse_timeout(name: str, raw: str) -> float | None:
    if raw.strip().lower() in _NONE:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class ConnectionSettings:
    """Where and how a :class:`~xapi_mcp.transport.tls_connection.XapiConnection` connects.

    Timeouts are in seconds; ``None`` waits indefinitely.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    use_tls: bool = True
    send_delay: float = DEFAULT_SEND_DELAY
    read_chunk_size: int = READ_CHUNK_SIZE
    connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT
    send_timeout: float | None = DEFAULT_SEND_TIMEOUT
    receive_timeout: float | None = DEFAULT_RECEIVE_TIMEOUT

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host must not be empty")
        if not 0 < self.port <= 0xFFFF:
            raise ValueError(f"port must be 1-65535, got {self.port}")
        if self.send_delay < 0:
            raise ValueError(f"send_delay must be >= 0, got {self.send_delay}")
        if self.read_chunk_size < 1:
            raise ValueError(f"read_chunk_size must be >= 1, got {self.read_chunk_size}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ConnectionSettings:
        """Build settings from ``XAPI_*`` variables, falling back to defaults.

        Raises:
            ValueError: If a variable is set to an unusable value.
        """
        env = os.environ if environ is None else environ
        kwargs: dict = {}

        if "XAPI_HOST" in env:
            kwargs["host"] = env["XAPI_HOST"]
        if "XAPI_PORT" in env:
            try:
                kwargs["port"] = int(env["XAPI_PORT"])
            except ValueError:
                raise ValueError(
                    f"XAPI_PORT must be an integer, got {env['XAPI_PORT']!r}"
                ) from None
        if "XAPI_USE_TLS" in env:
            kwargs["use_tls"] = _parse_bool("XAPI_USE_TLS", env["XAPI_USE_TLS"])
        if "XAPI_SEND_DELAY" in env:
            try:
                kwargs["send_delay"] = float(env["XAPI_SEND_DELAY"])
            except ValueError:
                raise ValueError(
                    f"XAPI_SEND_DELAY must be a number, got {env['XAPI_SEND_DELAY']!r}"
                ) from None
        for key, name in (
            ("connect_timeout", "XAPI_CONNECT_TIMEOUT"),
            ("send_timeout", "XAPI_SEND_TIMEOUT"),
            ("receive_timeout", "XAPI_RECEIVE_TIMEOUT"),
        ):
            if name in env:
                kwargs[key] = _parse_timeout(name, env[name])

        return cls(**kwargs)


@dataclass(frozen=True)
class Credentials:
    """Account credentials for the ``login`` command."""

    user_id: str
    password: str = field(repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Credentials:
        """Read ``XTB_LOGIN`` and ``XTB_PASSWORD``.

        Raises:
            KeyError: If either variable is missing.
        """
        env = os.environ if environ is None else environ
        missing = [name for name in ("XTB_LOGIN", "XTB_PASSWORD") if not env.get(name)]
        if missing:
            raise KeyError(f"Missing credential variables: {', '.join(missing)}")
        return cls(user_id=env["XTB_LOGIN"], password=env["XTB_PASSWORD"])
