"""TLS socket connection to an xAPI endpoint.

One connection owns one encrypted stream and carries one request at a
time: serialize, wait the pacing delay, write, then read until the message
terminator. It holds no lock; callers must not issue commands on the same
connection concurrently. After any transport failure the connection is
closed for good and a new one must be created.
"""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable

from ..config import ConnectionSettings
from ..errors import (
    ConnectError,
    NotConnectedError,
    ReceiveError,
    ReceiveTimeout,
    RequestCancelled,
    SendError,
    SendTimeout,
    XapiError,
)
from ..protocol.commands import Command
from ..protocol.framing import MessageAccumulator, encode_message
from ..protocol.parser import Output, parse_output

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"
    CLOSED = "closed"


_OPEN_STATES = (
    ConnectionState.CONNECTED,
    ConnectionState.SENDING,
    ConnectionState.AWAITING_RESPONSE,
)


@dataclass
class EndpointInfo:
    """Details of the established stream."""

    host: str
    port: int
    tls: bool
    tls_version: str = ""
    cipher: str = ""


class XapiConnection:
    """Manages the socket connection to the xAPI server.

    Usage::

        async with XapiConnection() as conn:
            output = await conn.issue_command(build_login(user, password))
            ...
            await conn.issue_command(build_logout())

    Closing the connection does not log out; issue ``logout`` first.
    """

    def __init__(self, settings: ConnectionSettings | None = None) -> None:
        self._settings = settings or ConnectionSettings()
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._state = ConnectionState.UNCONNECTED
        self._endpoint_info = EndpointInfo(
            host=self._settings.host,
            port=self._settings.port,
            tls=self._settings.use_tls,
        )

    def __repr__(self) -> str:
        return (
            f"XapiConnection({self._settings.host}:{self._settings.port}, "
            f"state={self._state.value})"
        )

    @property
    def settings(self) -> ConnectionSettings:
        return self._settings

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state in _OPEN_STATES

    @property
    def endpoint_info(self) -> EndpointInfo:
        return self._endpoint_info

    @classmethod
    async def connect(cls, settings: ConnectionSettings | None = None) -> XapiConnection:
        """Create a connection and open it."""
        connection = cls(settings)
        await connection.open()
        return connection

    async def __aenter__(self) -> XapiConnection:
        if self._state is ConnectionState.UNCONNECTED:
            await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def open(self) -> EndpointInfo:
        """Resolve the endpoint and perform the TCP then TLS handshakes.

        Returns:
            EndpointInfo describing the negotiated stream.

        Raises:
            ConnectError: If the handshake fails or times out, or if this
                connection was already opened once.
        """
        if self._state is not ConnectionState.UNCONNECTED:
            raise ConnectError(
                f"Connection is {self._state.value}; create a new XapiConnection"
            )

        s = self._settings
        ssl_context = ssl.create_default_context() if s.use_tls else None
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(
                    s.host,
                    s.port,
                    ssl=ssl_context,
                    server_hostname=s.host if ssl_context else None,
                ),
                timeout=s.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            self._state = ConnectionState.CLOSED
            raise ConnectError(
                f"Timed out connecting to {s.host}:{s.port} after {s.connect_timeout}s"
            ) from e
        except OSError as e:
            self._state = ConnectionState.CLOSED
            raise ConnectError(f"Could not connect to {s.host}:{s.port}: {e}") from e

        self._state = ConnectionState.CONNECTED
        ssl_object = self._writer.get_extra_info("ssl_object")
        self._endpoint_info = EndpointInfo(
            host=s.host,
            port=s.port,
            tls=ssl_object is not None,
            tls_version=(ssl_object.version() or "") if ssl_object else "",
            cipher=ssl_object.cipher()[0] if ssl_object and ssl_object.cipher() else "",
        )

        logger.info(
            "Connected to %s:%s (%s)",
            s.host,
            s.port,
            self._endpoint_info.tls_version or "plain TCP",
        )
        return self._endpoint_info

    async def close(self) -> None:
        """Close the stream. Safe to call more than once."""
        writer = self._writer
        self._reader = None
        self._writer = None
        if writer is None:
            self._state = ConnectionState.CLOSED
            return

        try:
            writer.close()
            await writer.wait_closed()
        except OSError as e:
            logger.warning("Error closing connection: %s", e)
        finally:
            self._state = ConnectionState.CLOSED
            logger.info("Disconnected from %s:%s", self._settings.host, self._settings.port)

    async def issue_command(
        self,
        command: Command,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Output:
        """Send one command and wait for its response.

        Args:
            command: The request to send.
            cancel: Optional token; setting it abandons the request and
                closes the connection.

        Returns:
            The resolved output. A ``Fail`` output is a normal return value.

        Raises:
            NotConnectedError: If the connection is not open.
            RuntimeError: If another request is in flight on this connection.
            SerializeError, SendError, ReceiveError, ParseError,
            RequestCancelled: See :mod:`xapi_mcp.errors`.
        """
        if self._state in (ConnectionState.SENDING, ConnectionState.AWAITING_RESPONSE):
            raise RuntimeError("A request is already in flight on this connection")
        if self._state is not ConnectionState.CONNECTED:
            raise NotConnectedError(
                f"Connection is {self._state.value}. Open a connection first."
            )
        if cancel is not None and cancel.is_set():
            raise RequestCancelled(f"{command.name!r} cancelled before sending")

        payload = encode_message(command.to_json())

        try:
            await self._send(payload, command, cancel)
            text = await self._receive(cancel)
        except BaseException:
            # Any failure mid-exchange may leave half a message on the stream
            self._abort()
            raise

        self._state = ConnectionState.CONNECTED
        return parse_output(text)

    async def _send(
        self, payload: bytes, command: Command, cancel: asyncio.Event | None
    ) -> None:
        self._state = ConnectionState.SENDING

        # Pacing delay required by the server before every request
        await self._wait(asyncio.sleep(self._settings.send_delay), None, cancel, None)

        try:
            self._writer.write(payload)
            await self._wait(
                self._writer.drain(),
                self._settings.send_timeout,
                cancel,
                SendTimeout(
                    f"{command.name!r} not sent within {self._settings.send_timeout}s"
                ),
            )
        except OSError as e:
            raise SendError(f"Failed to send {command.name!r}: {e}") from e

        logger.debug("Sent: %s", json.dumps(command.redacted()))

    async def _receive(self, cancel: asyncio.Event | None) -> str:
        self._state = ConnectionState.AWAITING_RESPONSE
        return await self._wait(
            self._read_message(),
            self._settings.receive_timeout,
            cancel,
            ReceiveTimeout(
                f"No complete response within {self._settings.receive_timeout}s"
            ),
        )

    async def _read_message(self) -> str:
        accumulator = MessageAccumulator()
        while True:
            try:
                chunk = await self._reader.read(self._settings.read_chunk_size)
            except OSError as e:
                raise ReceiveError(f"Failed to read response: {e}") from e

            if not chunk:
                raise ReceiveError(
                    f"Connection closed by remote with {accumulator.pending} "
                    f"bytes of an unterminated message"
                )

            message = accumulator.feed(chunk)
            if message is not None:
                logger.debug("Received: %s", message)
                return message

    @staticmethod
    async def _wait(
        aw: Awaitable,
        timeout: float | None,
        cancel: asyncio.Event | None,
        timeout_error: XapiError | None,
    ) -> Any:
        """Await ``aw`` bounded by ``timeout`` and the ``cancel`` token."""
        if cancel is None:
            try:
                return await asyncio.wait_for(aw, timeout)
            except asyncio.TimeoutError:
                raise timeout_error from None

        task = asyncio.ensure_future(aw)
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_waiter},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for fut in (task, cancel_waiter):
                if not fut.done():
                    fut.cancel()

        if task in done:
            return task.result()
        if cancel_waiter in done:
            raise RequestCancelled("Request cancelled before a response arrived")
        raise timeout_error

    def _abort(self) -> None:
        """Drop the stream after a failed exchange; it may be mid-message."""
        if self._writer is not None:
            self._writer.close()
            logger.warning(
                "Connection to %s:%s aborted", self._settings.host, self._settings.port
            )
        self._reader = None
        self._writer = None
        self._state = ConnectionState.CLOSED
