"""Shared fixtures: a scripted local xAPI endpoint over plain TCP."""

from __future__ import annotations

import asyncio

import pytest_asyncio

from xapi_mcp.config import ConnectionSettings

CLOSE = object()  # scripted reply: drop the connection


class FakeXapiServer:
    """Reads terminated requests and answers each with the next scripted reply.

    A reply is a list of byte chunks written one after another (an empty
    list sends nothing), or ``CLOSE`` to hang up.
    """

    def __init__(self) -> None:
        self.requests: list[bytes] = []
        self.replies: list = []
        self._server: asyncio.AbstractServer | None = None
        self._writers: list[asyncio.StreamWriter] = []

    @property
    def port(self) -> int:
        return self._server.sockets[0].getsockname()[1]

    def settings(self, **overrides) -> ConnectionSettings:
        values = dict(
            host="127.0.0.1",
            port=self.port,
            use_tls=False,
            send_delay=0,
            receive_timeout=2.0,
        )
        values.update(overrides)
        return ConnectionSettings(**values)

    def reply(self, *chunks: bytes) -> None:
        self.replies.append(list(chunks))

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)

    async def stop(self) -> None:
        for writer in self._writers:
            writer.close()
        self._server.close()
        await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.append(writer)
        try:
            while True:
                request = await reader.readuntil(b"\n\n")
                self.requests.append(request)
                reply = self.replies.pop(0) if self.replies else []
                if reply is CLOSE:
                    break
                for chunk in reply:
                    writer.write(chunk)
                    await writer.drain()
                    await asyncio.sleep(0)
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()


@pytest_asyncio.fixture
async def xapi_server():
    server = FakeXapiServer()
    await server.start()
    yield server
    await server.stop()
