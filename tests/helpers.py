"""Test helper functions for smlr tests.

This module provides loopback servers and scripted probes so tests can
exercise the probes and the polling loop without external services.

Usage
=====

Import and use helpers directly in tests::

    from tests.helpers import ScriptedProbe, tcp_server, unused_port

    async def test_example():
        async with tcp_server(b"pong") as address:
            status = await TCPProbe(address=address, content="pong").attempt()
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field

from smlr.backoff import Backoff
from smlr.status import Status


def unused_port() -> int:
    """Return a loopback port that nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def fast_backoff() -> Backoff:
    """Backoff with millisecond delays so polling tests run quickly."""
    return Backoff(minimum=0.01, maximum=0.02, jitter=False)


@dataclass
class ServerRecord:
    """What a loopback server observed."""

    received: list[bytes] = field(default_factory=list)
    connections: int = 0


@contextlib.asynccontextmanager
async def tcp_server(
    response: bytes,
    *,
    read_until: bytes | None = None,
    stall: float = 0.0,
    record: ServerRecord | None = None,
    port: int = 0,
) -> AsyncIterator[str]:
    """Serve ``response`` to every connection on a loopback port.

    Args:
        response: Bytes written to each client.
        read_until: If given, read from the client up to and including this
            separator before responding.
        stall: Seconds to keep the connection open after responding.
        record: Optional record of connections and received bytes.
        port: Port to listen on; 0 picks a free one.

    Yields:
        The ``host:port`` address of the server.
    """
    handlers: set[asyncio.Task[None]] = set()
    record = record if record is not None else ServerRecord()

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        assert task is not None
        handlers.add(task)
        record.connections += 1
        try:
            if read_until is not None:
                record.received.append(await reader.readuntil(read_until))
            writer.write(response)
            await writer.drain()
            if stall:
                await asyncio.sleep(stall)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()
            handlers.discard(task)

    server = await asyncio.start_server(handle, "127.0.0.1", port)
    port = server.sockets[0].getsockname()[1]
    try:
        yield f"127.0.0.1:{port}"
    finally:
        for task in list(handlers):
            task.cancel()
        await asyncio.gather(*handlers, return_exceptions=True)
        server.close()
        await server.wait_closed()


def http_response(status: str, body: bytes) -> bytes:
    """Build a minimal HTTP/1.1 response that closes the connection."""
    return (
        f"HTTP/1.1 {status}\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Content-Type: text/plain\r\n"
        "Connection: close\r\n"
        "\r\n"
    ).encode() + body


class ScriptedProbe:
    """Probe that returns a fixed sequence of statuses.

    Once the script is exhausted the last status is repeated.
    """

    def __init__(self, statuses: Iterable[Status], target: str = "scripted") -> None:
        self._statuses = list(statuses)
        self._target = target
        self.calls = 0

    @property
    def target(self) -> str:
        return self._target

    async def attempt(self, cancel: asyncio.Event | None = None) -> Status:
        index = min(self.calls, len(self._statuses) - 1)
        self.calls += 1
        return self._statuses[index]


class HangingProbe:
    """Probe whose attempt never finishes on its own and ignores ``cancel``."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.closed = False
        self.calls = 0

    @property
    def target(self) -> str:
        return "hanging"

    async def attempt(self, cancel: asyncio.Event | None = None) -> Status:
        self.calls += 1
        self.started.set()
        try:
            await asyncio.sleep(3600)
        finally:
            self.closed = True
        return Status.available()


class FailingProbe:
    """Probe whose attempt raises instead of returning a status."""

    @property
    def target(self) -> str:
        return "failing"

    async def attempt(self, cancel: asyncio.Event | None = None) -> Status:
        raise RuntimeError("probe exploded")


async def collect(statuses: AsyncIterator[Status]) -> list[Status]:
    """Drain a status stream into a list."""
    return [status async for status in statuses]
