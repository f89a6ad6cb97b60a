"""TCP readiness probe.

Connects to ``host:port``, optionally writes a line, and optionally checks
what the peer sends back, either as an exact full response (read until EOF)
or as a substring matched incrementally as bytes arrive.

Unlike the HTTP probe, a content mismatch here ends the wait: once the
connection succeeded, a wrong answer is reported as a terminal
"no content match" error.

Usage:
    from smlr.probes.tcp import TCPProbe

    probe = TCPProbe(address="localhost:6379", write="PING", content="PONG")
    status = await probe.attempt()
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
from dataclasses import dataclass

from smlr.logging import get_logger
from smlr.probes.base import (
    MESSAGE_CONNECTION_REFUSED,
    MESSAGE_UNREACHABLE_HOST,
    describe_error,
    run_cancellable,
)
from smlr.probes.matcher import (
    READ_CHUNK_SIZE,
    MatchOutcome,
    StreamMatcher,
    match_stream,
    read_with_deadline,
)
from smlr.status import NO_MATCH_DETAIL, NO_MATCH_TIMEOUT_DETAIL, ErrorKind, Status

logger = get_logger(__name__)

DEFAULT_IO_TIMEOUT = 5.0


class AddressError(ValueError):
    """Raised when a TCP address is not of the form ``host:port``."""


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6-host]:port``) into its parts.

    Args:
        address: Address string to parse.

    Returns:
        Tuple of (host, port).

    Raises:
        AddressError: If the address is malformed or the port is out of range.
    """
    host, sep, port_str = address.rpartition(":")
    if not sep or not host:
        msg = f"address {address!r}: missing port in address"
        raise AddressError(msg)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        msg = f"address {address!r}: too many colons in address"
        raise AddressError(msg)

    try:
        port = int(port_str)
    except ValueError:
        msg = f"address {address!r}: invalid port {port_str!r}"
        raise AddressError(msg) from None
    if not 0 < port < 65536:
        msg = f"address {address!r}: port {port} out of range"
        raise AddressError(msg)
    return host, port


def line_payload(write: str) -> bytes:
    """Return ``write`` as bytes terminated by exactly one trailing newline.

    A payload that already ends in a newline is sent as is, mirroring
    ``echo | nc`` for line-oriented protocols.
    """
    if not write.endswith("\n"):
        write += "\n"
    return write.encode()


@dataclass(frozen=True)
class TCPProbe:
    """Probe that waits for a TCP service to accept connections and respond.

    Attributes:
        address: ``host:port`` to connect to.
        write: Optional line to send after connecting.
        content: Expected content; empty disables reading.
        entire_content: If True, the full response up to EOF must equal
            ``content``; otherwise ``content`` must appear somewhere in it.
        io_timeout: Seconds each individual read or write may take.
    """

    address: str
    write: str = ""
    content: str = ""
    entire_content: bool = False
    io_timeout: float = DEFAULT_IO_TIMEOUT

    @property
    def target(self) -> str:
        return self.address

    async def attempt(self, cancel: asyncio.Event | None = None) -> Status:
        """Run one TCP probe attempt.

        Args:
            cancel: Optional cancellation handle; setting it aborts the
                attempt and closes the connection.

        Returns:
            The classified status of the attempt.
        """
        return await run_cancellable(self._request(), cancel)

    async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter] | Status:
        try:
            host, port = parse_address(self.address)
        except AddressError as e:
            logger.debug("Unusable TCP address: %s", e)
            return Status.pending(MESSAGE_CONNECTION_REFUSED)

        try:
            return await asyncio.open_connection(host, port)
        except socket.gaierror:
            return Status.pending(MESSAGE_UNREACHABLE_HOST)
        except TimeoutError as e:
            return Status.failed(ErrorKind.IO, describe_error(e))
        except OSError as e:
            logger.debug("TCP connect to %s failed: %r", self.address, e)
            return Status.pending(MESSAGE_CONNECTION_REFUSED)
        except ValueError as e:
            # Hostnames that cannot be encoded never reach the resolver.
            return Status.failed(ErrorKind.IO, describe_error(e))

    async def _request(self) -> Status:
        connected = await self._connect()
        if isinstance(connected, Status):
            return connected

        reader, writer = connected
        try:
            return await self._converse(reader, writer)
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def _converse(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> Status:
        if self.write:
            try:
                await self._send(writer, line_payload(self.write))
            except OSError as e:
                # TimeoutError is an OSError: a stalled write is terminal too.
                return Status.failed(ErrorKind.IO, describe_error(e))

        if not self.content:
            return Status.available()

        expected = self.content.encode()
        if self.entire_content:
            return await self._read_exact(reader, expected)
        return await self._read_partial(reader, expected)

    async def _send(self, writer: asyncio.StreamWriter, payload: bytes) -> None:
        if self.io_timeout <= 0:
            raise TimeoutError("write deadline already expired")
        writer.write(payload)
        await asyncio.wait_for(writer.drain(), timeout=self.io_timeout)

    async def _read_exact(self, reader: asyncio.StreamReader, expected: bytes) -> Status:
        received = bytearray()
        try:
            while chunk := await read_with_deadline(reader, READ_CHUNK_SIZE, self.io_timeout):
                received += chunk
                if len(received) > len(expected):
                    # Already longer than the expected response: it can never equal it.
                    logger.debug("Received more than the %d expected bytes", len(expected))
                    return Status.failed(ErrorKind.NO_MATCH, NO_MATCH_DETAIL)
        except TimeoutError:
            return Status.failed(ErrorKind.NO_MATCH_TIMEOUT, NO_MATCH_TIMEOUT_DETAIL)
        except OSError as e:
            return Status.failed(ErrorKind.IO, describe_error(e))

        if bytes(received) == expected:
            return Status.available()
        logger.debug("Expected %r, received %r", expected, bytes(received))
        return Status.failed(ErrorKind.NO_MATCH, NO_MATCH_DETAIL)

    async def _read_partial(self, reader: asyncio.StreamReader, expected: bytes) -> Status:
        try:
            outcome = await match_stream(reader, StreamMatcher(expected), self.io_timeout)
        except OSError as e:
            return Status.failed(ErrorKind.IO, describe_error(e))

        if outcome is MatchOutcome.MATCHED:
            return Status.available()
        if outcome is MatchOutcome.NO_MATCH_TIMEOUT:
            return Status.failed(ErrorKind.NO_MATCH_TIMEOUT, NO_MATCH_TIMEOUT_DETAIL)
        return Status.failed(ErrorKind.NO_MATCH, NO_MATCH_DETAIL)


__all__ = [
    "AddressError",
    "DEFAULT_IO_TIMEOUT",
    "TCPProbe",
    "line_payload",
    "parse_address",
]
