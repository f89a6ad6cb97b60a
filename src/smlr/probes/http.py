"""HTTP readiness probe.

Issues one request per attempt and checks the response status code and,
optionally, the response body.

Classification, in order:
- Request construction failure (invalid method or URL, unsupported scheme):
  terminal.
- Transport failure: non-terminal, with a stable message for refused
  connections and unresolvable hosts and the raw error text otherwise.
- Unexpected status code: non-terminal.
- Body mismatch (exact or substring): non-terminal.
- Otherwise: terminal success.

Usage:
    from smlr.probes.http import HTTPProbe

    probe = HTTPProbe(url="http://localhost:8080/health", content="ok")
    status = await probe.attempt()
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field

import httpx

from smlr.logging import get_logger
from smlr.probes.base import classify_connect_error, describe_error, run_cancellable
from smlr.status import ErrorKind, Status

logger = get_logger(__name__)

MESSAGE_UNREADABLE_BODY = "could not read body"
MESSAGE_CONTENT_MISMATCH = "response does not match content"
MESSAGE_CONTENT_MISSING = "response does not contain content"

# RFC 7230 token: the characters allowed in a request method.
_METHOD_TOKEN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


@dataclass(frozen=True)
class HTTPProbe:
    """Probe that waits for an HTTP endpoint to answer as expected.

    Attributes:
        url: Absolute URL to request.
        method: HTTP method (default: GET).
        expected_status: Status code that means "ready" (default: 200).
        content: Expected body content; empty disables the body check.
        entire_content: If True the body must equal ``content`` exactly,
            otherwise it must contain it.
        timeout: Optional per-request timeout in seconds. ``None`` leaves the
            request bounded only by the wait deadline.
        transport: Optional httpx transport, used by tests to mock the network.
    """

    url: str
    method: str = "GET"
    expected_status: int = 200
    content: str = ""
    entire_content: bool = True
    timeout: float | None = None
    transport: httpx.AsyncBaseTransport | None = field(default=None, compare=False, repr=False)

    @property
    def target(self) -> str:
        return self.url

    async def attempt(self, cancel: asyncio.Event | None = None) -> Status:
        """Run one HTTP probe attempt.

        Args:
            cancel: Optional cancellation handle; setting it aborts the
                in-flight request.

        Returns:
            The classified status of the attempt.
        """
        return await run_cancellable(self._request(), cancel)

    def _client(self) -> httpx.AsyncClient:
        # trust_env=False: proxies from the environment would hide the target.
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self.transport,
            trust_env=False,
        )

    async def _request(self) -> Status:
        if not _METHOD_TOKEN.fullmatch(self.method):
            return Status.failed(ErrorKind.REQUEST, f"invalid method {self.method!r}")

        async with self._client() as client:
            try:
                request = client.build_request(self.method, self.url)
            except (httpx.InvalidURL, httpx.UnsupportedProtocol, ValueError, TypeError) as e:
                logger.debug("Could not build %s request for %s: %s", self.method, self.url, e)
                return Status.failed(ErrorKind.REQUEST, describe_error(e))

            try:
                response = await client.send(request, stream=True)
            except httpx.LocalProtocolError as e:
                # Rejected by the client before anything was sent.
                return Status.failed(ErrorKind.REQUEST, describe_error(e))
            except httpx.UnsupportedProtocol as e:
                # A scheme httpx cannot speak is a construction problem; retrying
                # will not fix it.
                return Status.failed(ErrorKind.REQUEST, describe_error(e))
            except httpx.TransportError as e:
                return Status.pending(self._transport_message(e))

            try:
                return await self._check_response(response)
            finally:
                await response.aclose()

    def _transport_message(self, exc: httpx.TransportError) -> str:
        message = classify_connect_error(exc)
        if message is not None:
            return message
        logger.debug("HTTP probe transport error for %s: %r", self.url, exc)
        return describe_error(exc)

    async def _check_response(self, response: httpx.Response) -> Status:
        if response.status_code != self.expected_status:
            return Status.pending(
                f'status "{response.status_code} {response.reason_phrase}" '
                f"does not match expected status ({self.expected_status})"
            )

        if not self.content:
            return Status.available()

        try:
            body = await response.aread()
        except httpx.HTTPError as e:
            logger.debug("Could not read body from %s: %s", self.url, e)
            return Status.pending(MESSAGE_UNREADABLE_BODY)

        expected = self.content.encode()
        if self.entire_content:
            if body != expected:
                return Status.pending(MESSAGE_CONTENT_MISMATCH)
        elif expected not in body:
            return Status.pending(MESSAGE_CONTENT_MISSING)

        return Status.available()


__all__ = [
    "HTTPProbe",
    "MESSAGE_CONTENT_MISMATCH",
    "MESSAGE_CONTENT_MISSING",
    "MESSAGE_UNREADABLE_BODY",
]
