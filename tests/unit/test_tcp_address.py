"""Tests for TCP address parsing and write payloads."""

from __future__ import annotations

import asyncio
from dataclasses import FrozenInstanceError

import pytest

from smlr.probes.tcp import AddressError, TCPProbe, line_payload, parse_address
from smlr.status import Status


class TestParseAddress:
    """Tests for parse_address."""

    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            ("localhost:6379", ("localhost", 6379)),
            ("127.0.0.1:80", ("127.0.0.1", 80)),
            ("[::1]:8080", ("::1", 8080)),
            ("db.internal:65535", ("db.internal", 65535)),
        ],
    )
    def test_valid(self, address: str, expected: tuple[str, int]) -> None:
        assert parse_address(address) == expected

    @pytest.mark.parametrize(
        ("address", "reason"),
        [
            ("localhost", "missing port"),
            ("::1:80", "too many colons"),
            ("localhost:http", "invalid port"),
            ("localhost:0", "out of range"),
            ("localhost:70000", "out of range"),
        ],
    )
    def test_invalid(self, address: str, reason: str) -> None:
        with pytest.raises(AddressError, match=reason):
            parse_address(address)

    def test_address_error_is_value_error(self) -> None:
        assert issubclass(AddressError, ValueError)


class TestLinePayload:
    """Tests for line_payload."""

    def test_appends_newline(self) -> None:
        assert line_payload("ping") == b"ping\n"

    def test_keeps_existing_newline(self) -> None:
        assert line_payload("ping\n") == b"ping\n"

    def test_multiline(self) -> None:
        assert line_payload("a\nb") == b"a\nb\n"


class TestTCPProbeConfig:
    """Tests for TCPProbe configuration values."""

    def test_defaults(self) -> None:
        probe = TCPProbe(address="localhost:80")
        assert probe.write == ""
        assert probe.content == ""
        assert probe.entire_content is False
        assert probe.io_timeout == 5.0

    def test_frozen(self) -> None:
        probe = TCPProbe(address="localhost:80", write="ping")
        with pytest.raises(FrozenInstanceError):
            probe.write = "other"  # type: ignore[misc]

    @pytest.mark.asyncio
    async def test_unparsable_address_is_pending_refused(self) -> None:
        status = await TCPProbe(address="no-port-here").attempt()
        assert status == Status.pending("connection refused")

    @pytest.mark.asyncio
    async def test_pre_set_cancel(self) -> None:
        cancel = asyncio.Event()
        cancel.set()
        status = await TCPProbe(address="localhost:80").attempt(cancel)
        assert status == Status.cancelled()
