"""Tests for incremental stream matching."""

from __future__ import annotations

import asyncio

import pytest

from smlr.probes.matcher import MatchOutcome, StreamMatcher, match_stream


class TestStreamMatcher:
    """Tests for the KMP automaton."""

    def test_match_in_single_chunk(self) -> None:
        matcher = StreamMatcher(b"pong")
        assert matcher.feed(b"ping pong") is True
        assert matcher.matched is True
        assert matcher.bytes_seen == 9

    def test_match_split_across_chunks(self) -> None:
        matcher = StreamMatcher(b"pong")
        assert matcher.feed(b"pi") is False
        assert matcher.feed(b"ng po") is False
        assert matcher.feed(b"ng and more") is True
        assert matcher.bytes_seen == 9

    def test_byte_at_a_time(self) -> None:
        matcher = StreamMatcher(b"READY")
        results = [matcher.feed(bytes([b])) for b in b"not READY yet"]
        assert results.index(True) == len(b"not READY") - 1

    def test_overlapping_prefix(self) -> None:
        # A naive matcher restarting after "aab" mismatch would miss this.
        matcher = StreamMatcher(b"aab")
        assert matcher.feed(b"aa") is False
        assert matcher.feed(b"aab") is True

    def test_repeated_pattern_prefix(self) -> None:
        matcher = StreamMatcher(b"abab")
        assert matcher.feed(b"aba") is False
        assert matcher.feed(b"cabab") is True

    def test_no_match(self) -> None:
        matcher = StreamMatcher(b"pong")
        assert matcher.feed(b"ping") is False
        assert matcher.feed(b"pon") is False
        assert matcher.matched is False
        assert matcher.bytes_seen == 7

    def test_stays_matched(self) -> None:
        matcher = StreamMatcher(b"ok")
        matcher.feed(b"ok")
        assert matcher.feed(b"anything") is True

    def test_empty_pattern_matches_immediately(self) -> None:
        matcher = StreamMatcher(b"")
        assert matcher.matched is True
        assert matcher.feed(b"") is True

    @pytest.mark.parametrize(
        ("pattern", "stream"),
        [
            (b"abcabd", b"abcabcabd"),
            (b"aaaa", b"aaabaaaa"),
            (b"\r\n\r\n", b"HTTP/1.1 200 OK\r\nX: y\r\n\r\nbody"),
        ],
    )
    def test_agrees_with_substring_search(self, pattern: bytes, stream: bytes) -> None:
        matcher = StreamMatcher(pattern)
        first_true = None
        for i in range(len(stream)):
            if matcher.feed(stream[i : i + 1]) and first_true is None:
                first_true = i
        assert first_true == stream.index(pattern) + len(pattern) - 1


def _reader(*chunks: bytes, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    if eof:
        reader.feed_eof()
    return reader


class TestMatchStream:
    """Tests for match_stream over an asyncio.StreamReader."""

    @pytest.mark.asyncio
    async def test_matched(self) -> None:
        reader = _reader(b"hello ", b"pong", eof=False)
        outcome = await match_stream(reader, StreamMatcher(b"pong"), io_timeout=1.0)
        assert outcome is MatchOutcome.MATCHED

    @pytest.mark.asyncio
    async def test_matched_before_eof_without_waiting(self) -> None:
        # No EOF is ever fed: the match must be reported from the data alone.
        reader = _reader(b"pong", eof=False)
        outcome = await asyncio.wait_for(
            match_stream(reader, StreamMatcher(b"pong"), io_timeout=5.0), timeout=1.0
        )
        assert outcome is MatchOutcome.MATCHED

    @pytest.mark.asyncio
    async def test_eof_without_match(self) -> None:
        reader = _reader(b"ping")
        outcome = await match_stream(reader, StreamMatcher(b"pong"), io_timeout=1.0)
        assert outcome is MatchOutcome.NO_MATCH

    @pytest.mark.asyncio
    async def test_stall_times_out(self) -> None:
        reader = _reader(b"p", eof=False)
        outcome = await match_stream(reader, StreamMatcher(b"pong"), io_timeout=0.05)
        assert outcome is MatchOutcome.NO_MATCH_TIMEOUT

    @pytest.mark.asyncio
    async def test_deadline_resets_per_read(self) -> None:
        reader = _reader(eof=False)
        loop = asyncio.get_running_loop()
        # Each byte arrives well within the per-read timeout, but the whole
        # response takes longer than one timeout.
        for i, byte in enumerate(b"pong"):
            loop.call_later(0.05 * (i + 1), reader.feed_data, bytes([byte]))

        outcome = await match_stream(reader, StreamMatcher(b"pong"), io_timeout=0.15)
        assert outcome is MatchOutcome.MATCHED

    @pytest.mark.asyncio
    async def test_non_positive_timeout_is_expired(self) -> None:
        reader = _reader(b"pong")
        outcome = await match_stream(reader, StreamMatcher(b"pong"), io_timeout=0)
        assert outcome is MatchOutcome.NO_MATCH_TIMEOUT

    @pytest.mark.asyncio
    async def test_read_error_propagates(self) -> None:
        reader = _reader(eof=False)
        reader.set_exception(ConnectionResetError("reset by peer"))
        with pytest.raises(ConnectionResetError):
            await match_stream(reader, StreamMatcher(b"pong"), io_timeout=1.0)
