"""Readiness probe strategies."""

from smlr.probes.base import Probe, run_cancellable
from smlr.probes.http import HTTPProbe
from smlr.probes.matcher import MatchOutcome, StreamMatcher, match_stream
from smlr.probes.tcp import TCPProbe

__all__ = [
    "HTTPProbe",
    "MatchOutcome",
    "Probe",
    "StreamMatcher",
    "TCPProbe",
    "match_stream",
    "run_cancellable",
]
