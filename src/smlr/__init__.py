"""smlr - wait for a service to become ready over HTTP or TCP."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("smlr")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

# Re-export core public API
from smlr.app import main
from smlr.backoff import Backoff
from smlr.probes import HTTPProbe, Probe, TCPProbe
from smlr.status import ErrorKind, ProbeError, Status
from smlr.waiter import Waiter, wait

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "Backoff",
    "ErrorKind",
    "HTTPProbe",
    "Probe",
    "ProbeError",
    "Status",
    "TCPProbe",
    "Waiter",
    "__version__",
    "main",
    "wait",
]
