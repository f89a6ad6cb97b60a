"""Command-line interface argument parsing for smlr.

This module provides the CLI argument parser that handles:
- Global wait settings (interval, timeout)
- Log level / format overrides
- Environment file specification
- The ``http`` and ``tcp`` probe subcommands
"""

from __future__ import annotations

import argparse
from pathlib import Path

from smlr.config import parse_duration


def _duration(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of arguments to parse. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace. ``probe`` is ``"http"`` or ``"tcp"``;
        duration options are in seconds and are ``None`` when not given, so
        configuration values apply.
    """
    parser = argparse.ArgumentParser(
        prog="smlr",
        description="smlr - wait for a service to become ready over HTTP or TCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-i",
        "--interval",
        type=_duration,
        default=None,
        help="Interval between checks, e.g. 3s (overrides SMLR_INTERVAL)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=_duration,
        default=None,
        help="Timeout of all checks, e.g. 5m (overrides SMLR_TIMEOUT)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (overrides SMLR_LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Emit JSON log lines (overrides SMLR_LOG_JSON)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: ./.env)",
    )

    subparsers = parser.add_subparsers(dest="probe", required=True, metavar="{http,tcp}")

    http = subparsers.add_parser(
        "http",
        help="wait for an HTTP health check",
        description=(
            "wait for an HTTP health check. You can specify the method and status to\n"
            "wait for with the --method and --status flags, respectively."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    http.add_argument("url", help="URL to wait for")
    http.add_argument("-m", "--method", default="GET", help="method to use (default: GET)")
    http.add_argument(
        "-s", "--status", type=int, default=200, help="status to check for (default: 200)"
    )
    http.add_argument("-c", "--content", default="", help="content to check for")
    http.add_argument(
        "--complete",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="if content is the complete expected response (default: true)",
    )

    tcp = subparsers.add_parser(
        "tcp",
        help="wait for a TCP health check",
        description=(
            "wait for a TCP health check. You can specify the content to wait for\n"
            "and to write with the --content and --write flags, respectively. You can\n"
            "specify read/write timeouts with the --iotimeout flag."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    tcp.add_argument("address", metavar="host:port", help="address to wait for")
    tcp.add_argument("-c", "--content", default="", help="content to check for")
    tcp.add_argument(
        "-w", "--write", default="", help="write this to the connection before listening"
    )
    tcp.add_argument(
        "--iotimeout",
        type=_duration,
        default=None,
        help="timeout of read/write operations, e.g. 5s (overrides SMLR_IO_TIMEOUT)",
    )
    tcp.add_argument(
        "--complete",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="if content + EOF is the complete expected response (default: false)",
    )

    return parser.parse_args(args)


__all__ = ["parse_args"]
