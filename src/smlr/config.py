"""Configuration loading from environment variables."""

from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Valid log levels
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Duration units accepted by parse_duration, in seconds
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment.

    Durations are in seconds. This dataclass is frozen (immutable) to prevent
    accidental modification after creation.
    """

    # Polling
    interval: float = 3.0  # accepted, superseded by backoff for pacing
    timeout: float = 300.0
    io_timeout: float = 5.0  # per read/write for TCP probes

    # Backoff between attempts
    backoff_min: float = 0.5
    backoff_max: float = 3.0
    backoff_jitter: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    diagnostic_tags: str = ""


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Accepts Go-style durations (``"500ms"``, ``"3s"``, ``"1h30m"``) and bare
    numbers, which are taken as seconds.

    Args:
        value: The duration string.

    Returns:
        The duration in seconds.

    Raises:
        ValueError: If the string is not a valid non-negative duration.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART_RE.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos != len(text):
            msg = f"invalid duration {value!r}"
            raise ValueError(msg) from None

    if not math.isfinite(seconds) or seconds < 0:
        msg = f"invalid duration {value!r}: must be a finite, non-negative value"
        raise ValueError(msg)
    return seconds


def _parse_duration_setting(value: str, name: str, default: float) -> float:
    """Parse a duration setting, falling back to the default when invalid.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed duration in seconds, or the default if invalid.
    """
    try:
        return parse_duration(value)
    except ValueError as e:
        logging.warning("Invalid %s: %s, using default %ss", name, e, default)
        return default


def _parse_positive_duration(value: str, name: str, default: float) -> float:
    parsed = _parse_duration_setting(value, name, default)
    if parsed <= 0:
        logging.warning(
            "Invalid %s: %s is not positive, using default %ss", name, value, default
        )
        return default
    return parsed


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Validate and normalize a log level string.

    Args:
        value: The log level string to validate.
        default: The default value to use if invalid.

    Returns:
        The validated log level (uppercase), or the default if invalid.
    """
    normalized = value.upper()
    if normalized not in VALID_LOG_LEVELS:
        logging.warning(
            "Invalid SMLR_LOG_LEVEL: '%s' is not valid, using default '%s'. Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_LOG_LEVELS)),
        )
        return default
    return normalized


def _parse_bool(value: str) -> bool:
    """Parse a string as a boolean.

    Returns:
        True if value is "true", "1", or "yes" (case-insensitive), False otherwise.
    """
    return value.lower() in ("true", "1", "yes")


def load_config(env_file: Path | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory.

    Returns:
        Config object with loaded values. Invalid values are logged and
        replaced by their defaults.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    defaults = Config()

    interval = _parse_duration_setting(
        os.getenv("SMLR_INTERVAL", "3s"), "SMLR_INTERVAL", defaults.interval
    )
    timeout = _parse_duration_setting(
        os.getenv("SMLR_TIMEOUT", "5m"), "SMLR_TIMEOUT", defaults.timeout
    )
    io_timeout = _parse_duration_setting(
        os.getenv("SMLR_IO_TIMEOUT", "5s"), "SMLR_IO_TIMEOUT", defaults.io_timeout
    )

    backoff_min = _parse_positive_duration(
        os.getenv("SMLR_BACKOFF_MIN", "500ms"), "SMLR_BACKOFF_MIN", defaults.backoff_min
    )
    backoff_max = _parse_positive_duration(
        os.getenv("SMLR_BACKOFF_MAX", "3s"), "SMLR_BACKOFF_MAX", defaults.backoff_max
    )
    if backoff_max < backoff_min:
        logging.warning(
            "Invalid SMLR_BACKOFF_MAX: %ss is below SMLR_BACKOFF_MIN (%ss), using %ss",
            backoff_max,
            backoff_min,
            backoff_min,
        )
        backoff_max = backoff_min
    backoff_jitter = _parse_bool(os.getenv("SMLR_BACKOFF_JITTER", "true"))

    return Config(
        interval=interval,
        timeout=timeout,
        io_timeout=io_timeout,
        backoff_min=backoff_min,
        backoff_max=backoff_max,
        backoff_jitter=backoff_jitter,
        log_level=_validate_log_level(os.getenv("SMLR_LOG_LEVEL", "INFO")),
        log_json=_parse_bool(os.getenv("SMLR_LOG_JSON", "")),
        diagnostic_tags=os.getenv("SMLR_DIAGNOSTIC_TAGS", ""),
    )


__all__ = ["Config", "VALID_LOG_LEVELS", "load_config", "parse_duration"]
