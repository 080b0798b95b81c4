"""
Configuration management for netsweep.

Loads scan defaults from environment variables or a .env file.
All timeouts are in seconds.
"""

import math
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from netsweep.recon.errors import InvalidSpec
from netsweep.recon.models import (
    DEFAULT_BANNER_TIMEOUT,
    DEFAULT_CONCURRENCY,
    DEFAULT_LIVENESS_TIMEOUT,
    DEFAULT_PORT_TIMEOUT,
    DEFAULT_PROBE_TIMEOUT,
)
from netsweep.recon.targets import parse_port_range


# Checked in order; the first existing file wins
ENV_LOCATIONS = [
    Path.home() / ".netsweep" / ".env",
    Path.home() / ".config" / "netsweep" / ".env",
    Path.cwd() / ".env",
]


def load_env_files(locations: list[Path] | None = None) -> Path | None:
    """Load the first .env file found. Existing variables are not overridden."""
    for env_path in locations if locations is not None else ENV_LOCATIONS:
        if env_path.exists():
            load_dotenv(env_path)
            return env_path
    return None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidSpec(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise InvalidSpec(f"{name} must be a number of seconds, got {raw!r}") from None
    if not math.isfinite(value):
        raise InvalidSpec(f"{name} must be finite, got {raw!r}")
    return value


@dataclass
class ScanSettings:
    """Process-wide scan defaults."""

    # Worker pool
    concurrency: int = DEFAULT_CONCURRENCY

    # Timeouts (seconds)
    timeout: float = DEFAULT_PROBE_TIMEOUT
    banner_timeout: float = DEFAULT_BANNER_TIMEOUT
    liveness_timeout: float = DEFAULT_LIVENESS_TIMEOUT
    port_timeout: float = DEFAULT_PORT_TIMEOUT

    # Default port range for scans
    start_port: int = 1
    end_port: int = 1024

    # Logging
    log_level: str = "WARNING"
    log_file: str | None = None

    @classmethod
    def from_env(cls) -> "ScanSettings":
        """Load configuration from environment variables."""
        start_port, end_port = parse_port_range(os.getenv("NETSWEEP_PORTS") or "1-1024")
        return cls(
            concurrency=_env_int("NETSWEEP_CONCURRENCY", DEFAULT_CONCURRENCY),
            timeout=_env_float("NETSWEEP_TIMEOUT", DEFAULT_PROBE_TIMEOUT),
            banner_timeout=_env_float("NETSWEEP_BANNER_TIMEOUT", DEFAULT_BANNER_TIMEOUT),
            liveness_timeout=_env_float("NETSWEEP_LIVENESS_TIMEOUT", DEFAULT_LIVENESS_TIMEOUT),
            port_timeout=_env_float("NETSWEEP_PORT_TIMEOUT", DEFAULT_PORT_TIMEOUT),
            start_port=start_port,
            end_port=end_port,
            log_level=os.getenv("NETSWEEP_LOG_LEVEL") or "WARNING",
            log_file=os.getenv("NETSWEEP_LOG_FILE") or None,
        )


# Global config instance
_config: ScanSettings | None = None


def get_config() -> ScanSettings:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        load_env_files()
        _config = ScanSettings.from_env()
    return _config


def set_config(config: ScanSettings | None) -> None:
    """Set (or with None, reset) the global configuration instance."""
    global _config
    _config = config
