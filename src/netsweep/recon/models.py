"""
Data model for port scans and host discovery.

All timeouts are expressed in seconds.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from netsweep.recon.errors import InvalidSpec


MIN_PORT = 1
MAX_PORT = 65535

# Defaults, in seconds
DEFAULT_PROBE_TIMEOUT = 3.0
DEFAULT_BANNER_TIMEOUT = 2.0
DEFAULT_LIVENESS_TIMEOUT = 1.0
DEFAULT_PORT_TIMEOUT = 1.0

DEFAULT_CONCURRENCY = 50


def _positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


class Protocol(str, Enum):
    """Transport protocol used for a probe."""
    TCP = "tcp"
    UDP = "udp"


class PortState(str, Enum):
    """Outcome of a probe.

    Refused, timed out and unreachable all map to CLOSED; there is
    no separate filtered state.
    """
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ScanUnit:
    """A single probe target."""
    host: str
    port: int
    protocol: Protocol = Protocol.TCP

    @property
    def address(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class ScanResult:
    """Outcome of probing one unit."""
    unit: ScanUnit
    state: PortState
    banner: bytes = b""
    service: str | None = None
    version: str | None = None
    response_time_ms: float = 0.0

    @property
    def host(self) -> str:
        return self.unit.host

    @property
    def port(self) -> int:
        return self.unit.port

    @property
    def protocol(self) -> Protocol:
        return self.unit.protocol

    @property
    def is_open(self) -> bool:
        return self.state is PortState.OPEN

    @property
    def banner_text(self) -> str:
        return self.banner.decode("utf-8", errors="ignore")

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "protocol": self.protocol.value,
            "state": self.state.value,
            "service": self.service,
            "version": self.version,
            "banner": self.banner_text or None,
            "response_time_ms": round(self.response_time_ms, 2),
        }


@dataclass(frozen=True)
class HostRecord:
    """A live host with at least one open common port."""
    ip: str
    hostname: str | None = None
    open_ports: tuple[int, ...] = ()
    # Derived from open_ports, so it takes no part in hashing
    services: Mapping[int, str] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "open_ports", tuple(self.open_ports))
        object.__setattr__(self, "services", MappingProxyType(dict(self.services)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "ip": self.ip,
            "hostname": self.hostname,
            "open_ports": list(self.open_ports),
            "services": {str(port): name for port, name in self.services.items()},
        }


@dataclass(frozen=True)
class ScanJob:
    """Configuration for one scan or discovery run.

    ``target`` is a host for port scans and a CIDR block for discovery.
    ``deadline`` bounds the whole run; when it expires the run is
    cancelled and whatever was collected so far is returned.
    """
    target: str
    start_port: int = 1
    end_port: int = 1024
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_PROBE_TIMEOUT
    protocol: Protocol = Protocol.TCP
    grab_banner: bool = True
    banner_timeout: float = DEFAULT_BANNER_TIMEOUT
    liveness_timeout: float = DEFAULT_LIVENESS_TIMEOUT
    port_timeout: float = DEFAULT_PORT_TIMEOUT
    resolve_hostnames: bool = True
    open_only: bool = False
    deadline: float | None = None

    def validate(self) -> None:
        """Raise InvalidSpec if the job cannot run."""
        if not self.target or not self.target.strip():
            raise InvalidSpec("Empty target")
        try:
            # Hostnames the resolver would reject (e.g. a label over 63 chars)
            self.target.strip().encode("idna")
        except UnicodeError:
            raise InvalidSpec(f"Invalid target: {self.target!r}") from None
        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise InvalidSpec(f"Concurrency must be >= 1, got {self.concurrency!r}")
        try:
            Protocol(self.protocol)
        except ValueError:
            raise InvalidSpec(f"Unknown protocol: {self.protocol!r}") from None

        for name in ("timeout", "banner_timeout", "liveness_timeout", "port_timeout"):
            value = getattr(self, name)
            if not _positive(value):
                raise InvalidSpec(f"{name} must be positive, got {value!r}")
        if self.deadline is not None and not _positive(self.deadline):
            raise InvalidSpec(f"deadline must be positive, got {self.deadline!r}")

        for port in (self.start_port, self.end_port):
            if not MIN_PORT <= port <= MAX_PORT:
                raise InvalidSpec(f"Port out of range: {port}")

    @classmethod
    def from_settings(cls, target: str, settings: Any, **overrides: Any) -> "ScanJob":
        """Build a job from ScanSettings, with per-call overrides."""
        values: dict[str, Any] = {
            "start_port": settings.start_port,
            "end_port": settings.end_port,
            "concurrency": settings.concurrency,
            "timeout": settings.timeout,
            "banner_timeout": settings.banner_timeout,
            "liveness_timeout": settings.liveness_timeout,
            "port_timeout": settings.port_timeout,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(target=target, **values)
