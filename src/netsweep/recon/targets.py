"""
Target-space enumeration.

Port ranges and CIDR blocks are expanded lazily so that large spaces
(a /8, or all 65535 ports) never get materialized as lists.
"""

from typing import Iterator

from netaddr import AddrFormatError, IPNetwork

from netsweep.recon.errors import InvalidSpec
from netsweep.recon.models import MAX_PORT, MIN_PORT, Protocol, ScanUnit


def _check_port(port: int) -> int:
    if not isinstance(port, int) or isinstance(port, bool):
        raise InvalidSpec(f"Port must be an integer, got {port!r}")
    if not MIN_PORT <= port <= MAX_PORT:
        raise InvalidSpec(f"Port out of range ({MIN_PORT}-{MAX_PORT}): {port}")
    return port


def parse_port_range(spec: str) -> tuple[int, int]:
    """
    Parse "80" or "1-1024" into a (start, end) pair.

    A reversed range such as "5-1" is accepted and enumerates nothing.
    """
    text = spec.strip()
    if not text:
        raise InvalidSpec("Empty port spec")

    start_s, sep, end_s = text.partition("-")
    try:
        start = int(start_s)
        end = int(end_s) if sep else start
    except ValueError:
        raise InvalidSpec(f"Invalid port spec: {spec!r}") from None

    return _check_port(start), _check_port(end)


class PortRange:
    """Every port in [start, end] on one host, ascending."""

    def __init__(
        self,
        target: str,
        start: int,
        end: int,
        protocol: Protocol | str = Protocol.TCP,
    ):
        if not target or not target.strip():
            raise InvalidSpec("Empty target")
        try:
            self.protocol = Protocol(protocol)
        except ValueError:
            raise InvalidSpec(f"Unknown protocol: {protocol!r}") from None

        self.target = target.strip()
        self.start = _check_port(start)
        self.end = _check_port(end)

    def __len__(self) -> int:
        return max(0, self.end - self.start + 1)

    def __iter__(self) -> Iterator[ScanUnit]:
        for port in range(self.start, self.end + 1):
            yield ScanUnit(host=self.target, port=port, protocol=self.protocol)

    def __repr__(self) -> str:
        return f"PortRange({self.target!r}, {self.start}, {self.end}, {self.protocol.value!r})"


class CIDRBlock:
    """Every address in a CIDR block, network and broadcast included."""

    def __init__(self, network: str):
        if not isinstance(network, str) or not network.strip():
            raise InvalidSpec("Empty network")
        try:
            self.network = IPNetwork(network.strip()).cidr
        except (AddrFormatError, ValueError, TypeError) as e:
            raise InvalidSpec(f"Invalid CIDR block {network!r}: {e}") from None

    @property
    def prefixlen(self) -> int:
        return self.network.prefixlen

    @property
    def version(self) -> int:
        return self.network.version

    @property
    def size(self) -> int:
        return self.network.size

    def __len__(self) -> int:
        return self.network.size

    def __iter__(self) -> Iterator[str]:
        # IPNetwork iterates lazily from the network address upward
        for address in self.network:
            yield str(address)

    def __str__(self) -> str:
        return str(self.network)

    def __repr__(self) -> str:
        return f"CIDRBlock({str(self.network)!r})"
