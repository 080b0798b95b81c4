"""
Single-unit probing.

A probe is one connection attempt with a hard deadline, optionally
followed by one bounded read to capture a banner. Connection failures
of every kind (refused, timed out, unreachable, unresolvable, or a
name the IDNA codec rejects) produce a closed result; they are never
raised.

UDP has no handshake, so a UDP "connect" succeeds for any routable
address. UDP results therefore report open unless the local socket
setup itself fails; this is a known limitation of connect scanning.
"""

import asyncio
import logging
import time

from netsweep.recon.classifier import ServiceClassifier
from netsweep.recon.models import (
    DEFAULT_BANNER_TIMEOUT,
    DEFAULT_PROBE_TIMEOUT,
    PortState,
    Protocol,
    ScanResult,
    ScanUnit,
)


logger = logging.getLogger(__name__)

DEFAULT_BANNER_SIZE = 1024


class _DatagramReader(asyncio.DatagramProtocol):
    """Collects the first datagram received on a connected UDP socket."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.first: asyncio.Future[bytes] = loop.create_future()

    def datagram_received(self, data: bytes, addr) -> None:
        if not self.first.done():
            self.first.set_result(data)

    def error_received(self, exc: Exception) -> None:
        # ICMP port unreachable surfaces here; the banner is just empty
        logger.debug(f"UDP error received: {exc}")
        if not self.first.done():
            self.first.set_result(b"")

    def connection_lost(self, exc: Exception | None) -> None:
        if not self.first.done():
            self.first.set_result(b"")


class ProbeExecutor:
    """Run timeout-bounded TCP/UDP probes.

    Args:
        timeout: Connect deadline in seconds
        banner_timeout: Banner read deadline in seconds
        grab_banner: Attempt a banner read after connecting
        banner_size: Maximum banner bytes to read
        classifier: Service classifier applied to open results
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        banner_timeout: float = DEFAULT_BANNER_TIMEOUT,
        grab_banner: bool = True,
        banner_size: int = DEFAULT_BANNER_SIZE,
        classifier: ServiceClassifier | None = None,
    ):
        self.timeout = timeout
        self.banner_timeout = banner_timeout
        self.grab_banner = grab_banner
        self.banner_size = banner_size
        self.classifier = classifier or ServiceClassifier()

    async def probe(self, unit: ScanUnit) -> ScanResult:
        """Probe one unit and return its terminal outcome."""
        start = time.monotonic()

        if unit.protocol is Protocol.UDP:
            opened, banner = await self._probe_udp(unit)
        else:
            opened, banner = await self._probe_tcp(unit)

        elapsed_ms = (time.monotonic() - start) * 1000

        if not opened:
            return ScanResult(
                unit=unit,
                state=PortState.CLOSED,
                response_time_ms=elapsed_ms,
            )

        service, version = self.classifier.identify(banner, unit.port)
        return ScanResult(
            unit=unit,
            state=PortState.OPEN,
            banner=banner,
            service=service,
            version=version,
            response_time_ms=elapsed_ms,
        )

    async def check(self, host: str, port: int, timeout: float | None = None) -> bool:
        """Return True if a TCP connection to host:port succeeds in time."""
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout if timeout is not None else self.timeout,
            )
        except (OSError, UnicodeError, asyncio.TimeoutError) as e:
            logger.debug(f"{host}:{port} unreachable: {e!r}")
            return False

        await _close_writer(writer)
        return True

    async def _probe_tcp(self, unit: ScanUnit) -> tuple[bool, bytes]:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(unit.host, unit.port),
                timeout=self.timeout,
            )
        except (OSError, UnicodeError, asyncio.TimeoutError) as e:
            logger.debug(f"{unit.address}/tcp closed: {e!r}")
            return False, b""

        try:
            banner = await self._read_banner(reader) if self.grab_banner else b""
        finally:
            await _close_writer(writer)

        return True, banner

    async def _read_banner(self, reader: asyncio.StreamReader) -> bytes:
        try:
            data = await asyncio.wait_for(
                reader.read(self.banner_size),
                timeout=self.banner_timeout,
            )
        except (OSError, asyncio.TimeoutError):
            return b""
        return data.strip()

    async def _probe_udp(self, unit: ScanUnit) -> tuple[bool, bytes]:
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await asyncio.wait_for(
                loop.create_datagram_endpoint(
                    lambda: _DatagramReader(loop),
                    remote_addr=(unit.host, unit.port),
                ),
                timeout=self.timeout,
            )
        except (OSError, UnicodeError, asyncio.TimeoutError) as e:
            logger.debug(f"{unit.address}/udp closed: {e!r}")
            return False, b""

        try:
            if not self.grab_banner:
                return True, b""
            try:
                data = await asyncio.wait_for(
                    protocol.first,
                    timeout=self.banner_timeout,
                )
            except asyncio.TimeoutError:
                data = b""
            return True, data.strip()
        finally:
            transport.close()


async def _close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except OSError as e:
        # Peer reset while closing; the socket is released either way
        logger.debug(f"Error closing connection: {e!r}")
