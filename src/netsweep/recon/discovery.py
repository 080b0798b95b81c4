"""
Host discovery over CIDR blocks.

Each address gets a TCP liveness probe (port 80, then 22). Live hosts
get a sequential sub-scan of common ports and a best-effort reverse
lookup. Only hosts with at least one open common port are reported.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
import socket
import time
from typing import AsyncIterator, Sequence

from netsweep.recon.classifier import ServiceClassifier, service_name
from netsweep.recon.models import (
    DEFAULT_CONCURRENCY,
    DEFAULT_LIVENESS_TIMEOUT,
    DEFAULT_PORT_TIMEOUT,
    HostRecord,
    ScanJob,
)
from netsweep.recon.pool import WorkerPool
from netsweep.recon.probe import ProbeExecutor
from netsweep.recon.targets import CIDRBlock


logger = logging.getLogger(__name__)

LIVENESS_PORTS = (80, 22)

COMMON_PORTS = (21, 22, 23, 25, 53, 80, 110, 143, 443, 3306, 5432, 8080)


class HostDiscovery:
    """Find live hosts in a network and list their open common ports."""

    def __init__(
        self,
        liveness_timeout: float = DEFAULT_LIVENESS_TIMEOUT,
        liveness_ports: Sequence[int] = LIVENESS_PORTS,
        common_ports: Sequence[int] = COMMON_PORTS,
        port_timeout: float = DEFAULT_PORT_TIMEOUT,
        resolve_hostnames: bool = True,
        concurrency: int = DEFAULT_CONCURRENCY,
        classifier: ServiceClassifier | None = None,
    ):
        self.liveness_timeout = liveness_timeout
        self.liveness_ports = tuple(liveness_ports)
        self.common_ports = tuple(common_ports)
        self.port_timeout = port_timeout
        self.resolve_hostnames = resolve_hostnames
        self.concurrency = concurrency
        self.classifier = classifier or ServiceClassifier()
        self.executor = ProbeExecutor(timeout=port_timeout, grab_banner=False, classifier=self.classifier)
        self.last_pool: WorkerPool | None = None

    @classmethod
    def from_job(cls, job: ScanJob, **kwargs) -> "HostDiscovery":
        return cls(
            liveness_timeout=job.liveness_timeout,
            port_timeout=job.port_timeout,
            resolve_hostnames=job.resolve_hostnames,
            concurrency=job.concurrency,
            **kwargs,
        )

    async def is_alive(self, ip: str) -> bool:
        """Check if a host answers on any liveness port."""
        for port in self.liveness_ports:
            if await self.executor.check(ip, port, timeout=self.liveness_timeout):
                logger.debug(f"{ip} alive (tcp:{port})")
                return True
        return False

    async def reverse_lookup(self, ip: str) -> str | None:
        """Best-effort PTR lookup; None on any resolver failure."""
        loop = asyncio.get_running_loop()
        try:
            hostname, _, _ = await loop.run_in_executor(None, socket.gethostbyaddr, ip)
        except OSError as e:
            logger.debug(f"Reverse lookup for {ip} failed: {e}")
            return None
        return hostname

    async def scan_host(self, ip: str) -> HostRecord | None:
        """Sub-scan the common ports of one host, one port at a time."""
        open_ports: list[int] = []
        for port in self.common_ports:
            if await self.executor.check(ip, port, timeout=self.port_timeout):
                open_ports.append(port)

        if not open_ports:
            return None

        hostname = await self.reverse_lookup(ip) if self.resolve_hostnames else None
        open_ports.sort()
        return HostRecord(
            ip=ip,
            hostname=hostname,
            open_ports=tuple(open_ports),
            services={port: service_name(port) for port in open_ports},
        )

    async def probe_host(self, ip: str) -> HostRecord | None:
        """Liveness probe, then sub-scan if the host is up."""
        if not await self.is_alive(ip):
            return None
        return await self.scan_host(ip)

    def _prepare(self, network: str, on_result=None) -> tuple[WorkerPool, CIDRBlock]:
        block = CIDRBlock(network)
        pool = WorkerPool(self.concurrency, self.probe_host, on_result=on_result, name=f"discover:{block}")
        self.last_pool = pool
        return pool, block

    async def discover_network_async(
        self,
        network: str,
        deadline: float | None = None,
    ) -> list[HostRecord]:
        """Discover live hosts in a network (CIDR)."""
        pool, block = self._prepare(network)

        logger.info(f"Sweeping {block} ({block.size} addresses, {self.concurrency} workers)")
        start = time.monotonic()
        hosts = await pool.run(block, deadline=deadline)
        logger.info(
            f"Sweep of {block} finished in {time.monotonic() - start:.2f}s: "
            f"{pool.processed} probed, {len(hosts)} hosts with open ports"
            + (" (cancelled)" if pool.cancelled else "")
        )
        return hosts

    def discover_network(self, network: str, deadline: float | None = None) -> list[HostRecord]:
        """Synchronous wrapper for network discovery."""
        return asyncio.run(self.discover_network_async(network, deadline))

    async def run_discovery_async(self, job: ScanJob) -> list[HostRecord]:
        job.validate()
        return await self.discover_network_async(job.target, deadline=job.deadline)

    async def iter_discovery(self, job: ScanJob) -> AsyncIterator[HostRecord]:
        """Yield host records as they are found."""
        job.validate()
        stream: asyncio.Queue = asyncio.Queue()
        pool, block = self._prepare(job.target, on_result=stream.put_nowait)

        runner = asyncio.create_task(pool.run(block, deadline=job.deadline))
        runner.add_done_callback(lambda _: stream.put_nowait(None))

        try:
            while True:
                host = await stream.get()
                if host is None:
                    break
                yield host
            await runner
        finally:
            if not runner.done():
                pool.cancel()
                await asyncio.gather(runner, return_exceptions=True)


def run_discovery(job: ScanJob) -> list[HostRecord]:
    """Sweep a CIDR block, blocking until every worker has finished."""
    return asyncio.run(HostDiscovery.from_job(job).run_discovery_async(job))
