"""
Port scanning.

Connect-scans a port range on one host through a bounded WorkerPool
of ProbeExecutors, using pure Python (no nmap dependency).
"""

import asyncio
import logging
import time
from typing import AsyncIterator

from netsweep.recon.classifier import ServiceClassifier
from netsweep.recon.models import Protocol, ScanJob, ScanResult
from netsweep.recon.pool import WorkerPool
from netsweep.recon.probe import ProbeExecutor
from netsweep.recon.targets import PortRange


logger = logging.getLogger(__name__)


class PortScanner:
    """TCP/UDP connect scanner."""

    def __init__(self, classifier: ServiceClassifier | None = None):
        self.classifier = classifier or ServiceClassifier()
        self.last_pool: WorkerPool | None = None

    def _prepare(self, job: ScanJob, on_result=None) -> tuple[WorkerPool, PortRange]:
        # Everything that can raise InvalidSpec happens before any worker exists
        job.validate()
        units = PortRange(job.target, job.start_port, job.end_port, job.protocol)

        executor = ProbeExecutor(
            timeout=job.timeout,
            banner_timeout=job.banner_timeout,
            grab_banner=job.grab_banner,
            classifier=self.classifier,
        )

        async def handle(unit) -> ScanResult | None:
            result = await executor.probe(unit)
            if job.open_only and not result.is_open:
                return None
            return result

        pool = WorkerPool(job.concurrency, handle, on_result=on_result, name=f"scan:{job.target}")
        self.last_pool = pool
        return pool, units

    async def scan_async(self, job: ScanJob) -> list[ScanResult]:
        """Scan every port of the job and return all recorded results."""
        pool, units = self._prepare(job)

        proto = Protocol(job.protocol).value
        logger.info(
            f"Scanning {job.target} ports {job.start_port}-{job.end_port}/{proto} "
            f"({len(units)} units, {job.concurrency} workers)"
        )
        if proto == Protocol.UDP.value:
            logger.warning("UDP connect scanning reports unresponsive ports as open")

        start = time.monotonic()
        results = await pool.run(units, deadline=job.deadline)

        open_count = sum(1 for r in results if r.is_open)
        logger.info(
            f"Scan of {job.target} finished in {time.monotonic() - start:.2f}s: "
            f"{pool.processed}/{len(units)} probed, {open_count} open"
            + (" (cancelled)" if pool.cancelled else "")
        )
        return results

    def scan(self, job: ScanJob) -> list[ScanResult]:
        """Synchronous scan."""
        return asyncio.run(self.scan_async(job))

    async def iter_scan(self, job: ScanJob) -> AsyncIterator[ScanResult]:
        """Yield results as workers record them.

        Closing the iterator early cancels the remaining probes.
        """
        stream: asyncio.Queue = asyncio.Queue()
        pool, units = self._prepare(job, on_result=stream.put_nowait)

        runner = asyncio.create_task(pool.run(units, deadline=job.deadline))
        runner.add_done_callback(lambda _: stream.put_nowait(None))

        try:
            while True:
                result = await stream.get()
                if result is None:
                    break
                yield result
            # Surface errors raised inside the pool
            await runner
        finally:
            if not runner.done():
                pool.cancel()
                await asyncio.gather(runner, return_exceptions=True)

    async def scan_range_async(
        self,
        host: str,
        start_port: int = 1,
        end_port: int = 1024,
        **options,
    ) -> list[ScanResult]:
        """Scan a port range."""
        job = ScanJob(target=host, start_port=start_port, end_port=end_port, **options)
        return await self.scan_async(job)

    def scan_range(
        self,
        host: str,
        start_port: int = 1,
        end_port: int = 1024,
        **options,
    ) -> list[ScanResult]:
        """Synchronous range scan."""
        return asyncio.run(self.scan_range_async(host, start_port, end_port, **options))


def run_scan(job: ScanJob) -> list[ScanResult]:
    """Run a port scan, blocking until every worker has finished."""
    return PortScanner().scan(job)
