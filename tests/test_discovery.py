"""
Tests for CIDR host discovery.
"""

import asyncio
import socket
import time
from unittest.mock import AsyncMock, patch

import pytest

from netsweep.recon.discovery import COMMON_PORTS, LIVENESS_PORTS, HostDiscovery, run_discovery
from netsweep.recon.errors import InvalidSpec
from netsweep.recon.models import HostRecord, ScanJob
from netsweep.recon.pool import PoolState
from netsweep.recon.probe import ProbeExecutor


async def _hello(reader, writer):
    writer.write(b"HELLO\n")
    await writer.drain()
    writer.close()


# =============================================================================
# DEFAULTS
# =============================================================================

def test_default_port_lists():
    assert LIVENESS_PORTS == (80, 22)
    assert COMMON_PORTS == (21, 22, 23, 25, 53, 80, 110, 143, 443, 3306, 5432, 8080)


# =============================================================================
# LIVENESS
# =============================================================================

class TestLiveness:
    @pytest.mark.asyncio
    async def test_second_port_tried_after_first_fails(self):
        discovery = HostDiscovery(liveness_timeout=0.5)
        discovery.executor.check = AsyncMock(side_effect=[False, True])

        assert await discovery.is_alive("10.1.2.3") is True
        calls = discovery.executor.check.await_args_list
        assert [c.args[1] for c in calls] == [80, 22]
        assert all(c.kwargs["timeout"] == 0.5 for c in calls)

    @pytest.mark.asyncio
    async def test_first_success_short_circuits(self):
        discovery = HostDiscovery()
        discovery.executor.check = AsyncMock(return_value=True)

        assert await discovery.is_alive("10.1.2.3") is True
        assert discovery.executor.check.await_count == 1

    @pytest.mark.asyncio
    async def test_dead_host(self):
        discovery = HostDiscovery()
        discovery.executor.check = AsyncMock(return_value=False)
        assert await discovery.is_alive("10.1.2.3") is False
        assert await discovery.probe_host("10.1.2.3") is None


# =============================================================================
# PER-HOST SUB-SCAN
# =============================================================================

class TestScanHost:
    @pytest.mark.asyncio
    async def test_record_for_open_ports(self, async_server, free_port):
        port = await async_server(_hello)
        discovery = HostDiscovery(
            liveness_ports=(port,),
            common_ports=(free_port, port),
            port_timeout=1.0,
            resolve_hostnames=False,
        )

        record = await discovery.probe_host("127.0.0.1")

        assert record == HostRecord(ip="127.0.0.1", hostname=None, open_ports=(port,), services={port: "unknown"})

    @pytest.mark.asyncio
    async def test_alive_but_no_open_common_port_is_not_reported(self, async_server, free_port):
        port = await async_server(_hello)
        discovery = HostDiscovery(liveness_ports=(port,), common_ports=(free_port,))

        assert await discovery.is_alive("127.0.0.1") is True
        assert await discovery.probe_host("127.0.0.1") is None

    @pytest.mark.asyncio
    async def test_sub_scan_is_sequential_in_port_order(self):
        discovery = HostDiscovery(common_ports=(443, 22, 80), resolve_hostnames=False)
        discovery.executor.check = AsyncMock(side_effect=[True, True, False])

        record = await discovery.scan_host("10.1.2.3")

        assert [c.args[1] for c in discovery.executor.check.await_args_list] == [443, 22, 80]
        assert record.open_ports == (22, 443)
        assert record.services == {22: "ssh", 443: "https"}

    @pytest.mark.asyncio
    async def test_reverse_lookup_failure_is_ignored(self):
        discovery = HostDiscovery(common_ports=(22,))
        discovery.executor.check = AsyncMock(return_value=True)

        with patch("netsweep.recon.discovery.socket.gethostbyaddr", side_effect=socket.herror("no PTR")):
            record = await discovery.scan_host("10.1.2.3")

        assert record.hostname is None
        assert record.open_ports == (22,)

    @pytest.mark.asyncio
    async def test_reverse_lookup_success(self):
        discovery = HostDiscovery(common_ports=(22,))
        discovery.executor.check = AsyncMock(return_value=True)

        with patch("netsweep.recon.discovery.socket.gethostbyaddr", return_value=("gw.example.net", [], ["10.1.2.3"])):
            record = await discovery.scan_host("10.1.2.3")

        assert record.hostname == "gw.example.net"


# =============================================================================
# SWEEPS
# =============================================================================

class TestSweep:
    def test_unreachable_block_is_empty_and_concurrent(self):
        # Every connect runs out its full timeout
        async def times_out(self, host, port, timeout=None):
            await asyncio.sleep(timeout)
            return False

        job = ScanJob(target="10.0.0.0/30", liveness_timeout=0.3, resolve_hostnames=False)

        start = time.monotonic()
        with patch.object(ProbeExecutor, "check", times_out):
            hosts = run_discovery(job)
        elapsed = time.monotonic() - start

        assert hosts == []
        # Serial probing would need 4 hosts x 2 ports x 0.3s = 2.4s
        assert elapsed < 1.5

    @pytest.mark.asyncio
    async def test_sweep_reports_only_hosts_with_open_ports(self):
        alive = {"192.0.2.1", "192.0.2.2"}
        open_ports = {("192.0.2.1", 22), ("192.0.2.1", 80)}

        # Liveness and sub-scan probes are told apart by their timeouts
        async def fake_check(host, port, timeout=None):
            if timeout == 0.5:
                return host in alive
            return (host, port) in open_ports

        discovery = HostDiscovery(liveness_timeout=0.5, port_timeout=0.7, concurrency=8, resolve_hostnames=False)
        discovery.executor.check = fake_check

        hosts = await discovery.discover_network_async("192.0.2.0/29")

        assert [h.ip for h in hosts] == ["192.0.2.1"]
        assert hosts[0].open_ports == (22, 80)
        assert discovery.last_pool.processed == 8
        assert discovery.last_pool.state is PoolState.DONE

    @pytest.mark.asyncio
    async def test_iter_discovery_streams_records(self):
        async def fake_check(host, port, timeout=None):
            return host.endswith(".1") or host.endswith(".3")

        discovery = HostDiscovery(concurrency=2, resolve_hostnames=False)
        discovery.executor.check = fake_check
        job = ScanJob(target="192.0.2.0/30")

        ips = sorted([record.ip async for record in discovery.iter_discovery(job)])
        assert ips == ["192.0.2.1", "192.0.2.3"]

    def test_invalid_cidr_raises(self):
        with pytest.raises(InvalidSpec):
            run_discovery(ScanJob(target="10.0.0.0/40"))

    def test_invalid_concurrency_raises(self):
        with pytest.raises(InvalidSpec):
            run_discovery(ScanJob(target="10.0.0.0/30", concurrency=0))

    @pytest.mark.asyncio
    async def test_deadline_stops_sweep(self):
        async def hang(host, port, timeout=None):
            await asyncio.sleep(60)

        discovery = HostDiscovery(concurrency=4)
        discovery.executor.check = hang

        start = time.monotonic()
        hosts = await discovery.discover_network_async("192.0.2.0/24", deadline=0.3)

        assert hosts == []
        assert time.monotonic() - start < 2.0
        assert discovery.last_pool.cancelled


def test_from_job_copies_discovery_settings():
    job = ScanJob(target="10.0.0.0/24", liveness_timeout=0.25, port_timeout=0.75, concurrency=7, resolve_hostnames=False)
    discovery = HostDiscovery.from_job(job)

    assert discovery.liveness_timeout == 0.25
    assert discovery.port_timeout == 0.75
    assert discovery.concurrency == 7
    assert discovery.resolve_hostnames is False
    assert discovery.executor.grab_banner is False


def test_host_record_is_immutable_and_hashable():
    services = {22: "ssh"}
    record = HostRecord(ip="10.1.2.3", open_ports=[22], services=services)
    services[80] = "http"

    assert record.open_ports == (22,)
    assert dict(record.services) == {22: "ssh"}
    with pytest.raises(TypeError):
        record.services[443] = "https"
    assert hash(record) == hash(HostRecord(ip="10.1.2.3", open_ports=(22,), services={22: "ssh"}))
    assert record.to_dict()["services"] == {"22": "ssh"}
