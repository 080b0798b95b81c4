"""
Tests for port range and CIDR block enumeration.
"""

import itertools

import pytest

from netsweep.recon.errors import InvalidSpec
from netsweep.recon.models import Protocol, ScanUnit
from netsweep.recon.targets import CIDRBlock, PortRange, parse_port_range


# =============================================================================
# PORT RANGES
# =============================================================================

class TestPortRange:
    @pytest.mark.parametrize("start,end", [(1, 1), (1, 1024), (20, 25), (65530, 65535)])
    def test_yields_each_port_once_ascending(self, start, end):
        units = list(PortRange("127.0.0.1", start, end))

        ports = [u.port for u in units]
        assert len(units) == end - start + 1
        assert ports == sorted(set(ports))
        assert ports[0] == start and ports[-1] == end

    def test_single_port(self):
        units = list(PortRange("example.com", 1, 1))
        assert units == [ScanUnit(host="example.com", port=1, protocol=Protocol.TCP)]

    def test_reversed_range_is_empty_not_error(self):
        rng = PortRange("127.0.0.1", 5, 1)
        assert list(rng) == []
        assert len(rng) == 0

    def test_len_matches_without_materializing(self):
        assert len(PortRange("127.0.0.1", 1, 65535)) == 65535

    def test_protocol_propagates(self):
        units = list(PortRange("127.0.0.1", 53, 53, protocol="udp"))
        assert units[0].protocol is Protocol.UDP

    @pytest.mark.parametrize("start,end", [(0, 10), (1, 65536), (-1, 5)])
    def test_out_of_range_ports_rejected(self, start, end):
        with pytest.raises(InvalidSpec):
            PortRange("127.0.0.1", start, end)

    def test_empty_target_rejected(self):
        with pytest.raises(InvalidSpec):
            PortRange("  ", 1, 10)

    def test_unknown_protocol_rejected(self):
        with pytest.raises(InvalidSpec):
            PortRange("127.0.0.1", 1, 10, protocol="sctp")

    def test_enumeration_is_deterministic(self):
        rng = PortRange("127.0.0.1", 100, 200)
        assert list(rng) == list(rng)


class TestParsePortRange:
    @pytest.mark.parametrize("text,expected", [
        ("80", (80, 80)),
        ("1-1024", (1, 1024)),
        (" 22 - 25 ", (22, 25)),
        ("5-1", (5, 1)),
    ])
    def test_valid(self, text, expected):
        assert parse_port_range(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "1-", "-5", "1-2-3", "0", "70000"])
    def test_invalid(self, text):
        with pytest.raises(InvalidSpec):
            parse_port_range(text)


# =============================================================================
# CIDR BLOCKS
# =============================================================================

class TestCIDRBlock:
    @pytest.mark.parametrize("prefix", [32, 31, 30, 28, 24, 20])
    def test_count_is_two_to_host_bits(self, prefix):
        block = CIDRBlock(f"192.168.0.0/{prefix}")
        addresses = list(block)
        assert len(addresses) == 2 ** (32 - prefix)
        assert len(block) == 2 ** (32 - prefix)
        assert len(set(addresses)) == len(addresses)

    def test_includes_network_and_broadcast_ascending(self):
        assert list(CIDRBlock("10.0.0.0/30")) == [
            "10.0.0.0",
            "10.0.0.1",
            "10.0.0.2",
            "10.0.0.3",
        ]

    def test_host_bits_normalized(self):
        block = CIDRBlock("10.0.0.7/29")
        assert str(block) == "10.0.0.0/29"
        assert next(iter(block)) == "10.0.0.0"

    def test_crosses_octet_boundary_in_numeric_order(self):
        addresses = list(CIDRBlock("10.0.0.0/23"))
        assert addresses[255] == "10.0.0.255"
        assert addresses[256] == "10.0.1.0"

    def test_large_block_streams(self):
        block = CIDRBlock("10.0.0.0/8")
        first = list(itertools.islice(block, 3))
        assert first == ["10.0.0.0", "10.0.0.1", "10.0.0.2"]
        assert block.size == 2 ** 24

    def test_ipv6(self):
        block = CIDRBlock("2001:db8::/126")
        assert block.version == 6
        assert list(block) == ["2001:db8::", "2001:db8::1", "2001:db8::2", "2001:db8::3"]

    @pytest.mark.parametrize("text", ["", "not-a-network", "10.0.0.0/33", "300.1.1.1/24"])
    def test_malformed_rejected(self, text):
        with pytest.raises(InvalidSpec):
            CIDRBlock(text)
