"""
Reconnaissance Module

Provides network reconnaissance capabilities including:
- Port range and CIDR block enumeration
- TCP/UDP connect scanning with a bounded worker pool
- Banner grabbing and service classification
- Host discovery (TCP liveness probe + common port sub-scan)
"""

from netsweep.recon.classifier import ServiceClassifier, SERVICE_PORTS
from netsweep.recon.discovery import HostDiscovery, COMMON_PORTS, run_discovery
from netsweep.recon.errors import InvalidSpec
from netsweep.recon.models import (
    HostRecord,
    PortState,
    Protocol,
    ScanJob,
    ScanResult,
    ScanUnit,
)
from netsweep.recon.pool import PoolState, ResultAggregator, WorkerPool
from netsweep.recon.probe import ProbeExecutor
from netsweep.recon.scanner import PortScanner, run_scan
from netsweep.recon.targets import CIDRBlock, PortRange, parse_port_range

__all__ = [
    "CIDRBlock",
    "COMMON_PORTS",
    "HostDiscovery",
    "HostRecord",
    "InvalidSpec",
    "PoolState",
    "PortRange",
    "PortScanner",
    "PortState",
    "ProbeExecutor",
    "Protocol",
    "ResultAggregator",
    "SERVICE_PORTS",
    "ScanJob",
    "ScanResult",
    "ScanUnit",
    "ServiceClassifier",
    "WorkerPool",
    "parse_port_range",
    "run_discovery",
    "run_scan",
]
