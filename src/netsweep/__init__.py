"""
netsweep - Concurrent Network Reconnaissance Engine

Connect-scans port ranges and sweeps CIDR blocks for live hosts using
a bounded pool of asyncio workers, with optional banner capture and
service classification.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

__version__ = "0.1.0"
__author__ = "DNS Science.io"
__copyright__ = "Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company"
