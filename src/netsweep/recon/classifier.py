"""
Service identification from banners and port numbers.

Pure functions over static tables; no network access.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import re
from types import MappingProxyType


UNKNOWN = "unknown"

# Well-known service ports for identification
SERVICE_PORTS = MappingProxyType({
    21: ("ftp", "File Transfer Protocol"),
    22: ("ssh", "Secure Shell"),
    23: ("telnet", "Telnet"),
    25: ("smtp", "Simple Mail Transfer"),
    53: ("dns", "Domain Name System"),
    80: ("http", "HTTP"),
    110: ("pop3", "Post Office Protocol v3"),
    123: ("ntp", "Network Time Protocol"),
    135: ("msrpc", "Microsoft RPC"),
    139: ("netbios-ssn", "NetBIOS Session Service"),
    143: ("imap", "Internet Message Access"),
    161: ("snmp", "Simple Network Management"),
    389: ("ldap", "Lightweight Directory Access"),
    443: ("https", "HTTPS"),
    445: ("microsoft-ds", "Server Message Block"),
    465: ("smtps", "SMTP over SSL"),
    587: ("submission", "Email Submission"),
    636: ("ldaps", "LDAP over SSL"),
    993: ("imaps", "IMAP over SSL"),
    995: ("pop3s", "POP3 over SSL"),
    1433: ("mssql", "Microsoft SQL Server"),
    1521: ("oracle", "Oracle Database"),
    3306: ("mysql", "MySQL Database"),
    3389: ("rdp", "Remote Desktop"),
    5432: ("postgresql", "PostgreSQL Database"),
    5900: ("vnc", "Virtual Network Computing"),
    6379: ("redis", "Redis"),
    8080: ("http-proxy", "HTTP Proxy"),
    8443: ("https-alt", "HTTPS Alternate"),
    9200: ("elasticsearch", "Elasticsearch"),
    27017: ("mongodb", "MongoDB"),
})

# (pattern, product) pairs; the first group, when present, is the version
FINGERPRINTS = {
    "ssh": [
        (r"SSH-2\.0-OpenSSH_(\S+)", "OpenSSH"),
        (r"SSH-2\.0-dropbear_(\S+)", "Dropbear"),
        (r"SSH-1\.\d+-(\S+)", "SSH v1"),
    ],
    "http": [
        (r"Server: Apache/(\S+)", "Apache"),
        (r"Server: nginx/(\S+)", "nginx"),
        (r"Server: Microsoft-IIS/(\S+)", "IIS"),
    ],
    "ftp": [
        (r"220.*vsftpd ([\w.\-]+)", "vsftpd"),
        (r"220.*ProFTPD ([\w.\-]+)", "ProFTPD"),
        (r"220.*Pure-FTPd", "Pure-FTPd"),
        (r"220.*FileZilla Server", "FileZilla Server"),
    ],
    "smtp": [
        (r"220.*Postfix", "Postfix"),
        (r"220.*Exim ([\w.\-]+)", "Exim"),
        (r"220.*Microsoft ESMTP", "Microsoft Exchange"),
        (r"220.*Sendmail", "Sendmail"),
    ],
    "mysql": [
        (r"(\d+\.\d+\.\d+)-MariaDB", "MariaDB"),
        (r"(\d+\.\d+\.\d+).*MySQL", "MySQL"),
    ],
}

# Fallback keywords, checked in order against the lower-cased banner
KEYWORDS = (
    ("ssh", ("ssh-2.0", "openssh", "dropbear")),
    ("http", ("http/1", "server:", "apache", "nginx")),
    ("smtp", ("esmtp", "postfix", "sendmail")),
    ("ftp", ("vsftpd", "proftpd", "pure-ftpd")),
    ("pop3", ("+ok",)),
    ("imap", ("* ok",)),
    ("mysql", ("mysql", "mariadb")),
    ("postgresql", ("postgresql",)),
    ("telnet", ("login:", "password:")),
)

_COMPILED = {
    service: [(re.compile(pattern, re.IGNORECASE), product) for pattern, product in patterns]
    for service, patterns in FINGERPRINTS.items()
}


def service_name(port: int) -> str:
    """Conventional service name for a port, or "unknown"."""
    entry = SERVICE_PORTS.get(port)
    return entry[0] if entry else UNKNOWN


class ServiceClassifier:
    """Map a captured banner and port number to (service, version)."""

    def identify(self, banner: bytes | str, port: int) -> tuple[str, str]:
        text = _as_text(banner)

        if text:
            for service, patterns in _COMPILED.items():
                for regex, _product in patterns:
                    match = regex.search(text)
                    if match:
                        version = match.group(1) if match.groups() else UNKNOWN
                        return service, version

            lowered = text.lower()
            for service, keywords in KEYWORDS:
                if any(keyword in lowered for keyword in keywords):
                    return service, UNKNOWN

        return service_name(port), UNKNOWN

    def product(self, banner: bytes | str) -> str | None:
        """Product name matched by a fingerprint, if any."""
        text = _as_text(banner)
        for patterns in _COMPILED.values():
            for regex, product in patterns:
                if regex.search(text):
                    return product
        return None

    def confidence(self, banner: bytes | str, port: int) -> int:
        """Rough confidence (0-100) in an identification."""
        text = _as_text(banner)
        if len(text) > 10:
            return 80
        if port < 1024:
            return 70 if text else 50
        return 60 if text else 30


def _as_text(banner: bytes | str | None) -> str:
    if not banner:
        return ""
    if isinstance(banner, bytes):
        banner = banner.decode("utf-8", errors="ignore")
    return banner.strip()
