"""
Shared fixtures: local listeners to probe against.
"""

import asyncio
import socket
import socketserver
import threading

import pytest
import pytest_asyncio

from netsweep.config import ScanSettings, set_config


BANNER_PORT = 9001
CLOSED_PORT = 9002


class _BannerHandler(socketserver.BaseRequestHandler):
    def handle(self):
        self.request.sendall(self.server.banner)


class _BannerServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address, banner: bytes):
        self.banner = banner
        super().__init__(address, _BannerHandler)


def _serve(port: int, banner: bytes):
    server = _BannerServer(("127.0.0.1", port), banner)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


@pytest.fixture(scope="module")
def hello_server():
    """Listener on 127.0.0.1:9001 that writes HELLO and a newline."""
    server = _serve(BANNER_PORT, b"HELLO\n")
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def free_port():
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest_asyncio.fixture
async def async_server():
    """Factory for asyncio listeners on an ephemeral port.

    The callback receives (reader, writer) like asyncio.start_server.
    """
    servers = []

    async def start(callback):
        server = await asyncio.start_server(callback, "127.0.0.1", 0)
        servers.append(server)
        return server.sockets[0].getsockname()[1]

    yield start

    for server in servers:
        server.close()
        await server.wait_closed()


@pytest.fixture(autouse=True)
def default_settings():
    """Isolate tests from the caller's environment and .env files."""
    set_config(ScanSettings())
    yield
    set_config(None)
