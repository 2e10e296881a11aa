import asyncio
import contextlib
import socket

import pytest


@pytest.fixture
def free_port():
    """A loopback port that nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def raw_server():
    """Start an asyncio server with a custom connection handler, yielding its port."""

    @contextlib.asynccontextmanager
    async def serve(handler):
        server = await asyncio.start_server(handler, "127.0.0.1", 0)
        try:
            yield server.sockets[0].getsockname()[1]
        finally:
            server.close()
            await server.wait_closed()

    return serve
