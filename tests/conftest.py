import asyncio
import socket
import threading
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient

from udpreq.config.settings import get_settings
from udpreq.api.client import SimApiClient
from udpreq.transport.udp import UdpRequestClient
from services.reply_sim.app.main import app, open_udp_endpoint

PADDED_SIZE = 256


@dataclass(frozen=True)
class UdpTarget:
    host: str
    port: int


class _SimThread:
    """
    Runs the simulator's UDP endpoint on its own event loop in a background
    thread, bound to an ephemeral port on loopback.
    """

    def __init__(self, host: str = "127.0.0.1"):
        self.loop = asyncio.new_event_loop()
        self.transport = self.loop.run_until_complete(open_udp_endpoint(host, 0))
        self.target = UdpTarget(host, self.transport.get_extra_info("sockname")[1])
        self.thread = threading.Thread(target=self.loop.run_forever, daemon=True)

    def start(self) -> None:
        self.thread.start()

    def stop(self) -> None:
        async def _close():
            self.transport.close()
            # let connection_lost run so the socket is released
            await asyncio.sleep(0.01)

        asyncio.run_coroutine_threadsafe(_close(), self.loop).result(timeout=2)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout=2)
        self.loop.close()


class _PongServer:
    """Answers every datagram with a fixed reply padded to 256 bytes and records what it got."""

    def __init__(self, reply: bytes = b"<reply>pong</reply>", family: int = socket.AF_INET, host: str = "127.0.0.1"):
        self.reply = reply.ljust(PADDED_SIZE, b"\x00")
        self.received: list[bytes] = []
        self.sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            self.sock.bind((host, 0))
        except OSError:
            self.sock.close()
            raise
        self.sock.settimeout(0.05)
        self.target = UdpTarget(host, self.sock.getsockname()[1])
        self._stop = threading.Event()
        self.thread = threading.Thread(target=self._serve, daemon=True)

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                data, addr = self.sock.recvfrom(65535)
            except socket.timeout:
                continue
            except OSError:
                return
            self.received.append(data)
            self.sock.sendto(self.reply, addr)

    def start(self) -> None:
        self.thread.start()

    def stop(self) -> None:
        self._stop.set()
        self.thread.join(timeout=2)
        self.sock.close()


@pytest.fixture
def settings():
    return get_settings()

@pytest.fixture
def sim_api():
    client = SimApiClient("http://testserver", client=TestClient(app))
    try:
        yield client
    finally:
        client.close()

@pytest.fixture(autouse=True)
def reset_simulator(sim_api):
    """
    Ensure each test starts from a clean simulator model with no faults.
    """
    sim_api.reset()
    sim_api.set_faults()
    yield

@pytest.fixture
def sim_udp():
    sim = _SimThread()
    sim.start()
    try:
        yield sim.target
    finally:
        sim.stop()

@pytest.fixture
def pong_server():
    server = _PongServer()
    server.start()
    try:
        yield server
    finally:
        server.stop()

@pytest.fixture
def pong_server_v6():
    if not socket.has_ipv6:
        pytest.skip("IPv6 not supported by this Python build")
    try:
        server = _PongServer(family=socket.AF_INET6, host="::1")
    except OSError as e:
        pytest.skip(f"IPv6 loopback unavailable: {e}")
    server.start()
    try:
        yield server
    finally:
        server.stop()

@pytest.fixture
def silent_target():
    """A bound UDP port that never answers."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    try:
        yield UdpTarget("127.0.0.1", sock.getsockname()[1])
    finally:
        sock.close()

@pytest.fixture
def client(settings):
    c = UdpRequestClient(settings)
    try:
        yield c
    finally:
        c.close()
