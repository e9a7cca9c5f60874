from __future__ import annotations
import codecs
import logging
import socket
from dataclasses import dataclass
from enum import Enum
from udpreq.config.settings import Settings, get_settings
from udpreq.transport.framing import encode_request, decode_reply
from udpreq.transport.replies import ReplyKind, classify_reply
from udpreq.transport.result import Outcome, Result

log = logging.getLogger(__name__)

TIMEOUT_SENTINEL = "Server not responding"

_FAMILIES = {"ipv4": socket.AF_INET, "ipv6": socket.AF_INET6}


class SessionState(str, Enum):
    UNBOUND = "UNBOUND"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass
class ClientSession:
    sock: socket.socket | None = None
    state: SessionState = SessionState.UNBOUND
    server_addr: tuple | None = None
    server_port: int | None = None
    request: bytes = b""
    response: str | None = None

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN and self.sock is not None


class UdpRequestClient:
    """
    One request, one reply, over a single datagram socket.

    Every operation returns a Result instead of raising. Failures while
    resolving, sending or receiving close the session before returning, so
    a caller that stops at the first error never leaks the socket.
    """

    def __init__(self, settings: Settings | None = None, *, timeout_ms: int | None = None, recv_buf: int | None = None):
        settings = settings or get_settings()
        timeout_ms = timeout_ms if timeout_ms is not None else settings.timeout_ms
        recv_buf = recv_buf if recv_buf is not None else settings.recv_buf
        # a zero timeout would make the socket non-blocking
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")
        if recv_buf <= 0:
            raise ValueError(f"recv_buf must be positive, got {recv_buf}")
        if settings.family not in _FAMILIES:
            raise ValueError(f"unsupported address family {settings.family!r}")
        try:
            codecs.lookup(settings.encoding)
        except LookupError:
            raise ValueError(f"unknown encoding {settings.encoding!r}")

        self._timeout_s = timeout_ms / 1000.0
        self._recv_buf = recv_buf
        self._encoding = settings.encoding
        self._family = _FAMILIES[settings.family]
        self.session = ClientSession()

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    @property
    def recv_buf(self) -> int:
        return self._recv_buf

    def __enter__(self) -> UdpRequestClient:
        self.open().raise_for_outcome()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def open(self) -> Result:
        if self.session.is_open:
            return Result(Outcome.SOCKET_CREATE_ERROR, detail="session already has an open socket")

        try:
            sock = socket.socket(self._family, socket.SOCK_DGRAM)
        except OSError as e:
            log.warning("Unable to create socket: %s", e)
            return Result(Outcome.SOCKET_CREATE_ERROR, detail=str(e))

        try:
            sock.bind(("::" if self._family == socket.AF_INET6 else "", 0))
            sock.settimeout(self._timeout_s)
        except (OSError, ValueError) as e:
            sock.close()
            log.warning("Unable to bind socket: %s", e)
            return Result(Outcome.SOCKET_CREATE_ERROR, detail=str(e))

        self.session.sock = sock
        self.session.state = SessionState.OPEN
        log.debug("socket bound to %s", sock.getsockname())
        return Result(Outcome.OK)

    def resolve_server(self, host: str) -> Result:
        family = self.session.sock.family if self.session.is_open else self._family
        try:
            infos = socket.getaddrinfo(host, None, family, socket.SOCK_DGRAM)
        except (OSError, UnicodeError) as e:
            log.warning("Unknown host %r: %s", host, e)
            self.close()
            return Result(Outcome.UNKNOWN_HOST, detail=f"{host}: {e}")

        # sockaddr is (ip, port) for IPv4 and (ip, port, flowinfo, scope_id) for IPv6
        addr = infos[0][4]
        self.session.server_addr = addr
        return Result(Outcome.OK, value=addr)

    def send_request(self, request: str, host: str, port: int) -> Result:
        try:
            payload = encode_request(request, self._encoding)
        except (UnicodeError, LookupError) as e:
            return self._send_failed(f"cannot encode request: {e}")
        self.session.request = payload
        self.session.server_port = port

        resolved = self.resolve_server(host)
        if not resolved.ok:
            return resolved

        if not self.session.is_open:
            return self._send_failed("session is not open")

        addr = resolved.value
        dest = (addr[0], port) + tuple(addr[2:])
        try:
            sent = self.session.sock.sendto(payload, dest)
        except (OSError, OverflowError, ValueError, TypeError) as e:
            return self._send_failed(f"sendto {dest!r} failed: {e}")

        log.debug("sent %d bytes to %s", sent, dest)
        return Result(Outcome.OK)

    def _send_failed(self, detail: str) -> Result:
        log.warning("Send request failed: %s", detail)
        self.close()
        return Result(Outcome.SEND_ERROR, detail=detail)

    def receive_reply(self) -> Result:
        if not self.session.is_open:
            return self._receive_failed("session is not open")

        # bytes past the datagram stay zero; callers trim if they want to
        buf = bytearray(self._recv_buf)
        try:
            nbytes, sender = self.session.sock.recvfrom_into(buf)
        except socket.timeout:
            log.warning("No reply within %.3fs", self._timeout_s)
            self.close()
            self.session.response = TIMEOUT_SENTINEL
            return Result(Outcome.RECEIVE_TIMEOUT, value=TIMEOUT_SENTINEL, detail="receive timed out")
        except OSError as e:
            return self._receive_failed(str(e))

        log.debug("received %d bytes from %s", nbytes, sender)
        text = decode_reply(buf, self._encoding)
        self.session.response = text
        return Result(Outcome.OK, value=text)

    def _receive_failed(self, detail: str) -> Result:
        log.warning("Receive failed: %s", detail)
        self.close()
        self.session.response = None
        return Result(Outcome.RECEIVE_ERROR, value=None, detail=detail)

    def request(self, request: str, host: str, port: int) -> Result:
        sent = self.send_request(request, host, port)
        if not sent.ok:
            return sent
        return self.receive_reply()

    @staticmethod
    def classify_reply(text: str) -> ReplyKind:
        return classify_reply(text)

    def close(self) -> Result:
        sock = self.session.sock
        if sock is None:
            if self.session.state is SessionState.OPEN:
                self.session.state = SessionState.CLOSED
            return Result(Outcome.OK)

        self.session.sock = None
        self.session.state = SessionState.CLOSED
        try:
            sock.close()
        except OSError as e:
            log.info("Exception while closing socket: %s", e)
            return Result(Outcome.CLOSE_ERROR, detail=str(e))
        return Result(Outcome.OK)
