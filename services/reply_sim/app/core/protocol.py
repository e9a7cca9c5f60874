from __future__ import annotations
from dataclasses import dataclass, field
import os
from .state import ServerState
from .faults import FaultConfig

MAX_MESSAGE = 256

ECHO_START = "<echo>"
ECHO_END = "</echo>"

REPLY_SHUTDOWN = "<replyShutDown>Server is shutting down</replyShutDown>"
REPLY_UNKNOWN = "<error>unknown format</error>"
REPLY_NO_LOADAVG = "<error>unable to obtain load average</error>"


def parse_request(data: bytes) -> str:
    """
    Requests are NUL terminated; anything after the first NUL is padding.
    A single trailing newline (interactive clients) is dropped as well.
    """
    text = data.split(b"\x00", 1)[0].decode("utf-8", errors="replace")
    if text.endswith("\n"):
        text = text[:-1]
    return text


def pad_reply(text: str) -> bytes:
    # replies always fill a whole MAX_MESSAGE datagram
    return text.encode("utf-8")[:MAX_MESSAGE].ljust(MAX_MESSAGE, b"\x00")


def echo_reply(text: str) -> str:
    lower = text.lower()
    if lower.startswith(ECHO_START) and lower.endswith(ECHO_END) and len(text) >= len(ECHO_START) + len(ECHO_END):
        return f"<reply>{text[len(ECHO_START):len(text) - len(ECHO_END)]}</reply>"
    return REPLY_UNKNOWN


def loadavg_reply() -> str:
    try:
        one, five, fifteen = os.getloadavg()
    except (OSError, AttributeError):
        return REPLY_NO_LOADAVG
    return f"<replyLoadAvg>{one:f}:{five:f}:{fifteen:f}</replyLoadAvg>"


@dataclass
class SimModel:
    state: ServerState = ServerState.LISTENING
    reset_count: int = 0
    requests_seen: int = 0
    replies_sent: int = 0
    last_request: str | None = None
    faults: FaultConfig = field(default_factory=FaultConfig)

    def reset(self) -> None:
        self.state = ServerState.LISTENING
        self.reset_count += 1
        self.requests_seen = 0
        self.replies_sent = 0
        self.last_request = None
        # keep faults as-is; tests can choose to reset them explicitly

    def handle(self, text: str) -> str:
        """Decide the reply for one request; <shutdown/> moves the model to SHUT_DOWN."""
        if self.state != ServerState.LISTENING:
            raise ValueError(f"Server is {self.state.value}, not accepting requests")
        self.requests_seen += 1
        self.last_request = text

        lower = text.lower()
        if lower.startswith(ECHO_START):
            return echo_reply(text)
        if lower == "<loadavg/>":
            return loadavg_reply()
        if lower == "<shutdown/>":
            self.state = ServerState.SHUT_DOWN
            return REPLY_SHUTDOWN
        return REPLY_UNKNOWN
