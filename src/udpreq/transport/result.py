from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Outcome(str, Enum):
    OK = "OK"
    SOCKET_CREATE_ERROR = "SOCKET_CREATE_ERROR"
    UNKNOWN_HOST = "UNKNOWN_HOST"
    SEND_ERROR = "SEND_ERROR"
    RECEIVE_TIMEOUT = "RECEIVE_TIMEOUT"
    RECEIVE_ERROR = "RECEIVE_ERROR"
    CLOSE_ERROR = "CLOSE_ERROR"


class UdpClientError(Exception):
    def __init__(self, outcome: Outcome, detail: str = ""):
        super().__init__(f"{outcome.value}: {detail}" if detail else outcome.value)
        self.outcome = outcome
        self.detail = detail


@dataclass(frozen=True)
class Result:
    """
    Outcome of a single client operation.

    `value` carries the operation's payload: the resolved address for
    resolve_server, the reply text for receive_reply (the sentinel text on
    RECEIVE_TIMEOUT, None on RECEIVE_ERROR).
    """
    outcome: Outcome
    value: Any = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    def raise_for_outcome(self) -> Result:
        if not self.ok:
            raise UdpClientError(self.outcome, self.detail)
        return self
