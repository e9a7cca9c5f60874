from udpreq.transport.replies import ReplyKind, classify_reply, format_reply
from udpreq.transport.result import Outcome, Result, UdpClientError
from udpreq.transport.udp import TIMEOUT_SENTINEL, ClientSession, SessionState, UdpRequestClient

__version__ = "0.1.0"
