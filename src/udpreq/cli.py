from __future__ import annotations

import argparse
import logging
import sys

from udpreq.config.settings import get_settings
from udpreq.transport.framing import trim_reply
from udpreq.transport.replies import format_reply
from udpreq.transport.result import Outcome
from udpreq.transport.udp import UdpRequestClient

log = logging.getLogger(__name__)

USAGE = "udpreq <serverName> <port number>"


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port number: {value!r}")
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="udpreq",
        usage=USAGE,
        description="Send one request datagram to a server and print its tagged reply.",
    )
    parser.add_argument("server", help="hostname or IP address of the server")
    parser.add_argument("port", type=_port, help="UDP port of the server")
    parser.add_argument("-r", "--request", help="request text; prompts for it when omitted")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    request = args.request
    if request is None:
        try:
            request = input("Enter a request: ")
        except EOFError:
            print("No request entered", file=sys.stderr)
            return 1

    client = UdpRequestClient(settings)
    if not client.open().ok:
        print("Unable to create socket", file=sys.stderr)
        return 1

    try:
        sent = client.send_request(request, args.server, args.port)
        if sent.outcome is Outcome.UNKNOWN_HOST:
            print("Unknown host", file=sys.stderr)
            return 1
        if not sent.ok:
            print("Send request failed", file=sys.stderr)
            return 1

        reply = client.receive_reply()
        if reply.value is None:
            print("incorrect response from server", file=sys.stderr)
            return 1

        # the timeout sentinel is printed like any other reply
        print(format_reply(trim_reply(reply.value)))
        return 0
    finally:
        closed = client.close()
        if not closed.ok:
            log.info("close failed: %s", closed.detail)
