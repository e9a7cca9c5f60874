from __future__ import annotations

import codecs
from dataclasses import dataclass
import os

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


@dataclass(frozen=True)
class Settings:
    timeout_ms: int
    recv_buf: int
    encoding: str
    family: str
    log_level: str
    sim_http: str
    sim_udp_host: str
    sim_udp_port: int


def get_settings() -> Settings:
    """
    Centralized configuration for the client, the CLI and the tests.
    Values come from environment variables with safe defaults.
    """
    settings = Settings(
        timeout_ms=int(os.getenv("UDPREQ_TIMEOUT_MS", "500")),
        recv_buf=int(os.getenv("UDPREQ_RECV_BUF", "256")),
        encoding=os.getenv("UDPREQ_ENCODING", "utf-8"),
        family=os.getenv("UDPREQ_FAMILY", "ipv4").lower(),
        log_level=os.getenv("UDPREQ_LOG_LEVEL", "WARNING").upper(),
        sim_http=os.getenv("SIM_HTTP", "http://127.0.0.1:8000"),
        sim_udp_host=os.getenv("SIM_UDP_HOST", "127.0.0.1"),
        sim_udp_port=int(os.getenv("SIM_UDP_PORT", "9000")),
    )
    if settings.timeout_ms <= 0:
        raise ValueError("UDPREQ_TIMEOUT_MS must be positive")
    if settings.recv_buf <= 0:
        raise ValueError("UDPREQ_RECV_BUF must be positive")
    if settings.family not in ("ipv4", "ipv6"):
        raise ValueError(f"UDPREQ_FAMILY must be ipv4 or ipv6, got {settings.family!r}")
    if settings.log_level not in LOG_LEVELS:
        raise ValueError(f"UDPREQ_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {settings.log_level!r}")
    try:
        codecs.lookup(settings.encoding)
    except LookupError:
        raise ValueError(f"UDPREQ_ENCODING is not a known codec: {settings.encoding!r}")
    return settings
