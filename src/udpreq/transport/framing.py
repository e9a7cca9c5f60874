from __future__ import annotations

TERMINATOR = b"\x00"

# everything up to and including the space, the set str.strip() would miss NULs from
_TRIM_CHARS = "".join(chr(c) for c in range(0x21))


def encode_request(text: str, encoding: str = "utf-8") -> bytes:
    """Encode a request and append exactly one NUL terminator."""
    return text.encode(encoding) + TERMINATOR


def decode_reply(buffer: bytes | bytearray, encoding: str = "utf-8") -> str:
    # undecodable bytes (e.g. a multi-byte char cut at the buffer edge) are replaced
    return bytes(buffer).decode(encoding, errors="replace")


def trim_reply(text: str) -> str:
    return text.strip(_TRIM_CHARS)
