from __future__ import annotations

from enum import Enum

# Reply tags, checked in this order
TAG_REPLY = "<reply>"
TAG_LOAD_AVG = "<replyLoadAvg>"
TAG_SHUT_DOWN = "<replyShutDown>"


class ReplyKind(str, Enum):
    REPLY = "Reply"
    LOAD_AVG = "LoadAvg"
    SHUT_DOWN = "ShutDown"
    UNKNOWN = "Unknown"

    @property
    def label(self) -> str:
        if self is ReplyKind.UNKNOWN:
            return "Unknown format Response:"
        return f"{self.value}:"


def _self_closing(tag: str) -> str:
    return tag[:-1] + "/>"


_ORDERED_TAGS = tuple(
    ((tag, _self_closing(tag)), kind)
    for tag, kind in (
        (TAG_REPLY, ReplyKind.REPLY),
        (TAG_LOAD_AVG, ReplyKind.LOAD_AVG),
        (TAG_SHUT_DOWN, ReplyKind.SHUT_DOWN),
    )
)


def classify_reply(text: str) -> ReplyKind:
    """First matching tag wins; an empty element (e.g. <replyShutDown/>) counts as its tag."""
    for tags, kind in _ORDERED_TAGS:
        if any(tag in text for tag in tags):
            return kind
    return ReplyKind.UNKNOWN


def format_reply(text: str) -> str:
    return f"{classify_reply(text).label} {text}"
