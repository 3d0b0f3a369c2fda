"""Visit/call classification of challenge titles.

Every caller that needs to know whether a challenge is a connection (and so
requires a target family member) goes through these functions.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum
from typing import TypeVar

T = TypeVar("T")


class ConnectionType(str, Enum):
    VISIT = "visit"
    CALL = "call"


_ICONS = {
    ConnectionType.VISIT: "\U0001f3e0",  # house
    ConnectionType.CALL: "\U0001f4de",  # telephone receiver
}

_ACTION_WORDS = {
    ConnectionType.VISIT: "visited",
    ConnectionType.CALL: "called",
}


def get_connection_type(title: str | None) -> ConnectionType | None:
    """Case-insensitive substring match; 'visit' wins over 'call'."""
    if not title:
        return None
    lower = title.lower()
    if "visit" in lower:
        return ConnectionType.VISIT
    if "call" in lower:
        return ConnectionType.CALL
    return None


def is_connection_challenge(title: str | None) -> bool:
    return get_connection_type(title) is not None


def get_connection_icon(title: str | None) -> str:
    """Icon for a connection challenge; non-visits fall back to the call icon."""
    kind = get_connection_type(title)
    return _ICONS[ConnectionType.VISIT if kind is ConnectionType.VISIT else ConnectionType.CALL]


def get_connection_action_word(title: str | None) -> str:
    """Past-tense verb for feed messages ('visited' / 'called')."""
    kind = get_connection_type(title)
    return _ACTION_WORDS[ConnectionType.VISIT if kind is ConnectionType.VISIT else ConnectionType.CALL]


def filter_connection_titles(items: Iterable[T], title_of: Callable[[T], str | None]) -> list[T]:
    """Keep only the items whose title classifies as a connection."""
    return [item for item in items if is_connection_challenge(title_of(item))]
