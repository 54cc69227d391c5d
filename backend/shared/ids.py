"""Opaque identifier generation for games, players, hosts and access codes."""

import secrets
from uuid import uuid4

# Characters that cannot be confused when read aloud or typed from a screen.
UNMISTAKABLE_CHARS = "23456789ABCDEFGHJKLMNPQRSTWXYZabcdefghijkmnopqrstuvwxyz"

DEFAULT_RANDOM_ID_LENGTH = 17
DEFAULT_SHORT_CODE_LENGTH = 4


def generate_id() -> str:
    """Return a new unique id for a stored game or an embedded player."""
    return uuid4().hex


def random_id(length: int = DEFAULT_RANDOM_ID_LENGTH) -> str:
    """Return a random id drawn from the unmistakable-characters alphabet."""
    if length < 1:
        raise ValueError(f"length must be positive, got {length}")
    return "".join(secrets.choice(UNMISTAKABLE_CHARS) for _ in range(length))


def short_code(length: int = DEFAULT_SHORT_CODE_LENGTH) -> str:
    """Return a lower-case short code suitable for human entry (access codes)."""
    return random_id(length).lower()
