"""
Identifier generation for new books.
"""

import time
import uuid
from typing import Callable


class IdGenerator:
    """Produces ids for new books."""

    def new_id(self) -> str:
        raise NotImplementedError


class UUIDGenerator(IdGenerator):
    """Random 128-bit ids rendered as 32 hex characters."""

    def new_id(self) -> str:
        return uuid.uuid4().hex


class TimestampIdGenerator(IdGenerator):
    """
    Nanosecond wall-clock ids rendered as decimal strings.

    Two calls inside one clock tick return the same id, so callers must rely
    on the store rejecting duplicates and retry.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns):
        self.clock = clock

    def new_id(self) -> str:
        return str(self.clock())


def get_id_generator(strategy: str) -> IdGenerator:
    """
    Build the generator named by configuration.

    Args:
        strategy: "uuid" or "timestamp"

    Returns:
        IdGenerator instance
    """
    if strategy == "uuid":
        return UUIDGenerator()
    if strategy == "timestamp":
        return TimestampIdGenerator()
    raise ValueError(f"Unknown id strategy: {strategy}")
