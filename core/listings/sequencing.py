"""
Request Sequencing - Last Request Wins

Each query key gets a monotonically increasing sequence number. When a
response comes back, it is only delivered if no newer request was issued
for the same key in the meantime; older responses are dropped.
"""

from __future__ import annotations

import itertools
import logging
from typing import Awaitable, Hashable, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestSequencer:
    """Drops responses superseded by a newer request on the same key."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: dict[Hashable, int] = {}

    def issue(self, key: Hashable) -> int:
        """Register a new request for key and return its sequence number."""
        seq = next(self._counter)
        self._latest[key] = seq
        return seq

    def is_current(self, key: Hashable, seq: int) -> bool:
        return self._latest.get(key) == seq

    async def run(self, key: Hashable, call: Awaitable[T]) -> Optional[T]:
        """
        Await call under key.

        The key is forgotten once its latest request resolves, so only
        requests still in flight are remembered.

        Returns:
            The response, or None if a newer request for key was issued
            while this one was in flight
        """
        seq = self.issue(key)
        try:
            response = await call
        finally:
            current = self.is_current(key, seq)
            if current:
                del self._latest[key]
        if not current:
            logger.warning("Dropped stale response #%d for %r", seq, key)
            return None
        return response

    @property
    def in_flight(self) -> int:
        """Number of keys with a request still pending."""
        return len(self._latest)
