"""
Record id generation.
"""
import time
from typing import Callable


def timestamp_ms() -> int:
    """Get current timestamp in milliseconds."""
    return int(time.time() * 1000)


class MonotonicIdGenerator:
    """
    Millisecond-timestamp ids that never repeat.

    Two calls within the same millisecond (or a clock that steps backwards)
    yield last + 1, so ids from one generator are strictly increasing.
    """

    def __init__(self, clock: Callable[[], int] = timestamp_ms):
        self._clock = clock
        self._last = 0

    def next_int(self) -> int:
        candidate = self._clock()
        if candidate <= self._last:
            candidate = self._last + 1
        self._last = candidate
        return candidate

    def next_id(self) -> str:
        return str(self.next_int())

    __call__ = next_id
