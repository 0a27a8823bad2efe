"""
Delay Window Module
===================

Fixed-size ring buffer of recent event delivery delays (milliseconds).

Design:
- Preallocated slots, head index + size
- Strict FIFO eviction once capacity is reached
- Iteration is oldest -> newest
"""

from typing import Iterator, List, Optional

from stepbatch_core.constants import EVENT_QUEUE_LENGTH


class DelayWindow:
    """
    Bounded history of event delays.

    Usage:
        window = DelayWindow(capacity=10)
        window.append(80)
        window.append(90)
        window.to_list()  # [80, 90]
    """

    def __init__(self, capacity: int = EVENT_QUEUE_LENGTH):
        """
        Initialize an empty window.

        Args:
            capacity: Maximum number of delays kept (must be > 0)
        """
        if capacity <= 0:
            raise ValueError(f"DelayWindow capacity must be > 0, got {capacity}")

        self._capacity = capacity
        self._slots: List[Optional[int]] = [None] * capacity
        self._head = 0  # index of the oldest entry
        self._size = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, delay_ms: int) -> None:
        """
        Add a delay, evicting the oldest one if the window is full.

        Args:
            delay_ms: Event delay in milliseconds
        """
        if self._size < self._capacity:
            tail = (self._head + self._size) % self._capacity
            self._slots[tail] = delay_ms
            self._size += 1
        else:
            # Overwrite oldest, advance head
            self._slots[self._head] = delay_ms
            self._head = (self._head + 1) % self._capacity

    def clear(self) -> None:
        """Drop all recorded delays."""
        self._slots = [None] * self._capacity
        self._head = 0
        self._size = 0

    def is_full(self) -> bool:
        return self._size == self._capacity

    def to_list(self) -> List[int]:
        """Delays in insertion order, oldest first."""
        return list(self)

    def __iter__(self) -> Iterator[int]:
        for offset in range(self._size):
            yield self._slots[(self._head + offset) % self._capacity]

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"DelayWindow(capacity={self._capacity}, delays={self.to_list()})"
