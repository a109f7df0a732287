"""
Latest-wins single-slot channels.

send() never blocks: an undrained value is overwritten. try_recv() never blocks:
it returns None when the slot is empty. Values come out in the order they were
sent, with gaps where a newer value overwrote an older one.
"""
from __future__ import annotations

import threading
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class LatestChannel(Generic[T]):
    def __init__(self, name: str = "") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._slot: Optional[T] = None
        self._sent = 0
        self._dropped = 0
        self._closed = False

    def send(self, value: T) -> bool:
        """Store value, replacing any unconsumed one. Returns True if a value was dropped."""
        with self._lock:
            if self._closed:
                return False
            dropped = self._slot is not None
            self._slot = value
            self._sent += 1
            if dropped:
                self._dropped += 1
            return dropped

    def try_recv(self) -> Optional[T]:
        with self._lock:
            value = self._slot
            self._slot = None
            return value

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._slot = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._slot is not None

    @property
    def sent(self) -> int:
        return self._sent

    @property
    def dropped(self) -> int:
        return self._dropped


class FrameBroadcaster(Generic[T]):
    """Fans one producer out to any number of LatestChannel subscriptions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: List[LatestChannel[T]] = []

    def subscribe(self, name: str = "") -> LatestChannel[T]:
        ch: LatestChannel[T] = LatestChannel(name)
        with self._lock:
            self._subs = self._subs + [ch]
        return ch

    def unsubscribe(self, ch: LatestChannel[T]) -> None:
        ch.close()
        with self._lock:
            self._subs = [s for s in self._subs if s is not ch]

    def publish(self, value: T) -> None:
        # copy-on-write list; iterate without holding the lock
        for ch in self._subs:
            ch.send(value)

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)
