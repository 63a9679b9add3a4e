"""Thread-safe circular log of temperature readings."""

import logging
import threading
from typing import ContextManager, List, Optional

from sensor_bridge.models import LogSnapshot
from sensor_bridge.protocol import LOG_CAPACITY, SENTINEL

logger = logging.getLogger(__name__)


class TemperatureLog:
    """Fixed-capacity ring of readings with overwrite-oldest semantics.

    Every slot starts as the sentinel. A single writer appends at the cursor
    and advances it modulo capacity; all reads and writes go through one lock
    so readers never see a half-applied append.
    """

    def __init__(
        self,
        capacity: int = LOG_CAPACITY,
        lock: Optional[ContextManager[bool]] = None,
    ) -> None:
        """Initialize log with every slot empty.

        Args:
            capacity: Number of readings kept. Defaults to one hour at 1 Hz.
            lock: Lock shared with other bridge state. A private lock is
                created when omitted.
        """
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")

        self._storage: List[float] = [SENTINEL] * capacity
        self._next = 0
        self._capacity = capacity
        self._lock = lock if lock is not None else threading.Lock()

    def append(self, value: float) -> None:
        """Store a reading at the cursor and advance it (thread-safe).

        The oldest reading is overwritten once the ring is full.

        Args:
            value: Reading in the unit the device reports
        """
        with self._lock:
            self._storage[self._next] = value
            self._next = (self._next + 1) % self._capacity
            logger.debug(f"Logged {value} (next slot {self._next}/{self._capacity})")

    def snapshot(self) -> LogSnapshot:
        """Get a consistent copy of every slot and the cursor (thread-safe)."""
        with self._lock:
            return LogSnapshot(values=tuple(self._storage), next_index=self._next)

    def latest(self) -> Optional[float]:
        """Most recent reading, or None if nothing was ever written (thread-safe)."""
        with self._lock:
            value = self._storage[self._next - 1]
        if value == SENTINEL:
            return None
        return value

    @property
    def capacity(self) -> int:
        """Maximum number of readings held."""
        return self._capacity
