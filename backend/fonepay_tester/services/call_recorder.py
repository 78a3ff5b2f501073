"""
Call Recorder

Bounded, in-memory history of outbound provider calls (most recent first).

The recorder is owned by the application (app.state) and injected into the
gateway and the API layer. Every mutation and read takes the same lock, so
concurrent gateway calls never lose a record and a query never observes a
half-applied insert, eviction or clear.
"""
import logging
import threading
from collections import deque
from itertools import islice
from typing import Deque, List, Optional

from ..models.calls import CallCategory, CallRecord

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


class CallRecorder:
    """
    Fixed-capacity ordered call log.

    New records go to the front; once capacity is exceeded the oldest record
    is dropped from the back.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        """
        Initialize call recorder.

        Args:
            capacity: Maximum number of records retained
        """
        if capacity < 1:
            raise ValueError("Capacity must be at least 1")

        self._capacity = capacity
        self._records: Deque[CallRecord] = deque(maxlen=capacity)

        # threading.Lock: no awaits happen while it is held
        self._lock = threading.Lock()

        logger.info(f"Call recorder initialized (capacity: {capacity})")

    @property
    def capacity(self) -> int:
        return self._capacity

    def record(self, entry: CallRecord) -> None:
        """Insert a record at the front, evicting the oldest when full."""
        with self._lock:
            self._records.appendleft(entry)
            size = len(self._records)

        logger.debug(
            f"Recorded call {entry.id}: {entry.category.value} {entry.method} "
            f"{entry.url} -> {entry.http_status} (log size {size})"
        )

    def query(
        self,
        category: Optional[CallCategory] = None,
        limit: Optional[int] = None
    ) -> List[CallRecord]:
        """
        Get records, most recent first.

        Args:
            category: Only records of this category (None = all)
            limit: Maximum number of records returned (None = no limit)
        """
        with self._lock:
            snapshot = list(self._records)

        matching = (r for r in snapshot if category is None or r.category == category)
        if limit is not None:
            matching = islice(matching, max(limit, 0))
        return list(matching)

    def count(self, category: Optional[CallCategory] = None) -> int:
        """Number of retained records, optionally of one category."""
        with self._lock:
            if category is None:
                return len(self._records)
            return sum(1 for r in self._records if r.category == category)

    def clear(self) -> int:
        """
        Remove every record.

        Returns:
            Number of records removed
        """
        with self._lock:
            removed = len(self._records)
            self._records.clear()

        logger.info(f"Call log cleared ({removed} records removed)")
        return removed

    def __len__(self) -> int:
        return self.count()
