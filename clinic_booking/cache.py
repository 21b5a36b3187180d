"""Caching of slot counts for calendar views.

Best Practices:
- Use TTL (time-to-live) for automatic expiration
- Invalidate per hospital on every ledger write
- Thread-safe for concurrent access
- Never consulted for a capacity decision (booking always counts live)
"""
import threading
import time
from datetime import date
from typing import Dict, Optional, Tuple

from clinic_booking import config

SlotCounts = Dict[Tuple[date, str], int]
CacheKey = Tuple[str, date, date]
Generation = Tuple[int, int]


class AvailabilityCache:
    """
    Cache for grouped slot counts of a hospital over a date range.

    Pattern: Range-keyed cache with TTL, invalidated by hospital.

    Readers take ``generation(hospital_id)`` before querying the ledger and
    pass it to ``set``. An invalidation in between changes the generation,
    and the counts read before it are dropped instead of cached.
    """

    def __init__(self, ttl: int = config.AVAILABILITY_CACHE_TTL, max_size: int = 500):
        """
        Initialize availability cache.

        Args:
            ttl: Time-to-live in seconds (default: 5 minutes)
            max_size: Maximum cache entries before cleanup
        """
        self.cache: Dict[CacheKey, Tuple[SlotCounts, float]] = {}
        self.ttl = ttl  # seconds
        self.max_size = max_size
        self.lock = threading.Lock()

        # Bumped by invalidate(None) and invalidate(hospital_id) respectively
        self.epoch = 0
        self.generations: Dict[str, int] = {}

    def _is_expired(self, timestamp: float) -> bool:
        """Check if cache entry has expired."""
        return time.time() - timestamp > self.ttl

    def _generation_locked(self, hospital_id: str) -> Generation:
        return (self.epoch, self.generations.get(hospital_id, 0))

    def generation(self, hospital_id: str) -> Generation:
        """Current invalidation generation of a hospital."""
        with self.lock:
            return self._generation_locked(hospital_id)

    def get(self, hospital_id: str, start: date, end: date) -> Optional[SlotCounts]:
        """
        Get cached counts for a hospital and date range.

        Returns:
            Copy of the cached counts, or None if not found/expired
        """
        key = (hospital_id, start, end)
        with self.lock:
            entry = self.cache.get(key)
            if entry is None:
                return None

            counts, timestamp = entry
            if self._is_expired(timestamp):
                del self.cache[key]
                return None

            return dict(counts)

    def set(
        self,
        hospital_id: str,
        start: date,
        end: date,
        counts: SlotCounts,
        generation: Optional[Generation] = None
    ) -> bool:
        """
        Cache counts for a hospital and date range.

        Args:
            generation: Generation taken before the counts were read. If the
                hospital was invalidated since, nothing is stored.

        Returns:
            True if the counts were stored
        """
        with self.lock:
            if generation is not None and generation != self._generation_locked(hospital_id):
                return False

            self.cache[(hospital_id, start, end)] = (dict(counts), time.time())
            if len(self.cache) > self.max_size:
                self._cleanup_locked()
            return True

    def invalidate(self, hospital_id: Optional[str] = None):
        """
        Drop cache entries.

        Args:
            hospital_id: Hospital whose entries to drop, or None to clear all
        """
        with self.lock:
            if hospital_id is None:
                self.epoch += 1
                self.cache.clear()
                return

            self.generations[hospital_id] = self.generations.get(hospital_id, 0) + 1
            for key in [key for key in self.cache if key[0] == hospital_id]:
                del self.cache[key]

    def cleanup_expired(self):
        """Remove all expired entries."""
        with self.lock:
            self._cleanup_locked()

    def _cleanup_locked(self):
        current_time = time.time()
        expired_keys = [
            key for key, (_, ts) in self.cache.items()
            if current_time - ts > self.ttl
        ]
        for key in expired_keys:
            del self.cache[key]

        # Still too large: drop the oldest entries
        if len(self.cache) > self.max_size:
            oldest = sorted(self.cache.items(), key=lambda item: item[1][1])
            for key, _ in oldest[:len(self.cache) - self.max_size]:
                del self.cache[key]
