"""Rate limiting for booking requests by client address."""
import time
from typing import Dict
from collections import defaultdict
import threading

from clinic_booking import config


class RateLimitExceeded(Exception):
    """Raised when rate limit is exceeded."""
    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class RateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    Pattern: Sliding window, one shared limit for every client.
    Good for: Development, single-server deployments.
    NOT for: Multi-server production (use Redis instead).
    """

    def __init__(
        self,
        max_requests: int = config.RATE_LIMIT_REQUESTS,
        window_seconds: int = config.RATE_LIMIT_WINDOW_SECONDS
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds

        # {client_id: [timestamp1, timestamp2, ...]}
        self.request_log: Dict[str, list] = defaultdict(list)

        self.lock = threading.Lock()

    def _prune(self, client_id: str, now: float):
        cutoff = now - self.window_seconds
        recent = [ts for ts in self.request_log.get(client_id, []) if ts > cutoff]
        if recent:
            self.request_log[client_id] = recent
        else:
            # Idle clients leave no entry behind
            self.request_log.pop(client_id, None)

    def check_rate_limit(self, client_id: str):
        """
        Check if request is within rate limit and record it.

        Args:
            client_id: Client identifier (usually the remote address)

        Raises:
            RateLimitExceeded: If limit exceeded
        """
        with self.lock:
            now = time.time()
            self._prune(client_id, now)

            if len(self.request_log.get(client_id, [])) >= self.max_requests:
                oldest_request = min(self.request_log[client_id])
                retry_after = int(self.window_seconds - (now - oldest_request)) + 1

                raise RateLimitExceeded(
                    f"Too many requests from {client_id}: "
                    f"{self.max_requests} requests per {self.window_seconds}s",
                    retry_after=retry_after
                )

            self.request_log[client_id].append(now)

    def get_limit_info(self, client_id: str) -> Dict:
        """Get current rate limit status for a client."""
        with self.lock:
            self._prune(client_id, time.time())
            current_count = len(self.request_log.get(client_id, []))

            return {
                "limit": self.max_requests,
                "remaining": max(0, self.max_requests - current_count),
                "reset_in": self.window_seconds
            }

    def reset(self):
        with self.lock:
            self.request_log.clear()
