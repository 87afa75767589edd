"""
In-memory rate limiting for chat write operations (send, report).
"""
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Dict, List


class RateLimiter:
    """Sliding-window rate limiter keyed by user and operation."""

    def __init__(self):
        self._attempts: Dict[str, List[datetime]] = {}
        self._lock = Lock()

    def is_allowed(
        self,
        user_id: str,
        operation: str,
        max_attempts: int = 10,
        window_seconds: int = 60
    ) -> bool:
        """
        Check if user can perform operation within rate limit.
        A permitted call is counted against the window.

        Args:
            user_id: User ID
            operation: Operation name (e.g., 'send_message', 'report_item')
            max_attempts: Max attempts allowed in window
            window_seconds: Time window in seconds

        Returns:
            True if allowed, False if rate limited
        """
        if max_attempts <= 0:
            return True

        key = f"{user_id}:{operation}"
        now = datetime.now(timezone.utc)
        window_start = now - timedelta(seconds=window_seconds)

        with self._lock:
            attempts = [a for a in self._attempts.get(key, []) if a > window_start]

            if len(attempts) < max_attempts:
                attempts.append(now)
                self._attempts[key] = attempts
                return True

            self._attempts[key] = attempts
            return False

    def reset(self) -> None:
        with self._lock:
            self._attempts.clear()


# Global rate limiter instance
_rate_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    """Get global rate limiter instance."""
    return _rate_limiter
