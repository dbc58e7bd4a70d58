"""Login throttling for the teacher console."""

from __future__ import annotations

import hmac
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Deque, Dict, Optional


class LoginThrottle:
    """Lock an identity out after repeated failed login attempts."""

    def __init__(self, *, max_attempts: int = 5, lockout_minutes: int = 15) -> None:
        self._max_attempts = max_attempts
        self._lockout_window = timedelta(minutes=lockout_minutes)
        self._attempts: Dict[str, Deque[datetime]] = {}

    def record_attempt(self, user_id: str, *, success: bool, at: Optional[datetime] = None) -> bool:
        """Record a login attempt and return whether further attempts are allowed."""

        now = at or datetime.now(timezone.utc)
        bucket = self._attempts.setdefault(user_id, deque())
        self._prune(bucket, now)
        if success:
            bucket.clear()
            return True
        bucket.append(now)
        return len(bucket) < self._max_attempts

    def is_locked(self, user_id: str, *, at: Optional[datetime] = None) -> bool:
        now = at or datetime.now(timezone.utc)
        bucket = self._attempts.get(user_id)
        if not bucket:
            return False
        self._prune(bucket, now)
        return len(bucket) >= self._max_attempts

    def reset(self) -> None:
        self._attempts.clear()

    def _prune(self, bucket: Deque[datetime], now: datetime) -> None:
        while bucket and now - bucket[0] > self._lockout_window:
            bucket.popleft()


def passcode_matches(expected: str, supplied: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), (supplied or "").encode("utf-8"))


__all__ = ["LoginThrottle", "passcode_matches"]
