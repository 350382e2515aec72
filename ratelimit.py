"""In-memory rate limiting for PIN authentication attempts.

Records are keyed by client address and live only in process memory, so a
restart forgets all failed attempts and lockouts.
"""
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class RateLimitRecord:
    attempts: int
    first_attempt: float
    lockout_until: Optional[float] = None


@dataclass
class RateLimitStatus:
    allowed: bool
    attempts_remaining: int = 0
    locked: bool = False
    remaining_minutes: int = 0
    message: str = ""


class PinRateLimiter:
    def __init__(
        self,
        max_attempts: int = 5,
        lockout_duration: float = 15 * 60,
        attempt_window: float = 5 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_attempts = max_attempts
        self.lockout_duration = lockout_duration
        self.attempt_window = attempt_window
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def get_record(self, key: str) -> Optional[RateLimitRecord]:
        with self._lock:
            return self._records.get(key)

    def check(self, key: str, now: Optional[float] = None) -> RateLimitStatus:
        now = self._clock() if now is None else now
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return RateLimitStatus(allowed=True, attempts_remaining=self.max_attempts)

            if record.lockout_until is not None and now < record.lockout_until:
                minutes = math.ceil((record.lockout_until - now) / 60)
                return RateLimitStatus(
                    allowed=False,
                    locked=True,
                    remaining_minutes=minutes,
                    message=f"Too many failed attempts. Try again in {minutes} minutes.",
                )

            if now - record.first_attempt > self.attempt_window:
                del self._records[key]
                return RateLimitStatus(allowed=True, attempts_remaining=self.max_attempts)

            if record.attempts >= self.max_attempts:
                record.lockout_until = now + self.lockout_duration
                minutes = math.ceil(self.lockout_duration / 60)
                return RateLimitStatus(
                    allowed=False,
                    locked=True,
                    remaining_minutes=minutes,
                    message=f"Too many failed attempts. Account locked for {minutes} minutes.",
                )

            return RateLimitStatus(
                allowed=True, attempts_remaining=self.max_attempts - record.attempts
            )

    def record_failure(self, key: str, now: Optional[float] = None) -> None:
        now = self._clock() if now is None else now
        with self._lock:
            record = self._records.get(key)
            if record is None:
                self._records[key] = RateLimitRecord(attempts=1, first_attempt=now)
            else:
                record.attempts += 1

    def record_success(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)
