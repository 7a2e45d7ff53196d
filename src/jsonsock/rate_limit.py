import threading
import time
from typing import Callable


DEFAULT_RATE_LIMIT = 4


class RateLimiter:
    """
    Counts connection attempts per source address.

    An address is refused once the count it had *before* this attempt exceeds max_attempts,
    so the first max_attempts + 1 connections get through. Refused attempts are not counted.

    With window=None counts never decay and a busy address stays blocked until the process
    restarts. With a window (seconds), an address's count starts over once the window has
    passed since its first counted attempt.
    """

    def __init__(self,
                 max_attempts: int = DEFAULT_RATE_LIMIT,
                 window: float | None = None,
                 clock: Callable[[], float] = time.monotonic):
        self.max_attempts = max_attempts
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._attempts: dict[str, int] = {}
        self._window_start: dict[str, float] = {}

    def is_rate_limited(self, address: str) -> bool:
        with self._lock:
            if self.window is not None:
                now = self._clock()
                started = self._window_start.setdefault(address, now)
                if now - started >= self.window:
                    self._attempts.pop(address, None)
                    self._window_start[address] = now

            count = self._attempts.get(address, 0)
            if count > self.max_attempts:
                return True
            self._attempts[address] = count + 1
            return False

    def attempts(self, address: str) -> int:
        with self._lock:
            return self._attempts.get(address, 0)
