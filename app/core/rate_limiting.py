"""Login throttling for voter and official sign-in."""

from collections import defaultdict, deque
import math
import threading
import time


class SlidingWindow:
    """
    Failed-attempt timestamps per key over a fixed window.

    In-memory and per process; counters reset on restart.
    """

    def __init__(self, limit: int, window_seconds: float) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def _prune(self, key: str, now: float) -> deque[float]:
        hits = self._hits[key]
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()
        return hits

    def retry_after(self, key: str) -> int | None:
        """Seconds until ``key`` may try again, or None when it is not blocked."""
        with self._lock:
            now = time.monotonic()
            hits = self._prune(key, now)
            if len(hits) < self.limit:
                return None
            return max(1, math.ceil(hits[0] + self.window_seconds - now))

    def hit(self, key: str) -> None:
        with self._lock:
            self._hits[key].append(time.monotonic())

    def clear(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)


class LoginRateLimiter:
    """Blocks an identifier after repeated failures, and a noisy client address."""

    MAX_ATTEMPTS_PER_IDENTIFIER = 5
    MAX_ATTEMPTS_PER_IP = 20
    WINDOW_SECONDS = 300

    def __init__(self) -> None:
        self.by_identifier = SlidingWindow(self.MAX_ATTEMPTS_PER_IDENTIFIER, self.WINDOW_SECONDS)
        self.by_ip = SlidingWindow(self.MAX_ATTEMPTS_PER_IP, self.WINDOW_SECONDS)

    @staticmethod
    def _key(identifier: str) -> str:
        return identifier.strip().lower()

    def check_login_allowed(
        self, identifier: str, ip_address: str | None = None
    ) -> tuple[bool, str | None]:
        """
        Returns:
            Tuple of (is_allowed, error_message)
        """
        wait = self.by_identifier.retry_after(self._key(identifier))
        if wait is not None:
            return False, f"Too many failed attempts. Try again in {wait} seconds"

        if ip_address:
            wait = self.by_ip.retry_after(ip_address)
            if wait is not None:
                return False, f"Too many login attempts from this address. Try again in {wait} seconds"

        return True, None

    def record_failed_attempt(self, identifier: str, ip_address: str | None = None) -> None:
        self.by_identifier.hit(self._key(identifier))
        if ip_address:
            self.by_ip.hit(ip_address)

    def record_successful_login(self, identifier: str, ip_address: str | None = None) -> None:
        self.by_identifier.clear(self._key(identifier))
        if ip_address:
            self.by_ip.clear(ip_address)


login_rate_limiter = LoginRateLimiter()
