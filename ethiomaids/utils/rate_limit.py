"""In-memory fixed-window rate limiter

Counts live in process memory only: every worker keeps its own window and a
restart clears them.
"""
import threading
import time

WINDOW_SECONDS = 60


class RateLimiter:
    def __init__(self, window_seconds=WINDOW_SECONDS, clock=time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows = {}  # key -> [window_start, count]
        self._lock = threading.Lock()

    def hit(self, key, limit):
        """Record a request; returns (allowed, retry_after_seconds)"""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window[0] >= self.window_seconds:
                window = [now, 0]
                self._windows[key] = window
            if window[1] >= limit:
                retry_after = max(1, int(window[0] + self.window_seconds - now + 0.999))
                return False, retry_after
            window[1] += 1
            return True, 0

    def remaining(self, key, limit):
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window[0] >= self.window_seconds:
                return limit
            return max(0, limit - window[1])

    def reset(self, key=None):
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


limiter = RateLimiter()
