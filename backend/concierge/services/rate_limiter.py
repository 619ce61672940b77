"""Sliding-window rate limiter for public enquiry intake.

Process-local and advisory: each worker keeps its own map. A deployment with
several instances would swap in a shared-store implementation exposing the
same ``allow(key)`` method.
"""
import logging
import threading
import time
from collections import deque
from typing import Callable, Optional

from fastapi import Request

from concierge.config import settings

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, deque] = {}

    def allow(self, key: str) -> bool:
        """Record a hit for ``key`` and return whether it is within the limit.

        Rejected hits are not recorded.
        """
        now = self._clock()
        with self._lock:
            bucket = self._entries.setdefault(key, deque())
            while bucket and now - bucket[0] >= self.window_seconds:
                bucket.popleft()
            if len(bucket) >= self.max_requests:
                return False
            bucket.append(now)
            if len(self._entries) > 10_000:
                self._prune(now)
            return True

    def _prune(self, now: float) -> None:
        self._entries = {
            key: bucket
            for key, bucket in self._entries.items()
            if bucket and now - bucket[-1] < self.window_seconds
        }

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


enquiry_rate_limiter = SlidingWindowRateLimiter(
    max_requests=settings.ENQUIRY_RATE_MAX,
    window_seconds=settings.ENQUIRY_RATE_WINDOW_SECONDS,
)


def client_ip(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip() if forwarded else ""
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enquiry_rate_key(ip: str, email: Optional[str]) -> str:
    return f"{ip}:{(email or '').lower()}"
