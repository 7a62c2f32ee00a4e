"""
Rate limiting for the HTTP layer.
Implements the token bucket algorithm, one bucket per client IP.
"""

import time
import threading
from typing import Callable, Dict, Tuple

from fastapi import HTTPException, Request

from .monitoring import monitor


class TokenBucket:
    """Token bucket rate limiter implementation."""

    def __init__(self, capacity: int, fill_rate: float, clock: Callable[[], float] = time.time):
        """
        Initialize token bucket.

        Args:
            capacity: Maximum number of tokens
            fill_rate: Tokens per second to add
            clock: Time source, seconds
        """
        self.capacity = capacity
        self.fill_rate = fill_rate
        self._clock = clock

        self.tokens = float(capacity)
        self.last_update = clock()

        self._lock = threading.Lock()

    def _add_tokens(self) -> None:
        """Add new tokens based on elapsed time."""
        now = self._clock()
        elapsed = now - self.last_update
        self.tokens = min(self.capacity, self.tokens + elapsed * self.fill_rate)
        self.last_update = now

    def consume(self, tokens: int = 1) -> bool:
        """
        Try to consume tokens from the bucket.

        Returns:
            True if tokens were consumed, False if not enough tokens
        """
        with self._lock:
            self._add_tokens()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return True
            return False

    def limits(self) -> Dict[str, int]:
        reset = self._clock() + (self.capacity - self.tokens) / self.fill_rate if self.fill_rate else 0
        return {
            'limit': self.capacity,
            'remaining': int(self.tokens),
            'reset': int(reset),
        }


class RateLimiter:
    """Per-IP request limits, `requests_per_hour` per client by default."""

    def __init__(self, requests_per_hour: int = 50, idle_seconds: int = 3600,
                 cleanup_interval: int = 300, clock: Callable[[], float] = time.time):
        self.requests_per_hour = requests_per_hour
        self.idle_seconds = idle_seconds
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self.ip_buckets: Dict[str, TokenBucket] = {}
        self._last_cleanup = clock()
        self._lock = threading.Lock()

    def _bucket(self, ip: str) -> TokenBucket:
        with self._lock:
            bucket = self.ip_buckets.get(ip)
            if bucket is None:
                bucket = TokenBucket(self.requests_per_hour, self.requests_per_hour / 3600.0, self._clock)
                self.ip_buckets[ip] = bucket
            return bucket

    def cleanup(self) -> int:
        """Remove IP buckets that haven't been used recently; returns how many were dropped."""
        now = self._clock()
        with self._lock:
            self._last_cleanup = now
            stale = [ip for ip, b in self.ip_buckets.items() if now - b.last_update > self.idle_seconds]
            for ip in stale:
                del self.ip_buckets[ip]
        return len(stale)

    def _maybe_cleanup(self) -> None:
        # Run every cleanup_interval seconds, piggybacking on incoming requests
        if self._clock() - self._last_cleanup >= self.cleanup_interval:
            self.cleanup()

    def check_rate_limit(self, ip: str) -> Tuple[bool, Dict[str, int]]:
        """
        Check if request should be rate limited.

        Returns:
            Tuple of (allowed, limits) where limits is a dict with rate limit info
        """
        self._maybe_cleanup()
        bucket = self._bucket(ip)
        allowed = bucket.consume()
        if not allowed:
            monitor.track_error('RateLimitExceeded')
        return allowed, bucket.limits()

    @staticmethod
    def headers(limits: Dict[str, int]) -> Dict[str, str]:
        return {
            'X-RateLimit-Limit': str(limits['limit']),
            'X-RateLimit-Remaining': str(limits['remaining']),
            'X-RateLimit-Reset': str(limits['reset']),
        }

    def dependency(self):
        """FastAPI dependency that rejects a client over its limit with 429."""
        limiter = self

        def _check(request: Request) -> None:
            forwarded = request.headers.get('X-Forwarded-For')
            ip = forwarded.split(',')[0].strip() if forwarded else (request.client.host if request.client else None)
            if not ip:
                raise HTTPException(status_code=400, detail='Could not determine client IP')
            allowed, limits = limiter.check_rate_limit(ip)
            if not allowed:
                raise HTTPException(
                    status_code=429,
                    detail='Too many requests from this IP, please try again later.',
                    headers=limiter.headers(limits),
                )

        return _check
