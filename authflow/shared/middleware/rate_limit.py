# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps

from flask import Request, request

from authflow.shared.config import SecurityConfig
from authflow.shared.errors.base import RateLimitedError
from authflow.shared.logging import logger


@dataclass
class Bucket:
    timestamps: deque[float]


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by endpoint and client address.

    Per process only; several workers each keep their own window. Buckets
    idle for a whole window are dropped, at most once per window.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = max(1, int(limit))
        self._window = max(0.1, float(window_seconds))
        self._clock = clock
        self._buckets: dict[str, Bucket] = defaultdict(lambda: Bucket(deque(maxlen=self._limit)))
        self._lock = threading.Lock()
        self._last_prune = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self._window:
            return
        self._last_prune = now
        stale = [
            key
            for key, bucket in self._buckets.items()
            if not bucket.timestamps or now - bucket.timestamps[-1] > self._window
        ]
        for key in stale:
            del self._buckets[key]
        if stale:
            logger.debug(f"rate_limit: pruned buckets={len(stale)}")

    def hit(self, key: str) -> float:
        """Record a request; return 0 if allowed, else seconds until a slot frees."""
        now = self._clock()
        with self._lock:
            self._prune(now)
            bucket = self._buckets[key]
            # Drop old
            while bucket.timestamps and (now - bucket.timestamps[0]) > self._window:
                bucket.timestamps.popleft()
            if len(bucket.timestamps) >= self._limit:
                return self._window - (now - bucket.timestamps[0])
            bucket.timestamps.append(now)
            return 0.0


def client_address(req: Request, *, trust_forwarded_for: bool = False) -> str:
    """Peer address, or the first X-Forwarded-For hop when a proxy is trusted."""
    if trust_forwarded_for:
        forwarded = req.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        if forwarded:
            return forwarded
    return req.remote_addr or "unknown"


def rate_limit(
    security: SecurityConfig,
    limit: int | None = None,
    window_seconds: float | None = None,
):
    """Decorator factory; every view wrapped by one call shares its limiter."""
    limiter = InMemoryRateLimiter(
        limit or security.rate_limit_requests,
        window_seconds or security.rate_limit_window,
    )

    def decorator(f: Callable):
        if not security.enable_rate_limit:
            return f

        @wraps(f)
        def wrapper(*args, **kwargs):
            client = client_address(request, trust_forwarded_for=security.trust_forwarded_for)
            retry_after = limiter.hit(f"{request.path}:{client}")
            if retry_after:
                logger.warning(f"rate_limit: rejected path={request.path}")
                raise RateLimitedError(retry_after)
            return f(*args, **kwargs)

        return wrapper

    return decorator


__all__ = ["InMemoryRateLimiter", "client_address", "rate_limit"]
