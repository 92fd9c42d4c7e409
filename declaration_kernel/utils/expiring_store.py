"""
Expiring token store for authorization round-trips.

The registry login flow hands a random ``state`` token to the browser and
expects it back on the callback.  ``ExpiringTokenStore`` keeps the value
associated with each outstanding token for a limited time.  Every instance
is owned by its caller; nothing is kept at module level.
"""

from __future__ import annotations

import secrets
import threading
from datetime import datetime, timedelta
from typing import Generic, TypeVar

from declaration_kernel.domain.clock import Clock, SystemClock

V = TypeVar("V")

DEFAULT_TTL = timedelta(minutes=10)


class ExpiringTokenStore(Generic[V]):
    """
    Thread-safe token -> value map with per-entry expiry.

    Guarantees:
        - ``consume`` returns a value at most once per token.
        - Expired entries are never returned and are evicted on every access.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Clock | None = None):
        if ttl <= timedelta(0):
            raise ValueError(f"ttl must be positive, got {ttl}")
        self._ttl = ttl
        self._clock = clock or SystemClock()
        self._entries: dict[str, tuple[V, datetime]] = {}
        self._lock = threading.Lock()

    def issue(self, value: V) -> str:
        """Store ``value`` under a fresh URL-safe token and return the token."""
        with self._lock:
            now = self._clock.now()
            self._evict(now)
            token = secrets.token_urlsafe(32)
            while token in self._entries:
                token = secrets.token_urlsafe(32)
            self._entries[token] = (value, now + self._ttl)
            return token

    def consume(self, token: str) -> V | None:
        """Return and remove the value for ``token``; None if unknown or expired."""
        with self._lock:
            self._evict(self._clock.now())
            entry = self._entries.pop(token, None)
            return entry[0] if entry is not None else None

    def evict_expired(self) -> int:
        """Drop every expired entry; returns how many were dropped."""
        with self._lock:
            return self._evict(self._clock.now())

    def __len__(self) -> int:
        with self._lock:
            self._evict(self._clock.now())
            return len(self._entries)

    def _evict(self, now: datetime) -> int:
        expired = [token for token, (_, expires_at) in self._entries.items() if expires_at <= now]
        for token in expired:
            del self._entries[token]
        return len(expired)
