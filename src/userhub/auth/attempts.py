"""Failed-login attempt tracking for brute-force lockout.

Learn: Each username gets a counter that starts at its first failure and
expires a fixed window later, no matter how many failures follow. The
state per key is:

    absent → counting (first failure) → exceeded (count ≥ max_attempts)
           → absent (window expired or evict())

Keys are attacker-controlled (anyone can submit any username), so the
cache is bounded: when it is full the oldest entry still below the
threshold is dropped, so a flood of new keys cannot push out the counter
that keeps an account locked. Entries are
kept in an OrderedDict in creation order; with a fixed window that is also
expiry order, so purging expired entries only ever looks at the front.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Callable

import structlog

logger = structlog.get_logger()


@dataclass
class _Attempts:
    count: int
    expires_at: float


class LoginAttemptTracker:
    """Thread-safe, size- and time-bounded failed-attempt counter."""

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 900,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")

        self.max_attempts = max_attempts
        self.window_seconds = float(window_seconds)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, _Attempts]" = OrderedDict()
        self._lock = Lock()

    def record_failure(self, identifier: str) -> int:
        """Count one failed attempt. Returns the count inside the window.

        When the cache is full and identifier is new, the oldest entry still
        below max_attempts makes room. Entries at or over the threshold are
        kept until their window ends; if every entry is, the new failure is
        counted but not stored.
        """
        now = self._clock()
        with self._lock:
            self._purge_expired(now)
            entry = self._entries.get(identifier)
            if entry is None:
                if len(self._entries) >= self.max_entries and not self._make_room():
                    logger.warning("login_attempts.capacity_exhausted", identifier=identifier)
                    return 1
                entry = _Attempts(count=0, expires_at=now + self.window_seconds)
                self._entries[identifier] = entry
            entry.count += 1
            return entry.count

    def attempts(self, identifier: str) -> int:
        """Current failure count for identifier (0 when absent or expired)."""
        now = self._clock()
        with self._lock:
            self._purge_expired(now)
            entry = self._entries.get(identifier)
            return entry.count if entry else 0

    def has_exceeded_max_attempts(self, identifier: str) -> bool:
        return self.attempts(identifier) >= self.max_attempts

    def evict(self, identifier: str) -> None:
        """Forget identifier so counting starts fresh."""
        with self._lock:
            self._entries.pop(identifier, None)

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired(self._clock())
            return len(self._entries)

    def _purge_expired(self, now: float) -> None:
        # Caller holds the lock.
        while self._entries:
            oldest = next(iter(self._entries.values()))
            if oldest.expires_at > now:
                break
            self._entries.popitem(last=False)

    def _make_room(self) -> bool:
        # Caller holds the lock. Scans at most max_entries entries.
        for key, entry in self._entries.items():
            if entry.count < self.max_attempts:
                del self._entries[key]
                logger.debug("login_attempts.capacity_evicted", identifier=key)
                return True
        return False
