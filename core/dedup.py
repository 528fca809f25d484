"""Time-windowed suppression of repeated notifications."""

import logging
import threading
import time
from collections.abc import Callable

from config import settings

log = logging.getLogger(__name__)


class DedupCache:
    """Remembers notification fingerprints for a fixed TTL.

    Entries are evicted lazily when looked up and in bulk by ``purge``.
    Capacity is unbounded; expiry keeps it small.
    """

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = settings.dedup_ttl_hours * 3600 if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._expires: dict[str, float] = {}
        self._lock = threading.Lock()

    def should_notify(self, fingerprint: str) -> bool:
        with self._lock:
            now = self._clock()
            expires = self._expires.get(fingerprint)
            if expires is not None and expires > now:
                return False
            self._expires[fingerprint] = now + self.ttl
            return True

    def purge(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, expires in self._expires.items() if expires <= now]
            for key in expired:
                del self._expires[key]
        if expired:
            log.debug(f"Purged {len(expired)} expired fingerprints")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._expires)
