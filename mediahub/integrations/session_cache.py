"""
Process-wide cache of login sessions for form-login services.

Entries are keyed by the service base URL, not by user: the login pair is
fixed per configured base URL, so every request to that URL can share one
session. Entries expire after a TTL kept shorter than the upstream session
lifetime and are dropped explicitly when the upstream answers 401.

Concurrent first use of a base URL may log in more than once; the later
login simply replaces the earlier entry. Entries are replaced wholesale under
a lock, so readers never observe a partially written entry.
"""
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from mediahub.core.config import settings
from mediahub.core.logging_config import LogCategory, log_debug


@dataclass(frozen=True)
class SessionEntry:
    """A cached session token and the monotonic time it stops being used."""
    sid: str
    expires_at: float


class SessionCache:
    """
    Time-bounded map of base URL → session token.

    Args:
        ttl_seconds: Lifetime of a cached session (defaults to FORM_SESSION_TTL_SECONDS)
        clock: Monotonic clock, injectable for tests
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.form_session_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, SessionEntry] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, base_url: str) -> Optional[str]:
        """Return the cached session token if present and not expired."""
        with self._lock:
            entry = self._entries.get(base_url)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            log_debug("Session expired", category=LogCategory.SERVICES, base_url=base_url)
            return None
        return entry.sid

    def set(self, base_url: str, sid: str) -> SessionEntry:
        """Store a fresh session token for base_url."""
        entry = SessionEntry(sid=sid, expires_at=self._clock() + self._ttl)
        with self._lock:
            self._entries[base_url] = entry
        return entry

    def invalidate(self, base_url: str) -> None:
        """Drop the session for base_url (e.g. after a 401)."""
        with self._lock:
            removed = self._entries.pop(base_url, None)
        if removed is not None:
            log_debug("Session invalidated", category=LogCategory.SERVICES, base_url=base_url)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_session_cache: Optional[SessionCache] = None
_session_cache_lock = threading.Lock()


def get_session_cache() -> SessionCache:
    """Get the process-wide session cache."""
    global _session_cache
    if _session_cache is None:
        with _session_cache_lock:
            if _session_cache is None:
                _session_cache = SessionCache()
    return _session_cache


def reset_session_cache() -> None:
    """
    Drop the process-wide session cache.

    This should only be called in tests.
    """
    global _session_cache
    with _session_cache_lock:
        _session_cache = None
