"""Per-session API keys for interactive MCP clients.

An agent calls ``set_api_key`` once and later tool calls in the same MCP
session fall back to that key. Keys live in memory only; a session's key is
dropped when the session closes, when the agent clears it, or after it has been
idle for ``ttl_seconds``.

Concurrent calls within one session race on set/clear; the last write wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Dict, Optional

log = logging.getLogger(__name__)

# stdio transport has exactly one client, hence one fixed session id.
DEFAULT_SESSION_ID = "stdio"


@dataclass
class _SessionKey:
    api_key: str
    last_active: float = field(default_factory=time.time)

    def touch(self) -> None:
        self.last_active = time.time()


class SessionKeyCache:
    def __init__(self, ttl_seconds: float = 3600 * 4) -> None:
        self._keys: Dict[str, _SessionKey] = {}
        self._lock = threading.Lock()
        self._ttl = float(ttl_seconds)

    def set(self, session_id: Optional[str], api_key: str) -> None:
        sid = session_id or DEFAULT_SESSION_ID
        with self._lock:
            self._keys[sid] = _SessionKey(api_key=api_key)

    def get(self, session_id: Optional[str]) -> Optional[str]:
        sid = session_id or DEFAULT_SESSION_ID
        with self._lock:
            entry = self._keys.get(sid)
            if entry is None:
                return None
            if self._ttl > 0 and time.time() - entry.last_active > self._ttl:
                del self._keys[sid]
                return None
            entry.touch()
            return entry.api_key

    def clear(self, session_id: Optional[str]) -> bool:
        sid = session_id or DEFAULT_SESSION_ID
        with self._lock:
            return self._keys.pop(sid, None) is not None

    def on_session_close(self, session_id: str) -> None:
        if self.clear(session_id):
            log.info("dropped cached API key for closed session %s", session_id)

    def cleanup_stale(self, max_age: Optional[float] = None) -> int:
        """Drop keys idle for longer than ``max_age`` (default: the TTL)."""

        cutoff = time.time() - (self._ttl if max_age is None else max_age)
        with self._lock:
            stale = [sid for sid, entry in self._keys.items() if entry.last_active < cutoff]
            for sid in stale:
                del self._keys[sid]
        if stale:
            log.info("dropped %d idle session keys", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
