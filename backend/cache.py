"""
TTL cache for dashboard snapshots and summaries.
The backing mapping is injected: st.session_state in the app, a plain
dict elsewhere.
"""

import time
import hashlib
import json
import logging
from typing import Any, Optional, Callable, MutableMapping

from backend.config import DEFAULT_CACHE_TTL

logger = logging.getLogger(__name__)


class SummaryCache:
    """TTL cache storing {value, ts} entries in a caller-provided mapping."""

    def __init__(self, ttl_seconds: int = DEFAULT_CACHE_TTL,
                 store: Optional[MutableMapping] = None,
                 clock: Callable[[], float] = time.time):
        self.ttl = ttl_seconds
        self._store = store if store is not None else {}
        self._clock = clock

    @staticmethod
    def make_key(prefix: str, **kwargs) -> str:
        payload = json.dumps(kwargs, sort_keys=True, default=str)
        h = hashlib.md5(payload.encode()).hexdigest()[:8]
        return f"{prefix}:{h}"

    def _expired(self, entry: dict) -> bool:
        return self._clock() - entry["ts"] > self.ttl

    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._store[key]
            logger.debug(f"Cache expired: {key}")
            return None
        logger.debug(f"Cache hit: {key}")
        return entry["value"]

    def set(self, key: str, value: Any) -> None:
        self._store[key] = {"value": value, "ts": self._clock()}
        logger.debug(f"Cache set: {key}")

    def invalidate(self, key: str) -> None:
        self._store.pop(key, None)

    def clear_all(self) -> None:
        self._store.clear()
        logger.info("Cache cleared")

    def cached(self, key: str, fn: Callable, *args, **kwargs) -> Any:
        """Get from cache or compute and store."""
        result = self.get(key)
        if result is not None:
            return result
        result = fn(*args, **kwargs)
        self.set(key, result)
        return result

    def stats(self) -> dict:
        alive = sum(1 for entry in self._store.values() if not self._expired(entry))
        return {"total_keys": len(self._store), "alive_keys": alive, "ttl_seconds": self.ttl}
