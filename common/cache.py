# common/cache.py
from __future__ import annotations
import threading
import time
from typing import Any, Dict, Hashable, List, Optional, Tuple


class ListCache:
    """
    In-memory cache of list results, owned by whoever constructs it.
    Keys are caller-chosen (e.g. ("accounts", subscription_id)).
    ttl=None keeps entries until clear().
    """

    def __init__(self, ttl: Optional[float] = None):
        self.ttl = ttl
        self._data: Dict[Hashable, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            hit = self._data.get(key)
            if hit is None:
                return None
            value, stored_at = hit
            if self.ttl is not None and time.monotonic() - stored_at > self.ttl:
                del self._data[key]
                return None
            return value

    def put(self, key: Hashable, value: Any) -> Any:
        with self._lock:
            self._data[key] = (value, time.monotonic())
        return value

    def clear(self, key: Optional[Hashable] = None) -> int:
        """Drop one key, or everything when key is None. Returns entries removed."""
        with self._lock:
            if key is None:
                n = len(self._data)
                self._data.clear()
                return n
            return 1 if self._data.pop(key, None) is not None else 0

    def keys(self) -> List[Hashable]:
        with self._lock:
            return list(self._data)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
