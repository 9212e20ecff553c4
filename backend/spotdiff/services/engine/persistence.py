"""Write-through JSON persistence with a process-local cache.

Store faults (unavailable backend, quota, corrupt JSON) stop here: reads
fall back, writes are skipped, and both are logged.
"""

import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised by a store when the backend rejects a read or write."""


class MemoryStore:
    """Key/value store backed by a dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.writes += 1
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class PersistenceAdapter:
    def __init__(self, store):
        self.store = store
        self._values: Dict[str, Any] = {}
        self._serialized: Dict[str, Optional[str]] = {}

    def load(self, key: str, fallback: Any = None) -> Any:
        if not key:
            return fallback
        if key in self._values:
            return self._values[key]
        try:
            raw = self.store.get(key)
            if not raw:
                self._values[key] = fallback
                self._serialized[key] = None
                return fallback
            parsed = json.loads(raw)
        except (StorageError, ValueError) as exc:
            logger.warning(f"[storage-read-failed] key={key} error={exc}")
            self._values[key] = fallback
            self._serialized[key] = None
            return fallback
        self._values[key] = parsed
        self._serialized[key] = raw
        return parsed

    def save(self, key: str, value: Any) -> bool:
        """Write ``value`` unless it serializes to what was last written. Returns True on a write."""
        if not key:
            return False
        try:
            serialized = json.dumps(value)
            if self._serialized.get(key) == serialized:
                return False
            self.store.set(key, serialized)
        except (StorageError, TypeError, ValueError) as exc:
            logger.warning(f"[storage-write-failed] key={key} error={exc}")
            return False
        self._values[key] = json.loads(serialized)
        self._serialized[key] = serialized
        return True

    def clear(self, key: str) -> bool:
        if not key:
            return False
        try:
            self.store.remove(key)
        except StorageError as exc:
            logger.warning(f"[storage-clear-failed] key={key} error={exc}")
            return False
        self._values.pop(key, None)
        self._serialized.pop(key, None)
        return True

    def reset_cache(self) -> None:
        self._values.clear()
        self._serialized.clear()


def differences_storage_key(level_id: Optional[str], prefix: str = 'differences') -> str:
    return f"{prefix}-{level_id}" if level_id else prefix
