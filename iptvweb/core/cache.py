"""
Short-lived memo in front of the metadata APIs.

Entries expire lazily: a read at or after the expiry instant deletes the entry
and reports a miss. Nothing sweeps in the background.
"""
from __future__ import annotations
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class MetadataCache:
    def __init__(self, ttl: float = 60.0, *, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self.ttl)

    def __len__(self):
        return len(self._entries)
