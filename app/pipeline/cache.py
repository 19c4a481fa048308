from __future__ import annotations

import hashlib
import re
import threading
import time
from collections import OrderedDict
from typing import Callable

from app.schemas.resume import ResumeDocument

_WHITESPACE_RE = re.compile(r"\s+")


def resume_cache_key(resume_text: str) -> str:
    normalized = _WHITESPACE_RE.sub(" ", resume_text or "").strip()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class ParsedResumeCache:
    """Bounded LRU cache of parsed résumés keyed by normalised-text hash.

    Entries expire ``ttl_seconds`` after insertion; when full, the least
    recently used entry is evicted. Documents are copied on the way in and
    out so pipeline runs never share a mutable résumé.
    """

    def __init__(
        self,
        max_entries: int = 256,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be greater than 0")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be greater than 0")
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, ResumeDocument]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> ResumeDocument | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, document = entry
            if expires_at <= now:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return document.clone()

    def put(self, key: str, document: ResumeDocument) -> None:
        expires_at = self._clock() + self._ttl_seconds
        with self._lock:
            self._entries[key] = (expires_at, document.clone())
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
