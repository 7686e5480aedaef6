"""LRU cache of pipeline answers keyed by query and corpus version."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Tuple

from docquery.models import CacheEntry, SearchAnswer
from docquery.utils.text import normalize_query

LOGGER = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


def cache_key(query: str, corpus_version: str) -> CacheKey:
    return normalize_query(query), corpus_version


class ResponseCache:
    """Bounded least-recently-used map of answers.

    Queries differing only by case or whitespace share an entry. Entries
    are tied to the corpus version they were computed against, so an
    answer never survives a change of the corpus.
    """

    def __init__(self, max_size: int = 100) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, query: str, corpus_version: str) -> SearchAnswer | None:
        key = cache_key(query, corpus_version)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.answer

    def set(self, query: str, corpus_version: str, answer: SearchAnswer) -> None:
        key = cache_key(query, corpus_version)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                LOGGER.debug("Cache evicted %r", evicted)
            self._entries[key] = CacheEntry(key=key, answer=answer)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        LOGGER.info("Response cache cleared")

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self.hits + self.misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": round(self.hits / lookups, 4) if lookups else 0.0,
            }
