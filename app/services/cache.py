# app/services/cache.py
"""
Cache mémoire à durée de vie (TTL) pour les réponses des APIs publiques.
Clés de la forme "<source>:<url>?<params>", purge possible par motif ("ban:*").
"""
from __future__ import annotations

import threading
from time import monotonic
from fnmatch import fnmatchcase
from typing import Any, Dict, Optional, Tuple

from loguru import logger


class TTLCache:
    def __init__(self, default_ttl: float = 3600, max_entries: int = 1000):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._store: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._store.get(key)
            if not item:
                return None
            value, exp = item
            if exp <= monotonic():
                self._store.pop(key, None)
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            return
        with self._lock:
            self._store[key] = (value, monotonic() + ttl)
            if len(self._store) > self.max_entries:
                self.cleanup()

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self, pattern: str = "*") -> int:
        """Supprime les clés correspondant au motif (jokers shell). Renvoie le nombre supprimé."""
        with self._lock:
            keys = [k for k in self._store if fnmatchcase(k, pattern)]
            for k in keys:
                self._store.pop(k, None)
        logger.info(f"[CACHE] {len(keys)} entrée(s) supprimée(s) (motif {pattern!r})")
        return len(keys)

    def cleanup(self) -> None:
        with self._lock:
            now = monotonic()
            for k, (_, exp) in list(self._store.items()):
                if exp <= now:
                    self._store.pop(k, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
