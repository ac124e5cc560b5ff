"""Bounded key -> id cache shared by one sync run."""

from __future__ import annotations

from collections import OrderedDict
import threading
from typing import Awaitable, Callable, Dict, Iterable, Optional

from .validator import is_empty


KeyFetcher = Callable[[set], Awaitable[Dict[str, str]]]

DEFAULT_CAPACITY = 10_000


class KeyIdCache:
    """LRU cache of entity keys to backend ids for a single reference type."""

    def __init__(self, fetcher: KeyFetcher, capacity: int = DEFAULT_CAPACITY, logger=None) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._fetcher = fetcher
        self.capacity = capacity
        self.logger = logger
        self._entries: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entity_id = self._entries.get(key)
            if entity_id is not None:
                self._entries.move_to_end(key)
            return entity_id

    def put(self, key: Optional[str], entity_id: str) -> None:
        if is_empty(key):
            return
        with self._lock:
            self._entries[key] = entity_id
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                if self.logger is not None:
                    self.logger.debug("key_cache_evicted", extra={"event": "key_cache_evicted", "key": evicted})

    async def fetch_and_cache(self, keys: Iterable[Optional[str]]) -> Dict[str, str]:
        """Return key -> id for every requested key that exists, querying only the uncached ones."""
        wanted = {key for key in keys if not is_empty(key)}
        found: Dict[str, str] = {}
        missing = set()
        for key in wanted:
            entity_id = self.get(key)
            if entity_id is None:
                missing.add(key)
            else:
                found[key] = entity_id

        if missing:
            fetched = await self._fetcher(missing)
            for key, entity_id in fetched.items():
                self.put(key, entity_id)
                if key in missing:
                    found[key] = entity_id
        return found
