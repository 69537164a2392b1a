from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Callable

from .models import TransportHub
from .settings import settings

HubCacheKey = tuple[str, float, float, int]


def hub_cache_key(hub_type: str, lat: float, lon: float, radius_m: float) -> HubCacheKey:
    # ~100 m grid so the same parcel hits the same entry
    return (hub_type, round(lat, 3), round(lon, 3), int(radius_m))


class HubCacheStore:
    """In-process TTL + LRU map from hub queries to their ranked results.

    Only successful lookups are stored. Entries are copied in and out, so a
    caller mutating a returned hub never changes what the next caller sees.
    """

    def __init__(
        self,
        *,
        ttl_s: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = max(1.0, float(ttl_s))
        self.max_entries = max(1, int(max_entries))
        self._clock = clock
        self._lock = Lock()
        self._entries: OrderedDict[HubCacheKey, tuple[float, list[TransportHub]]] = OrderedDict()
        self._counters = {"hits": 0, "misses": 0, "expired": 0, "evictions": 0}

    def get(self, key: HubCacheKey) -> list[TransportHub] | None:
        now = self._clock()
        with self._lock:
            found = self._entries.get(key)
            if found is not None and now - found[0] > self.ttl_s:
                del self._entries[key]
                self._counters["expired"] += 1
                found = None
            if found is None:
                self._counters["misses"] += 1
                return None
            self._entries.move_to_end(key)
            self._counters["hits"] += 1
            hubs = found[1]
        return [hub.model_copy() for hub in hubs]

    def set(self, key: HubCacheKey, hubs: list[TransportHub]) -> None:
        stored = [hub.model_copy() for hub in hubs]
        now = self._clock()
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (now, stored)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                self._counters["evictions"] += 1

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def snapshot(self) -> dict[str, float | int]:
        with self._lock:
            return {
                "size": len(self._entries),
                **self._counters,
                "ttl_s": self.ttl_s,
                "max_entries": self.max_entries,
            }


HUB_CACHE = HubCacheStore(ttl_s=settings.hub_cache_ttl_s, max_entries=settings.hub_cache_max_entries)


def clear_hub_cache() -> int:
    return HUB_CACHE.clear()


def hub_cache_stats() -> dict[str, float | int]:
    return HUB_CACHE.snapshot()
