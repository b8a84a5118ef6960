from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

from .utilities import CacheIOTracker


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(raw: Any) -> datetime | None:
    if raw is None:
        return None
    dt = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class CacheEntry:
    value: datetime | None
    cached_at: datetime

    def to_json(self) -> dict[str, Any]:
        return {
            "value": self.value.isoformat() if self.value is not None else None,
            "cachedAt": self.cached_at.isoformat(),
        }

    @staticmethod
    def from_json(raw: Any) -> CacheEntry:
        if not isinstance(raw, dict) or "cachedAt" not in raw:
            raise ValueError(f"not a cache entry: {raw!r}")
        cached_at = _parse_ts(raw["cachedAt"])
        if cached_at is None:
            raise ValueError("cachedAt is null")
        return CacheEntry(value=_parse_ts(raw.get("value")), cached_at=cached_at)


class ReleaseDateCache:
    """
    Persistent lookup-key -> release date store with freshness checks.

    A hit with a `None` value is a negative result ("looked up, no date found") and is distinct
    from a miss. Stale entries stay in memory and are reported as misses until overwritten.

    All reads, writes and saves go through one re-entrant lock; callers that need an atomic
    read-check-then-write hold `locked()` around it.
    """

    def __init__(self, cache_path: str | Path, *, clock: Callable[[], datetime] = _utcnow):
        self.cache_path = Path(cache_path)
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, CacheEntry] = {}
        self._dirty = False
        self.stats: dict[str, int] = {"skipped_on_load": 0}
        self._cache_io = CacheIOTracker(self.stats)
        self._load(self._cache_io.load_json(self.cache_path))

    def locked(self) -> threading.RLock:
        return self._lock

    def try_get(self, key: str, max_age: timedelta) -> tuple[datetime | None, bool]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or self._clock() - entry.cached_at >= max_age:
                return None, False
            return entry.value, True

    def set(self, key: str, value: datetime | None) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, cached_at=self._clock())
            self._dirty = True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def save(self) -> bool:
        """
        Persist the map if it changed since the last save.

        Returns True when a file was written. Write failures are logged and leave the cache
        dirty; the in-memory data stays usable.
        """
        with self._lock:
            if not self._dirty:
                return False
            payload = {k: e.to_json() for k, e in self._entries.items()}
            try:
                self._cache_io.save_json(payload, self.cache_path)
            except OSError as e:
                logging.warning(f"[CACHE] Failed to save '{self.cache_path}': {e}")
                return False
            self._dirty = False
            logging.info(f"[CACHE] Saved {len(payload)} entries.")
            return True

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def _load(self, raw: dict[str, Any]) -> None:
        if not raw:
            return
        for k, v in raw.items():
            try:
                self._entries[str(k)] = CacheEntry.from_json(v)
            except (TypeError, ValueError):
                self.stats["skipped_on_load"] += 1
        skipped = self.stats["skipped_on_load"]
        if skipped:
            logging.warning(f"[CACHE] Skipped {skipped} malformed entries in '{self.cache_path.name}'")
        logging.info(f"[CACHE] Loaded {len(self._entries)} entries.")

    def format_stats(self) -> str:
        return f"entries={len(self)}, {CacheIOTracker.format_io(self.stats)}"
