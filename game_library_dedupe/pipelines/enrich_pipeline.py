from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Sequence

from ..clients.igdb_client import AuthenticationError, IGDBClient
from ..config import IGDB
from ..models import LibraryEntry
from ..utils.progress import Progress
from ..utils.release_date_cache import ReleaseDateCache
from ..utils.utilities import iter_chunks, lookup_key


class EnrichmentCancelled(RuntimeError):
    """The caller set the cancel event; the cache keeps whatever was resolved so far."""


class ReleaseDateEnricher:
    """
    Fill in missing release dates from IGDB, through a persistent cache.

    Uncached titles are looked up in batches of `max_parallel_requests`. Each lookup holds one
    of `max_parallel_requests` permits while its request is in flight, the whole batch finishes
    before the next one starts, and `batch_cooldown_s` separates batches to stay under IGDB's
    request-rate ceiling.
    """

    def __init__(
        self,
        client: IGDBClient,
        cache: ReleaseDateCache,
        *,
        max_parallel_requests: int = IGDB.max_parallel_requests,
        batch_cooldown_s: float = IGDB.batch_cooldown_s,
        cache_max_age: timedelta = timedelta(days=IGDB.cache_max_age_days),
    ):
        if max_parallel_requests <= 0:
            raise ValueError("max_parallel_requests must be > 0")
        self.client = client
        self.cache = cache
        self.max_parallel_requests = int(max_parallel_requests)
        self.batch_cooldown_s = float(batch_cooldown_s)
        self.cache_max_age = cache_max_age
        self.stats: dict[str, int] = {
            "titles": 0,
            "cached": 0,
            "fetched": 0,
            "negative": 0,
            "failed": 0,
            "enriched": 0,
        }
        self._stats_lock = threading.Lock()

    def _bump(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    @staticmethod
    def _check_cancel(cancel: threading.Event) -> None:
        if cancel.is_set():
            raise EnrichmentCancelled("Enrichment cancelled")

    # -------------------------------------------------
    # Public API
    # -------------------------------------------------
    def enrich(
        self,
        entries: Sequence[LibraryEntry],
        cancel_event: threading.Event | None = None,
    ) -> list[LibraryEntry]:
        """
        Return `entries` with missing release dates filled from IGDB where possible.

        Raises AuthenticationError when no token can be obtained and EnrichmentCancelled when
        `cancel_event` is set. The cache is saved once at the end of the pass, cancelled or not.
        """
        cancel = cancel_event or threading.Event()
        self._check_cancel(cancel)
        self.client.authenticate()
        logging.info("[IGDB] Enriching game metadata...")

        titles = self.plan(entries)
        try:
            if titles:
                self._fetch_all(titles, cancel)
        finally:
            self.cache.save()

        out = self.merge(entries)
        logging.info(
            f"[IGDB] Done: titles={self.stats['titles']} cached={self.stats['cached']} "
            f"fetched={self.stats['fetched']} (negative={self.stats['negative']}) "
            f"failed={self.stats['failed']} enriched={self.stats['enriched']}"
        )
        return out

    def plan(self, entries: Sequence[LibraryEntry]) -> list[str]:
        """Distinct titles (case-insensitive, first spelling wins) that still need a lookup."""
        seen: set[str] = set()
        unique: list[str] = []
        for entry in entries:
            folded = entry.title.lower()
            if folded in seen:
                continue
            seen.add(folded)
            unique.append(entry.title)

        uncached: list[str] = []
        cached = 0
        for title in unique:
            key = lookup_key(title)
            if not key:
                continue
            _, hit = self.cache.try_get(key, self.cache_max_age)
            if hit:
                cached += 1
            else:
                uncached.append(title)

        self.stats["titles"] = len(unique)
        self.stats["cached"] = cached
        if self.stats["cached"]:
            logging.info(f"[IGDB] {self.stats['cached']} in cache, {len(uncached)} need lookup.")
        return uncached

    def merge(self, entries: Sequence[LibraryEntry]) -> list[LibraryEntry]:
        """Copy cached release dates onto entries that have none; existing dates always win."""
        out: list[LibraryEntry] = []
        for entry in entries:
            if entry.release_date is None:
                value, hit = self.cache.try_get(lookup_key(entry.title), self.cache_max_age)
                if hit and value is not None:
                    entry = replace(entry, release_date=value)
                    self._bump("enriched")
            out.append(entry)
        return out

    # -------------------------------------------------
    # Fetching
    # -------------------------------------------------
    def _fetch_all(self, titles: list[str], cancel: threading.Event) -> None:
        permits = threading.BoundedSemaphore(self.max_parallel_requests)
        progress = Progress("IGDB", total=len(titles))
        batches = iter_chunks(titles, self.max_parallel_requests)
        started = time.monotonic()
        processed = 0

        with ThreadPoolExecutor(
            max_workers=self.max_parallel_requests, thread_name_prefix="igdb"
        ) as executor:
            for i, batch in enumerate(batches):
                self._check_cancel(cancel)
                futures = [executor.submit(self._fetch_one, t, permits, cancel) for t in batch]
                # Barrier: every lookup of this batch settles before the cooldown starts.
                wait(futures)
                self._raise_batch_errors(futures)

                processed += len(batch)
                progress.maybe_log(processed)
                if i < len(batches) - 1 and self.batch_cooldown_s > 0:
                    if cancel.wait(self.batch_cooldown_s):
                        raise EnrichmentCancelled("Enrichment cancelled")

        elapsed = max(time.monotonic() - started, 1e-6)
        logging.info(
            f"[IGDB] Completed {len(titles)} lookups in {elapsed:.1f}s ({len(titles) / elapsed:.1f}/sec)"
        )

    @staticmethod
    def _raise_batch_errors(futures: list[Future]) -> None:
        errors = [f.exception() for f in futures if f.exception() is not None]
        if not errors:
            return
        # A token failure outranks a cancellation raised by a sibling task.
        for err in errors:
            if isinstance(err, AuthenticationError):
                raise err
        raise errors[0]

    def _acquire(self, permits: threading.BoundedSemaphore, cancel: threading.Event) -> None:
        self._check_cancel(cancel)
        while not permits.acquire(timeout=0.1):
            self._check_cancel(cancel)

    def _fetch_one(
        self, title: str, permits: threading.BoundedSemaphore, cancel: threading.Event
    ) -> None:
        self._acquire(permits, cancel)
        try:
            self._check_cancel(cancel)
            try:
                release, ok = self.client.find_release_date(title)
            except (AuthenticationError, EnrichmentCancelled):
                raise
            except Exception as e:
                logging.warning(f"[IGDB] Failed '{title}': {type(e).__name__}: {e}")
                release, ok = None, False
        finally:
            permits.release()

        if not ok:
            # Left uncached so the next run retries it.
            self._bump("failed")
            return
        self._store(lookup_key(title), release)
        self._bump("fetched")
        if release is None:
            self._bump("negative")

    def _store(self, key: str, release: datetime | None) -> None:
        with self.cache.locked():
            existing, hit = self.cache.try_get(key, self.cache_max_age)
            # Another title with the same lookup key may have found a date already.
            if release is None and hit and existing is not None:
                return
            self.cache.set(key, release)
