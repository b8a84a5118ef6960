from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from ..clients.igdb_client import IGDBClient
from ..dedupe import DuplicateGroup, find_duplicate_groups, log_duplicate_groups
from ..heroic_config import apply_hidden_games
from ..models import LibraryEntry
from ..readers import GogReader, LegendaryReader, NileReader, read_all_libraries
from ..report import write_duplicates_report
from ..settings import AppSettings
from ..utils.release_date_cache import ReleaseDateCache
from .enrich_pipeline import ReleaseDateEnricher


@dataclass(frozen=True)
class DedupeResult:
    entries: list[LibraryEntry]
    groups: list[DuplicateGroup]
    hidden: list[LibraryEntry]
    added: int


def enrich_with_metadata(
    entries: list[LibraryEntry],
    settings: AppSettings,
    *,
    cache_path: Path,
    refresh_cache: bool = False,
    cancel_event: threading.Event | None = None,
    client: IGDBClient | None = None,
) -> list[LibraryEntry]:
    if not settings.igdb.is_configured:
        logging.info("[IGDB] Not configured - using local metadata only.")
        return entries

    cache = ReleaseDateCache(cache_path)
    if refresh_cache:
        logging.info("[IGDB] --refresh-cache: clearing cached metadata...")
        cache.clear()
        cache.save()

    client = client or IGDBClient(settings.igdb.client_id, settings.igdb.client_secret)
    enricher = ReleaseDateEnricher(client, cache)
    out = enricher.enrich(entries, cancel_event=cancel_event)
    logging.info(f"[IGDB] {client.format_stats()}; cache {cache.format_stats()}")
    return out


def run_dedupe(
    settings: AppSettings,
    *,
    cache_path: Path,
    refresh_cache: bool = False,
    use_igdb: bool = True,
    report_path: Path | None = None,
    cancel_event: threading.Event | None = None,
    client: IGDBClient | None = None,
) -> DedupeResult:
    """
    Read every configured library, enrich, pick duplicates and hide the losers in Heroic.
    """
    readers = [
        LegendaryReader(settings.legendary_library_path),
        GogReader(settings.gog_library_path),
        NileReader(settings.nile_library_path),
    ]
    entries = read_all_libraries(readers)

    if use_igdb:
        entries = enrich_with_metadata(
            entries,
            settings,
            cache_path=cache_path,
            refresh_cache=refresh_cache,
            cancel_event=cancel_event,
            client=client,
        )

    groups = find_duplicate_groups(
        entries, settings.priority, prefer_enhanced=settings.prefer_enhanced_editions
    )
    log_duplicate_groups(groups)
    hidden = [loser for group in groups for loser in group.hide]
    logging.info(f"Total duplicates found to hide: {len(hidden)}")

    if report_path is not None:
        out = write_duplicates_report(groups, report_path)
        logging.info(f"Duplicates report: {out}")

    added = 0
    if hidden:
        added = apply_hidden_games(settings.heroic_config_path, hidden, dry_run=settings.dry_run)
    else:
        logging.info("Your library is already clean!")
    return DedupeResult(entries=entries, groups=groups, hidden=hidden, added=added)
