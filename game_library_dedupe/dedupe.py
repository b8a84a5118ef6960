from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import LibraryEntry, Store
from .utils.utilities import normalize_title

DEFAULT_PRIORITY: tuple[Store, ...] = (Store.GOG, Store.EPIC, Store.AMAZON)


@dataclass(frozen=True)
class DuplicateGroup:
    key: str
    keep: LibraryEntry
    hide: list[LibraryEntry]

    @property
    def members(self) -> list[LibraryEntry]:
        return [self.keep, *self.hide]


def _group_by_title(entries: Iterable[LibraryEntry]) -> dict[str, list[LibraryEntry]]:
    groups: dict[str, list[LibraryEntry]] = {}
    for entry in entries:
        key = normalize_title(entry.title)
        if not key:
            continue
        groups.setdefault(key, []).append(entry)
    return {k: v for k, v in groups.items() if len(v) > 1}


def _sort_key(entry: LibraryEntry, *, rank: dict[Store, int], prefer_enhanced: bool):
    priority = rank.get(entry.source, len(rank))
    enhanced = 0 if entry.is_enhanced else 1
    # Newest first; a missing date sorts as the oldest possible one.
    released = -entry.release_date.timestamp() if entry.release_date is not None else float("inf")
    if prefer_enhanced:
        return (enhanced, priority, released)
    return (priority, enhanced, released)


def find_duplicate_groups(
    entries: Sequence[LibraryEntry],
    priority: Sequence[Store] = DEFAULT_PRIORITY,
    prefer_enhanced: bool = True,
) -> list[DuplicateGroup]:
    """
    Group entries by normalized title and pick one entry to keep per group.

    With `prefer_enhanced`, a remaster/definitive/etc. edition beats store priority; otherwise
    store priority comes first and the edition only breaks ties. The newest release date is the
    last criterion. Remaining ties keep input order. Stores missing from `priority` rank after
    all listed ones.
    """
    rank: dict[Store, int] = {}
    for i, store in enumerate(priority):
        rank.setdefault(store, i)

    out: list[DuplicateGroup] = []
    for key, members in _group_by_title(entries).items():
        ordered = sorted(
            members, key=lambda e: _sort_key(e, rank=rank, prefer_enhanced=prefer_enhanced)
        )
        out.append(DuplicateGroup(key=key, keep=ordered[0], hide=ordered[1:]))
    return out


def log_duplicate_groups(groups: Sequence[DuplicateGroup]) -> None:
    for group in groups:
        logging.info(f"Match Group [key: {group.key}]")
        logging.info(f"  [KEEP] {group.keep.describe()}")
        for loser in group.hide:
            logging.info(f"  [HIDE] {loser.describe()}")
        logging.info("-" * 50)


def identify_duplicates(
    entries: Sequence[LibraryEntry],
    priority: Sequence[Store] = DEFAULT_PRIORITY,
    prefer_enhanced: bool = True,
) -> list[LibraryEntry]:
    """Return every entry that should be hidden (all group members except each winner)."""
    groups = find_duplicate_groups(entries, priority, prefer_enhanced)
    log_duplicate_groups(groups)
    return [loser for group in groups for loser in group.hide]
