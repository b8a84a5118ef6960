from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Store(str, Enum):
    GOG = "gog"
    EPIC = "epic"
    AMAZON = "amazon"

    @classmethod
    def parse(cls, raw: str) -> Store:
        s = str(raw or "").strip().lower()
        for store in cls:
            if store.value == s:
                return store
        allowed = ", ".join(store.value for store in cls)
        raise ValueError(f"Unknown store: {raw!r} (expected one of: {allowed})")

    @property
    def label(self) -> str:
        return self.name.capitalize() if self is not Store.GOG else "GOG"


class EditionKind(str, Enum):
    ORIGINAL = "Original"
    REMASTERED = "Remastered"
    DEFINITIVE = "Definitive"
    ENHANCED = "Enhanced"
    COMPLETE = "Complete"
    GAME_OF_THE_YEAR = "GameOfTheYear"


# Checked in order; the first marker found in the lowercased title wins.
_EDITION_MARKERS: tuple[tuple[tuple[str, ...], EditionKind], ...] = (
    (("remaster",), EditionKind.REMASTERED),
    (("definitive",), EditionKind.DEFINITIVE),
    (("enhanced",), EditionKind.ENHANCED),
    (("complete",), EditionKind.COMPLETE),
    (("game of the year", "goty"), EditionKind.GAME_OF_THE_YEAR),
)


def detect_edition(title: str) -> EditionKind:
    lower = str(title or "").lower()
    for markers, kind in _EDITION_MARKERS:
        if any(m in lower for m in markers):
            return kind
    return EditionKind.ORIGINAL


@dataclass(frozen=True)
class LibraryEntry:
    """
    One game as listed by one store.

    `source_id` is the store's own identifier (Heroic's `appName`). Entries are never mutated;
    enrichment returns a copy via `dataclasses.replace`.
    """

    title: str
    source_id: str
    source: Store
    release_date: datetime | None = None

    @property
    def edition(self) -> EditionKind:
        return detect_edition(self.title)

    @property
    def is_enhanced(self) -> bool:
        return self.edition is not EditionKind.ORIGINAL

    def describe(self) -> str:
        parts: list[str] = []
        if self.is_enhanced:
            parts.append(self.edition.value)
        if self.release_date is not None:
            parts.append(self.release_date.strftime("%Y-%m-%d"))
        info = f" [{', '.join(parts)}]" if parts else ""
        return f"{self.source.label:<6} | {self.title} ({self.source_id}){info}"

    def __str__(self) -> str:
        return f"[{self.source.label}] {self.title} ({self.source_id})"
