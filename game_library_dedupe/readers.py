"""
Readers for the per-store library files Heroic keeps on disk.

Each reader turns one JSON file into `LibraryEntry` values. A missing file is simply an empty
library; an unreadable one is logged and also yields nothing, so one broken store never blocks
deduplication of the others.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

from .models import LibraryEntry, Store


def parse_release_date(raw: Any) -> datetime | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if raw <= 0:
            return None
        try:
            return datetime.fromtimestamp(raw, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    s = str(raw).strip()
    if not s:
        return None
    ts = pd.to_datetime(s, utc=True, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _get_path(node: Any, dotted: str) -> Any:
    current = node
    for part in dotted.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def _first_value(node: Any, fields: Sequence[str]) -> str:
    for name in fields:
        value = _get_path(node, name)
        if value is None:
            continue
        s = str(value).strip()
        if s:
            return s
    return ""


def find_library_array(root: Any, property_name: str = "library") -> list[Any] | None:
    """
    Locate the list of games in a library file.

    Accepts a bare array, `{<property_name>: [...]}` or `{<property_name>: {"games": [...]}}`.
    """
    if isinstance(root, list):
        return root
    if not isinstance(root, dict):
        return None
    node = root.get(property_name)
    if isinstance(node, list):
        return node
    if isinstance(node, dict) and isinstance(node.get("games"), list):
        return node["games"]
    return None


class StoreReader:
    store: Store
    array_properties: tuple[str, ...] = ("library", "games")
    id_fields: tuple[str, ...] = ("app_name",)
    title_fields: tuple[str, ...] = ("title",)
    date_fields: tuple[str, ...] = ("extra.releaseDate",)

    def __init__(self, path: str | Path | None):
        self.path = Path(path) if path else None

    def read(self) -> list[LibraryEntry]:
        if self.path is None or not self.path.exists():
            return []
        try:
            root = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logging.error(f"[ERROR] Error reading {self.store.label} library '{self.path}': {e}")
            return []
        return self.parse(root)

    def parse(self, root: Any) -> list[LibraryEntry]:
        items: list[Any] | None = None
        for prop in self.array_properties:
            items = find_library_array(root, prop)
            if items is not None:
                break
        if items is None:
            return []

        out: list[LibraryEntry] = []
        for item in items:
            source_id = _first_value(item, self.id_fields)
            title = _first_value(item, self.title_fields)
            if not source_id or not title:
                continue
            release = None
            for name in self.date_fields:
                release = parse_release_date(_get_path(item, name))
                if release is not None:
                    break
            out.append(LibraryEntry(title=title, source_id=source_id, source=self.store, release_date=release))
        return out


class LegendaryReader(StoreReader):
    store = Store.EPIC
    title_fields = ("title", "app_title")


class NileReader(StoreReader):
    store = Store.AMAZON
    id_fields = ("app_name", "id")


class GogReader(StoreReader):
    store = Store.GOG
    array_properties = ("library", "games", "installed")
    id_fields = ("app_name", "id", "gameID")
    title_fields = ("title", "name")
    date_fields = ("extra.releaseDate", "extra.about.releaseDate")


def read_all_libraries(readers: Sequence[StoreReader]) -> list[LibraryEntry]:
    entries: list[LibraryEntry] = []
    for reader in readers:
        games = reader.read()
        if games:
            logging.info(f"Reading {reader.store.label:<8}... {len(games)} games found.")
        else:
            logging.info(f"Reading {reader.store.label:<8}... None / File missing.")
        entries.extend(games)
    return entries
