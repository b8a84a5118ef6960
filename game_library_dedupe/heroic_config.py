from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Sequence

from .models import LibraryEntry
from .utils.utilities import save_json_cache


def merge_hidden_games(root: dict[str, Any], to_hide: Sequence[LibraryEntry]) -> int:
    """
    Append entries to `root["games"]["hidden"]`, skipping ids that are already hidden.

    Returns how many entries were added. Re-applying the same list adds nothing.
    """
    games = root.get("games")
    if not isinstance(games, dict):
        games = {}
        root["games"] = games
    hidden = games.get("hidden")
    if not isinstance(hidden, list):
        hidden = []
        games["hidden"] = hidden

    existing = {
        str(item.get("appName"))
        for item in hidden
        if isinstance(item, dict) and item.get("appName") is not None
    }
    added = 0
    for entry in to_hide:
        if entry.source_id in existing:
            continue
        hidden.append({"appName": entry.source_id, "title": entry.title})
        existing.add(entry.source_id)
        added += 1
    return added


def apply_hidden_games(
    config_path: str | Path | None,
    to_hide: Sequence[LibraryEntry],
    *,
    dry_run: bool = True,
) -> int:
    """
    Mark `to_hide` as hidden in Heroic's config.json.

    In dry-run mode nothing is written; the return value is still the number of games that would
    be added. Raises FileNotFoundError when the config file does not exist and ValueError when it
    is not a JSON object.
    """
    if not config_path or not Path(config_path).exists():
        raise FileNotFoundError(f"Heroic config file not found: {config_path}")
    path = Path(config_path)

    logging.info(f"[HEROIC] Reading config from: {path}")
    root = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(root, dict):
        raise ValueError(f"Failed to parse {path}: expected a JSON object")

    added = merge_hidden_games(root, to_hide)
    if added == 0:
        logging.info("[HEROIC] No new games needed to be hidden.")
    elif dry_run:
        logging.info(f"[HEROIC] [DRY RUN] Would have written {added} new hidden games to config. No changes made.")
    else:
        save_json_cache(root, path)
        logging.info(f"[HEROIC] Wrote {added} hidden games to config.")
    return added
