from __future__ import annotations

import json

import pytest


def _entry(title: str, source_id: str, store: str = "epic"):
    from game_library_dedupe.models import LibraryEntry, Store

    return LibraryEntry(title=title, source_id=source_id, source=Store.parse(store))


def _config(tmp_path, payload) -> object:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_live_run_appends_hidden_games(tmp_path) -> None:
    from game_library_dedupe.heroic_config import apply_hidden_games

    path = _config(tmp_path, {"defaultSettings": {"language": "en"}})
    added = apply_hidden_games(path, [_entry("Doom", "e1"), _entry("Quake", "e2")], dry_run=False)

    assert added == 2
    root = json.loads(path.read_text(encoding="utf-8"))
    assert root["defaultSettings"] == {"language": "en"}
    assert root["games"]["hidden"] == [
        {"appName": "e1", "title": "Doom"},
        {"appName": "e2", "title": "Quake"},
    ]


def test_reapplying_adds_nothing(tmp_path, caplog) -> None:
    from game_library_dedupe.heroic_config import apply_hidden_games

    path = _config(tmp_path, {"games": {"hidden": [{"appName": "e1", "title": "Doom"}]}})
    before = path.read_text(encoding="utf-8")
    with caplog.at_level("INFO"):
        assert apply_hidden_games(path, [_entry("Doom", "e1")], dry_run=False) == 0
    assert "No new games needed to be hidden." in caplog.text
    assert path.read_text(encoding="utf-8") == before


def test_dry_run_reports_but_does_not_write(tmp_path, caplog) -> None:
    from game_library_dedupe.heroic_config import apply_hidden_games

    path = _config(tmp_path, {"games": {"hidden": []}})
    before = path.read_text(encoding="utf-8")
    with caplog.at_level("INFO"):
        assert apply_hidden_games(path, [_entry("Doom", "e1")], dry_run=True) == 1
    assert "[DRY RUN] Would have written 1 new hidden games" in caplog.text
    assert path.read_text(encoding="utf-8") == before


def test_duplicate_ids_in_one_batch_are_added_once() -> None:
    from game_library_dedupe.heroic_config import merge_hidden_games

    root: dict = {}
    assert merge_hidden_games(root, [_entry("Doom", "x"), _entry("Doom", "x", "gog")]) == 1
    assert root == {"games": {"hidden": [{"appName": "x", "title": "Doom"}]}}


def test_missing_config_raises(tmp_path) -> None:
    from game_library_dedupe.heroic_config import apply_hidden_games

    with pytest.raises(FileNotFoundError):
        apply_hidden_games(tmp_path / "config.json", [_entry("Doom", "e1")])


def test_non_object_config_raises(tmp_path) -> None:
    from game_library_dedupe.heroic_config import apply_hidden_games

    path = _config(tmp_path, ["not", "an", "object"])
    with pytest.raises(ValueError):
        apply_hidden_games(path, [_entry("Doom", "e1")])
