from __future__ import annotations

import json
from datetime import datetime, timezone


def _write(path, payload) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_legendary_library_object_form(tmp_path) -> None:
    from game_library_dedupe.models import Store
    from game_library_dedupe.readers import LegendaryReader

    path = tmp_path / "legendary_library.json"
    _write(
        path,
        {
            "library": [
                {"app_name": "Fortnite", "title": "Fortnite"},
                {"app_name": "abc", "app_title": "Control Ultimate Edition"},
                {"app_name": "no-title"},
                {"title": "No Id"},
            ]
        },
    )
    entries = LegendaryReader(path).read()
    assert [(e.source_id, e.title) for e in entries] == [
        ("Fortnite", "Fortnite"),
        ("abc", "Control Ultimate Edition"),
    ]
    assert all(e.source is Store.EPIC for e in entries)


def test_nile_bare_array_and_id_fallback(tmp_path) -> None:
    from game_library_dedupe.models import Store
    from game_library_dedupe.readers import NileReader

    path = tmp_path / "nile_library.json"
    _write(path, [{"id": "amzn1", "title": "Tomb Raider"}])
    (entry,) = NileReader(path).read()
    assert entry.source is Store.AMAZON
    assert entry.source_id == "amzn1"


def test_gog_nested_games_and_release_dates(tmp_path) -> None:
    from game_library_dedupe.readers import GogReader

    path = tmp_path / "gog_library.json"
    _write(
        path,
        {
            "games": [
                {"app_name": "1", "title": "Doom", "extra": {"releaseDate": "1993-12-10T00:00:00+02:00"}},
                {"app_name": "2", "title": "Quake", "extra": {"about": {"releaseDate": 835660800}}},
                {"app_name": "3", "title": "Hexen", "extra": {"releaseDate": "not a date"}},
            ]
        },
    )
    doom, quake, hexen = GogReader(path).read()
    assert doom.release_date == datetime(1993, 12, 9, 22, 0, tzinfo=timezone.utc)
    assert quake.release_date == datetime.fromtimestamp(835660800, tz=timezone.utc)
    assert hexen.release_date is None


def test_library_nested_under_games_key(tmp_path) -> None:
    from game_library_dedupe.readers import LegendaryReader

    path = tmp_path / "lib.json"
    _write(path, {"library": {"games": [{"app_name": "x", "title": "X"}]}})
    assert len(LegendaryReader(path).read()) == 1


def test_missing_file_is_an_empty_library(tmp_path) -> None:
    from game_library_dedupe.readers import GogReader

    assert GogReader(tmp_path / "nope.json").read() == []
    assert GogReader(None).read() == []


def test_unreadable_file_is_logged_and_skipped(tmp_path, caplog) -> None:
    from game_library_dedupe.readers import LegendaryReader

    path = tmp_path / "broken.json"
    path.write_text("{oops", encoding="utf-8")
    with caplog.at_level("ERROR"):
        assert LegendaryReader(path).read() == []
    assert "Error reading Epic library" in caplog.text


def test_read_all_libraries_concatenates_in_reader_order(tmp_path, caplog) -> None:
    from game_library_dedupe.readers import GogReader, LegendaryReader, NileReader, read_all_libraries

    gog = tmp_path / "gog.json"
    epic = tmp_path / "epic.json"
    _write(gog, {"games": [{"app_name": "g1", "title": "Doom"}]})
    _write(epic, {"library": [{"app_name": "e1", "title": "Doom"}, {"app_name": "e2", "title": "Quake"}]})

    with caplog.at_level("INFO"):
        entries = read_all_libraries(
            [LegendaryReader(epic), GogReader(gog), NileReader(tmp_path / "missing.json")]
        )
    assert [e.source_id for e in entries] == ["e1", "e2", "g1"]
    assert "2 games found" in caplog.text
    assert "None / File missing." in caplog.text
