from __future__ import annotations

from datetime import datetime, timezone


def _entry(title: str, store: str, source_id: str | None = None, year: int | None = None):
    from game_library_dedupe.models import LibraryEntry, Store

    return LibraryEntry(
        title=title,
        source_id=source_id or f"{store}:{title}",
        source=Store.parse(store),
        release_date=datetime(year, 1, 1, tzinfo=timezone.utc) if year else None,
    )


def _priority():
    from game_library_dedupe.models import Store

    return [Store.GOG, Store.EPIC, Store.AMAZON]


def test_prefer_enhanced_beats_store_priority() -> None:
    from game_library_dedupe.dedupe import identify_duplicates

    plain = _entry("X", "epic")
    enhanced = _entry("X Remastered", "amazon")
    losers = identify_duplicates([plain, enhanced], _priority(), prefer_enhanced=True)
    assert losers == [plain]


def test_store_priority_first_when_not_preferring_enhanced() -> None:
    from game_library_dedupe.dedupe import identify_duplicates

    plain = _entry("X", "epic")
    enhanced = _entry("X Remastered", "amazon")
    losers = identify_duplicates([plain, enhanced], _priority(), prefer_enhanced=False)
    assert losers == [enhanced]


def test_singletons_and_empty_keys_produce_no_losers() -> None:
    from game_library_dedupe.dedupe import identify_duplicates

    entries = [
        _entry("Doom", "gog"),
        _entry("Quake", "epic"),
        _entry("™", "gog", source_id="a"),
        _entry("!!!", "epic", source_id="b"),
    ]
    assert identify_duplicates(entries, _priority(), prefer_enhanced=True) == []


def test_three_editions_keep_highest_priority_enhanced_copy() -> None:
    from game_library_dedupe.dedupe import find_duplicate_groups, identify_duplicates

    original = _entry("Game", "gog")
    remastered = _entry("Game Remastered", "epic")
    definitive = _entry("Game - Definitive Edition", "amazon")
    entries = [original, remastered, definitive]

    losers = identify_duplicates(entries, _priority(), prefer_enhanced=True)
    assert losers == [definitive, original]

    (group,) = find_duplicate_groups(entries, _priority(), prefer_enhanced=True)
    assert group.key == "game"
    assert group.keep == remastered


def test_newest_release_date_breaks_remaining_ties() -> None:
    from game_library_dedupe.dedupe import find_duplicate_groups

    old = _entry("Doom", "gog", source_id="old", year=1993)
    undated = _entry("DOOM", "gog", source_id="undated")
    new = _entry("Doom", "gog", source_id="new", year=2016)
    (group,) = find_duplicate_groups([old, undated, new], _priority(), prefer_enhanced=True)
    assert group.keep == new
    # Missing dates sort as the oldest.
    assert group.hide == [old, undated]


def test_full_ties_keep_input_order() -> None:
    from game_library_dedupe.dedupe import find_duplicate_groups

    a = _entry("Doom", "gog", source_id="a")
    b = _entry("Doom", "gog", source_id="b")
    c = _entry("Doom", "gog", source_id="c")
    (group,) = find_duplicate_groups([a, b, c], _priority(), prefer_enhanced=False)
    assert [e.source_id for e in group.members] == ["a", "b", "c"]


def test_unlisted_store_ranks_last() -> None:
    from game_library_dedupe.dedupe import identify_duplicates
    from game_library_dedupe.models import Store

    amazon = _entry("Doom", "amazon")
    gog = _entry("Doom", "gog")
    # Amazon is not in the list at all, GOG is.
    losers = identify_duplicates([amazon, gog], [Store.EPIC, Store.GOG], prefer_enhanced=False)
    assert losers == [amazon]


def test_empty_priority_never_errors() -> None:
    from game_library_dedupe.dedupe import identify_duplicates

    first = _entry("Doom", "amazon")
    second = _entry("Doom", "gog")
    assert identify_duplicates([first, second], [], prefer_enhanced=False) == [second]


def test_losers_follow_group_order() -> None:
    from game_library_dedupe.dedupe import identify_duplicates

    entries = [
        _entry("Quake", "epic"),
        _entry("Doom", "epic"),
        _entry("Quake", "gog"),
        _entry("Doom", "gog"),
        _entry("Doom", "amazon"),
    ]
    losers = identify_duplicates(entries, _priority(), prefer_enhanced=True)
    assert [(e.title, e.source.value) for e in losers] == [
        ("Quake", "epic"),
        ("Doom", "epic"),
        ("Doom", "amazon"),
    ]


def test_groups_are_logged(caplog) -> None:
    from game_library_dedupe.dedupe import identify_duplicates

    with caplog.at_level("INFO"):
        identify_duplicates([_entry("Doom", "gog"), _entry("Doom", "epic")], _priority(), True)
    assert "Match Group [key: doom]" in caplog.text
    assert "[KEEP] GOG" in caplog.text
    assert "[HIDE] Epic" in caplog.text
