from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path


class StubClient:
    def __init__(self, answers=None):
        self.answers = dict(answers or {})
        self.calls: list[str] = []

    def authenticate(self):
        return "token"

    def find_release_date(self, title: str):
        self.calls.append(title)
        return self.answers.get(title, (None, True))

    def format_stats(self) -> str:
        return f"calls={len(self.calls)}"


def _setup(tmp_path: Path, *, dry_run: bool, igdb: bool = True):
    from game_library_dedupe.settings import AppSettings

    epic = tmp_path / "legendary_library.json"
    gog = tmp_path / "gog_library.json"
    nile = tmp_path / "nile_library.json"
    heroic = tmp_path / "config.json"
    epic.write_text(
        json.dumps(
            {
                "library": [
                    {"app_name": "e-doom", "title": "DOOM"},
                    {"app_name": "e-bio", "title": "BioShock 2 Remastered"},
                    {"app_name": "e-solo", "title": "Celeste"},
                ]
            }
        ),
        encoding="utf-8",
    )
    gog.write_text(
        json.dumps(
            {
                "games": [
                    {"app_name": "g-doom", "title": "Doom"},
                    {"app_name": "g-bio", "title": "BioShock® 2"},
                ]
            }
        ),
        encoding="utf-8",
    )
    nile.write_text(json.dumps([{"id": "a-doom", "title": "Doom™"}]), encoding="utf-8")
    heroic.write_text(json.dumps({"games": {"hidden": []}}), encoding="utf-8")

    settings = AppSettings.from_dict(
        {
            "heroic_config_path": str(heroic),
            "legendary_library_path": str(epic),
            "gog_library_path": str(gog),
            "nile_library_path": str(nile),
            "dry_run": dry_run,
            "igdb": {"client_id": "id", "client_secret": "secret", "enabled": igdb},
        }
    )
    return settings, heroic


def test_live_run_hides_losers_and_writes_report(tmp_path) -> None:
    import pandas as pd

    from game_library_dedupe.pipelines.dedupe_pipeline import run_dedupe
    from game_library_dedupe.report import REPORT_COLUMNS

    settings, heroic = _setup(tmp_path, dry_run=False)
    client = StubClient({"DOOM": (datetime(1993, 12, 10, tzinfo=timezone.utc), True)})
    report = tmp_path / "output" / "duplicates.csv"

    result = run_dedupe(
        settings,
        cache_path=tmp_path / "cache" / "igdb_cache.json",
        report_path=report,
        client=client,
    )

    keep_ids = {g.keep.source_id for g in result.groups}
    hidden_ids = [e.source_id for e in result.hidden]
    # Remastered Epic copy beats the GOG original; GOG wins the plain Doom group.
    assert keep_ids == {"g-doom", "e-bio"}
    assert sorted(hidden_ids) == ["a-doom", "e-doom", "g-bio"]
    assert result.added == 3

    hidden = json.loads(heroic.read_text(encoding="utf-8"))["games"]["hidden"]
    assert sorted(h["appName"] for h in hidden) == ["a-doom", "e-doom", "g-bio"]

    df = pd.read_csv(report, dtype=str, keep_default_na=False)
    assert list(df.columns) == REPORT_COLUMNS
    assert len(df) == 5
    assert (df["Action"] == "KEEP").sum() == 2
    assert (tmp_path / "cache" / "igdb_cache.json").exists()


def test_dry_run_leaves_heroic_config_untouched(tmp_path) -> None:
    from game_library_dedupe.pipelines.dedupe_pipeline import run_dedupe

    settings, heroic = _setup(tmp_path, dry_run=True)
    before = heroic.read_text(encoding="utf-8")

    result = run_dedupe(settings, cache_path=tmp_path / "c.json", client=StubClient())

    assert len(result.hidden) == 3
    assert result.added == 3
    assert heroic.read_text(encoding="utf-8") == before


def test_second_live_run_adds_nothing(tmp_path) -> None:
    from game_library_dedupe.pipelines.dedupe_pipeline import run_dedupe

    settings, heroic = _setup(tmp_path, dry_run=False)
    cache = tmp_path / "c.json"
    run_dedupe(settings, cache_path=cache, client=StubClient())
    second = StubClient()
    result = run_dedupe(settings, cache_path=cache, client=second)

    assert result.added == 0
    # Everything was cached by the first run.
    assert second.calls == []


def test_igdb_can_be_skipped(tmp_path) -> None:
    from game_library_dedupe.pipelines.dedupe_pipeline import run_dedupe

    settings, _ = _setup(tmp_path, dry_run=True, igdb=False)
    client = StubClient()
    cache = tmp_path / "c.json"
    run_dedupe(settings, cache_path=cache, client=client)
    run_dedupe(settings, cache_path=cache, use_igdb=False, client=client)

    assert client.calls == []
    assert not cache.exists()


def test_refresh_cache_refetches(tmp_path) -> None:
    from game_library_dedupe.pipelines.dedupe_pipeline import run_dedupe

    settings, _ = _setup(tmp_path, dry_run=True)
    cache = tmp_path / "c.json"
    run_dedupe(settings, cache_path=cache, client=StubClient())
    again = StubClient()
    run_dedupe(settings, cache_path=cache, refresh_cache=True, client=again)

    assert len(again.calls) == 5


def test_clean_library_touches_nothing(tmp_path, caplog) -> None:
    from game_library_dedupe.pipelines.dedupe_pipeline import run_dedupe
    from game_library_dedupe.settings import AppSettings

    epic = tmp_path / "epic.json"
    epic.write_text(json.dumps({"library": [{"app_name": "e1", "title": "Celeste"}]}), encoding="utf-8")
    settings = AppSettings.from_dict(
        {"heroic_config_path": str(tmp_path / "missing.json"), "legendary_library_path": str(epic)}
    )
    with caplog.at_level("INFO"):
        result = run_dedupe(settings, cache_path=tmp_path / "c.json", use_igdb=False)
    assert result.hidden == []
    assert "Your library is already clean!" in caplog.text
