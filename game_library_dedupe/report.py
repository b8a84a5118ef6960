from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pandas as pd

from .dedupe import DuplicateGroup
from .utils.utilities import write_csv

REPORT_COLUMNS = ["GroupKey", "Action", "Store", "Title", "AppId", "Edition", "ReleaseDate"]


def build_duplicates_report(groups: Sequence[DuplicateGroup]) -> pd.DataFrame:
    """One row per group member, the kept entry first within each group."""
    rows: list[dict[str, str]] = []
    for group in groups:
        for action, entry in [("KEEP", group.keep)] + [("HIDE", e) for e in group.hide]:
            rows.append(
                {
                    "GroupKey": group.key,
                    "Action": action,
                    "Store": entry.source.label,
                    "Title": entry.title,
                    "AppId": entry.source_id,
                    "Edition": entry.edition.value,
                    "ReleaseDate": (
                        entry.release_date.strftime("%Y-%m-%d") if entry.release_date else ""
                    ),
                }
            )
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def write_duplicates_report(groups: Sequence[DuplicateGroup], path: str | Path) -> Path:
    out = Path(path)
    write_csv(build_duplicates_report(groups), out)
    return out
