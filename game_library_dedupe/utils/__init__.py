"""
Utility functions and helpers.

This module intentionally uses lazy attribute loading to avoid importing heavier
submodules (e.g., pandas) unless they are needed.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "ProjectPaths",
    "ReleaseDateCache",
    "clean_search_title",
    "iter_chunks",
    "load_json_cache",
    "load_yaml",
    "lookup_key",
    "normalize_title",
    "read_csv",
    "save_json_cache",
    "title_similarity",
    "with_retries",
    "write_csv",
]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name == "ReleaseDateCache":
        from .release_date_cache import ReleaseDateCache

        return ReleaseDateCache

    if name in __all__:
        from . import utilities as _u

        return getattr(_u, name)

    raise AttributeError(name)
