from __future__ import annotations

import json
import logging
import os
import random
import re
import tempfile
import time
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import pandas as pd
import yaml

from ..config import CACHE, RETRY

# ----------------------------
# Paths / Folder structure
# ----------------------------


@dataclass(frozen=True)
class ProjectPaths:
    root: Path
    data_config: Path
    data_cache: Path
    data_output: Path
    data_logs: Path

    @staticmethod
    def from_root(root: str | Path) -> ProjectPaths:
        rootp = Path(root).resolve()
        return ProjectPaths(
            root=rootp,
            data_config=rootp / "data" / "config.yaml",
            data_cache=rootp / "data" / "cache",
            data_output=rootp / "data" / "output",
            data_logs=rootp / "data" / "logs",
        )

    def ensure(self) -> None:
        self.data_cache.mkdir(parents=True, exist_ok=True)
        self.data_output.mkdir(parents=True, exist_ok=True)
        self.data_logs.mkdir(parents=True, exist_ok=True)


# ----------------------------
# CSV Helpers
# ----------------------------


def read_csv(path: str | Path) -> pd.DataFrame:
    """Read CSV preserving strings and avoiding problematic type inference."""
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


# ----------------------------
# Title normalization
# ----------------------------

# Deleted outright before any phrase matching.
_STRIP_CHARS = "®™©:-–—'\"‘’“”.,;!?"

# Matched after _STRIP_CHARS is applied, so phrases are spelled without apostrophes etc.
_EDITION_SUFFIXES = (
    " remastered",
    " definitive edition",
    " enhanced edition",
    " complete edition",
    " game of the year edition",
    " goty edition",
    " goty",
    " hd",
    " directors cut",
    " ultimate edition",
)

_JUNK_PHRASES = (
    " wild hunt",
    " standard edition",
)

_STRIP_TABLE = str.maketrans("", "", _STRIP_CHARS)


def normalize_title(title: str) -> str:
    """
    Map a store title to the key used to group duplicates.

    "BioShock® 2", "BioShock™ 2 Remastered" and "bioshock 2" all become "bioshock2". Edition
    phrases are removed anywhere in the title, not only at the end. Returns "" for blank input.
    """
    if not title or not title.strip():
        return ""
    s = title.lower().translate(_STRIP_TABLE)
    for suffix in _EDITION_SUFFIXES:
        s = s.replace(suffix, "")
    for junk in _JUNK_PHRASES:
        s = s.replace(junk, "")
    return "".join(ch for ch in s if ch.isalnum())


def lookup_key(title: str) -> str:
    """
    Cache key for metadata lookups: lowercase alphanumerics only.

    Narrower than `normalize_title` on purpose: editions keep distinct release-date entries.
    """
    return "".join(ch for ch in str(title or "").lower() if ch.isalnum())


_SEARCH_EDITION_RE = re.compile(
    r" (?:remastered|definitive edition|enhanced edition|goty|hd)",
    re.IGNORECASE,
)


def clean_search_title(title: str) -> str:
    """Strip trademark symbols and common edition words before sending a search query."""
    s = str(title or "").replace("™", "").replace("®", "").replace("©", "")
    s = s.replace(" - ", " ").replace(": ", " ")
    s = _SEARCH_EDITION_RE.sub("", s)
    return s.strip()


def escape_search_text(text: str) -> str:
    """
    Make a title safe to embed in an IGDB `search "..."` clause.
    """
    # NFKC turns odd Unicode digits (e.g. "²") and compatibility chars into plain ones.
    s = unicodedata.normalize("NFKC", str(text or ""))
    s = "".join((" " if unicodedata.category(ch).startswith("C") else ch) for ch in s)
    s = s.replace("\\", "\\\\").replace('"', '\\"')
    return re.sub(r"\s{2,}", " ", s).strip()


def title_similarity(a: str, b: str) -> float:
    """
    Jaccard similarity of the lowercase word sets of `a` and `b` (0.0 when `b` has no words).
    """
    wa = set(str(a or "").lower().split())
    wb = set(str(b or "").lower().split())
    if not wb:
        return 0.0
    return len(wa & wb) / len(wa | wb)


# ----------------------------
# JSON Cache
# ----------------------------


def load_json_cache(path: str | Path) -> dict[str, Any]:
    """
    Load a JSON object from disk.

    A missing file is an empty cache. An unreadable or corrupt file is reported and also treated
    as empty; the next save replaces it.
    """
    p = Path(path)
    if not p.exists():
        return {}
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logging.warning(f"[CACHE] Failed to load '{p}': {type(e).__name__}: {e}; starting empty")
        return {}
    if not isinstance(raw, dict):
        logging.warning(f"[CACHE] Ignoring '{p}': expected a JSON object, got {type(raw).__name__}")
        return {}
    return raw


def save_json_cache(cache: dict[str, Any], path: str | Path) -> None:
    """
    Write `cache` as JSON, replacing `path` atomically.

    The payload goes to a temp file in the same directory first, so a crash mid-write never
    leaves a truncated cache behind.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=p.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(cache, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, p)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


@dataclass
class CacheIOTracker:
    """
    Track JSON cache load/save counts and time in milliseconds.
    """

    stats: dict[str, Any]
    prefix: str = "cache"

    def __post_init__(self) -> None:
        self.stats.setdefault(f"{self.prefix}_load_count", 0)
        self.stats.setdefault(f"{self.prefix}_load_ms", 0)
        self.stats.setdefault(f"{self.prefix}_save_count", 0)
        self.stats.setdefault(f"{self.prefix}_save_ms", 0)

    def load_json(self, path: str | Path) -> dict[str, Any]:
        t0 = time.perf_counter()
        raw = load_json_cache(path)
        t1 = time.perf_counter()
        self.stats[f"{self.prefix}_load_count"] += 1
        self.stats[f"{self.prefix}_load_ms"] += int(round((t1 - t0) * 1000.0))
        return raw

    def save_json(self, cache: dict[str, Any], path: str | Path) -> None:
        p = Path(path)
        t0 = time.perf_counter()
        save_json_cache(cache, p)
        dur_ms = int(round((time.perf_counter() - t0) * 1000.0))
        self.stats[f"{self.prefix}_save_count"] += 1
        self.stats[f"{self.prefix}_save_ms"] += dur_ms

        slow_ms = int(getattr(CACHE, "slow_save_log_ms", 0) or 0)
        if slow_ms > 0 and dur_ms >= slow_ms:
            logging.info(f"[CACHE] Wrote '{p.name}' in {dur_ms}ms")

    @staticmethod
    def format_io(stats: dict[str, Any] | None, *, prefix: str = "cache") -> str:
        if not stats:
            return "cache load_ms=0 saves=0 save_ms=0"
        load_ms = int(stats.get(f"{prefix}_load_ms", 0) or 0)
        save_count = int(stats.get(f"{prefix}_save_count", 0) or 0)
        save_ms = int(stats.get(f"{prefix}_save_ms", 0) or 0)
        return f"{prefix} load_ms={load_ms} saves={save_count} save_ms={save_ms}"


# ----------------------------
# Retries
# ----------------------------


def with_retries(
    fn: Callable[[], Any],
    *,
    retries: int = RETRY.retries,
    base_sleep_s: float = RETRY.base_sleep_s,
    jitter_s: float = RETRY.jitter_s,
    retry_on: tuple[type, ...] = (Exception,),
    on_fail_return: Any = None,
    context: str | None = None,
    retry_stats: dict[str, Any] | None = None,
) -> Any:
    """
    Execute fn with retries and exponential backoff.

    After the last failed attempt the error is logged (tagged NETWORK, HTTP or REQUEST) and
    `on_fail_return` is returned instead of raising.
    """
    import requests

    net_types = (
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        requests.exceptions.SSLError,
    )
    attempts = max(1, int(retries))
    for attempt in range(attempts):
        try:
            return fn()
        except retry_on as e:
            retry_after_s: float | None = None
            is_http = isinstance(e, requests.exceptions.HTTPError)
            is_network = isinstance(e, net_types)
            is_429 = False
            if is_http:
                resp = getattr(e, "response", None)
                if getattr(resp, "status_code", None) == 429:
                    is_429 = True
                    headers = getattr(resp, "headers", {}) or {}
                    try:
                        ra = str(headers.get("Retry-After", "") or "").strip()
                        retry_after_s = float(ra) if ra else None
                    except ValueError:
                        retry_after_s = None
                    if retry_after_s is None:
                        retry_after_s = RETRY.http_429_default_retry_after_s

            if retry_stats is not None:
                if is_429:
                    retry_stats["http_429"] = int(retry_stats.get("http_429", 0)) + 1
                if is_network:
                    retry_stats["network_errors"] = int(retry_stats.get("network_errors", 0)) + 1
                if is_http:
                    retry_stats["http_errors"] = int(retry_stats.get("http_errors", 0)) + 1

            if attempt == attempts - 1:
                if context:
                    # Keep offline situations distinct from "not found" in the logs.
                    if is_network:
                        tag = "NETWORK"
                    elif is_http:
                        tag = "HTTP"
                    else:
                        tag = "REQUEST"
                    logging.error(f"[{tag}] {context}: {type(e).__name__}: {e}")
                if retry_stats is not None:
                    retry_stats["failures"] = int(retry_stats.get("failures", 0)) + 1
                return on_fail_return
            sleep = base_sleep_s * (2**attempt) + random.uniform(0, jitter_s)
            if retry_after_s is not None and retry_after_s > 0:
                sleep = max(sleep, retry_after_s)
            if retry_stats is not None:
                retry_stats["retry_attempts"] = int(retry_stats.get("retry_attempts", 0)) + 1
            time.sleep(sleep)
    return on_fail_return


def iter_chunks(items: list[Any], chunk_size: int) -> list[list[Any]]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    if not items:
        return []
    return [items[i : i + chunk_size] for i in range(0, len(items), chunk_size)]


# ----------------------------
# YAML loading
# ----------------------------


def load_yaml(path: str | Path) -> dict[str, Any]:
    """
    Load a YAML mapping from disk.

    Raises FileNotFoundError when the file is missing and ValueError when it is not a mapping.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(
            f"Settings file not found: {p}\n"
            "Please create data/config.yaml (see data/config.example.yaml)."
        )
    with open(p, encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Settings file {p} must contain a mapping, got {type(raw).__name__}")
    return raw
