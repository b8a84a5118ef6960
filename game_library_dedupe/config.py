from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryConfig:
    retries: int = 3
    base_sleep_s: float = 1.0
    jitter_s: float = 0.3
    http_429_default_retry_after_s: float = 5.0


@dataclass(frozen=True)
class RequestConfig:
    timeout_s: int = 10


@dataclass(frozen=True)
class IGDBConfig:
    # IGDB allows 4 requests/second; one batch of 4 then a 1s cooldown stays under it.
    max_parallel_requests: int = 4
    batch_cooldown_s: float = 1.0
    cache_max_age_days: int = 30
    search_limit: int = 5
    # Refresh the bearer token this long before Twitch says it expires.
    token_safety_margin_s: int = 60
    # Failed title lookups are retried on the next run, not within this one.
    search_retries: int = 1


@dataclass(frozen=True)
class CacheConfig:
    # Log cache writes that take longer than this threshold (milliseconds).
    slow_save_log_ms: int = 2000


@dataclass(frozen=True)
class CLIConfig:
    progress_every_n: int = 50
    progress_min_interval_s: float = 30.0


RETRY = RetryConfig()
REQUEST = RequestConfig()
IGDB = IGDBConfig()
CACHE = CacheConfig()
CLI = CLIConfig()
