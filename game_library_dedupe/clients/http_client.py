from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from ..config import REQUEST, RETRY
from ..utils.utilities import with_retries


@dataclass
class HTTPJSONClient:
    """
    Small helper to standardize request + retry + stats counting.

    Clients pass in their own `requests.Session` and `stats` dict. Safe to share between worker
    threads: only the counters are mutated, under a lock.
    """

    session: requests.Session
    stats: dict[str, Any] | None = None
    _stats_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _bump(self, key: str, amount: int = 1) -> None:
        if self.stats is None:
            return
        with self._stats_lock:
            self.stats[key] = int(self.stats.get(key, 0) or 0) + amount

    @staticmethod
    def format_timing(stats: dict[str, Any] | None, *, key: str) -> str:
        if not stats:
            return f"{key}=0"
        count = int(stats.get(key, 0) or 0)
        ms = int(stats.get(f"{key}_ms", 0) or 0)
        return f"{key}={count} ({ms}ms)"

    def post_json(
        self,
        url: str,
        *,
        data: dict[str, Any] | str | None = None,
        headers: dict[str, str] | None = None,
        timeout_s: float = REQUEST.timeout_s,
        retries: int = RETRY.retries,
        base_sleep_s: float = RETRY.base_sleep_s,
        counter_key: str = "http_post",
        context: str,
        on_fail_return: Any = None,
    ) -> Any:
        """
        POST and decode a JSON response body.

        Failures (network, non-2xx status, undecodable body) are retried `retries` times in
        total, then logged and mapped to `on_fail_return`.
        """

        def _request() -> Any:
            self._bump(counter_key)
            kwargs: dict[str, Any] = {"timeout": timeout_s}
            if headers is not None:
                kwargs["headers"] = headers
            if data is not None:
                kwargs["data"] = data.encode("utf-8") if isinstance(data, str) else data
            t0 = time.perf_counter()
            r = self.session.post(url, **kwargs)
            self._bump(f"{counter_key}_ms", int(round((time.perf_counter() - t0) * 1000.0)))
            r.raise_for_status()
            return r.json()

        return with_retries(
            _request,
            retries=retries,
            base_sleep_s=base_sleep_s,
            on_fail_return=on_fail_return,
            context=context,
            retry_stats=self.stats,
        )


@dataclass
class HTTPRequestDefaults:
    timeout_s: float = REQUEST.timeout_s
    retries: int = RETRY.retries
    base_sleep_s: float = RETRY.base_sleep_s
    headers: dict[str, str] | None = None
    counter_key: str = "http_post"
    context_prefix: str | None = None


@dataclass
class ConfiguredHTTPJSONClient:
    """
    Convenience wrapper over HTTPJSONClient that carries default parameters per endpoint.
    """

    http: HTTPJSONClient
    defaults: HTTPRequestDefaults

    def _ctx(self, context: str) -> str:
        prefix = self.defaults.context_prefix
        if prefix:
            return f"{prefix}{': ' if context else ''}{context}"
        return context

    def post_json(
        self,
        url: str,
        *,
        data: dict[str, Any] | str | None = None,
        headers: dict[str, str] | None = None,
        context: str = "",
        on_fail_return: Any = None,
    ) -> Any:
        return self.http.post_json(
            url,
            data=data,
            headers=self.defaults.headers if headers is None else headers,
            timeout_s=self.defaults.timeout_s,
            retries=self.defaults.retries,
            base_sleep_s=self.defaults.base_sleep_s,
            counter_key=self.defaults.counter_key,
            context=self._ctx(context),
            on_fail_return=on_fail_return,
        )
