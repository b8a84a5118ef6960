from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Sequence

import requests

from ..config import IGDB, REQUEST, RETRY
from ..utils.utilities import clean_search_title, escape_search_text, title_similarity, with_retries
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults

TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
IGDB_API_URL = "https://api.igdb.com/v4"

# IGDB game categories: 8 = remake, 9 = remaster, 10 = expanded game.
REMASTER_CATEGORIES = frozenset({8, 9, 10})


class AuthenticationError(RuntimeError):
    """Raised when no IGDB bearer token can be obtained; no search can run without one."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuthSession:
    token: str
    expires_at: datetime

    def is_fresh(self, now: datetime, margin: timedelta) -> bool:
        return now < self.expires_at - margin


@dataclass(frozen=True)
class IGDBGame:
    id: int
    name: str
    first_release_date: int | None = None
    category: int | None = None

    @property
    def is_remaster(self) -> bool:
        return self.category in REMASTER_CATEGORIES

    @property
    def release_date(self) -> datetime | None:
        if self.first_release_date is None:
            return None
        return datetime.fromtimestamp(self.first_release_date, tz=timezone.utc)

    @staticmethod
    def from_json(raw: Any) -> IGDBGame | None:
        if not isinstance(raw, dict) or raw.get("id") is None:
            return None
        ts = raw.get("first_release_date")
        category = raw.get("category")
        return IGDBGame(
            id=int(raw["id"]),
            name=str(raw.get("name") or ""),
            first_release_date=int(ts) if isinstance(ts, (int, float)) else None,
            category=int(category) if isinstance(category, (int, float)) else None,
        )


def pick_best_candidate(title: str, candidates: Sequence[IGDBGame]) -> IGDBGame | None:
    """
    Choose the candidate whose name shares the most words with `title`.

    Equal scores prefer remaster/remake entries, then the order IGDB returned them in.
    """
    if not candidates:
        return None
    ranked = sorted(
        candidates,
        key=lambda g: (-title_similarity(g.name, title), not g.is_remaster),
    )
    return ranked[0]


class IGDBClient:
    """
    Minimal IGDB client: client-credentials auth plus title search.

    The bearer token is shared by all worker threads. It is exchanged lazily on first use and
    again whenever it is within `token_safety_margin_s` of expiring; the exchange runs under a
    lock so concurrent callers trigger a single refresh.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        session: requests.Session | None = None,
        search_limit: int = IGDB.search_limit,
        token_safety_margin_s: float = IGDB.token_safety_margin_s,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session = session or requests.Session()
        self.client_id = client_id
        self.client_secret = client_secret
        self.search_limit = int(search_limit)
        self._margin = timedelta(seconds=token_safety_margin_s)
        self._clock = clock
        self.stats: dict[str, int] = {
            "search_fetch": 0,
            "search_empty": 0,
            "search_failed": 0,
            # HTTP request counters (attempts, including retries).
            "http_oauth_token": 0,
            "http_post": 0,
        }
        self._http = HTTPJSONClient(self._session, stats=self.stats)
        self._post_http = ConfiguredHTTPJSONClient(
            self._http,
            HTTPRequestDefaults(
                retries=IGDB.search_retries,
                counter_key="http_post",
                context_prefix="IGDB POST",
            ),
        )
        self._auth: AuthSession | None = None
        self._auth_lock = threading.Lock()

    # -------------------------------------------------
    # OAuth
    # -------------------------------------------------
    def authenticate(self) -> AuthSession:
        """Return a fresh session, exchanging credentials if needed. Raises AuthenticationError."""
        with self._auth_lock:
            auth = self._auth
            if auth is not None and auth.is_fresh(self._clock(), self._margin):
                return auth
            self._auth = self._exchange_token()
            logging.info(
                f"[IGDB] Authenticated; token valid until {self._auth.expires_at:%Y-%m-%d %H:%M:%S}Z"
            )
            return self._auth

    def _exchange_token(self) -> AuthSession:
        def _request() -> AuthSession:
            self._http._bump("http_oauth_token")
            # Form-encoded body (not URL params) keeps secrets out of tracebacks/logs.
            r = self._session.post(
                TWITCH_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
                timeout=REQUEST.timeout_s,
            )
            r.raise_for_status()
            payload = r.json()
            token = str(payload["access_token"] or "").strip()
            if not token:
                raise ValueError("empty access_token")
            expires_in = int(payload["expires_in"])
            return AuthSession(token=token, expires_at=self._clock() + timedelta(seconds=expires_in))

        auth = with_retries(
            _request,
            retries=RETRY.retries,
            base_sleep_s=RETRY.base_sleep_s,
            on_fail_return=None,
            context="Twitch OAuth token",
            retry_stats=self.stats,
        )
        if auth is None:
            raise AuthenticationError("Could not obtain an IGDB access token; check client_id/client_secret")
        return auth

    def _headers(self) -> dict[str, str]:
        auth = self.authenticate()
        return {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {auth.token}",
            "Content-Type": "text/plain",
        }

    # -------------------------------------------------
    # Search
    # -------------------------------------------------
    def search_games(self, title: str) -> list[IGDBGame] | None:
        """
        Search IGDB for `title`.

        Returns the candidates (possibly empty), or None when the request itself failed. A failed
        request is logged and should not be cached as "not found".
        """
        search_text = escape_search_text(clean_search_title(title))
        if not search_text:
            return []
        query = (
            f'search "{search_text}";\n'
            "fields id,name,first_release_date,category;\n"
            f"limit {self.search_limit};\n"
        )
        data = self._post_http.post_json(
            f"{IGDB_API_URL}/games",
            headers=self._headers(),
            data=query,
            context=f"/games '{title}'",
            on_fail_return=None,
        )
        if data is None:
            self._http._bump("search_failed")
            return None
        if not isinstance(data, list):
            logging.error(f"[IGDB] Unexpected search response for '{title}': {type(data).__name__}")
            self._http._bump("search_failed")
            return None
        games = [g for g in (IGDBGame.from_json(it) for it in data) if g is not None]
        self._http._bump("search_fetch")
        if not games:
            self._http._bump("search_empty")
        return games

    def find_release_date(self, title: str) -> tuple[datetime | None, bool]:
        """
        Resolve the release date for `title`.

        Returns (date, ok). `ok` is False when the request failed; (None, True) means IGDB has no
        usable match or the best match has no release date.
        """
        games = self.search_games(title)
        if games is None:
            return None, False
        best = pick_best_candidate(title, games)
        if best is None:
            logging.debug(f"[IGDB] Not found: '{title}'")
            return None, True
        logging.debug(f"[IGDB] '{title}' -> '{best.name}' (id={best.id}, date={best.release_date})")
        return best.release_date, True

    def format_stats(self) -> str:
        s = self.stats
        return (
            f"search fetch={s['search_fetch']} empty={s['search_empty']} failed={s['search_failed']}, "
            f"http oauth={s['http_oauth_token']} {HTTPJSONClient.format_timing(s, key='http_post')}"
        )
