# providers/scrobble/dispatcher.py
# PlexRelay - Trakt scrobble delivery (401 refresh, 404 fallback, 409 tolerance)
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Callable

import requests

from _logging import log as BASE_LOG
from pr_platform.config_base import TRAKT_API
from pr_platform.http import trakt_headers
from pr_platform.token_store import TokenPair, TokenStore
from providers.scrobble.catalog import CanonicalMedia
from providers.scrobble.errors import (
    AuthFailed,
    DeliveryError,
    NoToken,
    RemoteConflict,
    RemoteNotFound,
    RemoteRejected,
    RemoteUnavailable,
)

_LOG = BASE_LOG.child("SCROBBLE")

ACTIONS = ("start", "pause", "stop")

# Returns the pair to retry with, or None when the refresh failed.
Refresher = Callable[[TokenPair], "TokenPair | None"]


@dataclass(frozen=True)
class ScrobbleAction:
    kind: str
    progress: int
    subject: CanonicalMedia
    season: int | None = None
    episode: int | None = None
    episode_title: str = ""

    @property
    def label(self) -> str:
        if self.season is not None and self.episode is not None:
            return f"{self.subject.title} S{self.season:02d}E{self.episode:02d}"
        return self.subject.title


@dataclass(frozen=True)
class DispatchResult:
    ok: bool
    status: int | None = None
    attempts: int = 0
    conflict: bool = False
    fallback: bool = False
    error: DeliveryError | None = None
    body: dict[str, Any] | None = None


def _media_block(m: CanonicalMedia, *, with_year: bool = True) -> dict[str, Any]:
    out: dict[str, Any] = {"title": m.title}
    if with_year and m.year:
        out["year"] = m.year
    if m.ids:
        out["ids"] = dict(m.ids)
    return out


class ScrobbleDispatcher:
    def __init__(
        self,
        session: requests.Session,
        store: TokenStore,
        refresh: Refresher,
        client_id: str,
        *,
        api_url: str = TRAKT_API,
        timeout: float = 15.0,
        app_version: str = "",
    ) -> None:
        self._session = session
        self._store = store
        self._refresh = refresh
        self._client_id = client_id
        self._api = api_url.rstrip("/")
        self._timeout = timeout
        self._app_version = app_version

    def build_body(self, action: ScrobbleAction) -> dict[str, Any]:
        body: dict[str, Any] = {"progress": action.progress}
        if action.season is not None and action.episode is not None:
            ep: dict[str, Any] = {"season": action.season, "number": action.episode}
            if action.episode_title:
                ep["title"] = action.episode_title
            body["show"] = _media_block(action.subject)
            body["episode"] = ep
        else:
            body["movie"] = _media_block(action.subject)
        if self._app_version:
            body["app_version"] = self._app_version
        return body

    def _post(self, path: str, body: dict[str, Any], token: str) -> requests.Response:
        return self._session.post(
            f"{self._api}{path}",
            json=body,
            headers=trakt_headers(self._client_id, token),
            timeout=self._timeout,
        )

    def send(self, action: ScrobbleAction) -> DispatchResult:
        if action.kind not in ACTIONS:
            raise ValueError(f"unknown scrobble action {action.kind!r}")

        pair = self._store.current()
        if not pair.authenticated:
            _LOG.warn(f"no Trakt access token; skipped {action.kind} for '{action.label}'")
            return DispatchResult(ok=False, error=NoToken("no access token"))

        path = f"/scrobble/{action.kind}"
        body = self.build_body(action)
        is_movie = "movie" in body
        refreshed = False
        fallback = False
        attempts = 0

        while True:
            attempts += 1
            try:
                r = self._post(path, body, pair.access_token or "")
            except requests.RequestException as e:
                _LOG.error(f"{action.kind} '{action.label}' {action.progress}% -> network error: {e}")
                return DispatchResult(ok=False, attempts=attempts, fallback=fallback,
                                      error=RemoteUnavailable(str(e)), body=body)

            code = r.status_code
            _LOG.info(f"{action.kind} '{action.label}' {action.progress}% -> {code} (attempt {attempts})")

            if code == 401:
                if refreshed:
                    _LOG.error("Trakt rejected the refreshed token; re-run the OAuth flow")
                    return DispatchResult(ok=False, status=code, attempts=attempts, fallback=fallback,
                                          error=AuthFailed("unauthorized after refresh", code), body=body)
                refreshed = True
                _LOG.info("access token expired, refreshing")
                new = self._refresh(pair)
                if new is None or not new.authenticated:
                    return DispatchResult(ok=False, status=code, attempts=attempts, fallback=fallback,
                                          error=AuthFailed("token refresh failed", code), body=body)
                pair = new
                continue

            if code == 404:
                # Without a year the retry body would be identical to the one just rejected.
                if is_movie and not fallback and "year" in body["movie"]:
                    fallback = True
                    body = copy.deepcopy(body)
                    body["movie"].pop("year", None)
                    _LOG.info(f"movie '{action.label}' not found; retrying without year")
                    continue
                _LOG.warn(f"'{action.label}' not found on Trakt (show, season or episode may not exist)")
                return DispatchResult(ok=False, status=code, attempts=attempts, fallback=fallback,
                                      error=RemoteNotFound("not found", code), body=body)

            if code == 409:
                _LOG.info(f"'{action.label}' was already scrobbled recently")
                return DispatchResult(ok=True, status=code, attempts=attempts, conflict=True,
                                      fallback=fallback,
                                      error=RemoteConflict("already scrobbled", code), body=body)

            if code == 422:
                _LOG.error(f"Trakt rejected payload for '{action.label}': {body}")
                return DispatchResult(ok=False, status=code, attempts=attempts, fallback=fallback,
                                      error=RemoteRejected((r.text or "")[:200], code), body=body)

            if 200 <= code < 300:
                _LOG.success(f"{action.kind.upper()} sent: '{action.label}' ({action.progress}%)")
                return DispatchResult(ok=True, status=code, attempts=attempts, fallback=fallback, body=body)

            _LOG.error(f"{action.kind} '{action.label}' failed {code}: {(r.text or '')[:180]}")
            return DispatchResult(ok=False, status=code, attempts=attempts, fallback=fallback,
                                  error=RemoteUnavailable(f"HTTP {code}", code), body=body)
