# providers/scrobble/catalog.py
# PlexRelay - Trakt catalog lookups (title search, episode existence)
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from _logging import log as BASE_LOG
from pr_platform.config_base import TRAKT_API
from pr_platform.http import trakt_headers
from providers.scrobble.events import EpisodeMedia, MediaMetadata, MovieMedia

_LOG = BASE_LOG.child("CATALOG")

_ID_KEYS = ("trakt", "slug", "imdb", "tmdb", "tvdb")


@dataclass(frozen=True)
class CanonicalMedia:
    kind: str
    title: str
    year: int | None = None
    ids: dict[str, Any] = field(default_factory=dict)

    @property
    def resolved(self) -> bool:
        return bool(self.ids)


def _clean_ids(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        return {}
    return {k: raw[k] for k in _ID_KEYS if raw.get(k) not in (None, "")}


class CatalogResolver:
    """Maps Plex titles onto Trakt's catalog.

    Lookups never raise: an HTTP error, a bad body or an empty result set
    all come back as ``None`` and the caller keeps the Plex metadata.
    """

    def __init__(
        self,
        session: requests.Session,
        client_id: str,
        *,
        api_url: str = TRAKT_API,
        timeout: float = 15.0,
    ) -> None:
        self._session = session
        self._client_id = client_id
        self._api = api_url.rstrip("/")
        self._timeout = timeout

    def _get(self, path: str, params: dict[str, Any] | None = None) -> requests.Response | None:
        try:
            return self._session.get(
                f"{self._api}{path}",
                params=params,
                headers=trakt_headers(self._client_id),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            _LOG.warn(f"catalog request {path} failed: {e}")
            return None

    def _search(self, kind: str, title: str) -> CanonicalMedia | None:
        if not title:
            return None
        r = self._get(f"/search/{kind}", {"query": title})
        if r is None:
            return None
        if r.status_code != 200:
            _LOG.warn(f"search {kind} '{title}' -> {r.status_code}")
            return None
        try:
            arr = r.json() or []
        except ValueError:
            _LOG.warn(f"search {kind} '{title}' returned invalid JSON")
            return None
        if not isinstance(arr, list) or not arr:
            _LOG.info(f"'{title}' not found in Trakt {kind} search")
            return None

        for i, hit in enumerate(arr[:3]):
            obj = (hit or {}).get(kind) or {}
            _LOG.debug(f"  {i + 1}. '{obj.get('title')}' ({obj.get('year')}) score={(hit or {}).get('score', 'n/a')}")

        obj = (arr[0] or {}).get(kind) or {}
        name = str(obj.get("title") or "").strip()
        if not name:
            return None
        year = obj.get("year")
        found = CanonicalMedia(
            kind=kind,
            title=name,
            year=year if isinstance(year, int) else None,
            ids=_clean_ids(obj.get("ids")),
        )
        _LOG.info(f"using Trakt {kind} '{found.title}' ({found.year})")
        return found

    def resolve_show(self, title: str) -> CanonicalMedia | None:
        return self._search("show", title)

    def resolve_movie(self, title: str) -> CanonicalMedia | None:
        return self._search("movie", title)

    def episode_exists(self, show_id: Any, season: int, episode: int) -> bool:
        sid = quote(str(show_id), safe="")
        r = self._get(f"/shows/{sid}/seasons/{season}/episodes/{episode}")
        if r is None:
            return False
        if r.status_code == 404:
            _LOG.info(f"episode {season}x{episode} does not exist on Trakt show {show_id}")
            return False
        if r.status_code != 200:
            _LOG.warn(f"episode check {show_id} {season}x{episode} -> {r.status_code}")
            return False
        try:
            body = r.json() or {}
        except ValueError:
            return False
        return isinstance(body, dict) and bool(body.get("title") or body.get("ids"))

    def resolve(self, media: MediaMetadata) -> CanonicalMedia:
        if isinstance(media, EpisodeMedia):
            return self._resolve_episode(media)
        return self._resolve_movie(media)

    def _resolve_episode(self, media: EpisodeMedia) -> CanonicalMedia:
        show = self.resolve_show(media.series_title)
        if show is not None:
            show_id = show.ids.get("slug") or show.ids.get("trakt")
            # Advisory only; the show-level scrobble is still attempted.
            if show_id and not self.episode_exists(show_id, media.season, media.episode):
                _LOG.warn(
                    f"episode {media.season}x{media.episode} missing on Trakt for '{show.title}'; "
                    "sending show-level scrobble anyway"
                )
            return show

        year = media.series_year or media.year or None
        _LOG.info(f"unresolved show '{media.series_title}', using Plex data (year={year or 'none'})")
        return CanonicalMedia(kind="show", title=media.series_title, year=year)

    def _resolve_movie(self, media: MovieMedia) -> CanonicalMedia:
        movie = self.resolve_movie(media.title)
        if movie is not None:
            return movie
        _LOG.info(f"unresolved movie '{media.title}', using Plex data (year={media.year or 'none'})")
        return CanonicalMedia(kind="movie", title=media.title, year=media.year)
