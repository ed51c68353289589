# providers/scrobble/events.py
# PlexRelay - Plex webhook payload model and event translation
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from providers.scrobble.errors import IncompleteMetadata, UnsupportedEvent, UnsupportedMedia

EVENT_ACTIONS: dict[str, str] = {
    "play": "start",
    "resume": "start",
    "pause": "pause",
    "stop": "stop",
    "scrobble": "stop",
}

MEDIA_KINDS = ("episode", "movie")


def _lenient_int(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(float(str(v).strip()))
    except (TypeError, ValueError):
        return None


def _text(v: Any) -> str:
    return "" if v is None else str(v).strip()


class PlexAccount(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int | str | None = None
    title: str = ""

    @field_validator("title", mode="before")
    @classmethod
    def clean_title(cls, v: Any) -> str:
        return _text(v)


class PlexMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    type: str = ""
    title: str = ""
    grandparent_title: str = Field("", alias="grandparentTitle")
    parent_index: int | None = Field(None, alias="parentIndex")
    index: int | None = None
    year: int | None = None
    grandparent_year: int | None = Field(None, alias="grandparentYear")
    duration: int | None = None
    view_offset: int | None = Field(None, alias="viewOffset")

    @field_validator("type", "title", "grandparent_title", mode="before")
    @classmethod
    def clean_strings(cls, v: Any) -> str:
        return _text(v)

    @field_validator("parent_index", "index", "year", "grandparent_year", "duration", "view_offset", mode="before")
    @classmethod
    def clean_ints(cls, v: Any) -> int | None:
        return _lenient_int(v)


@dataclass(frozen=True)
class Account:
    name: str
    id: str | None
    is_owner: bool


class PlaybackNotification(BaseModel):
    """One decoded Plex webhook; never mutated after parsing."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    event: str = ""
    owner: bool = False
    plex_account: PlexAccount | None = Field(None, alias="Account")
    metadata: PlexMetadata | None = Field(None, alias="Metadata")

    @field_validator("event", mode="before")
    @classmethod
    def clean_event(cls, v: Any) -> str:
        return _text(v).lower()

    @field_validator("owner", mode="before")
    @classmethod
    def clean_owner(cls, v: Any) -> bool:
        if isinstance(v, bool):
            return v
        return _text(v).lower() in ("1", "true", "yes")

    @property
    def event_kind(self) -> str:
        e = self.event
        return e[len("media."):] if e.startswith("media.") else e

    @property
    def account(self) -> Account | None:
        acc = self.plex_account
        if acc is None:
            return None
        acc_id = None if acc.id is None or str(acc.id).strip() == "" else str(acc.id).strip()
        return Account(name=acc.title, id=acc_id, is_owner=self.owner)


@dataclass(frozen=True)
class EpisodeMedia:
    kind: ClassVar[str] = "episode"

    series_title: str
    season: int
    episode: int
    episode_title: str = ""
    series_year: int | None = None
    year: int | None = None
    view_offset_ms: int | None = None
    duration_ms: int | None = None

    @property
    def label(self) -> str:
        tail = f" - {self.episode_title}" if self.episode_title else ""
        return f"{self.series_title} S{self.season:02d}E{self.episode:02d}{tail}"


@dataclass(frozen=True)
class MovieMedia:
    kind: ClassVar[str] = "movie"

    title: str
    year: int | None = None
    view_offset_ms: int | None = None
    duration_ms: int | None = None

    @property
    def label(self) -> str:
        return f"{self.title} ({self.year})" if self.year else self.title


MediaMetadata = Union[EpisodeMedia, MovieMedia]


@dataclass(frozen=True)
class ScrobbleIntent:
    action: str
    progress: int
    media: MediaMetadata
    user: str = ""


def compute_progress(action: str, view_offset_ms: int | None, duration_ms: int | None) -> int:
    # A stop with an unknown position is the "finished watching" signal.
    if view_offset_ms is None or not duration_ms or duration_ms <= 0:
        return 100 if action == "stop" else 0
    pct = math.floor(view_offset_ms * 100.0 / duration_ms + 0.5)
    return max(0, min(100, int(pct)))


def media_from_metadata(md: PlexMetadata) -> MediaMetadata:
    mt = md.type.lower()
    if mt == "episode":
        if not md.grandparent_title or md.parent_index is None or md.index is None:
            raise IncompleteMetadata(
                f"episode needs show/season/episode (show={md.grandparent_title!r} "
                f"season={md.parent_index} episode={md.index})"
            )
        return EpisodeMedia(
            series_title=md.grandparent_title,
            season=md.parent_index,
            episode=md.index,
            episode_title=md.title,
            series_year=md.grandparent_year,
            year=md.year,
            view_offset_ms=md.view_offset,
            duration_ms=md.duration,
        )
    if mt == "movie":
        if not md.title:
            raise IncompleteMetadata("movie without a title")
        return MovieMedia(
            title=md.title,
            year=md.year,
            view_offset_ms=md.view_offset,
            duration_ms=md.duration,
        )
    raise UnsupportedMedia(f"media type {md.type or 'none'!r}")


def classify(notification: PlaybackNotification) -> ScrobbleIntent:
    """Turn a notification into a scrobble intent or raise a ``Filtered`` error."""
    action = EVENT_ACTIONS.get(notification.event_kind)
    if action is None:
        raise UnsupportedEvent(f"event {notification.event or 'none'!r}")

    md = notification.metadata
    if md is None or md.type.lower() not in MEDIA_KINDS:
        raise UnsupportedMedia(f"media type {(md.type if md else '') or 'none'!r}")

    media = media_from_metadata(md)
    progress = compute_progress(action, media.view_offset_ms, media.duration_ms)
    acc = notification.account
    return ScrobbleIntent(action=action, progress=progress, media=media, user=(acc.name if acc else ""))
