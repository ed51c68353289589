# tests/test_events.py
from __future__ import annotations

import pytest

from providers.scrobble.errors import Filtered, IncompleteMetadata, UnsupportedEvent, UnsupportedMedia
from providers.scrobble.events import (
    EpisodeMedia,
    MovieMedia,
    PlaybackNotification,
    classify,
    compute_progress,
)
from fakes import plex_payload


def _episode_md(**kw):
    md = {
        "type": "episode",
        "title": "Pilot",
        "grandparentTitle": "Show X",
        "parentIndex": 1,
        "index": 2,
        "year": 2010,
        "duration": 9000,
        "viewOffset": 4500,
    }
    md.update(kw)
    return md


def _note(**kw) -> PlaybackNotification:
    return PlaybackNotification.model_validate(plex_payload(**kw))


@pytest.mark.parametrize(
    "event, action",
    [
        ("media.play", "start"),
        ("media.resume", "start"),
        ("media.pause", "pause"),
        ("media.stop", "stop"),
        ("media.scrobble", "stop"),
    ],
)
def test_event_mapping(event, action):
    assert classify(_note(event=event)).action == action


@pytest.mark.parametrize("event", ["media.rate", "library.new", "admin.database.backup", ""])
def test_unsupported_events(event):
    with pytest.raises(UnsupportedEvent) as ei:
        classify(_note(event=event))
    assert ei.value.reply == "event ignored"


@pytest.mark.parametrize("mtype", ["track", "show", "season", "clip", ""])
def test_unsupported_media(mtype):
    with pytest.raises(UnsupportedMedia):
        classify(_note(Metadata={"type": mtype, "title": "x"}))


def test_missing_metadata_is_unsupported():
    doc = plex_payload()
    del doc["Metadata"]
    with pytest.raises(UnsupportedMedia):
        classify(PlaybackNotification.model_validate(doc))


def test_filtered_errors_share_base():
    for cls in (UnsupportedEvent, UnsupportedMedia, IncompleteMetadata):
        assert issubclass(cls, Filtered)


class TestProgress:
    def test_half_way(self):
        assert compute_progress("start", 4500, 9000) == 50
        assert compute_progress("pause", 4500, 9000) == 50
        assert compute_progress("stop", 4500, 9000) == 50

    def test_rounds_half_up(self):
        assert compute_progress("pause", 1, 200) == 1
        assert compute_progress("pause", 3, 200) == 2
        assert compute_progress("pause", 2, 1000) == 0

    def test_clamped(self):
        assert compute_progress("pause", 12000, 9000) == 100
        assert compute_progress("pause", -50, 9000) == 0

    @pytest.mark.parametrize("offset, duration", [(None, 9000), (4500, None), (4500, 0), (None, None)])
    def test_defaults_without_position(self, offset, duration):
        assert compute_progress("start", offset, duration) == 0
        assert compute_progress("pause", offset, duration) == 0
        assert compute_progress("stop", offset, duration) == 100

    def test_from_notification(self):
        intent = classify(_note(event="media.stop", Metadata={"type": "movie", "title": "Arrival"}))
        assert intent.progress == 100


class TestEpisode:
    def test_fields(self):
        intent = classify(_note(event="media.pause", Metadata=_episode_md()))
        media = intent.media
        assert isinstance(media, EpisodeMedia)
        assert (media.series_title, media.season, media.episode) == ("Show X", 1, 2)
        assert media.episode_title == "Pilot"
        assert media.year == 2010
        assert intent.progress == 50
        assert intent.user == "alice"
        assert media.label == "Show X S01E02 - Pilot"

    def test_string_numbers_are_accepted(self):
        media = classify(_note(Metadata=_episode_md(parentIndex="3", index="07"))).media
        assert (media.season, media.episode) == (3, 7)

    def test_season_zero_is_valid(self):
        media = classify(_note(Metadata=_episode_md(parentIndex=0, index=1))).media
        assert media.season == 0

    @pytest.mark.parametrize("drop", ["grandparentTitle", "parentIndex", "index"])
    def test_incomplete(self, drop):
        md = _episode_md()
        del md[drop]
        with pytest.raises(IncompleteMetadata) as ei:
            classify(_note(Metadata=md))
        assert ei.value.reply == "incomplete metadata"


class TestMovie:
    def test_fields(self):
        intent = classify(_note())
        assert isinstance(intent.media, MovieMedia)
        assert intent.media.title == "Arrival"
        assert intent.media.year == 2016
        assert intent.action == "start"
        assert intent.progress == 50

    def test_missing_title(self):
        with pytest.raises(IncompleteMetadata):
            classify(_note(Metadata={"type": "movie", "year": 1999}))

    def test_year_optional(self):
        intent = classify(_note(Metadata={"type": "movie", "title": "Untitled"}))
        assert intent.media.year is None
        assert intent.media.label == "Untitled"


class TestAccount:
    def test_account_carries_owner_flag(self):
        acc = _note(owner=False, Account={"id": 42, "title": "bob"}).account
        assert acc is not None
        assert (acc.name, acc.id, acc.is_owner) == ("bob", "42", False)

    def test_no_account(self):
        doc = plex_payload()
        del doc["Account"]
        assert PlaybackNotification.model_validate(doc).account is None

    def test_owner_string_flag(self):
        assert _note(owner="true").owner is True
        assert _note(owner="0").owner is False
