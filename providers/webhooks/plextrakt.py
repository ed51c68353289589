# providers/webhooks/plextrakt.py
# PlexRelay - Plex Trakt Scrobble Webhook Module
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
import traceback
from dataclasses import dataclass
from typing import AsyncIterator

from pydantic import ValidationError
from starlette.datastructures import Headers, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from _logging import log as BASE_LOG
from pr_platform.token_store import TokenStore
from providers.scrobble.catalog import CanonicalMedia, CatalogResolver
from providers.scrobble.dispatcher import DispatchResult, ScrobbleAction, ScrobbleDispatcher
from providers.scrobble.errors import DecodeError, Filtered, NoToken, RemoteUnavailable, Unauthorized
from providers.scrobble.events import EpisodeMedia, PlaybackNotification, ScrobbleIntent, classify
from providers.webhooks._user_filter import AuthorizationPolicy, is_authorized

_LOG = BASE_LOG.child("WEBHOOK")

PAYLOAD_FIELD = "payload"


@dataclass(frozen=True)
class WebhookOutcome:
    status: int
    message: str
    intent: ScrobbleIntent | None = None


async def _one_shot(body: bytes) -> AsyncIterator[bytes]:
    yield body


async def decode_body(body: bytes, content_type: str | None) -> str:
    """Return the JSON text Plex sent, from a multipart ``payload`` part or the raw body."""
    ctype = (content_type or "").strip()
    if not ctype.lower().startswith("multipart/"):
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"body is not UTF-8: {e}") from e
        if not text.strip():
            raise DecodeError("empty body")
        return text

    parser = MultiPartParser(Headers({"content-type": ctype}), _one_shot(body))
    try:
        form = await parser.parse()
    except (MultiPartException, KeyError, ValueError) as e:
        raise DecodeError(f"malformed multipart body: {e}") from e

    try:
        value = form.get(PAYLOAD_FIELD)
        if value is None:
            raise DecodeError(f"no '{PAYLOAD_FIELD}' part in multipart body")
        if isinstance(value, UploadFile):
            raw = await value.read()
            try:
                value = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"payload part is not UTF-8: {e}") from e
        text = str(value)
    finally:
        await form.close()

    if not text.strip():
        raise DecodeError(f"'{PAYLOAD_FIELD}' part is empty")
    return text


def parse_notification(text: str) -> PlaybackNotification:
    try:
        doc = json.loads(text)
    except ValueError as e:
        raise DecodeError(f"payload is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise DecodeError("payload is not a JSON object")
    try:
        return PlaybackNotification.model_validate(doc)
    except ValidationError as e:
        raise DecodeError(f"payload does not look like a Plex webhook: {e.error_count()} error(s)") from e


def _describe(n: PlaybackNotification) -> str:
    md = n.metadata
    if md is None:
        return "?"
    if md.type == "episode" and md.grandparent_title:
        return f"{md.grandparent_title} {md.parent_index}x{md.index} '{md.title}'"
    return md.title or md.grandparent_title or "?"


def process_webhook(text: str, policy: AuthorizationPolicy) -> WebhookOutcome:
    """Authorize and classify one payload; no network I/O happens here."""
    notification = parse_notification(text)
    acc = notification.account
    _LOG.debug(
        f"incoming '{notification.event}' user='{acc.name if acc else ''}' "
        f"id={acc.id if acc else None} owner={notification.owner} media='{_describe(notification)}'"
    )

    try:
        if not is_authorized(acc, policy):
            raise Unauthorized(acc.name if acc else "unknown")
        intent = classify(notification)
    except Filtered as e:
        _LOG.info(f"ignored: {e.reply} ({e})")
        return WebhookOutcome(200, e.reply)

    _LOG.info(f"accepted {notification.event} -> {intent.action} {intent.progress}% '{intent.media.label}'")
    return WebhookOutcome(200, "OK", intent)


async def handle_webhook(body: bytes, content_type: str | None, policy: AuthorizationPolicy) -> WebhookOutcome:
    try:
        text = await decode_body(body, content_type)
        return process_webhook(text, policy)
    except DecodeError as e:
        _LOG.warn(f"bad webhook body: {e}")
        return WebhookOutcome(400, "invalid payload")
    except Exception as e:
        _LOG.error(f"webhook processing error: {e}")
        _LOG.debug(traceback.format_exc())
        return WebhookOutcome(500, "internal error")


class ScrobbleRelay:
    """Detached delivery stage: resolve against Trakt, then scrobble."""

    def __init__(self, resolver: CatalogResolver, dispatcher: ScrobbleDispatcher, store: TokenStore) -> None:
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.store = store

    @staticmethod
    def build_action(intent: ScrobbleIntent, subject: CanonicalMedia) -> ScrobbleAction:
        media = intent.media
        if isinstance(media, EpisodeMedia):
            return ScrobbleAction(
                kind=intent.action,
                progress=intent.progress,
                subject=subject,
                season=media.season,
                episode=media.episode,
                episode_title=media.episode_title,
            )
        return ScrobbleAction(kind=intent.action, progress=intent.progress, subject=subject)

    def deliver(self, intent: ScrobbleIntent) -> DispatchResult:
        try:
            if not self.store.current().authenticated:
                _LOG.warn("no Trakt token available; run the OAuth flow (/callback) first")
                return DispatchResult(ok=False, error=NoToken("no access token"))
            subject = self.resolver.resolve(intent.media)
            result = self.dispatcher.send(self.build_action(intent, subject))
        except Exception as e:
            _LOG.error(f"delivery of '{intent.media.label}' crashed: {e}")
            _LOG.debug(traceback.format_exc())
            return DispatchResult(ok=False, error=RemoteUnavailable(str(e)))

        if not result.ok and result.error is not None:
            _LOG.warn(f"delivery of '{intent.media.label}' failed: {type(result.error).__name__} {result.error}")
        return result
