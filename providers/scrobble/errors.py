# providers/scrobble/errors.py
# PlexRelay - error taxonomy for the webhook pipeline
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations


class RelayError(Exception):
    """Base for every error the pipeline raises or reports."""


class DecodeError(RelayError):
    """Inbound body could not be turned into a notification (HTTP 400)."""


# Final rejections; the webhook still answers 200 so Plex does not retry.
class Filtered(RelayError):
    reply = "ignored"


class Unauthorized(Filtered):
    reply = "user not authorized"


class UnsupportedEvent(Filtered):
    reply = "event ignored"


class UnsupportedMedia(Filtered):
    reply = "unsupported media type"


class IncompleteMetadata(Filtered):
    reply = "incomplete metadata"


# Delivery outcomes, reported through logs only.
class DeliveryError(RelayError):
    def __init__(self, message: str = "", status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NoToken(DeliveryError):
    pass


class AuthFailed(DeliveryError):
    pass


class RemoteNotFound(DeliveryError):
    pass


class RemoteRejected(DeliveryError):
    pass


class RemoteConflict(DeliveryError):
    pass


class RemoteUnavailable(DeliveryError):
    pass


__all__ = [
    "RelayError",
    "DecodeError",
    "Filtered",
    "Unauthorized",
    "UnsupportedEvent",
    "UnsupportedMedia",
    "IncompleteMetadata",
    "DeliveryError",
    "NoToken",
    "AuthFailed",
    "RemoteNotFound",
    "RemoteRejected",
    "RemoteConflict",
    "RemoteUnavailable",
]
