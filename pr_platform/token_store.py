# pr_platform/token_store.py
# Durable holder of the single Trakt OAuth token pair.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from _logging import log as BASE_LOG
from pr_platform.config_base import write_json_atomic

_LOG = BASE_LOG.child("TOKENS")


@dataclass(frozen=True)
class TokenPair:
    access_token: str | None = None
    refresh_token: str | None = None
    issued_at: float = field(default_factory=time.time)

    @property
    def authenticated(self) -> bool:
        return bool(self.access_token)

    def to_record(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "issued_at": self.issued_at,
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> TokenPair:
        """Read our own record, or the older camelCase one (`timestamp` in ms)."""
        try:
            if rec.get("issued_at") is not None:
                issued = float(rec["issued_at"])
            else:
                issued = float(rec.get("timestamp") or 0.0) / 1000.0
        except (TypeError, ValueError):
            issued = 0.0
        access = rec.get("access_token") or rec.get("accessToken")
        refresh = rec.get("refresh_token") or rec.get("refreshToken")
        return cls(
            access_token=(str(access or "").strip() or None),
            refresh_token=(str(refresh or "").strip() or None),
            issued_at=issued,
        )


EMPTY = TokenPair(issued_at=0.0)


class TokenStore:
    """Owns the token pair; every read and write goes through one lock.

    ``replace`` writes the record to disk before the new pair becomes
    visible in memory, so a crash can never leave memory ahead of storage.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()
        self._pair: TokenPair = EMPTY
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> TokenPair:
        with self._lock:
            if self._loaded:
                return self._pair
            self._loaded = True
            if not self._path.exists():
                _LOG.info("no saved Trakt tokens; unauthenticated until /callback completes")
                return self._pair
            try:
                with self._path.open("r", encoding="utf-8") as f:
                    rec = json.load(f)
            except (OSError, ValueError) as e:
                _LOG.warn(f"token file unreadable ({self._path}): {e}")
                return self._pair
            if not isinstance(rec, dict):
                _LOG.warn(f"token file has unexpected shape ({self._path})")
                return self._pair
            self._pair = TokenPair.from_record(rec)
            _LOG.info("Trakt tokens loaded" if self._pair.authenticated else "token file holds no access token")
            return self._pair

    def current(self) -> TokenPair:
        with self._lock:
            return self._pair

    def replace(self, pair: TokenPair) -> None:
        with self._lock:
            write_json_atomic(self._path, pair.to_record())
            self._pair = pair
            self._loaded = True
        _LOG.success("Trakt tokens saved")

    def clear(self) -> None:
        self.replace(TokenPair(issued_at=time.time()))

    def refresh(self, refresher: Callable[[TokenPair], TokenPair | None], stale: TokenPair) -> TokenPair:
        """Serialized read-modify-persist.

        If *stale* is no longer the current pair another caller already
        refreshed, and the newer pair is returned without calling *refresher*.
        """
        # The lock is held across the token request so readers never see a
        # pair that is about to be replaced; they wait at most one timeout.
        with self._lock:
            if self._pair.access_token != stale.access_token:
                _LOG.debug("token already refreshed by a concurrent request")
                return self._pair
            new = refresher(self._pair)
            if new is not None:
                self.replace(new)
            return self._pair
