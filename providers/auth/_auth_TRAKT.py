# providers/auth/_auth_TRAKT.py
# PlexRelay - Trakt Authentication Provider
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import time
from typing import Any
from urllib.parse import urlencode

import requests

from _logging import log as BASE_LOG
from pr_platform.config_base import TRAKT_API, redirect_uri
from pr_platform.http import USER_AGENT
from pr_platform.token_store import TokenPair, TokenStore

_LOG = BASE_LOG.child("AUTH")

class TraktAuthError(Exception):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _now() -> float:
    return time.time()


def _headers() -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "trakt-api-version": "2",
        "User-Agent": USER_AGENT,
    }


def _client(cfg: dict[str, Any]) -> dict[str, str]:
    tr = cfg.get("trakt") or {}
    return {
        "client_id": str(tr.get("client_id") or "").strip(),
        "client_secret": str(tr.get("client_secret") or "").strip(),
        "api_url": str(tr.get("api_url") or TRAKT_API).strip().rstrip("/"),
    }


def _timeout(cfg: dict[str, Any]) -> float:
    try:
        return float((cfg.get("trakt") or {}).get("timeout") or 15)
    except (TypeError, ValueError):
        return 15.0


def _error_text(r: requests.Response) -> str:
    try:
        body = r.json() or {}
    except ValueError:
        body = {}
    if isinstance(body, dict):
        err = str(body.get("error") or "") or str(body.get("error_description") or "")
        if err:
            return err
    return (r.text or "")[:400]


class _TraktProvider:
    name = "TRAKT"
    label = "Trakt"

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session

    def _http(self) -> Any:
        return self._session if self._session is not None else requests

    def authorize_url(self, cfg: dict[str, Any]) -> str:
        c = _client(cfg)
        api = c["api_url"].replace("://api.", "://", 1)
        q = urlencode({"response_type": "code", "client_id": c["client_id"], "redirect_uri": redirect_uri(cfg)})
        return f"{api}/oauth/authorize?{q}"

    def _token_request(self, cfg: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
        c = _client(cfg)
        r = self._http().post(f"{c['api_url']}/oauth/token", json=payload, headers=_headers(), timeout=_timeout(cfg))
        if r.status_code >= 400:
            raise TraktAuthError(f"token endpoint {r.status_code}: {_error_text(r)}", r.status_code)
        try:
            tok: dict[str, Any] = r.json() or {}
        except ValueError as e:
            raise TraktAuthError(f"token endpoint returned invalid JSON: {e}", r.status_code) from e
        if not str(tok.get("access_token") or "").strip():
            raise TraktAuthError("token response has no access_token", r.status_code)
        return tok

    def exchange_code(self, code: str, store: TokenStore, cfg: dict[str, Any]) -> TokenPair:
        """Authorization-code grant; persists the new pair or raises TraktAuthError."""
        c = _client(cfg)
        if not (c["client_id"] and c["client_secret"]):
            raise TraktAuthError("missing trakt.client_id/client_secret")
        if not (code or "").strip():
            raise TraktAuthError("missing authorization code")

        _LOG.info("TRAKT: exchange authorization code")
        try:
            tok = self._token_request(cfg, {
                "code": code.strip(),
                "client_id": c["client_id"],
                "client_secret": c["client_secret"],
                "redirect_uri": redirect_uri(cfg),
                "grant_type": "authorization_code",
            })
        except requests.RequestException as e:
            raise TraktAuthError(f"network error: {e}") from e

        pair = TokenPair(
            access_token=str(tok.get("access_token")).strip(),
            refresh_token=(str(tok.get("refresh_token") or "").strip() or None),
            issued_at=float(tok.get("created_at") or _now()),
        )
        store.replace(pair)
        _LOG.success("TRAKT: authentication successful")
        return pair

    def _refresh_grant(self, current: TokenPair, store: TokenStore, cfg: dict[str, Any]) -> TokenPair | None:
        c = _client(cfg)
        rt = (current.refresh_token or "").strip()
        if not (c["client_id"] and c["client_secret"] and rt):
            _LOG.error("TRAKT: missing client_id/client_secret/refresh_token for refresh")
            return None

        _LOG.info("TRAKT: refresh token")
        try:
            tok = self._token_request(cfg, {
                "refresh_token": rt,
                "client_id": c["client_id"],
                "client_secret": c["client_secret"],
                "redirect_uri": redirect_uri(cfg),
                "grant_type": "refresh_token",
            })
        except requests.RequestException as e:
            _LOG.error(f"TRAKT: token refresh network error: {e}")
            return None
        except TraktAuthError as e:
            _LOG.error(f"TRAKT: token refresh failed: {e}")
            if e.status is not None and 400 <= e.status < 500:
                # Refresh token rejected; stay unauthenticated until the operator re-authorizes.
                store.clear()
            return None

        _LOG.success("TRAKT: refresh ok")
        return TokenPair(
            access_token=str(tok.get("access_token")).strip(),
            refresh_token=(str(tok.get("refresh_token") or "").strip() or rt),
            issued_at=float(tok.get("created_at") or _now()),
        )

    def refresh(self, store: TokenStore, stale: TokenPair, cfg: dict[str, Any]) -> TokenPair | None:
        """Refresh-token grant, serialized through the store.

        Returns the pair to use from now on, or None when no usable token
        is available after the attempt.
        """
        pair = store.refresh(lambda cur: self._refresh_grant(cur, store, cfg), stale)
        if not pair.authenticated or pair.access_token == stale.access_token:
            return None
        return pair


PROVIDER = _TraktProvider()
__all__ = ["PROVIDER", "_TraktProvider", "TraktAuthError"]
