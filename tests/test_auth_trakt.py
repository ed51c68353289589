# tests/test_auth_trakt.py
from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest
import requests

from pr_platform.token_store import TokenStore
from providers.auth._auth_TRAKT import TraktAuthError, _TraktProvider
from fakes import FakeResponse, FakeSession


def _token(access="tok-2", refresh="ref-2"):
    return FakeResponse(200, {"access_token": access, "refresh_token": refresh, "created_at": 5000, "expires_in": 7776000})


def test_authorize_url(cfg):
    url = _TraktProvider().authorize_url(cfg)
    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://trakt.tv/oauth/authorize"
    q = parse_qs(parsed.query)
    assert q["client_id"] == ["cid"]
    assert q["redirect_uri"] == ["http://localhost:3000/callback"]
    assert q["response_type"] == ["code"]


class TestExchange:
    def test_persists_pair(self, cfg, tmp_path):
        session = FakeSession().on("POST", "/oauth/token", _token("a1", "r1"))
        store = TokenStore(tmp_path / "t.json")
        pair = _TraktProvider(session).exchange_code("the-code", store, cfg)

        assert (pair.access_token, pair.refresh_token, pair.issued_at) == ("a1", "r1", 5000.0)
        assert TokenStore(store.path).load() == pair
        sent = session.calls[0].json
        assert sent["grant_type"] == "authorization_code"
        assert sent["code"] == "the-code"
        assert sent["client_secret"] == "csecret"
        assert sent["redirect_uri"] == "http://localhost:3000/callback"

    def test_rejected_code(self, cfg, empty_store):
        session = FakeSession().on("POST", "/oauth/token", FakeResponse(401, {"error": "invalid_grant"}))
        with pytest.raises(TraktAuthError) as ei:
            _TraktProvider(session).exchange_code("bad", empty_store, cfg)
        assert ei.value.status == 401
        assert "invalid_grant" in str(ei.value)
        assert not empty_store.current().authenticated

    def test_network_error(self, cfg, empty_store):
        session = FakeSession().on("POST", "/oauth/token", requests.ConnectionError("down"))
        with pytest.raises(TraktAuthError):
            _TraktProvider(session).exchange_code("c", empty_store, cfg)

    def test_missing_client_credentials(self, cfg, empty_store):
        cfg["trakt"]["client_secret"] = ""
        session = FakeSession()
        with pytest.raises(TraktAuthError):
            _TraktProvider(session).exchange_code("c", empty_store, cfg)
        assert session.calls == []


class TestRefresh:
    def test_new_pair_is_persisted(self, cfg, store):
        session = FakeSession().on("POST", "/oauth/token", _token())
        stale = store.current()
        new = _TraktProvider(session).refresh(store, stale, cfg)

        assert new is not None and new.access_token == "tok-2"
        assert store.current().access_token == "tok-2"
        assert TokenStore(store.path).load().refresh_token == "ref-2"
        assert session.calls[0].json["grant_type"] == "refresh_token"
        assert session.calls[0].json["refresh_token"] == "ref-1"

    def test_keeps_refresh_token_when_not_rotated(self, cfg, store):
        session = FakeSession().on("POST", "/oauth/token", FakeResponse(200, {"access_token": "tok-2"}))
        new = _TraktProvider(session).refresh(store, store.current(), cfg)
        assert new is not None and new.refresh_token == "ref-1"

    def test_rejected_refresh_clears_tokens(self, cfg, store):
        session = FakeSession().on("POST", "/oauth/token", FakeResponse(400, {"error": "invalid_grant"}))
        assert _TraktProvider(session).refresh(store, store.current(), cfg) is None
        assert not store.current().authenticated
        assert not TokenStore(store.path).load().authenticated

    def test_network_error_keeps_tokens(self, cfg, store):
        session = FakeSession().on("POST", "/oauth/token", requests.Timeout("slow"))
        assert _TraktProvider(session).refresh(store, store.current(), cfg) is None
        assert store.current().access_token == "tok-1"

    def test_server_error_keeps_tokens(self, cfg, store):
        session = FakeSession().on("POST", "/oauth/token", FakeResponse(503, text="maintenance"))
        assert _TraktProvider(session).refresh(store, store.current(), cfg) is None
        assert store.current().access_token == "tok-1"

    def test_already_refreshed_skips_network(self, cfg, store):
        stale = store.current()
        session = FakeSession().on("POST", "/oauth/token", _token("tok-2"))
        _TraktProvider(session).refresh(store, stale, cfg)

        again = _TraktProvider(session).refresh(store, stale, cfg)
        assert again is not None and again.access_token == "tok-2"
        assert len(session.calls) == 1
