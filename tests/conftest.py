# tests/conftest.py
from __future__ import annotations

from typing import Any

import pytest

from pr_platform.config_base import _ENV_MAP, load_config
from pr_platform.token_store import TokenPair, TokenStore


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Point CONFIG_BASE at a temp dir and drop any env overrides from the host."""
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    for name, *_ in _ENV_MAP:
        monkeypatch.delenv(name, raising=False)
    yield tmp_path


@pytest.fixture
def cfg() -> dict[str, Any]:
    c = load_config()
    c["trakt"]["client_id"] = "cid"
    c["trakt"]["client_secret"] = "csecret"
    c["plex"]["allowed_users"] = ["alice"]
    return c


@pytest.fixture
def store(tmp_path) -> TokenStore:
    s = TokenStore(tmp_path / "trakt_tokens.json")
    s.replace(TokenPair(access_token="tok-1", refresh_token="ref-1", issued_at=1000.0))
    return s


@pytest.fixture
def empty_store(tmp_path) -> TokenStore:
    s = TokenStore(tmp_path / "empty_tokens.json")
    s.load()
    return s

