# pr_platform/http.py
# Shared requests session factory for Trakt calls.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = "PlexRelay/1.0"

_RETRY_STATUS = (429, 500, 502, 503, 504)


def trakt_headers(client_id: str, token: str | None = None) -> dict[str, str]:
    h = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "trakt-api-version": "2",
        "trakt-api-key": client_id,
        "User-Agent": USER_AGENT,
    }
    if token:
        h["Authorization"] = f"Bearer {token}"
    return h


def make_session(retries: int = 0) -> requests.Session:
    """Session for Trakt; *retries* only ever applies to idempotent GETs."""
    s = requests.Session()
    if retries > 0:
        policy = Retry(
            total=retries,
            connect=retries,
            read=retries,
            status=retries,
            backoff_factor=0.5,
            status_forcelist=_RETRY_STATUS,
            allowed_methods=frozenset({"GET"}),
            respect_retry_after_header=True,
            raise_on_status=False,
        )
    else:
        policy = Retry(total=0, connect=0, read=0, status=0, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=policy)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s
