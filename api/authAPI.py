# /api/authAPI.py
# PlexRelay - Trakt OAuth callback routes
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import html

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from providers.auth._auth_TRAKT import TraktAuthError

router = APIRouter(tags=["auth"])

_OK_PAGE = """<h1>Authentication successful</h1>
<p>PlexRelay is now connected to Trakt.</p>
<p>You can close this window.</p>"""


@router.get("/callback", response_model=None)
def oauth_callback(request: Request, code: str | None = Query(None)) -> HTMLResponse | PlainTextResponse:
    if not (code or "").strip():
        return PlainTextResponse("Missing authorization code", status_code=400)
    st = request.app.state
    try:
        st.auth.exchange_code(code or "", st.store, st.cfg)
    except TraktAuthError as e:
        return HTMLResponse(f"<h1>Authentication failed</h1><p>{html.escape(str(e))}</p>", status_code=500)
    return HTMLResponse(_OK_PAGE)


@router.get("/auth/trakt")
def oauth_start(request: Request) -> RedirectResponse:
    st = request.app.state
    return RedirectResponse(st.auth.authorize_url(st.cfg), status_code=302)
