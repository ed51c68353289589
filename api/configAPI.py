# /api/configAPI.py
# PlexRelay - Configuration and status API
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from pr_platform.config_base import redact_config, redirect_uri, validate_config, webhook_url
from providers.webhooks._user_filter import AuthorizationPolicy


def _nostore(res: JSONResponse) -> JSONResponse:
    res.headers["Cache-Control"] = "no-store"
    return res


router = APIRouter(prefix="/api", tags=["config"])


def status_snapshot(cfg: dict[str, Any], authenticated: bool) -> dict[str, Any]:
    return {
        "authenticated": authenticated,
        "webhook_url": webhook_url(cfg),
        "callback_url": redirect_uri(cfg),
        "user_filter": AuthorizationPolicy.from_config(cfg).describe(),
        "warnings": validate_config(cfg),
    }


@router.get("/config")
def api_config(request: Request) -> JSONResponse:
    cfg = dict(request.app.state.cfg or {})
    return _nostore(JSONResponse(redact_config(cfg)))


@router.get("/status")
def api_status(request: Request) -> JSONResponse:
    st = request.app.state
    return _nostore(JSONResponse(status_snapshot(st.cfg, st.store.current().authenticated)))
